"""
Tests for atlas/climate.py — NOAA CDO aggregation and the climate records client.
"""
import asyncio

import httpx
import pytest

from atlas.climate import ClimateRecordsClient, aggregate_climate

NOAA_RESULTS = {
    "metadata": {"resultset": {"count": 7}},
    "results": [
        {"date": "2023-07-01T00:00:00", "datatype": "TMAX", "station": "GHCND:USW00013958", "value": 30.0},
        {"date": "2023-07-01T00:00:00", "datatype": "TMIN", "station": "GHCND:USW00013958", "value": 20.0},
        {"date": "2023-07-01T00:00:00", "datatype": "AWND", "station": "GHCND:USW00013958", "value": 5.0},
        {"date": "2023-07-01T00:00:00", "datatype": "PRCP", "station": "GHCND:USW00013958", "value": 2.0},
        {"date": "2023-07-02T00:00:00", "datatype": "TMAX", "station": "GHCND:USW00013958", "value": 28.0},
        {"date": "2023-07-02T00:00:00", "datatype": "TMIN", "station": "GHCND:USW00013958", "value": 18.0},
        {"date": "2023-07-02T00:00:00", "datatype": "PRCP", "station": "GHCND:USW00013958", "value": 0.0},
    ],
}


class TestAggregateClimate:
    """Reduction of raw CDO rows to a window summary."""

    def test_summary(self):
        """Daily rows are grouped by date and averaged over the day count."""
        data = aggregate_climate(NOAA_RESULTS)
        s = data.summary
        assert s.days_analyzed == 2
        assert s.avg_temp_max == pytest.approx(29.0)
        assert s.avg_temp_min == pytest.approx(19.0)
        assert s.avg_temp == pytest.approx(24.0)
        assert s.avg_wind_speed == pytest.approx(2.5)
        assert s.total_precipitation == pytest.approx(2.0)
        assert (s.date_range_start, s.date_range_end) == ("2023-07-01", "2023-07-02")
        assert data.simulated is False

    def test_days(self):
        """Per-day records keep missing measurements as None and zeros as zero."""
        days = aggregate_climate(NOAA_RESULTS).days
        assert [d.date for d in days] == ["2023-07-01", "2023-07-02"]
        assert days[1].wind_speed is None
        assert days[1].precipitation == 0.0

    @pytest.mark.parametrize("raw", [{}, {"results": []}, {"metadata": {}}, None, []])
    def test_empty_is_none(self, raw):
        """No result rows means no data."""
        assert aggregate_climate(raw) is None


class TestClimateRecordsClient:
    """Client behaviour through the gateway."""

    def test_live_request(self, gateway, mock_http):
        """With a token the client queries GHCND for the ZIP and window."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=NOAA_RESULTS)

        client = ClimateRecordsClient(gateway, mock_http(handler), token="secret")
        data = asyncio.run(client.fetch_climate("78701", "2023-07-01", "2023-07-02"))

        assert data.summary.days_analyzed == 2
        assert len(seen) == 1
        req = seen[0]
        assert req.url.path.endswith("/data")
        assert req.url.params["locationid"] == "ZIP:78701"
        assert req.url.params["datasetid"] == "GHCND"
        assert req.url.params["datatypeid"] == "TMAX,TMIN,AWND,PRCP"
        assert req.url.params["units"] == "metric"
        assert req.headers["token"] == "secret"

    def test_cached_within_ttl(self, gateway, mock_http):
        """A repeated window is served from cache."""
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(200, json=NOAA_RESULTS)

        client = ClimateRecordsClient(gateway, mock_http(handler), token="secret")
        asyncio.run(client.fetch_climate("78701", "2023-07-01", "2023-07-02"))
        asyncio.run(client.fetch_climate("78701", "2023-07-01", "2023-07-02"))
        assert len(calls) == 1

    def test_no_token_simulates(self, gateway, mock_http):
        """Without a token the upstream is never contacted."""
        def handler(request):
            raise AssertionError("upstream must not be called")

        client = ClimateRecordsClient(gateway, mock_http(handler), token=None)
        data = asyncio.run(client.fetch_climate("78701", "2023-01-01", "2023-01-31"))
        assert data.simulated is True
        assert data.summary.days_analyzed == 31
        assert data.days == []

    def test_server_error_falls_back(self, gateway, mock_http):
        """Repeated 5xx responses fall back to simulation."""
        client = ClimateRecordsClient(gateway, mock_http(lambda r: httpx.Response(500)), token="secret")
        data = asyncio.run(client.fetch_climate("78701", "2023-01-01", "2023-12-31"))
        assert data.simulated is True

    def test_empty_upstream_is_none(self, gateway, mock_http):
        """An empty but successful response is 'no data', not simulation."""
        client = ClimateRecordsClient(gateway, mock_http(lambda r: httpx.Response(200, json={})), token="t")
        assert asyncio.run(client.fetch_climate("00000", "2023-01-01", "2023-01-02")) is None
