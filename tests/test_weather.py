"""
Tests for atlas/weather.py — Open-Meteo aggregation, projection fallbacks and batch fetch.
"""
import asyncio

import httpx
import pytest

from atlas.gateway import ExternalDataGateway
from atlas.weather import (
    WeatherClient,
    aggregate_weather,
    project_from_history,
    simulate_projection,
)

DAILY = {
    "latitude": 40.0,
    "longitude": -75.0,
    "daily": {
        "time": ["2023-07-01", "2023-07-02", "2023-07-03"],
        "temperature_2m_max": [20.0, 22.0, None],
        "temperature_2m_min": [10.0, None, 5.0],
        "temperature_2m_mean": [15.0, 16.0, None],
        "relative_humidity_2m_mean": [60.0, 70.0, 80.0],
        "wind_speed_10m_max": [3.0, 5.0, 1.0],
        "precipitation_sum": [1.0, None, 9.0],
        "shortwave_radiation_sum": [10.0, 20.0, 30.0],
    },
}


def _router(archive=None, forecast=None, climate=None):
    """Route by Open-Meteo host; a missing route answers 500."""
    routes = {
        "archive-api.open-meteo.com": archive,
        "api.open-meteo.com": forecast,
        "climate-api.open-meteo.com": climate,
    }
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        route = routes.get(request.url.host)
        if route is None:
            return httpx.Response(500)
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    return handler, seen


class TestAggregateWeather:
    """Reduction of an Open-Meteo daily block."""

    def test_summary_over_valid_days(self):
        """Days without a mean temperature are skipped; nulls in valid days count as zero."""
        s = aggregate_weather(DAILY).summary
        assert s.days_analyzed == 2
        assert s.avg_temp_max == pytest.approx(21.0)
        assert s.avg_temp_min == pytest.approx(5.0)
        assert s.avg_temp_mean == pytest.approx(15.5)
        assert s.avg_humidity == pytest.approx(65.0)
        assert s.avg_wind_speed == pytest.approx(4.0)
        assert s.total_precipitation == pytest.approx(1.0)
        assert s.avg_solar_radiation == pytest.approx(15.0)
        assert s.trend_based is False

    def test_days_keep_every_date(self):
        """Per-day records include the skipped day with its nulls."""
        days = aggregate_weather(DAILY).days
        assert [d.date for d in days] == DAILY["daily"]["time"]
        assert days[2].temp_mean is None
        assert days[2].precipitation == 9.0

    def test_missing_variable(self):
        """A variable absent from the response reads as null."""
        raw = {"daily": {"time": ["2023-01-01"], "temperature_2m_mean": [4.0]}}
        data = aggregate_weather(raw)
        assert data.summary.avg_humidity == 0.0
        assert data.days[0].humidity is None

    @pytest.mark.parametrize("raw", [
        {},
        {"daily": {}},
        {"daily": {"time": []}},
        {"daily": {"time": ["2023-01-01"], "temperature_2m_mean": [None]}},
        None,
    ])
    def test_no_data_is_none(self, raw):
        """No daily block, or no valid day, means no data."""
        assert aggregate_weather(raw) is None


class TestProjectionHelpers:
    """Trend and latitude projections."""

    def test_trend_from_history(self):
        """Five years of trend applied to a historical summary."""
        hist = aggregate_weather(DAILY).summary
        s = project_from_history(hist, 5).summary
        assert s.avg_temp_mean == pytest.approx(15.5 + 0.15)
        assert s.avg_temp_max == pytest.approx(21.0 + 0.18)
        assert s.avg_temp_min == pytest.approx(5.0 + 0.12)
        assert s.avg_humidity == pytest.approx(65.0 * 1.005)
        assert s.total_precipitation == pytest.approx(1.0 * 1.025)
        assert s.avg_solar_radiation == pytest.approx(15.0 * 0.98 ** 5)
        assert s.avg_wind_speed == hist.avg_wind_speed
        assert s.trend_based is True

    def test_latitude_projection(self):
        """The latitude projection depends only on latitude and horizon."""
        data = simulate_projection(40.0, 10)
        s = data.summary
        assert s.avg_temp_mean == pytest.approx(6.0 + 0.3)
        assert s.avg_temp_max == pytest.approx(14.0 + 0.3)
        assert s.avg_temp_min == pytest.approx(1.0 + 0.3)
        assert s.total_precipitation == pytest.approx(400.0)
        assert s.avg_solar_radiation == pytest.approx(120.0)
        assert s.days_analyzed == 365
        assert data.simulated and data.projected
        assert simulate_projection(-40.0, 10) == data


class TestWeatherClient:
    """Client behaviour through the gateway."""

    def test_historical(self, gateway, mock_http):
        """Archive requests carry the window, daily variables and units."""
        handler, seen = _router(archive=DAILY)
        client = WeatherClient(gateway, mock_http(handler), base_year=2025)
        data = asyncio.run(client.fetch_historical(40.0, -75.0, "2023-07-01", "2023-07-03"))
        assert data.summary.days_analyzed == 2
        params = seen[0].url.params
        assert params["start_date"] == "2023-07-01"
        assert params["wind_speed_unit"] == "ms"
        assert "shortwave_radiation_sum" in params["daily"]

    def test_historical_falls_back_to_simulation(self, gateway, mock_http):
        """An unreachable archive yields a deterministic simulated summary."""
        handler, _ = _router()
        client = WeatherClient(gateway, mock_http(handler), base_year=2025)
        data = asyncio.run(client.fetch_historical(40.0, -75.0, "2023-01-01", "2023-12-31"))
        assert data.simulated is True
        assert data.summary.days_analyzed == 365

        other = WeatherClient(ExternalDataGateway(backoff_seconds=0.0), mock_http(handler), base_year=2025)
        again = asyncio.run(other.fetch_historical(40.0, -75.0, "2023-01-01", "2023-12-31"))
        assert again == data

    def test_forecast(self, gateway, mock_http):
        """Forecast requests pass the day count."""
        handler, seen = _router(forecast=DAILY)
        client = WeatherClient(gateway, mock_http(handler))
        asyncio.run(client.fetch_forecast(40.0, -75.0, days=7))
        assert seen[0].url.params["forecast_days"] == "7"
        assert seen[0].url.path == "/v1/forecast"

    @pytest.mark.parametrize("days", [0, 17])
    def test_forecast_day_bounds(self, gateway, mock_http, days):
        """Forecasts cover 1 to 16 days."""
        client = WeatherClient(gateway, mock_http(lambda r: httpx.Response(200, json=DAILY)))
        with pytest.raises(ValueError):
            asyncio.run(client.fetch_forecast(40.0, -75.0, days=days))

    def test_projection_from_model(self, gateway, mock_http):
        """A working climate endpoint gives a live, projected payload."""
        handler, seen = _router(climate=DAILY)
        client = WeatherClient(gateway, mock_http(handler), base_year=2025)
        data = asyncio.run(client.fetch_projection(40.0, -75.0, "2040-01-01", "2040-12-31"))
        assert data.projected is True
        assert data.simulated is False
        assert seen[0].url.params["models"] == "MRI_AGCM3_2_S"

    def test_projection_trend_fallback(self, gateway, mock_http):
        """A failing climate endpoint falls back to a trend over ten archive years."""
        handler, seen = _router(archive=DAILY, climate=lambda r: httpx.Response(400))
        client = WeatherClient(gateway, mock_http(handler), base_year=2025)
        data = asyncio.run(client.fetch_projection(40.0, -75.0, "2030-01-01", "2030-12-31"))

        assert data.summary.trend_based is True
        assert data.summary.avg_temp_mean == pytest.approx(15.5 + 0.15)
        assert data.projected is True
        assert data.simulated is False

        archive = [r for r in seen if r.url.host == "archive-api.open-meteo.com"]
        assert archive[0].url.params["start_date"] == "2015-01-01"
        assert archive[0].url.params["end_date"] == "2024-12-31"

    def test_projection_latitude_fallback(self, gateway, mock_http):
        """With no archive either, the latitude projection is used."""
        handler, _ = _router()
        client = WeatherClient(gateway, mock_http(handler), base_year=2025)
        data = asyncio.run(client.fetch_projection(40.0, -75.0, "2035-01-01", "2035-12-31"))
        assert data == simulate_projection(40.0, 10)

    def test_batch_preserves_order(self, gateway, mock_http):
        """Batch results follow the input order of locations."""
        def archive(request):
            lat = float(request.url.params["latitude"])
            body = {"daily": {"time": ["2023-01-01"], "temperature_2m_mean": [lat]}}
            return httpx.Response(200, json=body)

        handler, _ = _router(archive=archive)
        client = WeatherClient(gateway, mock_http(handler), base_year=2025)
        points = [(45.0, -93.0), (30.0, -97.0), (40.0, -75.0)]
        results = asyncio.run(client.fetch_batch_historical(points, "2023-01-01", "2023-01-01"))
        assert [(r.latitude, r.longitude) for r in results] == points
        assert [r.weather.summary.avg_temp_mean for r in results] == [45.0, 30.0, 40.0]
