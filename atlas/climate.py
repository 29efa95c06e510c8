"""
GridAtlas — Climate Records Client
Fetches daily climate observations from NOAA's Climate Data Online v2 API
and reduces them to a window summary.

Source
------
  NOAA CDO v2  https://www.ncei.noaa.gov/cdo-web/api/v2
  Token header required (free, https://www.ncdc.noaa.gov/cdo-web/token).
  Without a token the client serves deterministic simulated data.

  GET /data?datasetid=GHCND&locationid=ZIP:{zip}
           &startdate=…&enddate=…&datatypeid=TMAX,TMIN,AWND,PRCP&units=metric

Each result row is one (date, datatype, value) observation.  Rows are
grouped by calendar date, then:

  avg_temp_max        = ΣTMAX / days
  avg_temp_min        = ΣTMIN / days
  avg_temp            = (ΣTMAX + ΣTMIN) / 2 / days
  avg_wind_speed      = ΣAWND / days
  total_precipitation = ΣPRCP

An empty or malformed response aggregates to ``None`` ("no data").
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Optional

import httpx
import pandas as pd
from loguru import logger

from atlas.gateway import RECORDS_TTL_MS, ExternalDataGateway, SeededRandom
from atlas.series import ClimateData, ClimateDay, ClimateSummary

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NOAA_BASE_URL = "https://www.ncei.noaa.gov/cdo-web/api/v2"
NOAA_DATASET  = "GHCND"
NOAA_DATATYPES: tuple[str, ...] = ("TMAX", "TMIN", "AWND", "PRCP")
NOAA_PAGE_LIMIT = 1000


def _opt(value: Any) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_climate(raw: Any) -> Optional[ClimateData]:
    """Reduce a raw CDO ``/data`` response to a ``ClimateData`` payload."""
    results = raw.get("results") if isinstance(raw, dict) else None
    if not results:
        logger.warning("NOAA: response contained no result rows.")
        return None

    df = pd.DataFrame(results)
    if not {"date", "datatype", "value"}.issubset(df.columns):
        logger.warning("NOAA: unexpected result columns {}", list(df.columns))
        return None

    df["day"]   = df["date"].astype(str).str.split("T").str[0]
    df["value"] = pd.to_numeric(df["value"], errors="coerce")

    table = (
        df.groupby(["day", "datatype"])["value"].last()
          .unstack("datatype")
          .reindex(columns=list(NOAA_DATATYPES))
          .sort_index()
    )
    count = len(table)

    sum_max = float(table["TMAX"].sum())
    sum_min = float(table["TMIN"].sum())

    days = [
        ClimateDay(
            date=str(day),
            temp_max=_opt(row["TMAX"]),
            temp_min=_opt(row["TMIN"]),
            wind_speed=_opt(row["AWND"]),
            precipitation=_opt(row["PRCP"]),
        )
        for day, row in table.iterrows()
    ]

    summary = ClimateSummary(
        avg_temp=(sum_max + sum_min) / 2 / count,
        avg_temp_max=sum_max / count,
        avg_temp_min=sum_min / count,
        avg_wind_speed=float(table["AWND"].sum()) / count,
        total_precipitation=float(table["PRCP"].sum()),
        days_analyzed=count,
        date_range_start=days[0].date,
        date_range_end=days[-1].date,
    )
    logger.info("NOAA: {} days aggregated ({} → {}).", count, summary.date_range_start, summary.date_range_end)
    return ClimateData(summary=summary, days=days)


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


def _window_days(start_date: str, end_date: str) -> int:
    try:
        span = (date.fromisoformat(end_date) - date.fromisoformat(start_date)).days + 1
    except ValueError:
        return 365
    return max(span, 1)


def simulate_climate(key: str, start_date: str, end_date: str) -> ClimateData:
    """Deterministic stand-in for a CDO window, seeded by ``key``."""
    rng = SeededRandom.from_key(key)
    summary = ClimateSummary(
        avg_temp=rng.uniform(15, 35),
        avg_temp_max=rng.uniform(20, 45),
        avg_temp_min=rng.uniform(10, 25),
        avg_wind_speed=rng.uniform(2, 7),
        total_precipitation=rng.uniform(0, 1000),
        days_analyzed=_window_days(start_date, end_date),
        date_range_start=start_date,
        date_range_end=end_date,
    )
    return ClimateData(summary=summary, simulated=True)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ClimateRecordsClient:
    """
    NOAA daily climate records for a ZIP code and date window.

    Parameters
    ----------
    gateway:
        Shared fetch/cache/fallback gateway.
    http:
        Shared async HTTP client.
    token:
        NOAA CDO token.  ``None`` routes every request to simulation.
    """

    def __init__(
        self,
        gateway: ExternalDataGateway,
        http: httpx.AsyncClient,
        token: Optional[str] = None,
        base_url: str = NOAA_BASE_URL,
        ttl_ms: float = RECORDS_TTL_MS,
    ) -> None:
        self._gateway  = gateway
        self._http     = http
        self._token    = token or None
        self._base_url = base_url.rstrip("/")
        self._ttl_ms   = ttl_ms

    @property
    def has_token(self) -> bool:
        return self._token is not None

    async def fetch_climate(
        self,
        zip_code: str,
        start_date: str,
        end_date: str,
    ) -> Optional[ClimateData]:
        """
        Return the climate summary for ``zip_code`` over [start_date, end_date].

        Dates are ISO ``YYYY-MM-DD``.  ``None`` means NOAA answered but had no
        usable rows.
        """
        key = f"noaa_{zip_code}_{start_date}_{end_date}"

        async def _remote() -> Optional[ClimateData]:
            params: dict[str, Any] = {
                "datasetid":  NOAA_DATASET,
                "locationid": f"ZIP:{zip_code}",
                "startdate":  start_date,
                "enddate":    end_date,
                "datatypeid": ",".join(NOAA_DATATYPES),
                "units":      "metric",
                "limit":      NOAA_PAGE_LIMIT,
            }
            logger.info("NOAA: fetching ZIP {} | {} → {}", zip_code, start_date, end_date)
            resp = await self._http.get(
                f"{self._base_url}/data", params=params, headers={"token": self._token},
            )
            resp.raise_for_status()
            return aggregate_climate(resp.json())

        result = await self._gateway.fetch(
            key,
            self._ttl_ms,
            _remote if self.has_token else None,
            lambda k: simulate_climate(k, start_date, end_date),
        )
        return result.payload
