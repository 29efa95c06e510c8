"""
GridAtlas — Weather & Climate Projection Client
Fetches daily weather from Open-Meteo (no API key) for three horizons and
reduces each response to a ``WeatherData`` summary.

Sources
-------
  Historical : GET archive-api.open-meteo.com/v1/archive   (start_date, end_date)
  Forecast   : GET api.open-meteo.com/v1/forecast          (forecast_days 1–16)
  Projection : GET climate-api.open-meteo.com/v1/climate   (CMIP6 model, up to 2050)

  daily = temperature_2m_max, temperature_2m_min, temperature_2m_mean,
          relative_humidity_2m_mean, wind_speed_10m_max, precipitation_sum,
          shortwave_radiation_sum
  units : °C, m/s, mm, MJ/m²

Summary
-------
Days with a null mean temperature are excluded.  Over the remaining days a
null field counts as 0; means divide by the valid-day count and
precipitation is summed.  No ``daily`` block, or no valid day, → ``None``.

Projection fallback chain
-------------------------
  1. Climate-model endpoint.
  2. Linear trend over the last ten years of archive history,
     n = start_year − base_year:
        temp_mean + 0.03·n       temp_max + 0.036·n     temp_min + 0.024·n
        humidity × (1 + 0.001·n) precipitation × (1 + 0.005·n)
        solar × 0.98ⁿ            wind unchanged
  3. Latitude climatology when history is missing or itself simulated:
        base = 30 − 0.6·|lat|
        temp_mean = base + 0.03·n, temp_max = base + 8 + 0.03·n,
        temp_min  = base − 5 + 0.03·n
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Sequence

import httpx
import pandas as pd
from loguru import logger

from atlas.gateway import WEATHER_TTL_MS, ExternalDataGateway, SeededRandom
from atlas.series import WeatherData, WeatherDay, WeatherSummary

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ARCHIVE_URL  = "https://archive-api.open-meteo.com/v1/archive"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
CLIMATE_URL  = "https://climate-api.open-meteo.com/v1/climate"

DEFAULT_CLIMATE_MODEL = "MRI_AGCM3_2_S"
MAX_FORECAST_DAYS     = 16
HISTORY_YEARS         = 10

TEMP_TREND_PER_YEAR: float   = 0.03
MAX_TREND_WEIGHT: float      = 1.2
MIN_TREND_WEIGHT: float      = 0.8
HUMIDITY_TREND: float        = 0.001
PRECIP_TREND: float          = 0.005
SOLAR_DECAY: float           = 0.98

# Open-Meteo daily variable → WeatherDay field
DAILY_FIELDS: dict[str, str] = {
    "temperature_2m_max":        "temp_max",
    "temperature_2m_min":        "temp_min",
    "temperature_2m_mean":       "temp_mean",
    "relative_humidity_2m_mean": "humidity",
    "wind_speed_10m_max":        "wind_speed",
    "precipitation_sum":         "precipitation",
    "shortwave_radiation_sum":   "solar_radiation",
}
_VALUE_COLUMNS = list(DAILY_FIELDS.values())

_UNIT_PARAMS = {
    "temperature_unit":   "celsius",
    "wind_speed_unit":    "ms",
    "precipitation_unit": "mm",
}


def _opt(value: Any) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


def _year_of(iso_date: str) -> int:
    return int(iso_date.split("-")[0])


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_weather(raw: Any) -> Optional[WeatherData]:
    """Reduce an Open-Meteo ``daily`` response to a ``WeatherData`` payload."""
    daily = raw.get("daily") if isinstance(raw, dict) else None
    if not isinstance(daily, dict) or not daily.get("time"):
        logger.warning("Open-Meteo: response has no daily block.")
        return None

    try:
        df = pd.DataFrame({"date": daily["time"]})
        for variable, column in DAILY_FIELDS.items():
            df[column] = pd.to_numeric(pd.Series(daily.get(variable), dtype="object"), errors="coerce")
    except (TypeError, ValueError) as exc:
        logger.warning("Open-Meteo: malformed daily block: {}", exc)
        return None

    valid = df[df["temp_mean"].notna()]
    count = len(valid)
    if count == 0:
        logger.warning("Open-Meteo: no day with a mean temperature.")
        return None

    totals = valid[_VALUE_COLUMNS].fillna(0.0).sum()
    summary = WeatherSummary(
        avg_temp_max=float(totals["temp_max"]) / count,
        avg_temp_min=float(totals["temp_min"]) / count,
        avg_temp_mean=float(totals["temp_mean"]) / count,
        avg_humidity=float(totals["humidity"]) / count,
        avg_wind_speed=float(totals["wind_speed"]) / count,
        total_precipitation=float(totals["precipitation"]),
        avg_solar_radiation=float(totals["solar_radiation"]) / count,
        days_analyzed=count,
    )
    days = [
        WeatherDay(date=str(rec["date"]), **{c: _opt(rec[c]) for c in _VALUE_COLUMNS})
        for rec in df.to_dict("records")
    ]
    logger.info("Open-Meteo: {} of {} days valid | mean={:.1f}°C", count, len(days), summary.avg_temp_mean)
    return WeatherData(summary=summary, days=days)


# ---------------------------------------------------------------------------
# Simulation and projection
# ---------------------------------------------------------------------------


def _base_temp(latitude: float) -> float:
    return 30 - abs(latitude) * 0.6


def simulate_weather(key: str, latitude: float, days: int) -> WeatherData:
    """Latitude climatology with key-seeded jitter, for an unreachable archive/forecast."""
    rng  = SeededRandom.from_key(key)
    lat  = abs(latitude)
    mean = _base_temp(latitude) + rng.uniform(-1.5, 1.5)
    summary = WeatherSummary(
        avg_temp_max=mean + 8 + rng.uniform(-1.0, 1.0),
        avg_temp_min=mean - 5 + rng.uniform(-1.0, 1.0),
        avg_temp_mean=mean,
        avg_humidity=max(0.0, 65 - lat * 0.5 + rng.uniform(-5, 5)),
        avg_wind_speed=3 + abs(math.sin(lat * math.pi / 90)) * 2 + rng.uniform(0, 1),
        total_precipitation=max(0.0, (800 - lat * 10) * days / 365 * rng.uniform(0.8, 1.2)),
        avg_solar_radiation=max(0.0, (200 - lat * 2) / 10 * rng.uniform(0.9, 1.1)),
        days_analyzed=days,
    )
    return WeatherData(summary=summary, simulated=True)


def simulate_projection(latitude: float, years_ahead: int) -> WeatherData:
    """Latitude-only projection; depends on nothing but its arguments."""
    lat  = abs(latitude)
    base = _base_temp(latitude)
    warming = years_ahead * TEMP_TREND_PER_YEAR
    summary = WeatherSummary(
        avg_temp_max=base + 8 + warming,
        avg_temp_min=base - 5 + warming,
        avg_temp_mean=base + warming,
        avg_humidity=(0.65 - lat * 0.005) * 100,
        avg_wind_speed=3 + abs(math.sin(lat * math.pi / 90)) * 2,
        total_precipitation=800 - lat * 10,
        avg_solar_radiation=200 - lat * 2,
        days_analyzed=365,
    )
    return WeatherData(summary=summary, simulated=True, projected=True)


def project_from_history(history: WeatherSummary, years_ahead: int) -> WeatherData:
    """Extrapolate a historical summary ``years_ahead`` years with fixed trends."""
    n = years_ahead
    summary = WeatherSummary(
        avg_temp_max=history.avg_temp_max + TEMP_TREND_PER_YEAR * n * MAX_TREND_WEIGHT,
        avg_temp_min=history.avg_temp_min + TEMP_TREND_PER_YEAR * n * MIN_TREND_WEIGHT,
        avg_temp_mean=history.avg_temp_mean + TEMP_TREND_PER_YEAR * n,
        avg_humidity=history.avg_humidity * (1 + n * HUMIDITY_TREND),
        avg_wind_speed=history.avg_wind_speed,
        total_precipitation=history.total_precipitation * (1 + n * PRECIP_TREND),
        avg_solar_radiation=history.avg_solar_radiation * (SOLAR_DECAY ** n),
        days_analyzed=365,
        trend_based=True,
    )
    return WeatherData(summary=summary, projected=True)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


@dataclass
class LocationWeather:
    latitude:  float
    longitude: float
    weather:   Optional[WeatherData]

    def to_dict(self) -> dict:
        return {
            "latitude":  self.latitude,
            "longitude": self.longitude,
            "weather":   self.weather.to_dict() if self.weather else None,
        }


class WeatherClient:
    """
    Open-Meteo archive, forecast and climate-model client.

    Parameters
    ----------
    gateway:
        Shared fetch/cache/fallback gateway.
    http:
        Shared async HTTP client.
    base_year:
        "Current" year for trend projections.  Defaults to the calendar year
        at call time; pin it for reproducible projections.
    """

    def __init__(
        self,
        gateway: ExternalDataGateway,
        http: httpx.AsyncClient,
        base_year: Optional[int] = None,
        ttl_ms: float = WEATHER_TTL_MS,
        archive_url: str = ARCHIVE_URL,
        forecast_url: str = FORECAST_URL,
        climate_url: str = CLIMATE_URL,
    ) -> None:
        self._gateway      = gateway
        self._http         = http
        self._base_year    = base_year
        self._ttl_ms       = ttl_ms
        self._archive_url  = archive_url
        self._forecast_url = forecast_url
        self._climate_url  = climate_url

    @property
    def base_year(self) -> int:
        return self._base_year if self._base_year is not None else datetime.now().year

    async def _get_daily(self, url: str, params: dict[str, Any]) -> Optional[WeatherData]:
        resp = await self._http.get(url, params=params)
        resp.raise_for_status()
        return aggregate_weather(resp.json())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_historical(
        self,
        lat: float,
        lon: float,
        start_date: str,
        end_date: str,
    ) -> Optional[WeatherData]:
        """Observed daily weather for [start_date, end_date]."""
        key = f"hist_{lat}_{lon}_{start_date}_{end_date}"
        params = {
            "latitude":   lat,
            "longitude":  lon,
            "start_date": start_date,
            "end_date":   end_date,
            "daily":      ",".join(DAILY_FIELDS),
            **_UNIT_PARAMS,
        }
        try:
            span = (date.fromisoformat(end_date) - date.fromisoformat(start_date)).days + 1
        except ValueError:
            span = 365

        result = await self._gateway.fetch(
            key,
            self._ttl_ms,
            lambda: self._get_daily(self._archive_url, params),
            lambda k: simulate_weather(k, lat, max(span, 1)),
        )
        return result.payload

    async def fetch_forecast(self, lat: float, lon: float, days: int = MAX_FORECAST_DAYS) -> Optional[WeatherData]:
        """Daily forecast for the next ``days`` days (1–16)."""
        if not 1 <= days <= MAX_FORECAST_DAYS:
            raise ValueError(f"days must be in 1..{MAX_FORECAST_DAYS}, got {days}")

        key = f"forecast_{lat}_{lon}_{days}"
        params = {
            "latitude":      lat,
            "longitude":     lon,
            "daily":         ",".join(DAILY_FIELDS),
            "forecast_days": days,
            **_UNIT_PARAMS,
        }
        result = await self._gateway.fetch(
            key,
            self._ttl_ms,
            lambda: self._get_daily(self._forecast_url, params),
            lambda k: simulate_weather(k, lat, days),
        )
        return result.payload

    async def fetch_projection(
        self,
        lat: float,
        lon: float,
        start_date: str,
        end_date: str,
        model: str = DEFAULT_CLIMATE_MODEL,
    ) -> Optional[WeatherData]:
        """
        Climate-model projection for [start_date, end_date].

        Falls back to a trend over archive history, then to a latitude
        climatology; see the module docstring.
        """
        key = f"climate_{lat}_{lon}_{start_date}_{end_date}_{model}"
        params = {
            "latitude":         lat,
            "longitude":        lon,
            "start_date":       start_date,
            "end_date":         end_date,
            "models":           model,
            "daily":            "temperature_2m_mean,temperature_2m_max,temperature_2m_min,"
                                "precipitation_sum,shortwave_radiation_sum",
            "temperature_unit": "celsius",
        }

        async def _remote() -> Optional[WeatherData]:
            data = await self._get_daily(self._climate_url, params)
            if data is not None:
                data.projected = True
            return data

        async def _trend(_key: str) -> WeatherData:
            logger.warning("Climate model unavailable for ({}, {}) — using trend projection.", lat, lon)
            return await self.project_from_trend(lat, lon, start_date)

        result = await self._gateway.fetch(key, self._ttl_ms, _remote, _trend)
        return result.payload

    async def project_from_trend(self, lat: float, lon: float, start_date: str) -> WeatherData:
        """Trend projection from the last ten archive years, or latitude climatology."""
        base_year   = self.base_year
        years_ahead = _year_of(start_date) - base_year
        history = await self.fetch_historical(
            lat, lon,
            f"{base_year - HISTORY_YEARS}-01-01",
            f"{base_year - 1}-12-31",
        )
        if history is None or history.simulated:
            logger.info("No archive history for ({}, {}) — latitude projection.", lat, lon)
            return simulate_projection(lat, years_ahead)
        return project_from_history(history.summary, years_ahead)

    async def fetch_batch_historical(
        self,
        locations: Sequence[tuple[float, float]],
        start_date: str,
        end_date: str,
    ) -> list[LocationWeather]:
        """Historical weather for many (lat, lon) points; output follows input order."""
        results = await asyncio.gather(
            *(self.fetch_historical(lat, lon, start_date, end_date) for lat, lon in locations)
        )
        return [
            LocationWeather(latitude=lat, longitude=lon, weather=weather)
            for (lat, lon), weather in zip(locations, results)
        ]
