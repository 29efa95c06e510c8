"""
GridAtlas — Source Payload Shapes
Typed records shared by the climate, energy-sales and weather clients.

Every source reduces its upstream response to the same outer shape:

    DataSeries
      days       per-day (or per-period) records; empty for synthesised results
      summary    aggregate fields for the window
      simulated  True when the payload came from a deterministic fallback
      projected  True for forward-looking (climate-model / trend) results
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Generic, Optional, TypeVar

_D = TypeVar("_D")
_S = TypeVar("_S")


@dataclass
class DataSeries(Generic[_D, _S]):
    """Outer payload returned by every external data source."""

    summary:   _S
    days:      list[_D] = field(default_factory=list)
    simulated: bool     = False
    projected: bool     = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "days":      [asdict(d) for d in self.days],
            "summary":   asdict(self.summary),
            "simulated": self.simulated,
            "projected": self.projected,
        }


# ---------------------------------------------------------------------------
# Climate records (NOAA GHCND daily)
# ---------------------------------------------------------------------------


@dataclass
class ClimateDay:
    date:          str
    temp_max:      Optional[float] = None   # °C
    temp_min:      Optional[float] = None   # °C
    wind_speed:    Optional[float] = None   # m/s
    precipitation: Optional[float] = None   # mm


@dataclass
class ClimateSummary:
    avg_temp:            float
    avg_temp_max:        float
    avg_temp_min:        float
    avg_wind_speed:      float
    total_precipitation: float
    days_analyzed:       int
    date_range_start:    str
    date_range_end:      str


# ---------------------------------------------------------------------------
# Energy sales (EIA retail sales)
# ---------------------------------------------------------------------------


@dataclass
class SalesRecord:
    """One reported (period, sector) row from the sales feed."""

    period: str
    sector: str
    sales:  float


@dataclass
class SectorSales:
    residential:    float = 0.0
    commercial:     float = 0.0
    industrial:     float = 0.0
    transportation: float = 0.0
    total:          float = 0.0


@dataclass
class SalesSummary:
    state:              str
    year:               int
    sales:              SectorSales
    unit:               str   = "million kilowatthours"
    avg_monthly_demand: float = 0.0


# ---------------------------------------------------------------------------
# Weather (Open-Meteo archive / forecast / climate model)
# ---------------------------------------------------------------------------


@dataclass
class WeatherDay:
    date:            str
    temp_max:        Optional[float] = None   # °C
    temp_min:        Optional[float] = None   # °C
    temp_mean:       Optional[float] = None   # °C
    humidity:        Optional[float] = None   # %
    wind_speed:      Optional[float] = None   # m/s
    precipitation:   Optional[float] = None   # mm
    solar_radiation: Optional[float] = None   # MJ/m²


@dataclass
class WeatherSummary:
    avg_temp_max:        float
    avg_temp_min:        float
    avg_temp_mean:       float
    avg_humidity:        float
    avg_wind_speed:      float
    total_precipitation: float
    avg_solar_radiation: float
    days_analyzed:       int
    trend_based:         bool = False


ClimateData     = DataSeries[ClimateDay, ClimateSummary]
ElectricityData = DataSeries[SalesRecord, SalesSummary]
WeatherData     = DataSeries[WeatherDay, WeatherSummary]
