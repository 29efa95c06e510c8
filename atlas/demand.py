"""
GridAtlas — Weather-Adjusted Demand Projection
Scales a locality's baseline demand by cooling load, heating load and the
behind-the-meter solar offset implied by a weather summary.

Model
-----
    predicted = baseline × (1 + cooling × 0.3 + heating × 0.25 − solar × 0.1)

    cooling = max(0, (avg_temp_mean − 20) / 10)
    heating = max(0, (15 − avg_temp_mean) / 15)
    solar   = avg_solar_radiation / 250

The weather summary is required.  When none is available the caller falls
back to ``growth_fallback`` (fixed compound annual growth).

Locality baseline
-----------------
    baseline_mw = population × 0.015 × (1 + |latitude − 35| × 0.01)
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from atlas.series import WeatherSummary

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COOLING_BASE_C: float  = 20.0
COOLING_SPAN_C: float  = 10.0
HEATING_BASE_C: float  = 15.0
HEATING_SPAN_C: float  = 15.0
SOLAR_REFERENCE: float = 250.0

COOLING_WEIGHT: float = 0.30
HEATING_WEIGHT: float = 0.25
SOLAR_WEIGHT: float   = 0.10

PER_CAPITA_DEMAND_MW: float = 0.015
LATITUDE_PIVOT: float       = 35.0
LATITUDE_WEIGHT: float      = 0.01

ANNUAL_DEMAND_GROWTH: float = 0.015


@dataclass
class DemandEstimate:
    """Predicted demand with the factors that produced it."""

    baseline_demand:     float
    predicted_demand:    float
    cooling_factor:      float = 0.0
    heating_factor:      float = 0.0
    solar_offset_factor: float = 0.0
    weather_adjusted:    bool  = True

    @property
    def change_percent(self) -> float:
        if self.baseline_demand == 0:
            return 0.0
        return (self.predicted_demand / self.baseline_demand - 1) * 100

    def to_dict(self) -> dict:
        return {
            "baseline_demand":     self.baseline_demand,
            "predicted_demand":    self.predicted_demand,
            "change_percent":      round(self.change_percent, 2),
            "cooling_factor":      self.cooling_factor,
            "heating_factor":      self.heating_factor,
            "solar_offset_factor": self.solar_offset_factor,
            "weather_adjusted":    self.weather_adjusted,
        }


class DemandProjector:
    """Weather-driven demand adjustment."""

    @staticmethod
    def cooling_factor(avg_temp_mean: float) -> float:
        return max(0.0, (avg_temp_mean - COOLING_BASE_C) / COOLING_SPAN_C)

    @staticmethod
    def heating_factor(avg_temp_mean: float) -> float:
        return max(0.0, (HEATING_BASE_C - avg_temp_mean) / HEATING_SPAN_C)

    @staticmethod
    def solar_offset_factor(avg_solar_radiation: float) -> float:
        return avg_solar_radiation / SOLAR_REFERENCE

    def estimate(self, summary: WeatherSummary, baseline_demand: float) -> DemandEstimate:
        cooling = self.cooling_factor(summary.avg_temp_mean)
        heating = self.heating_factor(summary.avg_temp_mean)
        solar   = self.solar_offset_factor(summary.avg_solar_radiation)

        predicted = baseline_demand * (
            1 + cooling * COOLING_WEIGHT + heating * HEATING_WEIGHT - solar * SOLAR_WEIGHT
        )
        logger.debug(
            "Demand | baseline={:.1f} | cooling={:.3f} heating={:.3f} solar={:.3f} → {:.1f}",
            baseline_demand, cooling, heating, solar, predicted,
        )
        return DemandEstimate(
            baseline_demand=baseline_demand,
            predicted_demand=predicted,
            cooling_factor=cooling,
            heating_factor=heating,
            solar_offset_factor=solar,
        )

    def predict(self, summary: WeatherSummary, baseline_demand: float) -> float:
        """Predicted demand in the unit of ``baseline_demand``."""
        return self.estimate(summary, baseline_demand).predicted_demand


def locality_baseline_demand(latitude: float, population: int) -> float:
    """Baseline demand (MW) for a locality from its population and latitude."""
    return population * PER_CAPITA_DEMAND_MW * (1 + abs(latitude - LATITUDE_PIVOT) * LATITUDE_WEIGHT)


def growth_fallback(
    baseline_demand: float,
    years_ahead: int,
    annual_growth: float = ANNUAL_DEMAND_GROWTH,
) -> DemandEstimate:
    """Compound-growth estimate used when no weather summary is available."""
    if years_ahead < 0:
        raise ValueError(f"years_ahead must be >= 0, got {years_ahead}")
    return DemandEstimate(
        baseline_demand=baseline_demand,
        predicted_demand=baseline_demand * (1 + annual_growth) ** years_ahead,
        weather_adjusted=False,
    )
