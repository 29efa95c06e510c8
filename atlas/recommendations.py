"""
GridAtlas — Capacity Expansion Recommendations
Rule-based proposals for new generation capacity per region.

Rules (evaluated in this order; each one fires independently)
--------------------------------------------------------------
  deficit = demand − annual_generation_mwh
  demand  = region consumption, or a caller-supplied future demand

  1. Nuclear      High    existing nuclear > 0 and self-sufficiency < 100 %
                          increase = max(1000, deficit × 0.0002)
                  Medium  otherwise, deficit > 5,000,000 MWh and renewables < 30 %
                          increase = 2000
  2. Solar        High    region in the high-solar set
                          increase = max(500, deficit × 0.0001)
  3. Wind         High    region in the high-wind set
                          increase = max(1000, deficit × 0.00015)
  4. Geothermal   Medium  region in the geothermal set and existing < 1000 MW
                          increase = 500
  5. Natural Gas  Low     deficit > 1,000,000,000 MWh  (transition bridge)
                          increase = max(500, deficit × 0.0001)

The returned list keeps rule order.  It is never sorted by priority or by
size, and the same region + balance always yields the same list.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from atlas.balance import BalanceCalculator
from atlas.profiles import EnergySource, normalize_region

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NUCLEAR_DEFICIT_THRESHOLD_MWH: float = 5_000_000
GAS_BRIDGE_THRESHOLD_MWH: float      = 1_000_000_000
NUCLEAR_RENEWABLE_CEILING_PCT: float = 30.0
GEOTHERMAL_SATURATION_MW: float      = 1000.0

HIGH_SOLAR_REGIONS: frozenset[str]  = frozenset({"AZ", "NV", "CA", "NM", "TX", "FL"})
HIGH_WIND_REGIONS: frozenset[str]   = frozenset({"TX", "IA", "OK", "KS", "ND", "SD", "NE"})
GEOTHERMAL_REGIONS: frozenset[str]  = frozenset({"CA", "NV", "UT", "ID", "OR", "HI"})


class Priority(str, Enum):
    HIGH   = "High"
    MEDIUM = "Medium"
    LOW    = "Low"

    @property
    def rank(self) -> int:
        """3 = High, 2 = Medium, 1 = Low."""
        return {"High": 3, "Medium": 2, "Low": 1}[self.value]


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class ExpansionRecommendation:
    """One proposed capacity addition."""

    source:                EnergySource
    priority:              Priority
    reason:                str
    suggested_increase_mw: float
    cost_profile:          str

    @property
    def label(self) -> str:
        return self.source.label

    def to_dict(self) -> dict:
        return {
            "source":                self.source.value,
            "label":                 self.label,
            "priority":              self.priority.value,
            "reason":                self.reason,
            "suggested_increase_mw": self.suggested_increase_mw,
            "cost_profile":          self.cost_profile,
        }


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class RecommendationEngine:
    """
    Proposes capacity expansions from a region's current balance.

    Parameters
    ----------
    calculator:
        Balance calculator sharing the caller's profile store.
    """

    def __init__(self, calculator: Optional[BalanceCalculator] = None) -> None:
        self.calculator = calculator or BalanceCalculator()

    def recommend(
        self,
        region: str,
        future_demand_mwh: Optional[float] = None,
    ) -> list[ExpansionRecommendation]:
        """
        Return the ordered expansion recommendations for ``region``.

        Parameters
        ----------
        region:
            State code or name (case-insensitive).
        future_demand_mwh:
            Demand to plan against instead of current consumption.
        """
        code      = normalize_region(region)
        capacity  = self.calculator.store.capacity_by_source(code)
        balance   = self.calculator.energy_balance(code)
        renewable = self.calculator.renewable_percentage(code)

        demand  = balance.consumption_mwh if future_demand_mwh is None else future_demand_mwh
        deficit = demand - balance.annual_generation_mwh
        sufficiency = balance.self_sufficiency_percent

        recs: list[ExpansionRecommendation] = []

        if capacity[EnergySource.NUCLEAR] > 0 and sufficiency is not None and sufficiency < 100:
            recs.append(ExpansionRecommendation(
                source=EnergySource.NUCLEAR,
                priority=Priority.HIGH,
                reason="Existing nuclear infrastructure; reliable baseload power",
                suggested_increase_mw=max(1000.0, deficit * 0.0002),
                cost_profile="High initial, low operational",
            ))
        elif deficit > NUCLEAR_DEFICIT_THRESHOLD_MWH and renewable < NUCLEAR_RENEWABLE_CEILING_PCT:
            recs.append(ExpansionRecommendation(
                source=EnergySource.NUCLEAR,
                priority=Priority.MEDIUM,
                reason="Large deficit; need reliable baseload capacity",
                suggested_increase_mw=2000.0,
                cost_profile="High initial, low operational",
            ))

        if code in HIGH_SOLAR_REGIONS:
            recs.append(ExpansionRecommendation(
                source=EnergySource.SOLAR,
                priority=Priority.HIGH,
                reason="Excellent solar resource; decreasing costs",
                suggested_increase_mw=max(500.0, deficit * 0.0001),
                cost_profile="Medium initial, minimal operational",
            ))

        if code in HIGH_WIND_REGIONS:
            recs.append(ExpansionRecommendation(
                source=EnergySource.WIND,
                priority=Priority.HIGH,
                reason="Strong wind resources; proven technology",
                suggested_increase_mw=max(1000.0, deficit * 0.00015),
                cost_profile="Low initial, minimal operational",
            ))

        if code in GEOTHERMAL_REGIONS and capacity[EnergySource.GEOTHERMAL] < GEOTHERMAL_SATURATION_MW:
            recs.append(ExpansionRecommendation(
                source=EnergySource.GEOTHERMAL,
                priority=Priority.MEDIUM,
                reason="Untapped geothermal potential; baseload power",
                suggested_increase_mw=500.0,
                cost_profile="High initial, low operational",
            ))

        if deficit > GAS_BRIDGE_THRESHOLD_MWH:
            recs.append(ExpansionRecommendation(
                source=EnergySource.GAS,
                priority=Priority.LOW,
                reason="Quick deployment; transition fuel",
                suggested_increase_mw=max(500.0, deficit * 0.0001),
                cost_profile="Low initial, medium operational",
            ))

        logger.info(
            "Recommendations | region={} | deficit={:,.0f} MWh | {}",
            code, deficit, [r.label for r in recs] or "none",
        )
        return recs
