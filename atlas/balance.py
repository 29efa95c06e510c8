"""
GridAtlas — Supply / Demand Balance
Turns the static region profiles into derived balance metrics.

Methodology
-----------
1. **Total capacity**

       total_capacity_mw = Σ capacity over the eight source categories

2. **Generation mix / renewable share**

       mix[source]          = capacity[source] / total × 100
       renewable_percentage = (hydro + wind + solar + geothermal + biomass) / total × 100

   When total capacity is 0 every percentage is reported as 0.0, so the
   eight mix values sum to 0 rather than 100 for that region.

3. **Annual generation** (fixed 50 % capacity factor)

       annual_generation_mwh = total_capacity_mw × 8760 × 0.5

4. **Balance**

       surplus_mwh              = generation − consumption
       self_sufficiency_percent = generation / consumption × 100

   When consumption is 0 self-sufficiency is undefined and is reported as
   ``None`` (JSON ``null``).

Every call recomputes from the profile store; nothing here is cached.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from atlas.profiles import RENEWABLE_SOURCES, EnergySource, RegionProfileStore

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HOURS_PER_YEAR: int    = 8760
CAPACITY_FACTOR: float = 0.5

# Deficit-status bands
BALANCED_BAND_PCT: float   = 5.0     # |surplus| within 5 % of consumption
CRITICAL_SUFFICIENCY: float = 75.0   # below this → "Critical Deficit"


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class EnergyBalance:
    """Derived annual supply/demand balance for one region."""

    region:                   str
    total_capacity_mw:        float
    annual_generation_mwh:    float
    consumption_mwh:          float
    surplus_mwh:              float
    self_sufficiency_percent: Optional[float]   # None when consumption == 0

    @property
    def is_surplus(self) -> bool:
        return self.annual_generation_mwh > self.consumption_mwh

    @property
    def deficit_mwh(self) -> float:
        return self.consumption_mwh - self.annual_generation_mwh

    @property
    def deficit_status(self) -> str:
        """'Surplus' | 'Balanced' | 'Deficit' | 'Critical Deficit' | 'No Demand'"""
        if self.self_sufficiency_percent is None:
            return "No Demand"
        if abs(self.surplus_mwh) <= self.consumption_mwh * BALANCED_BAND_PCT / 100:
            return "Balanced"
        if self.surplus_mwh > 0:
            return "Surplus"
        if self.self_sufficiency_percent < CRITICAL_SUFFICIENCY:
            return "Critical Deficit"
        return "Deficit"

    def to_dict(self) -> dict:
        return {
            "region":                   self.region,
            "total_capacity_mw":        self.total_capacity_mw,
            "annual_generation_mwh":    self.annual_generation_mwh,
            "consumption_mwh":          self.consumption_mwh,
            "surplus_mwh":              self.surplus_mwh,
            "self_sufficiency_percent": self.self_sufficiency_percent,
            "is_surplus":               self.is_surplus,
            "deficit_status":           self.deficit_status,
        }


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


class BalanceCalculator:
    """
    Computes capacity totals, generation mix, renewable share and balance.

    Parameters
    ----------
    store:
        Region profile lookup.
    capacity_factor:
        Fraction of nameplate capacity assumed to be delivered over a year.
    """

    def __init__(
        self,
        store: Optional[RegionProfileStore] = None,
        capacity_factor: float = CAPACITY_FACTOR,
    ) -> None:
        if not 0 < capacity_factor <= 1:
            raise ValueError(f"capacity_factor must be in (0, 1], got {capacity_factor}")
        self.store = store or RegionProfileStore()
        self.capacity_factor = capacity_factor

    def total_capacity(self, region: str) -> float:
        return sum(self.store.capacity_by_source(region).values())

    def generation_mix(self, region: str) -> dict[EnergySource, float]:
        capacity = self.store.capacity_by_source(region)
        total = sum(capacity.values())
        if total == 0:
            return {src: 0.0 for src in EnergySource}
        return {src: mw / total * 100 for src, mw in capacity.items()}

    def renewable_percentage(self, region: str) -> float:
        capacity = self.store.capacity_by_source(region)
        total = sum(capacity.values())
        if total == 0:
            return 0.0
        renewable = sum(capacity[src] for src in RENEWABLE_SOURCES)
        return renewable / total * 100

    def energy_balance(self, region: str) -> EnergyBalance:
        profile     = self.store.profile(region)
        capacity    = sum(profile.capacity_by_source.values())
        generation  = capacity * HOURS_PER_YEAR * self.capacity_factor
        consumption = profile.annual_consumption_mwh

        sufficiency = generation / consumption * 100 if consumption > 0 else None

        balance = EnergyBalance(
            region=profile.region,
            total_capacity_mw=capacity,
            annual_generation_mwh=generation,
            consumption_mwh=consumption,
            surplus_mwh=generation - consumption,
            self_sufficiency_percent=sufficiency,
        )
        logger.debug(
            "Balance | region={} | capacity={:,.0f} MW | generation={:,.0f} MWh | status={}",
            balance.region, capacity, generation, balance.deficit_status,
        )
        return balance
