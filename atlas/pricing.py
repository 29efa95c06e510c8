"""
GridAtlas — Retail Price Projection
Adjusts a region's base retail price for its supply balance, renewable
penetration and urban density, then projects it forward year by year.

Current price
-------------
    current = base_price × deficit_factor × renewable_factor × urban_factor

    deficit_factor   = 1 + (100 − self_sufficiency) / 100 × 0.3   if self_sufficiency < 100
                     = 1.0                                        otherwise (or undefined)
    renewable_factor = 1 − renewable_percentage / 100 × 0.1
    urban_factor     = 1.05 when the locality population > 500,000, else 1.0

Forecast (n = target_year − base_year)
--------------------------------------
    forecast = current × 1.02ⁿ
                       × (1 − n × 0.02 × 0.15)     renewable cost decline
                       × (1 + n × 0.01)            deficit growth (only when self_sufficiency < 100)
                       × (1 − n × 0.005)           technology discount

Each target year is computed independently from the current price; at
n = 0 every factor is exactly 1.0 and the forecast equals the current price.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from atlas.balance import BalanceCalculator
from atlas.profiles import normalize_region

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFICIT_PRICE_WEIGHT: float   = 0.3
RENEWABLE_PRICE_WEIGHT: float = 0.1

URBAN_POPULATION_THRESHOLD: int = 500_000
URBAN_PREMIUM: float            = 1.05

ANNUAL_INFLATION: float          = 0.02
RENEWABLE_GROWTH_PER_YEAR: float = 0.02
RENEWABLE_COST_SHARE: float      = 0.15
DEFICIT_GROWTH_PER_YEAR: float   = 0.01
TECH_DISCOUNT_PER_YEAR: float    = 0.005


def price_level(price_cents: float) -> str:
    """Qualitative band for a ¢/kWh price."""
    if price_cents > 20:
        return "Very High"
    if price_cents > 15:
        return "High"
    if price_cents > 12:
        return "Moderate"
    if price_cents > 10:
        return "Low"
    return "Very Low"


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class PriceForecast:
    """Current adjusted price plus independent per-year projections."""

    region:                      str
    base_year:                   int
    current_price_cents_per_kwh: float
    forecast_by_year:            dict[int, float] = field(default_factory=dict)

    @property
    def price_level(self) -> str:
        return price_level(self.current_price_cents_per_kwh)

    def to_dict(self) -> dict:
        return {
            "region":                      self.region,
            "base_year":                   self.base_year,
            "current_price_cents_per_kwh": self.current_price_cents_per_kwh,
            "price_level":                 self.price_level,
            "forecast_by_year":            {str(y): p for y, p in self.forecast_by_year.items()},
        }


# ---------------------------------------------------------------------------
# Projector
# ---------------------------------------------------------------------------


class PriceProjector:
    """
    Computes adjusted current prices and multi-year forecasts.

    Parameters
    ----------
    calculator:
        Balance calculator; its store supplies the base prices.
    urban_population_threshold:
        Locality population above which the urban premium applies.
    urban_premium:
        Multiplier applied to urban localities.
    """

    def __init__(
        self,
        calculator: Optional[BalanceCalculator] = None,
        urban_population_threshold: int = URBAN_POPULATION_THRESHOLD,
        urban_premium: float = URBAN_PREMIUM,
    ) -> None:
        self.calculator = calculator or BalanceCalculator()
        self.urban_population_threshold = urban_population_threshold
        self.urban_premium = urban_premium

    # ------------------------------------------------------------------
    # Factors
    # ------------------------------------------------------------------

    @staticmethod
    def deficit_factor(self_sufficiency_percent: Optional[float]) -> float:
        if self_sufficiency_percent is None or self_sufficiency_percent >= 100:
            return 1.0
        return 1 + (100 - self_sufficiency_percent) / 100 * DEFICIT_PRICE_WEIGHT

    @staticmethod
    def renewable_factor(renewable_percentage: float) -> float:
        return 1 - (renewable_percentage / 100) * RENEWABLE_PRICE_WEIGHT

    def urban_factor(self, population: Optional[int]) -> float:
        if population is not None and population > self.urban_population_threshold:
            return self.urban_premium
        return 1.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def current_price(self, region: str, population: Optional[int] = None) -> float:
        """Adjusted ¢/kWh for ``region``; ``population`` is the queried locality's."""
        store   = self.calculator.store
        balance = self.calculator.energy_balance(region)
        renew   = self.calculator.renewable_percentage(region)

        return (
            store.base_price(region)
            * self.deficit_factor(balance.self_sufficiency_percent)
            * self.renewable_factor(renew)
            * self.urban_factor(population)
        )

    @staticmethod
    def project(
        current_price: float,
        years_ahead: int,
        self_sufficiency_percent: Optional[float],
    ) -> float:
        """Project ``current_price`` ``years_ahead`` years forward."""
        if years_ahead < 0:
            raise ValueError(f"years_ahead must be >= 0, got {years_ahead}")

        inflation = (1 + ANNUAL_INFLATION) ** years_ahead
        renewable_discount = 1 - (years_ahead * RENEWABLE_GROWTH_PER_YEAR * RENEWABLE_COST_SHARE)
        in_deficit = self_sufficiency_percent is not None and self_sufficiency_percent < 100
        deficit_growth = 1 + years_ahead * DEFICIT_GROWTH_PER_YEAR if in_deficit else 1.0
        tech_discount = 1 - years_ahead * TECH_DISCOUNT_PER_YEAR

        return current_price * inflation * renewable_discount * deficit_growth * tech_discount

    def forecast(
        self,
        region: str,
        target_years: Iterable[int],
        base_year: int,
        population: Optional[int] = None,
    ) -> PriceForecast:
        """
        Build a ``PriceForecast`` for each of ``target_years``.

        Raises ``ValueError`` if any target year precedes ``base_year``.
        """
        code    = normalize_region(region)
        current = self.current_price(code, population)
        sufficiency = self.calculator.energy_balance(code).self_sufficiency_percent

        by_year = {
            year: self.project(current, year - base_year, sufficiency)
            for year in sorted(set(target_years))
        }
        logger.info(
            "Price | region={} | current={:.2f}¢/kWh | years={}",
            code, current, list(by_year) or "none",
        )
        return PriceForecast(
            region=code,
            base_year=base_year,
            current_price_cents_per_kwh=current,
            forecast_by_year=by_year,
        )
