"""
GridAtlas — Region Energy Profiles
Static per-state tables that every balance, recommendation and price
calculation reads from.

Tables
------
1. **Nameplate capacity by source (MW)**
   Eight closed categories per state: nuclear, coal, gas, hydro, wind,
   solar, geothermal, biomass.  Compiled from EIA-860 / NREL state
   summaries.

2. **Annual consumption (MWh/yr)**
   2024 retail-sales estimates per state.

3. **Base retail price (¢/kWh)**
   Average all-sector retail price per state.

4. **Population**
   2020 census counts for the largest states; used only by the simulated
   energy-sales payload when the EIA feed is unavailable.

Lookup policy
-------------
A region absent from the tables is *not* an error.  It resolves to zero
capacity in every category, zero consumption and ``DEFAULT_BASE_PRICE``.
Region keys are normalised, so ``"TX"``, ``"tx"`` and ``"Texas"`` all hit
the same profile.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_BASE_PRICE: float = 12.0         # ¢/kWh, used for unknown regions
DEFAULT_POPULATION: int   = 5_000_000    # simulated-sales fallback population


class EnergySource(str, Enum):
    """Closed set of generation source categories."""

    NUCLEAR    = "nuclear"
    COAL       = "coal"
    GAS        = "gas"
    HYDRO      = "hydro"
    WIND       = "wind"
    SOLAR      = "solar"
    GEOTHERMAL = "geothermal"
    BIOMASS    = "biomass"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]


_SOURCE_LABELS: dict[EnergySource, str] = {
    EnergySource.NUCLEAR:    "Nuclear",
    EnergySource.COAL:       "Coal",
    EnergySource.GAS:        "Natural Gas",
    EnergySource.HYDRO:      "Hydro",
    EnergySource.WIND:       "Wind",
    EnergySource.SOLAR:      "Solar",
    EnergySource.GEOTHERMAL: "Geothermal",
    EnergySource.BIOMASS:    "Biomass",
}

RENEWABLE_SOURCES: frozenset[EnergySource] = frozenset({
    EnergySource.HYDRO,
    EnergySource.WIND,
    EnergySource.SOLAR,
    EnergySource.GEOTHERMAL,
    EnergySource.BIOMASS,
})


# ---------------------------------------------------------------------------
# Profile dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegionEnergyProfile:
    """Static energy profile for one region (US state)."""

    region:                          str
    capacity_by_source:              Mapping[EnergySource, float]
    annual_consumption_mwh:          float
    base_retail_price_cents_per_kwh: float = DEFAULT_BASE_PRICE
    known:                           bool  = field(default=True, compare=False)

    def __post_init__(self) -> None:
        full = {src: float(self.capacity_by_source.get(src, 0.0)) for src in EnergySource}
        negative = [src.value for src, mw in full.items() if mw < 0]
        if negative:
            raise ValueError(f"{self.region}: negative capacity for {', '.join(negative)}")
        if self.annual_consumption_mwh < 0:
            raise ValueError(f"{self.region}: consumption must be >= 0, got {self.annual_consumption_mwh}")
        if self.base_retail_price_cents_per_kwh <= 0:
            raise ValueError(
                f"{self.region}: base price must be > 0, got {self.base_retail_price_cents_per_kwh}"
            )
        object.__setattr__(self, "capacity_by_source", MappingProxyType(full))

    def to_dict(self) -> dict:
        return {
            "region":                          self.region,
            "capacity_by_source":              {s.value: mw for s, mw in self.capacity_by_source.items()},
            "annual_consumption_mwh":          self.annual_consumption_mwh,
            "base_retail_price_cents_per_kwh": self.base_retail_price_cents_per_kwh,
            "known":                           self.known,
        }


# ---------------------------------------------------------------------------
# Static tables
# ---------------------------------------------------------------------------

# Column order: nuclear, coal, gas, hydro, wind, solar, geothermal, biomass
_CAPACITY_MW: dict[str, tuple[float, ...]] = {
    "AL": (5084, 10350, 13250,  3280,     0,   589,    0,  363),
    "AK": (   0,   450,  2100,  1540,    62,    22,    0,   50),
    "AZ": (3937,  3940, 20500,  2718,   268,  4796,    0,  113),
    "AR": (1792,  3170, 12750,  1448,  1545,   482,    0,  322),
    "CA": (2256,     0, 45600, 13650,  5972, 15472, 2732, 1327),
    "CO": (   0,  3550,  9300,  2000,  4980,  1743,    0,   93),
    "CT": (2090,     0,  7950,   145,     5,   765,    0,  344),
    "DE": (   0,     0,  3430,     0,     2,   259,    0,   23),
    "FL": (3189,  5930, 53100,    38,     0,  4368,    0, 1507),
    "GA": (4330,  8690, 29600,  1932,     0,  2964,    0, 1027),
    "HI": (   0,   180,  1750,    38,   206,  1078,   38,  126),
    "ID": (   0,    35,   620,  2500,   973,   101,   15,   21),
    "IL": (11582, 10690, 15100,   38,  5984,   680,    0,  245),
    "IN": (   0, 14860, 11200,   127,  2453,   695,    0,  287),
    "IA": ( 615,  5630,  5750,   139, 11660,   157,    0,  144),
    "KS": (1166,  2900,  8730,     2,  7016,   103,    0,   38),
    "KY": (   0, 12580,  8100,   853,    12,   144,    0,  270),
    "LA": (2052,  2540, 33800,   192,     0,   569,    0,  826),
    "ME": (   0,     0,  1580,   726,   933,   258,    0,  767),
    "MD": (1829,  2380, 10900,   566,   191,  1563,    0,  233),
    "MA": ( 696,     0, 13400,   536,   117,  3664,    0,  599),
    "MI": (4163,  9860, 16100,   446,  2062,   538,    0,  455),
    "MN": (1730,  4510,  8970,   200,  3699,   936,    0,  582),
    "MS": (1410,  2280, 18900,     0,     0,   243,    0,  464),
    "MO": (1190,  8680, 10400,   564,  1143,   238,    0,  125),
    "MT": (   0,  2330,   680,  2685,   695,   117,    0,   26),
    "NE": (1236,  2060,  4480,    73,  2379,   145,    0,   38),
    "NV": (   0,  1635, 11300,  1132,   152,  3264,  735,   23),
    "NH": (1245,     0,  2930,   453,   185,   373,    0,  503),
    "NJ": (3479,     0, 17400,    15,    11,  3819,    0,  335),
    "NM": (   0,  2470,  6870,    78,  1800,   953,    0,   22),
    "NY": (4125,     0, 31700,  5080,  2042,  3396,    0,  586),
    "NC": (5043,  8980, 26700,  2056,   208,  6783,    0, 1021),
    "ND": (   0,  3570,  1170,   593,  4427,    10,    0,   12),
    "OH": (2128, 14920, 19100,   131,   738,   684,    0,  258),
    "OK": (   0,  5560, 29400,   874, 10690,   104,    0,  154),
    "OR": (1170,     0,  6740, 11170,  3213,   345,    0,  431),
    "PA": (9515, 13200, 20900,  1759,  1450,   679,    0,  782),
    "RI": (   0,     0,  2700,     2,    56,   278,    0,   18),
    "SC": (6479,  6650, 13000,  1670,     0,  1405,    0,  595),
    "SD": (   0,   590,   820,  1732,  1404,    15,    0,   22),
    "TN": (7174,  6040, 12400,  3963,    29,   785,    0,  416),
    "TX": (5143, 19350, 83200,   677, 35754,  7729,    0,  555),
    "UT": (   0,  4120,  5740,   318,   391,  1374,   38,   17),
    "VT": (   0,     0,   360,   449,   149,   236,    0,  155),
    "VA": (3898,  2620, 22900,   802,     0,  1886,    0,  884),
    "WA": (1174,  1370, 10900, 22430,  3395,   245,    0,  350),
    "WV": (   0, 13040,  3600,   345,   686,    53,    0,   39),
    "WI": (1135,  4920, 11100,   517,   752,   304,    0,  525),
    "WY": (   0,  6620,  1640,   310,  1810,    48,    0,    4),
}

_CONSUMPTION_MWH: dict[str, float] = {
    "TX": 478_000_000, "CA": 278_000_000, "FL": 258_000_000, "NY": 156_000_000,
    "PA": 147_000_000, "IL": 144_000_000, "OH": 142_000_000, "GA": 137_000_000,
    "NC": 133_000_000, "MI": 108_000_000, "VA": 118_000_000, "IN": 106_000_000,
    "TN":  99_000_000, "AZ":  92_000_000, "LA":  89_000_000, "WI":  73_000_000,
    "MO":  84_000_000, "AL":  87_000_000, "SC":  82_000_000, "KY":  80_000_000,
    "WA":  94_000_000, "OR":  52_000_000, "OK":  65_000_000, "CO":  58_000_000,
    "CT":  31_000_000, "IA":  52_000_000, "MS":  49_000_000, "AR":  49_000_000,
    "KS":  43_000_000, "UT":  32_000_000, "NV":  36_000_000, "NM":  23_000_000,
    "NE":  30_000_000, "WV":  30_000_000, "ID":  25_000_000, "HI":  10_000_000,
    "ME":  12_000_000, "NH":  12_000_000, "RI":   8_000_000, "MT":  14_000_000,
    "DE":  12_000_000, "SD":  11_000_000, "ND":  20_000_000, "AK":   6_800_000,
    "VT":   6_000_000, "WY":  15_000_000, "MA":  58_000_000, "MD":  66_000_000,
    "MN":  71_000_000, "NJ":  82_000_000,
}

_BASE_PRICE_CENTS: dict[str, float] = {
    "HI": 32.5, "AK": 23.8, "CT": 22.1, "MA": 21.8, "NH": 20.6,
    "CA": 19.9, "RI": 19.3, "VT": 18.4, "NY": 17.8, "ME": 16.7,
    "NJ": 16.2, "MD": 13.9, "PA": 13.3, "DE": 12.8, "IL": 12.6,
    "AZ": 12.4, "NV": 12.1, "MI": 11.9, "WI": 11.7, "MN": 11.5,
    "OH": 11.3, "GA": 11.2, "FL": 11.1, "NC": 10.9, "SC": 10.8,
    "TX": 10.7, "VA": 10.6, "TN": 10.5, "IN": 10.3, "MO": 10.2,
    "KY": 10.0, "AL":  9.8, "MS":  9.7, "LA":  9.5, "AR":  9.4,
    "IA":  9.3, "KS":  9.2, "OK":  9.1, "NE":  9.0, "SD":  8.9,
    "ND":  8.8, "MT":  8.7, "WY":  8.6, "UT":  8.5, "CO":  8.4,
    "NM":  8.3, "ID":  8.2, "OR":  8.1, "WA":  8.0, "WV":  9.6,
}

_POPULATION: dict[str, int] = {
    "CA": 39_538_223, "TX": 29_145_505, "FL": 21_538_187, "NY": 20_201_249,
    "PA": 13_002_700, "IL": 12_812_508, "OH": 11_799_448, "GA": 10_711_908,
}

STATE_CODES: dict[str, str] = {
    "Alabama": "AL", "Alaska": "AK", "Arizona": "AZ", "Arkansas": "AR",
    "California": "CA", "Colorado": "CO", "Connecticut": "CT", "Delaware": "DE",
    "Florida": "FL", "Georgia": "GA", "Hawaii": "HI", "Idaho": "ID",
    "Illinois": "IL", "Indiana": "IN", "Iowa": "IA", "Kansas": "KS",
    "Kentucky": "KY", "Louisiana": "LA", "Maine": "ME", "Maryland": "MD",
    "Massachusetts": "MA", "Michigan": "MI", "Minnesota": "MN", "Mississippi": "MS",
    "Missouri": "MO", "Montana": "MT", "Nebraska": "NE", "Nevada": "NV",
    "New Hampshire": "NH", "New Jersey": "NJ", "New Mexico": "NM", "New York": "NY",
    "North Carolina": "NC", "North Dakota": "ND", "Ohio": "OH", "Oklahoma": "OK",
    "Oregon": "OR", "Pennsylvania": "PA", "Rhode Island": "RI", "South Carolina": "SC",
    "South Dakota": "SD", "Tennessee": "TN", "Texas": "TX", "Utah": "UT",
    "Vermont": "VT", "Virginia": "VA", "Washington": "WA", "West Virginia": "WV",
    "Wisconsin": "WI", "Wyoming": "WY",
}

_NAME_TO_CODE: dict[str, str] = {name.lower(): code for name, code in STATE_CODES.items()}


def normalize_region(region: str) -> str:
    """Map a state code or full state name to its upper-case two-letter code."""
    cleaned = region.strip()
    return _NAME_TO_CODE.get(cleaned.lower(), cleaned.upper())


def _build_profiles() -> Mapping[str, RegionEnergyProfile]:
    profiles = {
        code: RegionEnergyProfile(
            region=code,
            capacity_by_source=dict(zip(EnergySource, caps)),
            annual_consumption_mwh=float(_CONSUMPTION_MWH.get(code, 0.0)),
            base_retail_price_cents_per_kwh=_BASE_PRICE_CENTS.get(code, DEFAULT_BASE_PRICE),
        )
        for code, caps in _CAPACITY_MW.items()
    }
    return MappingProxyType(profiles)


# Built once at import; never mutated.
US_STATE_PROFILES: Mapping[str, RegionEnergyProfile] = _build_profiles()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class RegionProfileStore:
    """
    Read-only lookup over region energy profiles.

    Parameters
    ----------
    profiles:
        Mapping of region code → profile.  Defaults to the built-in US
        state tables.
    populations:
        Mapping of region code → population, used for simulated sales.
    default_base_price:
        ¢/kWh returned for regions without a price entry.
    """

    def __init__(
        self,
        profiles: Mapping[str, RegionEnergyProfile] = US_STATE_PROFILES,
        populations: Mapping[str, int] = MappingProxyType(_POPULATION),
        default_base_price: float = DEFAULT_BASE_PRICE,
    ) -> None:
        self._profiles    = MappingProxyType({normalize_region(k): v for k, v in profiles.items()})
        self._populations = MappingProxyType({normalize_region(k): v for k, v in populations.items()})
        self.default_base_price = default_base_price

    def __contains__(self, region: object) -> bool:
        return isinstance(region, str) and normalize_region(region) in self._profiles

    def __iter__(self) -> Iterator[str]:
        return iter(self._profiles)

    def regions(self) -> list[str]:
        return sorted(self._profiles)

    def profile(self, region: str) -> RegionEnergyProfile:
        """Return the region's profile, or an all-zero profile for unknown regions."""
        code = normalize_region(region)
        found = self._profiles.get(code)
        if found is not None:
            return found
        return RegionEnergyProfile(
            region=code,
            capacity_by_source={},
            annual_consumption_mwh=0.0,
            base_retail_price_cents_per_kwh=self.default_base_price,
            known=False,
        )

    def capacity_by_source(self, region: str) -> Mapping[EnergySource, float]:
        return self.profile(region).capacity_by_source

    def capacity(self, region: str, source: EnergySource | str) -> float:
        return self.capacity_by_source(region)[EnergySource(source)]

    def consumption(self, region: str) -> float:
        return self.profile(region).annual_consumption_mwh

    def base_price(self, region: str) -> float:
        return self.profile(region).base_retail_price_cents_per_kwh

    def population(self, region: str) -> int:
        return self._populations.get(normalize_region(region), DEFAULT_POPULATION)
