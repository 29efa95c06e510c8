"""
GridAtlas — Energy Sales Client
Annual retail electricity sales by state and sector from the EIA v2 API,
plus a per-year history that pairs sales with the state's climate window.

Source
------
  EIA v2  https://api.eia.gov/v2/electricity/retail-sales/data/
  API key required (free, https://www.eia.gov/opendata/register.php).
  Without a key the client serves population-based simulated sales.

  Query: frequency=annual, data[0]=sales, facets[stateid][]={state},
         start={year}, end={year}

Each data row carries a ``sectorid`` and a ``sales`` value (million kWh).
Rows for the four reported sectors go to their own bucket; every row except
EIA's own "ALL" roll-up adds to the total.  When the feed includes an
"ALL" row, that row is the total.

Simulation
----------
  total_mwh = population × 11,000 kWh per capita / 1000
  split     = residential 38 %, commercial 36 %, industrial 26 %,
              transportation 0.1 %
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import pandas as pd
from loguru import logger

from atlas.climate import ClimateRecordsClient
from atlas.gateway import RECORDS_TTL_MS, ExternalDataGateway
from atlas.profiles import RegionProfileStore, normalize_region
from atlas.series import ClimateData, ElectricityData, SalesRecord, SalesSummary, SectorSales

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EIA_BASE_URL = "https://api.eia.gov/v2"
EIA_SALES_ROUTE = "/electricity/retail-sales/data/"

SALES_UNIT = "million kilowatthours"
SIMULATED_UNIT = "megawatthours"

PER_CAPITA_KWH: float = 11_000.0
SIMULATED_SECTOR_SHARE: dict[str, float] = {
    "residential":    0.38,
    "commercial":     0.36,
    "industrial":     0.26,
    "transportation": 0.001,
}

# EIA sector ids → bucket name.  Full names are accepted for older payloads.
_SECTOR_ALIASES: dict[str, str] = {
    "res": "residential",
    "com": "commercial",
    "ind": "industrial",
    "tra": "transportation",
    "residential":    "residential",
    "commercial":     "commercial",
    "industrial":     "industrial",
    "transportation": "transportation",
}
_ALL_SECTORS = "all"


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_sales(raw: Any, state: str, year: int) -> Optional[ElectricityData]:
    """Reduce a raw EIA retail-sales response to an ``ElectricityData`` payload."""
    response = raw.get("response") if isinstance(raw, dict) else None
    data = response.get("data") if isinstance(response, dict) else None
    if not data:
        logger.warning("EIA: no sales rows for {} {}.", state, year)
        return None

    df = pd.DataFrame(data)
    if "sales" not in df.columns:
        logger.warning("EIA: unexpected data columns {}", list(df.columns))
        return None

    df["sales"]  = pd.to_numeric(df["sales"], errors="coerce").fillna(0.0)
    df["sector"] = df.get("sectorid", pd.Series([""] * len(df))).fillna("").astype(str).str.lower()
    df["period"] = df.get("period", pd.Series([str(year)] * len(df))).astype(str)

    by_sector = df.groupby("sector")["sales"].sum()
    sales = SectorSales()
    for sector, value in by_sector.items():
        bucket = _SECTOR_ALIASES.get(sector)
        if bucket is not None:
            setattr(sales, bucket, getattr(sales, bucket) + float(value))

    if _ALL_SECTORS in by_sector.index:
        sales.total = float(by_sector[_ALL_SECTORS])
    else:
        sales.total = float(df["sales"].sum())

    records = [
        SalesRecord(period=r.period, sector=r.sector, sales=float(r.sales))
        for r in df.itertuples(index=False)
    ]
    summary = SalesSummary(
        state=state,
        year=year,
        sales=sales,
        unit=SALES_UNIT,
        avg_monthly_demand=sales.total / 12,
    )
    logger.info("EIA: {} {} | total={:,.0f} {}", state, year, sales.total, SALES_UNIT)
    return ElectricityData(summary=summary, days=records)


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


def simulate_sales(state: str, year: int, population: int) -> ElectricityData:
    """Population-scaled annual sales; deterministic for a given population."""
    total = population * PER_CAPITA_KWH / 1000
    sales = SectorSales(
        **{sector: total * share for sector, share in SIMULATED_SECTOR_SHARE.items()},
        total=total,
    )
    summary = SalesSummary(
        state=state,
        year=year,
        sales=sales,
        unit=SIMULATED_UNIT,
        avg_monthly_demand=total / 12,
    )
    return ElectricityData(summary=summary, simulated=True)


# ---------------------------------------------------------------------------
# History row
# ---------------------------------------------------------------------------


@dataclass
class HistoryRow:
    """One year of paired climate and sales data."""

    year:        int
    climate:     Optional[ClimateData]     = None
    electricity: Optional[ElectricityData] = None

    def to_dict(self) -> dict:
        return {
            "year":        self.year,
            "climate":     self.climate.to_dict() if self.climate else None,
            "electricity": self.electricity.to_dict() if self.electricity else None,
        }


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ElectricitySalesClient:
    """
    EIA annual retail sales for a state.

    Parameters
    ----------
    gateway:
        Shared fetch/cache/fallback gateway.
    http:
        Shared async HTTP client.
    api_key:
        EIA API key.  ``None`` routes every request to simulation.
    store:
        Supplies state populations for simulated sales.
    climate:
        Climate client used by ``fetch_history`` when a ZIP code is given.
    """

    def __init__(
        self,
        gateway: ExternalDataGateway,
        http: httpx.AsyncClient,
        api_key: Optional[str] = None,
        store: Optional[RegionProfileStore] = None,
        climate: Optional[ClimateRecordsClient] = None,
        base_url: str = EIA_BASE_URL,
        ttl_ms: float = RECORDS_TTL_MS,
    ) -> None:
        self._gateway  = gateway
        self._http     = http
        self._api_key  = api_key or None
        self._store    = store or RegionProfileStore()
        self._climate  = climate
        self._base_url = base_url.rstrip("/")
        self._ttl_ms   = ttl_ms

    @property
    def has_key(self) -> bool:
        return self._api_key is not None

    async def fetch_sales(self, state: str, year: int) -> Optional[ElectricityData]:
        """Annual sales for ``state`` in ``year``; ``None`` if EIA had no rows."""
        code = normalize_region(state)
        key  = f"eia_{code}_{year}"

        async def _remote() -> Optional[ElectricityData]:
            params = {
                "api_key":            self._api_key,
                "frequency":          "annual",
                "data[0]":            "sales",
                "facets[stateid][]":  code,
                "start":              str(year),
                "end":                str(year),
            }
            logger.info("EIA: fetching retail sales | state={} | year={}", code, year)
            resp = await self._http.get(f"{self._base_url}{EIA_SALES_ROUTE}", params=params)
            resp.raise_for_status()
            return aggregate_sales(resp.json(), code, year)

        result = await self._gateway.fetch(
            key,
            self._ttl_ms,
            _remote if self.has_key else None,
            lambda _k: simulate_sales(code, year, self._store.population(code)),
        )
        return result.payload

    async def fetch_history(
        self,
        state: str,
        start_year: int,
        end_year: int,
        zip_code: Optional[str] = None,
    ) -> list[HistoryRow]:
        """
        One ``HistoryRow`` per year in [start_year, end_year], in year order.

        Sales are always fetched; climate only when ``zip_code`` is given and
        a climate client is configured.  All years are requested concurrently.
        """
        if end_year < start_year:
            raise ValueError(f"end_year {end_year} precedes start_year {start_year}")

        years = list(range(start_year, end_year + 1))
        with_climate = zip_code is not None and self._climate is not None

        async def _year(year: int) -> HistoryRow:
            sales_task = self.fetch_sales(state, year)
            if not with_climate:
                return HistoryRow(year=year, electricity=await sales_task)
            climate, sales = await asyncio.gather(
                self._climate.fetch_climate(zip_code, f"{year}-01-01", f"{year}-12-31"),
                sales_task,
            )
            return HistoryRow(year=year, climate=climate, electricity=sales)

        rows = await asyncio.gather(*(_year(y) for y in years))
        logger.info("History | state={} | {}–{} | climate={}", state, start_year, end_year, with_climate)
        return list(rows)
