"""
GridAtlas — FastAPI Service
Serves state energy balances, expansion recommendations, price and demand
projections, and the climate / energy-sales / weather feeds behind them.

Run:  uvicorn api:app --reload --port 8000
Docs: http://localhost:8000/docs
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Generic, Optional, TypeVar

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel

import config
from atlas.balance import BalanceCalculator
from atlas.climate import ClimateRecordsClient
from atlas.demand import DemandProjector, growth_fallback, locality_baseline_demand
from atlas.electricity import ElectricitySalesClient
from atlas.gateway import HOUR_MS, ExternalDataGateway, TTLCache
from atlas.pricing import PriceProjector
from atlas.profiles import RENEWABLE_SOURCES, STATE_CODES, RegionProfileStore, normalize_region
from atlas.recommendations import RecommendationEngine
from atlas.series import (
    ClimateDay,
    ClimateSummary,
    DataSeries,
    SalesRecord,
    SalesSummary,
    WeatherDay,
    WeatherSummary,
)
from atlas.weather import MAX_FORECAST_DAYS, WeatherClient

logger.remove()
logger.add(sys.stderr, level=config.LOG_LEVEL)

# ---------------------------------------------------------------------------
# Services — one shared set per process, built in the lifespan
# ---------------------------------------------------------------------------


@dataclass
class Services:
    store:         RegionProfileStore
    calculator:    BalanceCalculator
    recommender:   RecommendationEngine
    pricer:        PriceProjector
    demand:        DemandProjector
    gateway:       ExternalDataGateway
    climate:       ClimateRecordsClient
    electricity:   ElectricitySalesClient
    weather:       WeatherClient
    annual_growth: float = config.ANNUAL_DEMAND_GROWTH


def build_services(
    http: httpx.AsyncClient,
    *,
    gateway: Optional[ExternalDataGateway] = None,
    noaa_token: Optional[str] = config.NOAA_API_TOKEN,
    eia_token: Optional[str] = config.EIA_API_TOKEN,
    base_year: Optional[int] = None,
) -> Services:
    """Wire the engine and the data clients around one HTTP client."""
    store      = RegionProfileStore()
    calculator = BalanceCalculator(store, capacity_factor=config.CAPACITY_FACTOR)
    gateway    = gateway or ExternalDataGateway(
        TTLCache(),
        timeout=config.REQUEST_TIMEOUT_SECONDS,
        max_attempts=config.MAX_ATTEMPTS,
        backoff_seconds=config.RETRY_BACKOFF_SECONDS,
    )
    records_ttl = config.RECORDS_TTL_HOURS * HOUR_MS
    climate = ClimateRecordsClient(gateway, http, token=noaa_token, ttl_ms=records_ttl)

    return Services(
        store=store,
        calculator=calculator,
        recommender=RecommendationEngine(calculator),
        pricer=PriceProjector(
            calculator,
            urban_population_threshold=config.URBAN_POPULATION_THRESHOLD,
            urban_premium=config.URBAN_PREMIUM,
        ),
        demand=DemandProjector(),
        gateway=gateway,
        climate=climate,
        electricity=ElectricitySalesClient(
            gateway, http, api_key=eia_token, store=store, climate=climate, ttl_ms=records_ttl,
        ),
        weather=WeatherClient(
            gateway, http, base_year=base_year, ttl_ms=config.WEATHER_TTL_HOURS * HOUR_MS,
        ),
    )


_http_client: Optional[httpx.AsyncClient] = None
_services: Optional[Services] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create a single shared httpx client and service set for the process."""
    global _http_client, _services
    _http_client = httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT_SECONDS)
    _services = build_services(_http_client)
    logger.info(
        "GridAtlas ready | NOAA token={} | EIA token={}",
        bool(config.NOAA_API_TOKEN), bool(config.EIA_API_TOKEN),
    )
    yield
    await _http_client.aclose()
    _services = None
    logger.info("httpx AsyncClient closed.")


def get_services() -> Services:
    if _services is None:
        raise HTTPException(status_code=503, detail="Service is starting up.")
    return _services


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GridAtlas API",
    description=(
        "State-level energy balance, capacity recommendations and price/demand "
        "projections, with NOAA, EIA and Open-Meteo feeds that degrade to "
        "deterministic simulated data."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Envelope — standard top-level wrapper for all data endpoints
# ---------------------------------------------------------------------------

_T_data    = TypeVar("_T_data")
_T_summary = TypeVar("_T_summary")


class EnvelopeMeta(BaseModel):
    """Metadata block present on every GridAtlas data response."""
    api_version:      str = "1.0"
    is_simulated:     bool
    scope:            str            # region code, ZIP, or "lat,lon"
    start:            Optional[str] = None
    end:              Optional[str] = None
    last_updated_utc: str
    units:            str
    data_quality:     str            # "LIVE" | "SIMULATED" | "REFERENCE"


class ApiResponse(BaseModel, Generic[_T_data, _T_summary]):
    """Uniform envelope returned by every GridAtlas data endpoint."""
    meta:    EnvelopeMeta
    data:    list[_T_data]
    summary: _T_summary


# ---------------------------------------------------------------------------
# Record and summary models
# ---------------------------------------------------------------------------

class GenerationShare(BaseModel):
    source:       str
    label:        str
    capacity_mw:  float
    share_pct:    float
    is_renewable: bool


class BalanceSummary(BaseModel):
    region:                  str
    total_capacity_mw:       float
    annual_generation_mwh:   float
    consumption_mwh:         float
    surplus_mwh:             float
    self_sufficiency_percent: Optional[float]
    renewable_percentage:    float
    deficit_status:          str


class RecommendationRecord(BaseModel):
    source:                str
    label:                 str
    priority:              str
    reason:                str
    suggested_increase_mw: float
    cost_profile:          str


class RecommendationSummary(BaseModel):
    region:            str
    count:             int
    demand_mwh:        float
    deficit_mwh:       float
    total_suggested_mw: float


class PriceYearRecord(BaseModel):
    year:                int
    price_cents_per_kwh: float
    change_pct:          float   # vs. current price


class PriceSummary(BaseModel):
    region:                      str
    base_year:                   int
    base_price_cents_per_kwh:    float
    current_price_cents_per_kwh: float
    price_level:                 str
    population:                  Optional[int]


class DemandRecord(BaseModel):
    baseline_demand:     float
    predicted_demand:    float
    change_percent:      float
    cooling_factor:      float
    heating_factor:      float
    solar_offset_factor: float
    weather_adjusted:    bool


class DemandSummary(BaseModel):
    latitude:            float
    longitude:           float
    year:                int
    years_ahead:         int
    weather_source:      str     # "archive" | "projection" | "none"
    avg_temp_mean:       Optional[float] = None
    avg_solar_radiation: Optional[float] = None


class HistoryRecord(BaseModel):
    year:                  int
    climate:               Optional[ClimateSummary] = None
    climate_simulated:     Optional[bool] = None
    electricity:           Optional[SalesSummary] = None
    electricity_simulated: Optional[bool] = None


class HistorySummary(BaseModel):
    state:      str
    start_year: int
    end_year:   int
    years:      int


class LocationWeatherRecord(BaseModel):
    latitude:  float
    longitude: float
    simulated: Optional[bool] = None
    summary:   Optional[WeatherSummary] = None


class BatchSummary(BaseModel):
    locations:  int
    with_data:  int
    simulated:  int


BalanceApiResponse        = ApiResponse[GenerationShare,       BalanceSummary]
RecommendationApiResponse = ApiResponse[RecommendationRecord,  RecommendationSummary]
PriceApiResponse          = ApiResponse[PriceYearRecord,       PriceSummary]
DemandApiResponse         = ApiResponse[DemandRecord,          DemandSummary]
ClimateApiResponse        = ApiResponse[ClimateDay,            ClimateSummary]
ElectricityApiResponse    = ApiResponse[SalesRecord,           SalesSummary]
HistoryApiResponse        = ApiResponse[HistoryRecord,         HistorySummary]
WeatherApiResponse        = ApiResponse[WeatherDay,            WeatherSummary]
BatchWeatherApiResponse   = ApiResponse[LocationWeatherRecord, BatchSummary]


# ---------------------------------------------------------------------------
# Meta-only models (not wrapped in envelope)
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status:        str
    timestamp:     str
    noaa_token:    bool
    eia_token:     bool
    cache_entries: int


class RegionEntry(BaseModel):
    region:                   str
    name:                     str
    total_capacity_mw:        float
    consumption_mwh:          float
    base_price_cents_per_kwh: float


class AssumptionsResponse(BaseModel):
    capacity_factor:            float   # nameplate → annual energy
    hours_per_year:             int
    urban_population_threshold: int     # locality population for the urban premium
    urban_premium:              float
    annual_inflation_pct:       float
    annual_demand_growth_pct:   float
    records_ttl_hours:          float   # NOAA / EIA cache lifetime
    weather_ttl_hours:          float   # Open-Meteo cache lifetime
    max_attempts:               int
    request_timeout_seconds:    float


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_CODE_TO_NAME: dict[str, str] = {code: name for name, code in STATE_CODES.items()}


def _now_utc() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _make_meta(
    *,
    scope: str,
    units: str,
    simulated: Optional[bool] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> EnvelopeMeta:
    """Build the standard EnvelopeMeta; ``simulated=None`` marks reference-table data."""
    if simulated is None:
        quality = "REFERENCE"
    else:
        quality = "SIMULATED" if simulated else "LIVE"
    return EnvelopeMeta(
        is_simulated=bool(simulated),
        scope=scope,
        start=start,
        end=end,
        units=units,
        data_quality=quality,
        last_updated_utc=_now_utc(),
    )


def _known_region(services: Services, region: str) -> str:
    code = normalize_region(region)
    if code not in services.store:
        raise HTTPException(
            status_code=404,
            detail=f"Region '{region}' not recognised. Valid regions: {', '.join(services.store.regions())}.",
        )
    return code


def _check_window(start: str, end: str) -> None:
    try:
        start_d = date.fromisoformat(start)
        end_d   = date.fromisoformat(end)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid date: {exc}. Use 'YYYY-MM-DD'.") from exc
    if start_d > end_d:
        raise HTTPException(status_code=422, detail="'start' must not be later than 'end'.")


def _series_response(
    payload: Optional[DataSeries],
    *,
    scope: str,
    units: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> dict[str, Any]:
    if payload is None:
        raise HTTPException(status_code=404, detail=f"No data returned for {scope}.")
    return {
        "meta":    _make_meta(scope=scope, units=units, simulated=payload.simulated, start=start, end=end),
        "data":    payload.days,
        "summary": payload.summary,
    }


# ---------------------------------------------------------------------------
# Meta / reference endpoints
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse, tags=["Meta"])
async def health(services: Services = Depends(get_services)):
    """Returns service health, configured credentials and cache size."""
    return HealthResponse(
        status="ok",
        timestamp=_now_utc(),
        noaa_token=services.climate.has_token,
        eia_token=services.electricity.has_key,
        cache_entries=len(services.gateway.cache),
    )


@app.get("/regions", response_model=list[RegionEntry], tags=["Reference"])
async def get_regions(services: Services = Depends(get_services)):
    """Return every region in the profile table with its headline figures."""
    return [
        RegionEntry(
            region=code,
            name=_CODE_TO_NAME.get(code, code),
            total_capacity_mw=services.calculator.total_capacity(code),
            consumption_mwh=services.store.consumption(code),
            base_price_cents_per_kwh=services.store.base_price(code),
        )
        for code in services.store.regions()
    ]


@app.get("/assumptions", response_model=AssumptionsResponse, tags=["Reference"])
async def get_assumptions(services: Services = Depends(get_services)):
    """
    Return the modelling constants in effect.

    Values come from the environment (see ``config.py``) and are identical
    on every call.
    """
    from atlas.balance import HOURS_PER_YEAR
    from atlas.pricing import ANNUAL_INFLATION

    return AssumptionsResponse(
        capacity_factor=services.calculator.capacity_factor,
        hours_per_year=HOURS_PER_YEAR,
        urban_population_threshold=services.pricer.urban_population_threshold,
        urban_premium=services.pricer.urban_premium,
        annual_inflation_pct=ANNUAL_INFLATION * 100,
        annual_demand_growth_pct=services.annual_growth * 100,
        records_ttl_hours=config.RECORDS_TTL_HOURS,
        weather_ttl_hours=config.WEATHER_TTL_HOURS,
        max_attempts=services.gateway.max_attempts,
        request_timeout_seconds=services.gateway.timeout,
    )


# ---------------------------------------------------------------------------
# Engine endpoints
# ---------------------------------------------------------------------------

@app.get("/balance/{region}", response_model=BalanceApiResponse, tags=["Engine"])
async def get_balance(region: str, services: Services = Depends(get_services)):
    """
    Return a region's generation mix and annual supply/demand balance.

        annual_generation_mwh = total_capacity_mw × 8760 × capacity_factor
        self_sufficiency      = annual_generation_mwh / consumption_mwh × 100

    ``self_sufficiency_percent`` is null when the region reports no consumption.
    """
    code = _known_region(services, region)
    logger.info("GET /balance/{}", code)

    calc     = services.calculator
    capacity = services.store.capacity_by_source(code)
    mix      = calc.generation_mix(code)
    balance  = calc.energy_balance(code)

    records = [
        GenerationShare(
            source=source.value,
            label=source.label,
            capacity_mw=capacity[source],
            share_pct=round(share, 4),
            is_renewable=source in RENEWABLE_SOURCES,
        )
        for source, share in mix.items()
    ]
    return BalanceApiResponse(
        meta=_make_meta(scope=code, units="MW / MWh"),
        data=records,
        summary=BalanceSummary(
            region=code,
            total_capacity_mw=balance.total_capacity_mw,
            annual_generation_mwh=balance.annual_generation_mwh,
            consumption_mwh=balance.consumption_mwh,
            surplus_mwh=balance.surplus_mwh,
            self_sufficiency_percent=balance.self_sufficiency_percent,
            renewable_percentage=calc.renewable_percentage(code),
            deficit_status=balance.deficit_status,
        ),
    )


@app.get("/recommendations/{region}", response_model=RecommendationApiResponse, tags=["Engine"])
async def get_recommendations(
    region: str,
    future_demand_mwh: Optional[float] = Query(
        default=None,
        ge=0,
        description="Plan against this annual demand (MWh) instead of current consumption.",
    ),
    services: Services = Depends(get_services),
):
    """Return rule-based capacity expansion recommendations, in rule order."""
    code = _known_region(services, region)
    logger.info("GET /recommendations/{} | future_demand={}", code, future_demand_mwh)

    recs    = services.recommender.recommend(code, future_demand_mwh)
    balance = services.calculator.energy_balance(code)
    demand  = balance.consumption_mwh if future_demand_mwh is None else future_demand_mwh

    return RecommendationApiResponse(
        meta=_make_meta(scope=code, units="MW"),
        data=[RecommendationRecord(**r.to_dict()) for r in recs],
        summary=RecommendationSummary(
            region=code,
            count=len(recs),
            demand_mwh=demand,
            deficit_mwh=demand - balance.annual_generation_mwh,
            total_suggested_mw=round(sum(r.suggested_increase_mw for r in recs), 2),
        ),
    )


@app.get("/price/{region}", response_model=PriceApiResponse, tags=["Engine"])
async def get_price(
    region: str,
    years: int = Query(default=5, ge=0, le=30, description="Project this many years past the base year."),
    base_year: Optional[int] = Query(default=None, ge=1990, le=2100, description="Defaults to the current year."),
    population: Optional[int] = Query(default=None, ge=0, description="Locality population for the urban premium."),
    services: Services = Depends(get_services),
):
    """
    Return the adjusted current retail price and a year-by-year forecast.

    Each forecast year is computed independently from the current price;
    the base year's entry always equals the current price.
    """
    code = _known_region(services, region)
    year = base_year if base_year is not None else datetime.now().year
    logger.info("GET /price/{} | base_year={} | years={} | population={}", code, year, years, population)

    forecast = services.pricer.forecast(code, range(year, year + years + 1), year, population)
    current  = forecast.current_price_cents_per_kwh

    return PriceApiResponse(
        meta=_make_meta(scope=code, units="¢/kWh", start=str(year), end=str(year + years)),
        data=[
            PriceYearRecord(
                year=y,
                price_cents_per_kwh=round(p, 4),
                change_pct=round((p / current - 1) * 100, 2) if current else 0.0,
            )
            for y, p in forecast.forecast_by_year.items()
        ],
        summary=PriceSummary(
            region=code,
            base_year=year,
            base_price_cents_per_kwh=services.store.base_price(code),
            current_price_cents_per_kwh=round(current, 4),
            price_level=forecast.price_level,
            population=population,
        ),
    )


@app.get("/demand", response_model=DemandApiResponse, tags=["Engine"])
async def get_demand(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    year: int = Query(..., ge=1950, le=2100),
    baseline_mw: Optional[float] = Query(default=None, ge=0, description="Baseline demand (MW)."),
    population: Optional[int] = Query(
        default=None, ge=0, description="Derive the baseline from population when baseline_mw is omitted.",
    ),
    services: Services = Depends(get_services),
):
    """
    Return weather-adjusted demand for a location and year.

    Past and current years use archive weather for the year (the last full
    year for the current one); future years use the climate projection.
    When no weather summary is available the baseline is grown at a fixed
    annual rate instead.
    """
    if baseline_mw is None and population is None:
        raise HTTPException(status_code=422, detail="Provide 'baseline_mw' or 'population'.")

    baseline    = baseline_mw if baseline_mw is not None else locality_baseline_demand(lat, population)
    base_year   = services.weather.base_year
    years_ahead = year - base_year
    logger.info("GET /demand | ({}, {}) | year={} | baseline={:.1f} MW", lat, lon, year, baseline)

    if years_ahead > 0:
        source  = "projection"
        weather = await services.weather.fetch_projection(lat, lon, f"{year}-01-01", f"{year}-12-31")
    else:
        source = "archive"
        wyear  = year if years_ahead < 0 else base_year - 1
        weather = await services.weather.fetch_historical(lat, lon, f"{wyear}-01-01", f"{wyear}-12-31")

    if weather is None:
        logger.warning("No weather for ({}, {}); using growth fallback.", lat, lon)
        estimate  = growth_fallback(baseline, max(years_ahead, 0), services.annual_growth)
        summary   = DemandSummary(latitude=lat, longitude=lon, year=year, years_ahead=years_ahead, weather_source="none")
        simulated: Optional[bool] = True
    else:
        estimate = services.demand.estimate(weather.summary, baseline)
        summary  = DemandSummary(
            latitude=lat, longitude=lon, year=year, years_ahead=years_ahead, weather_source=source,
            avg_temp_mean=weather.summary.avg_temp_mean,
            avg_solar_radiation=weather.summary.avg_solar_radiation,
        )
        simulated = weather.simulated

    return DemandApiResponse(
        meta=_make_meta(scope=f"{lat},{lon}", units="MW", simulated=simulated, start=str(year), end=str(year)),
        data=[DemandRecord(**estimate.to_dict())],
        summary=summary,
    )


# ---------------------------------------------------------------------------
# Data feed endpoints
# ---------------------------------------------------------------------------

@app.get("/climate", response_model=ClimateApiResponse, tags=["Feeds"])
async def get_climate(
    zip_code: str = Query(..., min_length=5, max_length=5, description="US ZIP code."),
    start: str = Query(..., description="Window start, 'YYYY-MM-DD'."),
    end: str = Query(..., description="Window end, 'YYYY-MM-DD'."),
    services: Services = Depends(get_services),
):
    """Return NOAA daily climate records and their window summary for a ZIP code."""
    _check_window(start, end)
    logger.info("GET /climate | zip={} | {} → {}", zip_code, start, end)
    payload = await services.climate.fetch_climate(zip_code, start, end)
    return _series_response(payload, scope=zip_code, units="°C / m/s / mm", start=start, end=end)


@app.get("/electricity/{state}", response_model=ElectricityApiResponse, tags=["Feeds"])
async def get_electricity(
    state: str,
    year: int = Query(..., ge=2001, le=2100),
    services: Services = Depends(get_services),
):
    """Return EIA annual retail electricity sales by sector for a state."""
    code = _known_region(services, state)
    logger.info("GET /electricity/{} | year={}", code, year)
    payload = await services.electricity.fetch_sales(code, year)
    if payload is None:
        raise HTTPException(status_code=404, detail=f"No sales data for {code} {year}.")
    return _series_response(payload, scope=code, units=payload.summary.unit, start=str(year), end=str(year))


@app.get("/electricity/{state}/history", response_model=HistoryApiResponse, tags=["Feeds"])
async def get_electricity_history(
    state: str,
    start_year: int = Query(..., ge=2001, le=2100),
    end_year: int = Query(..., ge=2001, le=2100),
    zip_code: Optional[str] = Query(default=None, min_length=5, max_length=5),
    services: Services = Depends(get_services),
):
    """Return one row per year of sales, paired with climate when ``zip_code`` is given."""
    code = _known_region(services, state)
    if end_year < start_year:
        raise HTTPException(status_code=422, detail="'start_year' must not be later than 'end_year'.")
    if end_year - start_year > 25:
        raise HTTPException(status_code=422, detail="History is limited to 26 years per request.")

    rows = await services.electricity.fetch_history(code, start_year, end_year, zip_code)
    records = [
        HistoryRecord(
            year=row.year,
            climate=row.climate.summary if row.climate else None,
            climate_simulated=row.climate.simulated if row.climate else None,
            electricity=row.electricity.summary if row.electricity else None,
            electricity_simulated=row.electricity.simulated if row.electricity else None,
        )
        for row in rows
    ]
    simulated = any(r.climate_simulated or r.electricity_simulated for r in records)
    return HistoryApiResponse(
        meta=_make_meta(scope=code, units="mixed", simulated=simulated, start=str(start_year), end=str(end_year)),
        data=records,
        summary=HistorySummary(state=code, start_year=start_year, end_year=end_year, years=len(records)),
    )


@app.get("/weather/history", response_model=WeatherApiResponse, tags=["Feeds"])
async def get_weather_history(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    start: str = Query(..., description="'YYYY-MM-DD'"),
    end: str = Query(..., description="'YYYY-MM-DD'"),
    services: Services = Depends(get_services),
):
    """Return observed daily weather (Open-Meteo archive) for a point."""
    _check_window(start, end)
    payload = await services.weather.fetch_historical(lat, lon, start, end)
    return _series_response(payload, scope=f"{lat},{lon}", units="°C / % / m/s / mm / MJ/m²", start=start, end=end)


@app.get("/weather/history/batch", response_model=BatchWeatherApiResponse, tags=["Feeds"])
async def get_weather_history_batch(
    points: list[str] = Query(..., description="Repeated 'lat,lon' pairs, e.g. points=30.3,-97.7"),
    start: str = Query(..., description="'YYYY-MM-DD'"),
    end: str = Query(..., description="'YYYY-MM-DD'"),
    services: Services = Depends(get_services),
):
    """Return archive weather summaries for several points, in request order."""
    _check_window(start, end)
    try:
        locations = [tuple(float(v) for v in p.split(",")) for p in points]
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid point: {exc}. Use 'lat,lon'.") from exc
    if any(len(loc) != 2 for loc in locations):
        raise HTTPException(status_code=422, detail="Each point must be 'lat,lon'.")

    results = await services.weather.fetch_batch_historical(locations, start, end)
    records = [
        LocationWeatherRecord(
            latitude=r.latitude,
            longitude=r.longitude,
            simulated=r.weather.simulated if r.weather else None,
            summary=r.weather.summary if r.weather else None,
        )
        for r in results
    ]
    simulated_n = sum(1 for r in records if r.simulated)
    return BatchWeatherApiResponse(
        meta=_make_meta(scope="batch", units="°C / % / m/s / mm / MJ/m²", simulated=simulated_n > 0, start=start, end=end),
        data=records,
        summary=BatchSummary(
            locations=len(records),
            with_data=sum(1 for r in records if r.summary is not None),
            simulated=simulated_n,
        ),
    )


@app.get("/weather/forecast", response_model=WeatherApiResponse, tags=["Feeds"])
async def get_weather_forecast(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    days: int = Query(default=MAX_FORECAST_DAYS, ge=1, le=MAX_FORECAST_DAYS),
    services: Services = Depends(get_services),
):
    """Return the daily Open-Meteo forecast for the next 1–16 days."""
    payload = await services.weather.fetch_forecast(lat, lon, days)
    return _series_response(payload, scope=f"{lat},{lon}", units="°C / % / m/s / mm / MJ/m²")


@app.get("/weather/projection", response_model=WeatherApiResponse, tags=["Feeds"])
async def get_weather_projection(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    start: str = Query(..., description="'YYYY-MM-DD', up to 2050"),
    end: str = Query(..., description="'YYYY-MM-DD', up to 2050"),
    model: str = Query(default="MRI_AGCM3_2_S", description="Open-Meteo climate model id."),
    services: Services = Depends(get_services),
):
    """
    Return a long-range climate projection for a point.

    Falls back to a ten-year archive trend, then to a latitude climatology,
    when the climate-model endpoint is unavailable; ``summary.trend_based``
    and ``meta.data_quality`` say which one was used.
    """
    _check_window(start, end)
    payload = await services.weather.fetch_projection(lat, lon, start, end, model)
    return _series_response(payload, scope=f"{lat},{lon}", units="°C / % / m/s / mm / MJ/m²", start=start, end=end)
