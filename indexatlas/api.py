"""
indexatlas.api — Read-only serving API over built artifacts.

Serves the value stores, region list and index catalogue produced by
``indexatlas.build_pipeline``, plus the pure helpers a map client needs
(search, weight redistribution, weighted averages).

Endpoints:
    GET  /health                      → liveness, no I/O
    GET  /ready                       → data presence + manifest integrity
    GET  /indices                     → index catalogue
    GET  /indices/{index_id}          → one index definition
    GET  /values/{index_id}           → full value store
    GET  /values/{index_id}/{code}    → one record, its headline value and bin
    GET  /regions                     → region identities with provenance
    GET  /search?q=&limit=            → diacritic-insensitive region search
    POST /weights/redistribute        → percentage weights after one change
    POST /weights/average             → weighted average of one OECD record

Value stores come from ``INDEXATLAS_VALUES_BASE_URL`` when set, else from
``INDEXATLAS_OUTPUT_DIR``.

Run:
    uvicorn indexatlas.api:app
"""

from __future__ import annotations

import json
import logging
import math
import sys
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.gzip import GZipMiddleware

from indexatlas.accessor import make_accessor
from indexatlas.classify import classify_hdi, classify_value
from indexatlas.config import Settings
from indexatlas.constants import (
    INDEX_HDI,
    OECD_DIMENSION_KEYS,
    REGIONS_FILE,
    SEARCH_DEFAULT_LIMIT,
    VALUE_FILES,
)
from indexatlas.manifest import verify_manifest
from indexatlas.map_data import MapData, MapDataError, load_map_data_file
from indexatlas.registry import INDICES, KEYED_BY_REGION, get_index_by_id
from indexatlas.search import SearchIndex, build_search_index, search_regions
from indexatlas.security import (
    ETagMiddleware,
    RequestIdMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from indexatlas.supplements import get_region_source
from indexatlas.value_loader import (
    ValueLoader,
    ValueStoreTransportError,
    ValueStoreValidationError,
)
from indexatlas.weights import EQUAL_WEIGHTS, compute_weighted_average, redistribute_weights

logger = logging.getLogger("indexatlas.api")

API_VERSION = "0.1.0"
MAX_SEARCH_LIMIT = 50

DEV_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

_settings_at_import = Settings.from_env()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["240/minute"],
    storage_uri=_settings_at_import.redis_url or "memory://",
    strategy="fixed-window",
)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


def _check_dimension_keys(value: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(value) - set(OECD_DIMENSION_KEYS))
    if unknown:
        raise ValueError(f"unknown dimension keys: {unknown}")
    return value


class RedistributeRequest(_Body):
    weights: dict[str, float] = Field(default_factory=lambda: dict(EQUAL_WEIGHTS))
    changed_key: str
    new_percentage: float = Field(allow_inf_nan=False)

    @field_validator("weights")
    @classmethod
    def _weights_valid(cls, v: dict[str, float]) -> dict[str, float]:
        _check_dimension_keys(v)
        if any(math.isnan(w) or math.isinf(w) or w < 0 for w in v.values()):
            raise ValueError("weights must be finite and non-negative")
        return v


class AverageRequest(_Body):
    values: dict[str, Optional[float]]
    weights: Optional[dict[str, float]] = None

    @field_validator("values")
    @classmethod
    def _values_valid(cls, v: dict[str, Optional[float]]) -> dict[str, Optional[float]]:
        _check_dimension_keys(v)
        if any(x is not None and (math.isnan(x) or math.isinf(x)) for x in v.values()):
            raise ValueError("values must be finite or null")
        return v

    @field_validator("weights")
    @classmethod
    def _weights_valid(cls, v: Optional[dict[str, float]]) -> Optional[dict[str, float]]:
        if v is None:
            return v
        _check_dimension_keys(v)
        if any(math.isnan(w) or math.isinf(w) or w < 0 for w in v.values()):
            raise ValueError("weights must be finite and non-negative")
        return v


async def _parse_body(request: Request, model: type[BaseModel]) -> BaseModel:
    """Parse a JSON body into ``model``; 400 with field details on failure."""
    try:
        raw = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail={
            "error": "INVALID_INPUT",
            "message": "Request body is not valid JSON.",
        }) from None
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail={
            "error": "INVALID_INPUT",
            "message": "Request validation failed.",
            "details": [
                {"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]}
                for e in exc.errors(include_url=False)
            ],
        }) from None


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

class AppState:
    """Per-app resources: loader, lazily loaded map data and search index."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        if settings.values_base_url:
            self.loader = ValueLoader(
                base_url=settings.values_base_url,
                timeout=settings.fetch_timeout_seconds,
            )
        else:
            self.loader = ValueLoader(data_dir=settings.output_dir)
        self.integrity: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._map_data: MapData | None = None
        self._search_index: SearchIndex | None = None

    def data_present(self) -> bool:
        out = self.settings.output_dir
        return (out / REGIONS_FILE).is_file() and (out / VALUE_FILES[INDEX_HDI]).is_file()

    def _loaded(self) -> tuple[MapData, SearchIndex]:
        with self._lock:
            if self._map_data is None or self._search_index is None:
                map_data = load_map_data_file(self.settings.output_dir / REGIONS_FILE)
                self._search_index = build_search_index(map_data.searchable_regions())
                self._map_data = map_data
            return self._map_data, self._search_index

    def map_data(self) -> MapData:
        return self._loaded()[0]

    def search_index(self) -> SearchIndex:
        return self._loaded()[1]


def _state(request: Request) -> AppState:
    return request.app.state.atlas


# ---------------------------------------------------------------------------
# Lookup helpers → HTTP errors
# ---------------------------------------------------------------------------

def _index_or_404(index_id: str):
    try:
        return get_index_by_id(index_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown index '{index_id}'.") from None


def _values_or_503(state: AppState, index_id: str) -> dict[str, dict[str, Any]]:
    try:
        return state.loader.load_values(index_id)
    except ValueStoreValidationError:
        raise HTTPException(
            status_code=503, detail=f"Value store for '{index_id}' failed validation."
        ) from None
    except ValueStoreTransportError:
        raise HTTPException(
            status_code=503, detail=f"Value store for '{index_id}' is not available."
        ) from None


def _map_data_or_503(state: AppState) -> MapData:
    try:
        return state.map_data()
    except (OSError, MapDataError, json.JSONDecodeError) as exc:
        logger.error(json.dumps({"event": "map_data_unavailable", "error": type(exc).__name__}))
        raise HTTPException(status_code=503, detail="Regions document is not available.") from None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/health", include_in_schema=False)
async def health(request: Request) -> JSONResponse:
    """Liveness probe. Always 200, no I/O."""
    return JSONResponse(status_code=200, content={"status": "ok", "version": API_VERSION})


@router.get("/ready")
@limiter.limit("60/minute")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe. Always 200; readiness is the ``ready`` field."""
    state = _state(request)
    data_present = state.data_present()
    integrity = state.integrity
    integrity_ok = integrity.get("verified", True) if integrity.get("manifest_present") else True
    return JSONResponse(status_code=200, content={
        "ready": data_present and integrity_ok,
        "status": "healthy" if data_present else "degraded",
        "version": API_VERSION,
        "data_present": data_present,
        "integrity_verified": integrity.get("verified") if integrity.get("manifest_present") else None,
        "cached_indices": state.loader.cache.stats["cached"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@router.get("/indices")
@limiter.limit("120/minute")
async def list_indices(request: Request) -> list[dict[str, Any]]:
    return [index.to_dict() for index in INDICES]


@router.get("/indices/{index_id}")
@limiter.limit("120/minute")
async def index_detail(request: Request, index_id: str) -> dict[str, Any]:
    return _index_or_404(index_id).to_dict()


@router.get("/values/{index_id}")
@limiter.limit("120/minute")
def index_values(request: Request, index_id: str) -> dict[str, Any]:
    _index_or_404(index_id)
    return _values_or_503(_state(request), index_id)


@router.get("/values/{index_id}/{code}")
@limiter.limit("120/minute")
def index_value_for_code(
    request: Request,
    index_id: str,
    code: str,
    dimension: Optional[str] = None,
) -> dict[str, Any]:
    """One record. ``code`` is a region code for HDI, an ISO-3 code otherwise."""
    index = _index_or_404(index_id)
    values = _values_or_503(_state(request), index_id)

    region_keyed = index.keyed_by == KEYED_BY_REGION
    key = code.strip() if region_keyed else code.strip().upper()
    record = values.get(key)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No {index_id} value for '{key}'.")

    try:
        accessor = make_accessor(index_id, values, dimension_id=dimension)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown dimension '{dimension}'.") from None
    value = accessor(key, "") if region_keyed else accessor("", key)

    bin_ = classify_value(value, index.bin_definitions)
    body: dict[str, Any] = {
        "indexId": index_id,
        "code": key,
        "record": record,
        "value": value,
        "bin": bin_.label if bin_ is not None else None,
    }
    if index_id == INDEX_HDI:
        body["category"] = classify_hdi(value)
        body["source"] = get_region_source(key)
    return body


@router.get("/regions")
@limiter.limit("60/minute")
def list_regions(request: Request) -> list[dict[str, Any]]:
    map_data = _map_data_or_503(_state(request))
    out = []
    for feature in map_data.regions:
        props = dict(feature.get("properties") or {})
        props["source"] = get_region_source(str(props.get("gdlCode", "")))
        out.append(props)
    return out


@router.get("/search")
@limiter.limit("240/minute")
def search(
    request: Request,
    q: str = Query("", max_length=100),
    limit: int = Query(SEARCH_DEFAULT_LIMIT, ge=1, le=MAX_SEARCH_LIMIT),
) -> list[dict[str, str]]:
    state = _state(request)
    _map_data_or_503(state)
    return [r.to_dict() for r in search_regions(q, state.search_index(), limit=limit)]


@router.post("/weights/redistribute")
@limiter.limit("120/minute")
async def weights_redistribute(request: Request) -> dict[str, Any]:
    req = await _parse_body(request, RedistributeRequest)
    try:
        weights = redistribute_weights(req.weights, req.changed_key, req.new_percentage)
    except KeyError:
        raise HTTPException(status_code=400, detail={
            "error": "INVALID_INPUT",
            "message": f"Unknown weight key '{req.changed_key}'.",
        }) from None
    return {"weights": weights, "total": sum(weights.values())}


@router.post("/weights/average")
@limiter.limit("120/minute")
async def weights_average(request: Request) -> dict[str, Any]:
    req = await _parse_body(request, AverageRequest)
    weights = req.weights if req.weights is not None else EQUAL_WEIGHTS
    return {"value": compute_weighted_average(req.values, weights)}


# ---------------------------------------------------------------------------
# App construction
# ---------------------------------------------------------------------------

def _docs_kwargs(settings: Settings) -> dict[str, Any]:
    if not settings.is_dev and not settings.enable_docs:
        return {"docs_url": None, "redoc_url": None, "openapi_url": None}
    return {"docs_url": "/docs", "redoc_url": "/redoc"}


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    state = AppState(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(json.dumps({
            "event": "startup",
            "env": settings.env,
            "require_data": settings.require_data,
            "values_source": "url" if settings.values_base_url else "directory",
            "rate_limit_backend": "redis" if settings.redis_url else "memory",
        }))

        if settings.output_dir.is_dir():
            result = verify_manifest(settings.output_dir)
            state.integrity.update(result)
            if result["manifest_present"] and not result["verified"]:
                for err in result["errors"]:
                    logger.error(json.dumps({"event": "manifest_error", "error": err}))
                if settings.require_data:
                    logger.error(json.dumps({
                        "event": "startup_abort",
                        "reason": "Manifest integrity check failed",
                    }))
                    sys.exit(1)
            elif result["verified"]:
                logger.info(json.dumps({
                    "event": "manifest_verified",
                    "files_checked": result["files_checked"],
                }))

        if not state.data_present():
            if settings.require_data:
                logger.error(json.dumps({
                    "event": "startup_abort",
                    "reason": "REQUIRE_DATA=1 but artifacts not found",
                }))
                sys.exit(1)
            logger.warning(json.dumps({
                "event": "startup_degraded",
                "reason": "Artifacts not found; run indexatlas.build_pipeline",
            }))

        yield

        logger.info(json.dumps({"event": "shutdown"}))

    app = FastAPI(
        title="indexatlas API",
        description="Subnational HDI, World Happiness and OECD Better Life values by region",
        version=API_VERSION,
        lifespan=lifespan,
        **_docs_kwargs(settings),
    )
    app.state.atlas = state
    app.state.limiter = limiter

    origins = list(DEV_ORIGINS) if settings.is_dev else []
    origins.extend(o for o in settings.allowed_origins if o not in origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "ETag"],
        max_age=3600,
    )
    # Last registered runs outermost.
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=not settings.is_dev)
    app.add_middleware(ETagMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.exception_handler(RateLimitExceeded)
    async def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded. Try again later."},
            headers={"Retry-After": "60"},
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(json.dumps({
            "event": "unhandled_exception",
            "exception_type": type(exc).__name__,
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
        }))
        return JSONResponse(status_code=500, content={"detail": "Internal server error."})

    app.include_router(router)
    return app


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.is_dev else logging.INFO,
        format="%(message)s",
        stream=sys.stdout,
    )


_configure_logging(_settings_at_import)
app = create_app(_settings_at_import)
