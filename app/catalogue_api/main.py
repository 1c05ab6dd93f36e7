"""FastAPI application serving the bug bounty report catalogue."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from config.loader import Settings, get_settings
from core.monitoring import MonitoringCore
from infrastructure.monitoring.metrics import global_metrics
from infrastructure.monitoring.structured_logger import (
    PerformanceLogger,
    SecurityLogger,
    StructuredLogger,
    set_global_log_level,
)
from intelligence.report_catalogue.cache import CacheState, DatasetCache
from intelligence.report_catalogue.errors import DataUnavailable
from intelligence.report_catalogue.models import DecodedDataset
from intelligence.report_catalogue.queries import (
    BUG_TYPE,
    ReportFilters,
    list_categories,
    list_reports,
    parse_limit,
    parse_min_bounty,
    parse_page,
    top_rankings,
)


REPORTS_CACHE_CONTROL = "public, max-age=60, stale-while-revalidate=30"
CATALOGUE_CACHE_CONTROL = "public, max-age=300, stale-while-revalidate=60"


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    program: str
    title: str
    link: str
    upvotes: int
    bounty: Union[int, float]
    vuln_type: str


class PaginationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_page: int
    total_pages: int
    total_reports: int
    per_page: int


class ReportListResponse(BaseModel):
    reports: List[ReportResponse]
    pagination: PaginationResponse


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    filename: str
    preview: str


class CategoryListResponse(BaseModel):
    type: str
    categories: List[CategoryResponse]


class RankingsResponse(BaseModel):
    top_by_bounty: List[ReportResponse]
    top_by_upvotes: List[ReportResponse]


class StatsResponse(BaseModel):
    metadata: Dict[str, Dict[str, Any]]
    categories: Dict[str, List[Dict[str, str]]]
    rankings: RankingsResponse


@lru_cache(maxsize=1)
def _dataset_cache() -> DatasetCache:
    settings = get_settings()
    return DatasetCache(
        settings.store_path,
        link_prefix=settings.report_link_prefix,
        ranking_cap=settings.ranking_cap,
    )


def _store_check() -> Tuple[bool, Optional[str]]:
    path = get_dataset_cache().path
    if not path.is_file():
        return False, f"store not found at {path}"
    if not os.access(path, os.R_OK):
        return False, f"store at {path} is not readable"
    return True, str(path)


def _cache_check() -> Tuple[bool, Optional[str]]:
    cache = get_dataset_cache()
    state = cache.state
    if state is CacheState.STALE:
        return False, "serving a previous dataset, latest store failed to load"
    return True, f"{state.value} after {cache.load_count} load(s)"


@lru_cache(maxsize=1)
def _monitoring_core() -> MonitoringCore:
    return MonitoringCore(store_check=_store_check, cache_check=_cache_check)


def get_dataset_cache() -> DatasetCache:
    return _dataset_cache()


def get_monitoring_core() -> MonitoringCore:
    return _monitoring_core()


def get_dataset(cache: DatasetCache = Depends(get_dataset_cache)) -> DecodedDataset:
    return cache.get()


app = FastAPI(title="Bug Bounty Report Catalogue", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event() -> None:
    settings = get_settings()
    set_global_log_level(logging.getLevelName(settings.log_level.upper()))
    StructuredLogger.info(
        "Catalogue API startup",
        extra={"store_path": str(settings.store_path), "environment": settings.environment},
    )


@app.middleware("http")
async def request_metrics_middleware(request, call_next):  # type: ignore[annotations-unchecked]
    monitoring = get_monitoring_core()
    path = request.url.path
    start = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start
    monitoring.record_request(endpoint=path, status=str(response.status_code), duration_s=duration)
    PerformanceLogger.info(
        "HTTP request",
        extra={"path": path, "status": response.status_code, "duration_seconds": duration},
    )
    return response


@app.get("/")
async def root_endpoint() -> Dict[str, Any]:
    return {
        "service": app.title,
        "version": app.version,
        "documentation": {
            "openapi": "/openapi.json",
            "swagger_ui": "/docs",
            "redoc": "/redoc",
        },
        "available_endpoints": [
            "/reports",
            "/categories",
            "/stats",
            "/health",
            "/metrics",
        ],
    }


@app.get("/reports", response_model=ReportListResponse)
def reports_endpoint(
    response: Response,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    program: Optional[str] = None,
    vuln_type: Optional[str] = None,
    min_bounty: Optional[str] = None,
    search: Optional[str] = None,
    dataset: DecodedDataset = Depends(get_dataset),
    settings: Settings = Depends(get_settings),
) -> ReportListResponse:
    filters = ReportFilters(
        program=program,
        vuln_type=vuln_type,
        min_bounty=parse_min_bounty(min_bounty),
        search=search,
    )
    result = list_reports(
        dataset,
        filters,
        page=parse_page(page),
        limit=parse_limit(limit, default=settings.default_page_size, maximum=settings.max_page_size),
    )
    response.headers["Cache-Control"] = REPORTS_CACHE_CONTROL
    return ReportListResponse(
        reports=[ReportResponse.model_validate(report) for report in result.reports],
        pagination=PaginationResponse.model_validate(result.pagination),
    )


@app.get("/categories", response_model=CategoryListResponse)
def categories_endpoint(
    response: Response,
    type: str = BUG_TYPE,  # noqa: A002 - public query parameter name
    dataset: DecodedDataset = Depends(get_dataset),
    settings: Settings = Depends(get_settings),
) -> CategoryListResponse:
    categories = list_categories(dataset, type, preview_length=settings.preview_length)
    response.headers["Cache-Control"] = CATALOGUE_CACHE_CONTROL
    return CategoryListResponse(
        type=type,
        categories=[CategoryResponse.model_validate(category) for category in categories],
    )


@app.get("/stats", response_model=StatsResponse)
def stats_endpoint(
    response: Response,
    dataset: DecodedDataset = Depends(get_dataset),
    settings: Settings = Depends(get_settings),
) -> StatsResponse:
    rankings = top_rankings(dataset, settings.stats_ranking_size)
    response.headers["Cache-Control"] = CATALOGUE_CACHE_CONTROL
    return StatsResponse(
        metadata={"stats": {**asdict(dataset.stats), **dataset.metadata}},
        categories={
            "tops_by_bug_type": [{"bug_type": c.name} for c in dataset.bug_type_categories],
            "tops_by_program": [{"program": c.name} for c in dataset.program_categories],
        },
        rankings=RankingsResponse(
            top_by_bounty=[ReportResponse.model_validate(r) for r in rankings.top_by_bounty],
            top_by_upvotes=[ReportResponse.model_validate(r) for r in rankings.top_by_upvotes],
        ),
    )


@app.get("/health")
async def health_endpoint(monitoring: MonitoringCore = Depends(get_monitoring_core)) -> Dict[str, Any]:
    checks = monitoring.health_checks()
    return {
        "status": "ok" if checks["overall"].healthy else "degraded",
        "system": monitoring.system_metrics(),
        "application": monitoring.application_metrics(),
        "health": {name: check.__dict__ for name, check in checks.items()},
    }


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    registry = global_metrics()
    return Response(content=registry.expose(), media_type="text/plain; version=0.0.4")


@app.exception_handler(DataUnavailable)
async def data_unavailable_handler(request: Request, exc: DataUnavailable) -> JSONResponse:
    SecurityLogger.error("Report store unavailable", extra={"path": str(request.url), "reason": exc.reason})
    return JSONResponse(status_code=500, content={"error": "Failed to load data"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):  # type: ignore[annotations-unchecked]
    SecurityLogger.exception("Unhandled API error", extra={"path": str(request.url)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.catalogue_api.main:app",
        host=settings.host,
        port=int(os.getenv("PORT", str(settings.port))),
        reload=False,
    )
