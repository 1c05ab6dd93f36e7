"""Read-only queries over a decoded dataset snapshot.

All functions here are pure: they never mutate the dataset and never raise
domain errors. An empty result is a valid answer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from intelligence.report_catalogue.models import Category, DecodedDataset, Rankings, Report


BUG_TYPE = "bug_type"
PROGRAM = "program"
DEFAULT_PREVIEW_LENGTH = 200
PREVIEW_SUFFIX = "..."


@dataclass(frozen=True)
class ReportFilters:
    program: Optional[str] = None
    vuln_type: Optional[str] = None
    min_bounty: float = 0
    search: Optional[str] = None


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total_reports: int
    per_page: int


@dataclass(frozen=True)
class ReportPage:
    reports: List[Report]
    pagination: Pagination


@dataclass(frozen=True)
class CategoryView:
    name: str
    filename: str
    preview: str


# ----------------------------------------------------------------------
# Parameter coercion
# ----------------------------------------------------------------------
def _as_int(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def parse_page(raw: Any) -> int:
    page = _as_int(raw)
    return page if page is not None and page >= 1 else 1


def parse_limit(raw: Any, default: int = 10, maximum: Optional[int] = None) -> int:
    limit = _as_int(raw)
    if limit is None or limit < 1:
        limit = default
    if maximum is not None:
        limit = min(limit, maximum)
    return limit


def parse_min_bounty(raw: Any) -> float:
    """Malformed, negative or non-finite thresholds mean "no filter"."""

    if raw is None or isinstance(raw, bool):
        return 0
    try:
        value = float(str(raw).strip())
    except ValueError:
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    return value


# ----------------------------------------------------------------------
# Filters
# ----------------------------------------------------------------------
def _filter_program(reports: Sequence[Report], program: str) -> List[Report]:
    needle = program.lower()
    exact = [report for report in reports if report.program.lower() == needle]
    if exact:
        return exact
    return [report for report in reports if needle in report.program.lower()]


def _filter_vuln_type(reports: Sequence[Report], vuln_type: str) -> List[Report]:
    needle = vuln_type.lower()
    return [report for report in reports if needle in report.vuln_type.lower()]


def _filter_search(reports: Sequence[Report], search: str) -> List[Report]:
    needle = search.lower()
    return [
        report
        for report in reports
        if needle in report.title.lower()
        or needle in report.program.lower()
        or needle in report.vuln_type.lower()
    ]


def filter_reports(reports: Sequence[Report], filters: ReportFilters) -> List[Report]:
    """Apply program, vuln_type, min_bounty and search filters in that order."""

    matched = list(reports)
    if filters.program:
        matched = _filter_program(matched, filters.program)
    if filters.vuln_type:
        matched = _filter_vuln_type(matched, filters.vuln_type)
    if filters.min_bounty > 0:
        matched = [report for report in matched if report.bounty >= filters.min_bounty]
    if filters.search:
        matched = _filter_search(matched, filters.search)
    return matched


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------
def list_reports(
    dataset: DecodedDataset,
    filters: Optional[ReportFilters] = None,
    *,
    page: int = 1,
    limit: int = 10,
) -> ReportPage:
    page = max(page, 1)
    limit = max(limit, 1)
    matched = filter_reports(dataset.reports, filters or ReportFilters())
    start = (page - 1) * limit
    return ReportPage(
        reports=matched[start : start + limit],
        pagination=Pagination(
            current_page=page,
            total_pages=math.ceil(len(matched) / limit),
            total_reports=len(matched),
            per_page=limit,
        ),
    )


def _preview(text: str, length: int) -> str:
    return text[:length] + PREVIEW_SUFFIX


def list_categories(
    dataset: DecodedDataset,
    kind: str = BUG_TYPE,
    *,
    preview_length: int = DEFAULT_PREVIEW_LENGTH,
) -> List[CategoryView]:
    """Categories for ``kind``; an unrecognised kind has no categories."""

    categories: Sequence[Category]
    if kind == BUG_TYPE:
        categories = dataset.bug_type_categories
    elif kind == PROGRAM:
        categories = dataset.program_categories
    else:
        return []
    return [
        CategoryView(
            name=category.name,
            filename=category.identifier,
            preview=_preview(category.preview, preview_length),
        )
        for category in categories
    ]


def top_rankings(dataset: DecodedDataset, n: int) -> Rankings:
    n = max(n, 0)
    return Rankings(
        top_by_bounty=dataset.rankings.top_by_bounty[:n],
        top_by_upvotes=dataset.rankings.top_by_upvotes[:n],
    )


__all__ = [
    "BUG_TYPE",
    "PROGRAM",
    "ReportFilters",
    "Pagination",
    "ReportPage",
    "CategoryView",
    "parse_page",
    "parse_limit",
    "parse_min_bounty",
    "filter_reports",
    "list_reports",
    "list_categories",
    "top_rankings",
]
