"""Decoded catalogue records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Report:
    program: str
    title: str
    link: str
    upvotes: int
    bounty: float
    vuln_type: str


@dataclass(frozen=True)
class Category:
    """Grouping entry derived from one dictionary table entry."""

    name: str
    identifier: str
    preview: str


@dataclass(frozen=True)
class Rankings:
    top_by_bounty: Tuple[Report, ...] = ()
    top_by_upvotes: Tuple[Report, ...] = ()


@dataclass(frozen=True)
class SummaryStats:
    total_reports: int = 0
    total_bounty: float = 0
    total_upvotes: int = 0
    unique_programs: int = 0
    unique_vuln_types: int = 0


@dataclass(frozen=True)
class DecodedDataset:
    """Query-ready snapshot of the store.

    Instances are never mutated; a refresh of the store produces a new one.
    ``metadata`` holds the store's own ``meta.stats`` map as found on disk.
    """

    reports: Tuple[Report, ...] = ()
    bug_type_categories: Tuple[Category, ...] = ()
    program_categories: Tuple[Category, ...] = ()
    rankings: Rankings = field(default_factory=Rankings)
    stats: SummaryStats = field(default_factory=SummaryStats)
    metadata: Dict[str, Any] = field(default_factory=dict)
    source_mtime: int | None = None


__all__ = ["UNKNOWN", "Report", "Category", "Rankings", "SummaryStats", "DecodedDataset"]
