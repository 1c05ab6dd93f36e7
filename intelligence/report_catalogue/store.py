"""Dictionary-encoded report store.

The store is a JSON document of the form::

    {
        "programs": ["Acme", ...],
        "vulnTypes": ["XSS", ...],
        "reports": [[program_idx, title, report_id, upvotes, bounty, vuln_type_idx], ...],
        "meta": {"stats": {...}},
        "rankings": {"bounty": [row, ...], "upvotes": [row, ...]}
    }

Every section is optional. Decoding is a pure function of the document bytes
and the decode options, and either yields a complete :class:`DecodedDataset`
or raises :class:`DataUnavailable`.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from intelligence.report_catalogue.errors import DataUnavailable
from intelligence.report_catalogue.models import (
    UNKNOWN,
    Category,
    DecodedDataset,
    Rankings,
    Report,
    SummaryStats,
)


DEFAULT_LINK_PREFIX = "https://hackerone.com/reports/"
DEFAULT_RANKING_CAP = 20
ROW_WIDTH = 6

BUG_TYPE_PREVIEW = (
    "Vulnerability type: {name}. This category contains security reports "
    "related to {name} vulnerabilities."
)
PROGRAM_PREVIEW = (
    "Bug bounty program: {name}. This category contains security reports "
    "submitted to the {name} bug bounty program."
)


class _MalformedStore(ValueError):
    pass


def _section(document: Dict[str, Any], key: str, expected: type, default: Any) -> Any:
    value = document.get(key)
    if value is None:
        return default
    if not isinstance(value, expected):
        raise _MalformedStore(f"'{key}' must be a {expected.__name__}")
    return value


def _table(document: Dict[str, Any], key: str) -> List[Optional[str]]:
    table = _section(document, key, list, [])
    for entry in table:
        if entry is not None and not isinstance(entry, str):
            raise _MalformedStore(f"'{key}' entries must be strings")
    return table


def _lookup(table: Sequence[Optional[str]], index: Any) -> str:
    if isinstance(index, bool) or not isinstance(index, int):
        return UNKNOWN
    if 0 <= index < len(table) and table[index]:
        return table[index]
    return UNKNOWN


def _as_number(value: Any, field_name: str) -> int | float:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise _MalformedStore(f"{field_name} must be numeric")
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError as exc:
            raise _MalformedStore(f"{field_name} must be numeric") from exc
    if not isinstance(value, (int, float)):
        raise _MalformedStore(f"{field_name} must be numeric")
    try:
        finite = math.isfinite(value)
    except OverflowError:
        # JSON integers are unbounded, floats are not
        finite = False
    if not finite or value < 0:
        raise _MalformedStore(f"{field_name} must be a non-negative finite number")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _as_count(value: Any, field_name: str) -> int:
    number = _as_number(value, field_name)
    if not isinstance(number, int):
        raise _MalformedStore(f"{field_name} must be a whole number")
    return number


def _report_id(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def decode_row(
    row: Any,
    programs: Sequence[Optional[str]],
    vuln_types: Sequence[Optional[str]],
    link_prefix: str = DEFAULT_LINK_PREFIX,
) -> Report:
    """Decode one ``[program_idx, title, report_id, upvotes, bounty, vuln_type_idx]`` row."""

    if not isinstance(row, list) or len(row) < ROW_WIDTH:
        raise _MalformedStore(f"report rows must be arrays of {ROW_WIDTH} fields")
    program_idx, title, report_id, upvotes, bounty, vuln_type_idx = row[:ROW_WIDTH]
    return Report(
        program=_lookup(programs, program_idx),
        title="" if title is None else str(title),
        link=f"{link_prefix}{_report_id(report_id)}",
        upvotes=_as_count(upvotes, "upvotes"),
        bounty=_as_number(bounty, "bounty"),
        vuln_type=_lookup(vuln_types, vuln_type_idx),
    )


def _categories(table: Sequence[Optional[str]], prefix: str, template: str) -> Tuple[Category, ...]:
    categories = []
    for index in range(len(table)):
        name = _lookup(table, index)
        categories.append(
            Category(name=name, identifier=f"{prefix}_{index}", preview=template.format(name=name))
        )
    return tuple(categories)


def _ranking(reports: List[Report], key: str, cap: int) -> Tuple[Report, ...]:
    # sorted() is stable, so equal values keep their store order
    ordered = sorted(reports, key=lambda report: getattr(report, key), reverse=True)
    return tuple(ordered[:cap])


def _summary(reports: Sequence[Report]) -> SummaryStats:
    return SummaryStats(
        total_reports=len(reports),
        total_bounty=sum(report.bounty for report in reports),
        total_upvotes=sum(report.upvotes for report in reports),
        unique_programs=len({report.program for report in reports}),
        unique_vuln_types=len({report.vuln_type for report in reports}),
    )


def decode_store(
    raw: bytes | str,
    *,
    link_prefix: str = DEFAULT_LINK_PREFIX,
    ranking_cap: int = DEFAULT_RANKING_CAP,
    source_mtime: int | None = None,
) -> DecodedDataset:
    """Decode the store document into a :class:`DecodedDataset`."""

    try:
        document = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise DataUnavailable(f"store is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise DataUnavailable("store root must be a JSON object")

    try:
        programs = _table(document, "programs")
        vuln_types = _table(document, "vulnTypes")
        rows = _section(document, "reports", list, [])
        meta = _section(document, "meta", dict, {})
        metadata = _section(meta, "stats", dict, {})
        rankings = _section(document, "rankings", dict, {})
        bounty_rows = _section(rankings, "bounty", list, [])
        upvote_rows = _section(rankings, "upvotes", list, [])

        reports = tuple(decode_row(row, programs, vuln_types, link_prefix) for row in rows)
        by_bounty = [decode_row(row, programs, vuln_types, link_prefix) for row in bounty_rows]
        by_upvotes = [decode_row(row, programs, vuln_types, link_prefix) for row in upvote_rows]
    except _MalformedStore as exc:
        raise DataUnavailable(str(exc)) from exc

    return DecodedDataset(
        reports=reports,
        bug_type_categories=_categories(vuln_types, "vuln", BUG_TYPE_PREVIEW),
        program_categories=_categories(programs, "program", PROGRAM_PREVIEW),
        rankings=Rankings(
            top_by_bounty=_ranking(by_bounty, "bounty", ranking_cap),
            top_by_upvotes=_ranking(by_upvotes, "upvotes", ranking_cap),
        ),
        stats=_summary(reports),
        metadata=dict(metadata),
        source_mtime=source_mtime,
    )


def load_store(
    path: Path,
    *,
    link_prefix: str = DEFAULT_LINK_PREFIX,
    ranking_cap: int = DEFAULT_RANKING_CAP,
    source_mtime: int | None = None,
) -> DecodedDataset:
    """Read ``path`` and decode it; I/O and format errors raise :class:`DataUnavailable`."""

    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise DataUnavailable(f"store could not be read: {exc}", path=path) from exc
    try:
        return decode_store(raw, link_prefix=link_prefix, ranking_cap=ranking_cap, source_mtime=source_mtime)
    except DataUnavailable as exc:
        raise DataUnavailable(exc.reason, path=path) from exc


__all__ = ["decode_row", "decode_store", "load_store", "DEFAULT_LINK_PREFIX", "DEFAULT_RANKING_CAP"]
