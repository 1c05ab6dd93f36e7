"""Shared fixtures for the catalogue test-suite."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest

# Structured loggers open their files at import time.
os.environ.setdefault("CATALOGUE_LOG_DIR", tempfile.mkdtemp(prefix="catalogue-logs-"))

from infrastructure.monitoring.metrics import MetricsRegistry  # noqa: E402


ACME_DOCUMENT: Dict[str, Any] = {
    "programs": ["Acme"],
    "vulnTypes": ["XSS"],
    "reports": [[0, "Sample bug", "123", 10, 500, 0]],
}


def write_store(path: Path, document: Any, mtime_ns: Optional[int] = None) -> Path:
    """Write ``document`` as the store at ``path`` and optionally pin its mtime."""
    if isinstance(document, (bytes, str)):
        payload = document if isinstance(document, bytes) else document.encode("utf-8")
    else:
        payload = json.dumps(document).encode("utf-8")
    path.write_bytes(payload)
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))
    return path


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "hackerone_reports.json"


@pytest.fixture
def make_store(store_path: Path) -> Callable[..., Path]:
    """Factory writing a store document to the per-test store path."""

    def _make(document: Any = None, mtime_ns: Optional[int] = None) -> Path:
        return write_store(store_path, ACME_DOCUMENT if document is None else document, mtime_ns)

    return _make


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def catalogue_document() -> Dict[str, Any]:
    return {
        "programs": ["Acme", "Acme Corp", "Globex", ""],
        "vulnTypes": ["Cross-site Scripting (XSS)", "SQL Injection", "Stored XSS"],
        "reports": [
            [0, "Reflected XSS on login", "1", 10, 500, 0],
            [1, "SQLi in billing export", "2", 40, 2500, 1],
            [2, "Stored XSS in profile bio", "3", 25, 750, 2],
            [0, "Login CSRF", "4", 5, 0, 9],
            [1, "Admin panel SQL injection", "5", 90, 10000, 1],
            [7, "Orphaned report", "6", 1, 100, 0],
            [3, "Blank program name", "7", 2, 50, 1],
        ],
        "meta": {"stats": {"generated_at": "2025-01-01T00:00:00Z", "total_reports": 7}},
        "rankings": {
            "bounty": [
                [1, "Admin panel SQL injection", "5", 90, 10000, 1],
                [1, "SQLi in billing export", "2", 40, 2500, 1],
                [2, "Stored XSS in profile bio", "3", 25, 750, 2],
            ],
            "upvotes": [
                [1, "Admin panel SQL injection", "5", 90, 10000, 1],
                [1, "SQLi in billing export", "2", 40, 2500, 1],
                [2, "Stored XSS in profile bio", "3", 25, 750, 2],
            ],
        },
    }
