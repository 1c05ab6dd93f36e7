"""Modification-time keyed cache of the decoded report store."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from infrastructure.monitoring.metrics import MetricsRegistry, global_metrics, track_duration
from infrastructure.monitoring.structured_logger import CatalogueLogger, logging_context
from intelligence.report_catalogue.errors import DataUnavailable
from intelligence.report_catalogue.models import DecodedDataset
from intelligence.report_catalogue.store import DEFAULT_LINK_PREFIX, DEFAULT_RANKING_CAP, load_store


StoreLoader = Callable[[Path, int], DecodedDataset]


class CacheState(str, Enum):
    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class _Snapshot:
    dataset: DecodedDataset
    mtime: Optional[int]
    failed_mtime: Optional[int] = None
    stale: bool = False

    def serves(self, mtime: int) -> bool:
        return mtime == self.mtime or mtime == self.failed_mtime


class DatasetCache:
    """Holds the latest decoded store and rebuilds it when the file changes.

    Every :meth:`get` costs one ``stat`` of the store. The store is only read
    and decoded when its modification time differs from the one recorded for
    the cached snapshot. Snapshots are immutable and published by a single
    attribute assignment, so readers never need the rebuild lock.

    When a rebuild fails and an earlier snapshot exists, the earlier snapshot
    keeps being served and the cache reports itself as ``STALE``. A store that
    failed to decode is not retried until its modification time changes again.
    """

    def __init__(
        self,
        path: Path,
        *,
        loader: Optional[StoreLoader] = None,
        link_prefix: str = DEFAULT_LINK_PREFIX,
        ranking_cap: int = DEFAULT_RANKING_CAP,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self.path = Path(path)
        self._link_prefix = link_prefix
        self._ranking_cap = ranking_cap
        self._loader = loader or self._load_from_disk
        self._snapshot: Optional[_Snapshot] = None
        self._rebuild_lock = threading.Lock()
        self._load_count = 0

        registry = metrics or global_metrics()
        self._hits = registry.register_counter(
            "catalogue_cache_hits_total", "Dataset requests served without a rebuild"
        )
        self._rebuilds = registry.register_counter(
            "catalogue_cache_rebuilds_total", "Completed dataset rebuilds"
        )
        self._failures = registry.register_counter(
            "catalogue_cache_rebuild_failures_total", "Dataset rebuilds that failed to load the store"
        )
        self._rebuild_duration = registry.register_summary(
            "catalogue_cache_rebuild_seconds", "Time spent reading and decoding the store"
        )
        self._report_gauge = registry.register_gauge(
            "catalogue_cached_reports", "Number of reports in the cached dataset"
        )

    @property
    def load_count(self) -> int:
        """Number of times the store loader has been invoked."""

        return self._load_count

    @property
    def state(self) -> CacheState:
        snapshot = self._snapshot
        if snapshot is None:
            return CacheState.EMPTY
        if snapshot.stale:
            return CacheState.STALE
        return CacheState.FRESH

    def get(self) -> DecodedDataset:
        """Return a dataset matching the store on disk, rebuilding it if needed."""

        try:
            mtime = self._current_mtime()
        except DataUnavailable as exc:
            with self._rebuild_lock:
                return self._fallback(self._snapshot, exc)

        snapshot = self._snapshot
        if snapshot is not None and snapshot.serves(mtime) and not self._recovered(snapshot, mtime):
            self._hits.inc()
            return snapshot.dataset

        with self._rebuild_lock:
            # Another caller may have finished the rebuild while we waited.
            snapshot = self._snapshot
            if snapshot is not None and snapshot.serves(mtime):
                if self._recovered(snapshot, mtime):
                    self._snapshot = replace(snapshot, failed_mtime=None, stale=False)
                self._hits.inc()
                return snapshot.dataset
            return self._rebuild(snapshot, mtime)

    def invalidate(self) -> None:
        """Force the next :meth:`get` to reload the store."""

        with self._rebuild_lock:
            snapshot = self._snapshot
            if snapshot is not None:
                self._snapshot = replace(snapshot, mtime=None, failed_mtime=None)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _current_mtime(self) -> int:
        try:
            return self.path.stat().st_mtime_ns
        except OSError as exc:
            raise DataUnavailable(f"store could not be inspected: {exc}", path=self.path) from exc

    @staticmethod
    def _recovered(snapshot: _Snapshot, mtime: int) -> bool:
        return snapshot.stale and mtime == snapshot.mtime

    def _rebuild(self, previous: Optional[_Snapshot], mtime: int) -> DecodedDataset:
        with logging_context(store=str(self.path), mtime=mtime):
            CatalogueLogger.info("Loading report store")
            self._load_count += 1
            try:
                with track_duration(self._rebuild_duration):
                    dataset = self._loader(self.path, mtime)
            except DataUnavailable as exc:
                self._failures.inc()
                return self._fallback(previous, exc, failed_mtime=mtime)

            self._snapshot = _Snapshot(dataset=dataset, mtime=mtime)
            self._rebuilds.inc()
            self._report_gauge.set(len(dataset.reports))
            CatalogueLogger.info("Report store loaded", extra={"reports": len(dataset.reports)})
            return dataset

    def _fallback(
        self,
        previous: Optional[_Snapshot],
        exc: DataUnavailable,
        *,
        failed_mtime: Optional[int] = None,
    ) -> DecodedDataset:
        if previous is None:
            CatalogueLogger.error("Report store unavailable", extra={"reason": exc.reason})
            raise exc
        CatalogueLogger.warning(
            "Serving previous dataset, store could not be loaded",
            extra={"reason": exc.reason, "reports": len(previous.dataset.reports)},
        )
        self._snapshot = replace(previous, failed_mtime=failed_mtime, stale=True)
        return previous.dataset

    def _load_from_disk(self, path: Path, mtime: int) -> DecodedDataset:
        return load_store(
            path,
            link_prefix=self._link_prefix,
            ranking_cap=self._ranking_cap,
            source_mtime=mtime,
        )


__all__ = ["DatasetCache", "CacheState", "StoreLoader"]
