"""Errors raised by the report catalogue."""

from __future__ import annotations

from pathlib import Path


class CatalogueError(Exception):
    """Base class for catalogue failures."""


class DataUnavailable(CatalogueError):
    """The store is missing or corrupt and no usable snapshot exists."""

    def __init__(self, reason: str, *, path: Path | None = None) -> None:
        self.reason = reason
        self.path = path
        message = f"{path}: {reason}" if path is not None else reason
        super().__init__(message)


__all__ = ["CatalogueError", "DataUnavailable"]
