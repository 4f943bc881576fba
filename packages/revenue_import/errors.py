"""Typed errors raised by ``revenue_import``.

Row-level validation problems are data (``DetailRecord.validation_error``),
not exceptions. Everything here is fatal to the operation that raised it.
"""

from __future__ import annotations

import csv
from collections.abc import Mapping
from typing import Any


class RevenueImportError(Exception):
    """Base class for all errors raised by this package."""


class CsvFormatError(RevenueImportError, csv.Error):
    """The import file cannot be parsed as a whole.

    Raised for a missing header row, missing required columns (one aggregate
    message), a file without data rows, or malformed CSV. Subclasses
    ``csv.Error`` so callers handling plain CSV failures also catch it.
    """


class CommitRefusedError(RevenueImportError):
    """The all-or-nothing commit gate refused the batch; nothing was written."""

    def __init__(self, message: str, *, invalid_count: int = 0) -> None:
        super().__init__(message)
        self.invalid_count = invalid_count


class ReferenceLoadError(RevenueImportError):
    """Reference data (branches, service types, categories) could not be loaded."""


class UpsertError(RevenueImportError):
    """No identifier could be resolved for one persisted level.

    ``level`` names the table level (``revenue_day``, ``revenue_day_service``
    or ``revenue_day_service_hour``) and ``natural_key`` holds the conflict-key
    values that were attempted.
    """

    def __init__(self, level: str, natural_key: Mapping[str, Any], reason: str) -> None:
        self.level = level
        self.natural_key = dict(natural_key)
        self.reason = reason
        super().__init__(f"{level}: {reason} (key: {format_natural_key(self.natural_key)})")


def format_natural_key(natural_key: Mapping[str, Any]) -> str:
    return ", ".join(f"{k}={v}" for k, v in natural_key.items())


__all__ = [
    "CommitRefusedError",
    "CsvFormatError",
    "ReferenceLoadError",
    "RevenueImportError",
    "UpsertError",
    "format_natural_key",
]
