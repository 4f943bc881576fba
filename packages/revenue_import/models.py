"""Data models for ``revenue_import``.

Records flowing through the pipeline are frozen dataclasses: the parser
creates them, ``simulate`` replaces each one once via
:func:`dataclasses.replace`, and aggregation only reads them. Reference data is
held in an immutable :class:`ReferenceMaps` snapshot for one tenant.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Literal

# ---------------------------------------------------------------------------
# Parsed revenue lines
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DetailRecord:
    """One parsed (and later enriched) revenue line of an import file.

    ``import_sequence`` is the 1-based position of the line in the file.
    ``time`` is canonical ``HH:MM`` when the source token was recognized,
    otherwise the stripped source token. Amounts are always parsed, even on
    rows that carry a ``validation_error``; a row with an error is never
    aggregated and blocks a full commit.

    The ``*_code`` fields are display helpers for tables and exports.
    """

    import_sequence: int
    branch_code: str
    raw_date: str
    time: str
    document: str
    unit_price_excl_tax: Decimal
    unit_price_incl_tax: Decimal
    amount_excl_tax: Decimal
    amount_incl_tax: Decimal
    branch_id: str | None = None
    sale_date: date | None = None
    service_type_id: str | None = None
    service_type_code: str | None = None
    subcategory_id: str | None = None
    subcategory_code: str | None = None
    category_id: str | None = None
    category_code: str | None = None
    validation_error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.validation_error is None


# ---------------------------------------------------------------------------
# Reference snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ServiceTypeRef:
    id: str
    code: str
    label: str | None
    # "HH:MM" or "HH:MM:SS"; None when the window bound is not configured.
    window_start: str | None
    window_end: str | None
    subcategory_id: str | None


@dataclass(frozen=True, slots=True)
class SubCategoryRef:
    id: str
    code: str
    label: str | None
    category_id: str


@dataclass(frozen=True, slots=True)
class CategoryRef:
    id: str
    code: str
    label: str | None
    branch_id: str | None


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class ReferenceMaps:
    """Lookup maps for one tenant, built from active reference rows only.

    - ``entities_by_code``: upper-cased branch code -> branch id
    - ``service_types_by_entity``: branch id -> service types in load order
    - ``subcategories_by_id`` / ``categories_by_id``: id -> reference

    A snapshot is immutable and is replaced wholesale on reload; it is never
    refreshed in place.
    """

    tenant_id: str | None
    entities_by_code: Mapping[str, str] = field(default_factory=dict)
    service_types_by_entity: Mapping[str, tuple[ServiceTypeRef, ...]] = field(
        default_factory=dict
    )
    subcategories_by_id: Mapping[str, SubCategoryRef] = field(default_factory=dict)
    categories_by_id: Mapping[str, CategoryRef] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entities_by_code", _frozen(self.entities_by_code))
        object.__setattr__(
            self,
            "service_types_by_entity",
            _frozen({k: tuple(v) for k, v in self.service_types_by_entity.items()}),
        )
        object.__setattr__(self, "subcategories_by_id", _frozen(self.subcategories_by_id))
        object.__setattr__(self, "categories_by_id", _frozen(self.categories_by_id))

    @classmethod
    def empty(cls, tenant_id: str | None = None) -> ReferenceMaps:
        """Degraded snapshot used when reference data could not be loaded."""

        return cls(tenant_id=tenant_id)

    @property
    def is_empty(self) -> bool:
        return not (
            self.entities_by_code
            or self.service_types_by_entity
            or self.subcategories_by_id
            or self.categories_by_id
        )


# ---------------------------------------------------------------------------
# Session context and user-facing channel
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TenantContext:
    """Read-only view of the current profile: tenant id and a loading flag."""

    tenant_id: str | None
    loading: bool = False


NoticeLevel = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True, slots=True)
class Notice:
    level: NoticeLevel
    message: str


Phase = Literal[
    "preparation",
    "revenue_day",
    "revenue_day_service",
    "revenue_day_service_hour",
    "completed",
]


@dataclass(frozen=True, slots=True)
class ImportProgress:
    current: int
    total: int
    phase: Phase
    message: str


@dataclass(frozen=True, slots=True)
class ImportIssue:
    """A persistence failure recorded by the import driver.

    ``type`` is the level that failed; ``count`` is filled in when identical
    ``(type, message)`` issues are coalesced.
    """

    type: str
    message: str
    details: str | None = None
    count: int = 1


@dataclass(frozen=True, slots=True)
class ImportReport:
    revenue_days: int = 0
    revenue_day_services: int = 0
    revenue_day_service_hours: int = 0
    error_count: int = 0
    issues: tuple[ImportIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error_count == 0


@dataclass(frozen=True, slots=True)
class Totals:
    """Table footer: sums over every row, valid or not."""

    amount_excl_tax: Decimal
    amount_incl_tax: Decimal
    row_count: int
    invalid_count: int


__all__ = [
    "CategoryRef",
    "DetailRecord",
    "ImportIssue",
    "ImportProgress",
    "ImportReport",
    "Notice",
    "NoticeLevel",
    "Phase",
    "ReferenceMaps",
    "ServiceTypeRef",
    "SubCategoryRef",
    "TenantContext",
    "Totals",
]
