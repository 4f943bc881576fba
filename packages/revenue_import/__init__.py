"""revenue_import: CSV import and reconciliation of daily revenue (CA) detail.

Pipeline: parse (``ingest``) -> simulate (``reconcile``) -> commit
(``importer`` over ``persistence``), driven by ``session.ImportSession`` or the
``revenue-import`` CLI.
"""

from .errors import (
    CommitRefusedError,
    CsvFormatError,
    ReferenceLoadError,
    RevenueImportError,
    UpsertError,
)
from .models import (
    DetailRecord,
    ImportIssue,
    ImportProgress,
    ImportReport,
    Notice,
    ReferenceMaps,
    TenantContext,
    Totals,
)

__all__ = [
    "CommitRefusedError",
    "CsvFormatError",
    "DetailRecord",
    "ImportIssue",
    "ImportProgress",
    "ImportReport",
    "Notice",
    "ReferenceLoadError",
    "ReferenceMaps",
    "RevenueImportError",
    "TenantContext",
    "Totals",
    "UpsertError",
]
