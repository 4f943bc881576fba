"""CSV ingestion for the CA detail import: adapter, loader, template/export."""

from .adapters.ca_detail_csv import COLUMN_MAPPING_VERSION, CSV_COLUMNS, transform_rows
from .templates import render_template, write_records_csv
from .utils import read_ca_detail_csv

__all__ = [
    "COLUMN_MAPPING_VERSION",
    "CSV_COLUMNS",
    "read_ca_detail_csv",
    "render_template",
    "transform_rows",
    "write_records_csv",
]
