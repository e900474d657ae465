"""Export package."""

from fluxcash.export.exporter import (
    CSV_COLUMNS,
    SUPPORTED_FORMATS,
    ExportError,
    TransactionExporter,
)

__all__ = ["CSV_COLUMNS", "SUPPORTED_FORMATS", "ExportError", "TransactionExporter"]
