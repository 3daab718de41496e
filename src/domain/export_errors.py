"""Hard failures raised by the export pipeline."""
from __future__ import annotations


class ExportError(RuntimeError):
    """Base error for failures that abort an export."""


class TemplateMarkerError(ExportError):
    """Raised when the index template lacks a marker or repeats one."""


class ExportWriteError(ExportError):
    """Raised when a bundle file cannot be read or written."""


__all__ = ["ExportError", "ExportWriteError", "TemplateMarkerError"]
