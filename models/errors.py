from __future__ import annotations


class StorageError(RuntimeError):
    """Raised when a watermark or log file cannot be read or written."""
