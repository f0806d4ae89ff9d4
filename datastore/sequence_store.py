from __future__ import annotations

import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from models.errors import StorageError
from settings import get_settings

logger = logging.getLogger(__name__)


class SequenceStore:
    """Per-device watermark of the last accepted sequence number.

    Without a ``root_path`` the watermarks live only in memory. With one, each
    device gets a ``<prefix>_<device_id>.seq`` file holding the sequence as
    plain text, and every ``set`` is flushed to disk before it returns.
    """

    def __init__(self, root_path: Optional[Path] = None, prefix: str = "telemetry") -> None:
        self.root_path = root_path
        self.prefix = prefix
        self._values: Dict[int, int] = {}
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, device_id: int) -> Path:
        assert self.root_path is not None
        return self.root_path / f"{self.prefix}_{device_id}.seq"

    def get(self, device_id: int) -> Optional[int]:
        with self._lock:
            cached = self._values.get(device_id)
        if cached is not None or not self.root_path:
            return cached

        path = self.path_for(device_id)
        try:
            raw = path.read_text(encoding="ascii")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Unable to read watermark {path}: {exc}") from exc

        try:
            value = int(raw.strip())
        except ValueError as exc:
            raise StorageError(f"Watermark file {path} is unreadable: {raw!r}") from exc

        with self._lock:
            self._values.setdefault(device_id, value)
            return self._values[device_id]

    def set(self, device_id: int, sequence: int) -> None:
        if self.root_path:
            self._write_durably(self.path_for(device_id), str(sequence))
        with self._lock:
            self._values[device_id] = sequence

    def _write_durably(self, path: Path, text: str) -> None:
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
            )
            with os.fdopen(fd, "w", encoding="ascii") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
            self._fsync_directory(path.parent)
        except OSError as exc:
            raise StorageError(f"Unable to write watermark {path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary watermark file", extra={"path": tmp_name})

    @staticmethod
    def _fsync_directory(directory: Path) -> None:
        # Directory fsync makes the rename itself durable; not supported on Windows.
        if os.name == "nt":
            return
        dir_fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)


@lru_cache
def build_default_sequence_store(
    root_path: Optional[str] = None,
    prefix: Optional[str] = None,
) -> SequenceStore:
    settings = get_settings()
    store_root = settings.data_dir if root_path is None else root_path
    file_prefix = settings.file_prefix if prefix is None else prefix
    path = Path(store_root) if store_root else None
    return SequenceStore(root_path=path, prefix=file_prefix)
