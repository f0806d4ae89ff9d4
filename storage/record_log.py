from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Set

from models.errors import StorageError
from models.records import LogRecord
from settings import get_settings

logger = logging.getLogger(__name__)


class RecordLog:
    """Append-only CSV logs of accepted readings.

    Every record lands in its device's log and in the combined log, in
    acceptance order. Without a ``root_path`` the lines are kept in memory.
    """

    def __init__(self, root_path: Optional[Path] = None, prefix: str = "telemetry") -> None:
        self.root_path = root_path
        self.prefix = prefix
        self._device_lines: Dict[int, List[str]] = {}
        self._combined_lines: List[str] = []
        self._checked_tails: Set[Path] = set()
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    def device_path(self, device_id: int) -> Path:
        assert self.root_path is not None
        return self.root_path / f"{self.prefix}_{device_id}.csv"

    def combined_path(self) -> Path:
        assert self.root_path is not None
        return self.root_path / f"{self.prefix}_all.csv"

    def append(self, record: LogRecord) -> None:
        line = record.to_line()
        with self._lock:
            if self.root_path:
                self._append_line(self.device_path(record.device_id), line)
                self._append_line(self.combined_path(), line)
                return
            self._device_lines.setdefault(record.device_id, []).append(line)
            self._combined_lines.append(line)

    def read_lines(self, device_id: Optional[int] = None) -> List[str]:
        """Return stored lines for one device, or the combined log when omitted."""

        with self._lock:
            if not self.root_path:
                if device_id is None:
                    return list(self._combined_lines)
                return list(self._device_lines.get(device_id, []))

        path = self.combined_path() if device_id is None else self.device_path(device_id)
        try:
            with path.open("r", encoding="utf-8", newline="") as handle:
                return handle.readlines()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError(f"Unable to read log {path}: {exc}") from exc

    def _append_line(self, path: Path, line: str) -> None:
        payload = line.encode("utf-8")
        try:
            fd = os.open(path, os.O_RDWR | os.O_APPEND | os.O_CREAT, 0o644)
            try:
                if path not in self._checked_tails:
                    if self._has_torn_tail(fd):
                        logger.warning(
                            "Log ends with a partial line; starting a new line",
                            extra={"path": str(path)},
                        )
                        payload = b"\n" + payload
                    self._checked_tails.add(path)
                written = os.write(fd, payload)
                if written != len(payload):
                    raise OSError(f"short write ({written} of {len(payload)} bytes)")
                os.fsync(fd)
            finally:
                os.close(fd)
        except OSError as exc:
            raise StorageError(f"Unable to append to log {path}: {exc}") from exc

    @staticmethod
    def _has_torn_tail(fd: int) -> bool:
        size = os.fstat(fd).st_size
        if size == 0:
            return False
        return os.pread(fd, 1, size - 1) != b"\n"


@lru_cache
def build_default_record_log(
    root_path: Optional[str] = None,
    prefix: Optional[str] = None,
) -> RecordLog:
    settings = get_settings()
    log_root = settings.data_dir if root_path is None else root_path
    file_prefix = settings.file_prefix if prefix is None else prefix
    path = Path(log_root) if log_root else None
    return RecordLog(root_path=path, prefix=file_prefix)
