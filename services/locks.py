"""Per-device mutual exclusion for the watermark read-decide-write cycle."""

from __future__ import annotations

from threading import Lock
from typing import Dict


class DeviceLocks:
    """Hands out one lock per device id, creating it on first use."""

    def __init__(self) -> None:
        self._locks: Dict[int, Lock] = {}
        self._guard = Lock()

    def for_device(self, device_id: int) -> Lock:
        with self._guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = Lock()
                self._locks[device_id] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
