"""Deduplication and append of incoming telemetry batches."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional

from datastore.sequence_store import SequenceStore, build_default_sequence_store
from models.records import BatchResult, IngestOutcome, LogRecord, Reading
from services.locks import DeviceLocks
from storage.record_log import RecordLog, build_default_record_log

logger = logging.getLogger(__name__)

# Device ids and sequences must fit a signed 64-bit integer.
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1
_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BatchProcessor:
    """Applies the acceptance policy to batches of readings.

    A reading is a duplicate only when its sequence equals the device's
    watermark, i.e. the sequence of the last reading accepted for it. Any other
    value, lower ones included, is appended and becomes the new watermark.
    """

    def __init__(
        self,
        sequence_store: SequenceStore,
        record_log: RecordLog,
        clock: Callable[[], datetime] = _utc_now,
        locks: Optional[DeviceLocks] = None,
    ) -> None:
        self.sequence_store = sequence_store
        self.record_log = record_log
        self.clock = clock
        self.locks = locks or DeviceLocks()

    def process_batch(self, entries: Iterable[Any]) -> BatchResult:
        """Process entries in order; storage errors abort the rest of the batch."""
        result = BatchResult()
        for index, entry in enumerate(entries):
            result.outcomes.append(self.process_entry(entry, index=index))

        logger.info(
            "Processed telemetry batch",
            extra={
                "batch_size": len(result.outcomes),
                "accepted": result.accepted,
                "duplicates": result.duplicates,
                "skipped": result.skipped,
            },
        )
        return result

    def process_entry(self, entry: Any, index: Optional[int] = None) -> IngestOutcome:
        try:
            reading = self.parse_entry(entry)
        except ValueError as exc:
            logger.warning(
                "Skipping entry: %s",
                exc,
                extra={"entry_index": index, "reason": str(exc)},
            )
            return IngestOutcome.skipped
        return self.apply(reading)

    def apply(self, reading: Reading) -> IngestOutcome:
        with self.locks.for_device(reading.device_id):
            watermark = self.sequence_store.get(reading.device_id)
            if watermark is not None and reading.sequence == watermark:
                outcome = IngestOutcome.duplicate
            else:
                self.record_log.append(LogRecord.from_reading(reading, self.clock()))
                self.sequence_store.set(reading.device_id, reading.sequence)
                outcome = IngestOutcome.accepted

        logger.debug(
            "Reading %s",
            outcome.value,
            extra={
                "device_id": reading.device_id,
                "sequence": reading.sequence,
                "outcome": outcome.value,
            },
        )
        return outcome

    @classmethod
    def parse_entry(cls, entry: Any) -> Reading:
        if not isinstance(entry, Mapping):
            raise ValueError("entry is not an object")

        device_id = cls._parse_integer(entry.get("id"))
        if device_id is None:
            raise ValueError("missing or invalid id")

        sequence = cls._parse_integer(entry.get("seq"))
        if sequence is None:
            raise ValueError("missing or invalid seq")

        return Reading(
            device_id=device_id,
            sequence=sequence,
            voltage=entry.get("volt"),
            temperature=entry.get("temp"),
            signal_strength=entry.get("rssi"),
        )

    @staticmethod
    def _parse_integer(value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            parsed = value
        elif isinstance(value, float):
            if not (math.isfinite(value) and value.is_integer()):
                return None
            parsed = int(value)
        elif isinstance(value, str):
            candidate = value.strip()
            if not _INTEGER_PATTERN.fullmatch(candidate):
                return None
            try:
                parsed = int(candidate)
            except ValueError:
                return None
        else:
            return None
        if not _INT_MIN <= parsed <= _INT_MAX:
            return None
        return parsed


@lru_cache
def build_default_processor() -> BatchProcessor:
    """Factory that wires the processor with the configured stores."""
    return BatchProcessor(
        sequence_store=build_default_sequence_store(),
        record_log=build_default_record_log(),
    )
