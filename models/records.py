"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class IngestOutcome(str, Enum):
    """What happened to a single batch entry."""

    accepted = "accepted"
    duplicate = "duplicate"
    skipped = "skipped"


@dataclass(slots=True)
class Reading:
    """A validated reading taken from a batch entry.

    Measurements are opaque to the ingestion core and are carried through
    exactly as the sender supplied them.
    """

    device_id: int
    sequence: int
    voltage: Any = None
    temperature: Any = None
    signal_strength: Any = None


@dataclass(frozen=True, slots=True)
class LogRecord:
    """An accepted reading stamped with the server's processing time."""

    timestamp: datetime
    device_id: int
    voltage: Any
    temperature: Any
    signal_strength: Any
    sequence: int

    @classmethod
    def from_reading(cls, reading: Reading, timestamp: datetime) -> LogRecord:
        return cls(
            timestamp=timestamp,
            device_id=reading.device_id,
            voltage=reading.voltage,
            temperature=reading.temperature,
            signal_strength=reading.signal_strength,
            sequence=reading.sequence,
        )

    def to_line(self) -> str:
        """Render the record as one CSV line, newline included."""
        fields = [
            self.timestamp.strftime(TIMESTAMP_FORMAT),
            self.device_id,
            self.voltage,
            self.temperature,
            self.signal_strength,
            self.sequence,
        ]
        return ",".join("" if value is None else str(value) for value in fields) + "\n"


@dataclass
class BatchResult:
    """Per-entry outcomes for one processed batch."""

    outcomes: List[IngestOutcome] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return self.outcomes.count(IngestOutcome.accepted)

    @property
    def duplicates(self) -> int:
        return self.outcomes.count(IngestOutcome.duplicate)

    @property
    def skipped(self) -> int:
        return self.outcomes.count(IngestOutcome.skipped)
