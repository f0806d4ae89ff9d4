"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import math
from typing import Any, List, Union

from pydantic import BaseModel, Field, field_validator


class BatchRequest(BaseModel):
    """Envelope of a telemetry batch sent by a relay."""

    count: Union[int, float] = Field(
        ..., description="Number of entries the sender reports; informational only."
    )
    data: List[Any] = Field(
        ..., description="Readings with id, seq, volt, temp and rssi fields."
    )

    @field_validator("count", mode="before")
    @classmethod
    def _count_must_be_numeric(cls, value: Any) -> Union[int, float]:
        if isinstance(value, bool):
            raise ValueError("count must be numeric")
        if isinstance(value, (int, float)):
            parsed = value
        elif isinstance(value, str):
            try:
                parsed = float(value.strip())
            except ValueError as exc:
                raise ValueError("count must be numeric") from exc
        else:
            raise ValueError("count must be numeric")
        if isinstance(parsed, float) and not math.isfinite(parsed):
            raise ValueError("count must be finite")
        return parsed


class BatchResponse(BaseModel):
    """Number of readings newly accepted from the batch."""

    update: int = Field(..., ge=0)
