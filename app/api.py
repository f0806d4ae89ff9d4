"""HTTP route definitions for the service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import BatchRequest, BatchResponse
from models.errors import StorageError
from services.processor import BatchProcessor, build_default_processor

logger = logging.getLogger(__name__)

router = APIRouter()


def get_processor() -> BatchProcessor:
    return build_default_processor()


@router.post(
    "/ingest",
    response_model=BatchResponse,
    summary="Record new readings from a telemetry batch.",
)
def ingest_batch(
    payload: BatchRequest,
    processor: BatchProcessor = Depends(get_processor),
) -> BatchResponse:
    if payload.count != len(payload.data):
        logger.debug(
            "Reported count differs from batch size",
            extra={"reported_count": payload.count, "batch_size": len(payload.data)},
        )
    try:
        result = processor.process_batch(payload.data)
    except StorageError as exc:
        logger.exception("Failed to persist telemetry batch")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to persist telemetry batch.",
        ) from exc
    return BatchResponse(update=result.accepted)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
