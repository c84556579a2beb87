"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    BatchEvaluationRequest,
    BatchEvaluationResponse,
    EvaluationRequest,
    EvaluationResponse,
    MonitoringResolveRequest,
    MonitoringResolveResponse,
    TemperatureLogRecord,
)
from datastore.log_table import MockTemperatureLogTable, build_default_log_table
from models.readings import LogQuery
from services.engine import ComplianceEngine, build_default_engine
from services.parsing import parse_timestamp

router = APIRouter()


def get_engine() -> ComplianceEngine:
    return build_default_engine()


def get_log_table() -> MockTemperatureLogTable:
    return build_default_log_table()


# Engine routes are sync so a remote log lookup runs in the threadpool.
@router.post(
    "/evaluations",
    response_model=EvaluationResponse,
    summary="Reconcile, classify and decide follow-up for one completion.",
)
def evaluate_completion(
    request: EvaluationRequest,
    engine: ComplianceEngine = Depends(get_engine),
) -> EvaluationResponse:
    return engine.evaluate(request)


@router.post(
    "/evaluations/batch",
    response_model=BatchEvaluationResponse,
    summary="Evaluate several independent completions in parallel.",
)
def evaluate_batch(
    request: BatchEvaluationRequest,
    engine: ComplianceEngine = Depends(get_engine),
) -> BatchEvaluationResponse:
    return BatchEvaluationResponse(results=engine.evaluate_many(request.evaluations))


@router.post(
    "/follow-ups/monitoring/resolve",
    response_model=MonitoringResolveResponse,
    summary="Attach a monitoring task's new reading to its original reading.",
)
def resolve_monitoring(
    request: MonitoringResolveRequest,
    engine: ComplianceEngine = Depends(get_engine),
) -> MonitoringResolveResponse:
    return engine.resolve_follow_up(request)


@router.post(
    "/temperature-logs",
    status_code=status.HTTP_201_CREATED,
    response_model=TemperatureLogRecord,
    summary="Record a standalone temperature log row.",
)
async def create_log(
    record: TemperatureLogRecord,
    table: MockTemperatureLogTable = Depends(get_log_table),
) -> TemperatureLogRecord:
    table.put_item(record)
    return record


@router.get(
    "/temperature-logs",
    response_model=List[TemperatureLogRecord],
    summary="Logs by one recorder within a time window, most recent first.",
)
async def query_logs(
    recorded_by: str = Query(..., min_length=1),
    start: datetime = Query(...),
    end: datetime = Query(...),
    site_id: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    table: MockTemperatureLogTable = Depends(get_log_table),
) -> List[TemperatureLogRecord]:
    window_start = parse_timestamp(start)
    window_end = parse_timestamp(end)
    if window_start > window_end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Window start must not be after window end.",
        )
    return table.query(
        LogQuery(
            recorded_by=recorded_by,
            site_id=site_id,
            window_start=window_start,
            window_end=window_end,
            limit=limit,
        )
    )


@router.get(
    "/temperature-logs/{log_id}",
    response_model=TemperatureLogRecord,
    summary="Fetch one temperature log row.",
)
async def get_log(
    log_id: str,
    table: MockTemperatureLogTable = Depends(get_log_table),
) -> TemperatureLogRecord:
    record = table.get_item(log_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Temperature log {log_id!r} not found.",
        )
    return record


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
