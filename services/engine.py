"""Wires the resolver, evaluator and orchestrator behind the API schemas."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence

from app.schemas import (
    AssetConfig,
    AssetReadingSchema,
    CompletionRecordIn,
    EvaluatedReadingSchema,
    EvaluationRequest,
    EvaluationResponse,
    FollowUpActionSchema,
    FollowUpContextSchema,
    MonitoringResolveRequest,
    MonitoringResolveResponse,
    TemperatureRangeSchema,
)
from models.follow_up import FollowUpAction, FollowUpContext, FollowUpReason, Thresholds
from models.readings import (
    AssetReading,
    AssetRef,
    CompletionRecord,
    EvaluatedReading,
    TemperatureRange,
)
from services.evaluator import RangeEvaluator, describe_range
from services.log_fetcher import build_default_log_fetcher
from services.orchestrator import FollowUpOrchestrator, signals_from_completion
from services.parsing import parse_timestamp
from services.resolver import LogFetcher, SourceResolver
from services.task_config import assets_from_task_data, range_map
from settings import get_settings

logger = logging.getLogger(__name__)

_FLAG_REASONS = {reason.value: reason for reason in FollowUpReason}


def record_from_schema(schema: CompletionRecordIn) -> CompletionRecord:
    return CompletionRecord(
        completion_data=dict(schema.completion_data),
        task_data=dict(schema.task_data),
        record_id=schema.record_id,
        task_id=schema.task_id,
        completed_at=parse_timestamp(schema.completed_at),
        completed_by=schema.completed_by,
        site_id=schema.site_id,
        template_asset_id=schema.template_asset_id,
    )


def assets_from_schema(configs: Iterable[AssetConfig]) -> List[AssetRef]:
    return [
        AssetRef(
            asset_id=config.asset_id,
            name=config.name,
            nickname=config.nickname,
            range=TemperatureRange(min=config.temp_min, max=config.temp_max),
        )
        for config in configs
    ]


def reading_from_schema(schema: Optional[AssetReadingSchema]) -> Optional[AssetReading]:
    if schema is None:
        return None
    return AssetReading(
        asset_id=schema.asset_id,
        equipment_name=schema.equipment_name,
        nickname=schema.nickname,
        value=schema.value,
        recorded_at=parse_timestamp(schema.recorded_at),
        source=schema.source,
    )


def reading_to_schema(reading: Optional[AssetReading]) -> Optional[AssetReadingSchema]:
    if reading is None:
        return None
    return AssetReadingSchema(
        asset_id=reading.asset_id,
        equipment_name=reading.equipment_name,
        nickname=reading.nickname,
        value=reading.value,
        recorded_at=reading.recorded_at,
        source=reading.source,
    )


def context_from_schema(schema: FollowUpContextSchema) -> FollowUpContext:
    return FollowUpContext(
        reason=schema.reason,
        original_reading=reading_from_schema(schema.original_reading),
        created_at=parse_timestamp(schema.created_at),
        new_reading=reading_from_schema(schema.new_reading),
    )


def context_to_schema(context: FollowUpContext) -> FollowUpContextSchema:
    return FollowUpContextSchema(
        reason=context.reason,
        original_reading=reading_to_schema(context.original_reading),
        created_at=context.created_at,
        new_reading=reading_to_schema(context.new_reading),
    )


def evaluated_to_schema(evaluated: EvaluatedReading) -> EvaluatedReadingSchema:
    reading = evaluated.reading
    range_ = evaluated.range
    return EvaluatedReadingSchema(
        asset_id=reading.asset_id,
        equipment_name=reading.equipment_name,
        nickname=reading.nickname,
        value=reading.value,
        recorded_at=reading.recorded_at,
        source=reading.source,
        status=evaluated.status,
        range=TemperatureRangeSchema(min=range_.min, max=range_.max) if range_ else None,
        range_label=describe_range(range_),
    )


def action_to_schema(action: FollowUpAction) -> FollowUpActionSchema:
    return FollowUpActionSchema(
        kind=action.kind,
        silent=action.silent,
        awaiting_choice=action.awaiting_choice,
        reasons=list(action.reasons),
        justification=action.justification,
    )


class ComplianceEngine:
    """Runs evaluation passes; holds no state between them."""

    def __init__(
        self,
        resolver: SourceResolver,
        evaluator: RangeEvaluator,
        orchestrator: FollowUpOrchestrator,
        log_fetcher: Optional[LogFetcher] = None,
        workers: int = 4,
    ) -> None:
        self.resolver = resolver
        self.evaluator = evaluator
        self.orchestrator = orchestrator
        self.log_fetcher = log_fetcher
        self.executor = ThreadPoolExecutor(max_workers=workers)

    def configured_assets(self, request: EvaluationRequest) -> List[AssetRef]:
        if request.assets is not None:
            return assets_from_schema(request.assets)
        return assets_from_task_data(
            request.record.task_data,
            request.record.repeatable_field_name,
            request.directory,
        )

    def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        """Resolve, classify and decide the follow-up for one completion."""
        start_time = time.perf_counter()
        record = record_from_schema(request.record)
        assets = self.configured_assets(request)

        readings = self.resolver.resolve(
            record, assets, log_fetcher=self.log_fetcher, directory=request.directory
        )
        evaluated = self.evaluator.evaluate_all(readings, range_map(assets))

        context = context_from_schema(request.context)
        if context.reason is FollowUpReason.none:
            context = self._context_from_flag(record, context)

        action = self.orchestrator.decide(
            evaluated,
            Thresholds(warn=request.thresholds.warn, fail=request.thresholds.fail),
            context,
            signals_from_completion(record),
        )

        logger.info(
            "Evaluated completion in %d ms",
            int((time.perf_counter() - start_time) * 1000),
            extra={
                "record_id": record.record_id,
                "task_id": record.task_id,
                "reading_count": len(evaluated),
                "action": action.kind,
            },
        )
        return EvaluationResponse(
            record_id=record.record_id,
            readings=[evaluated_to_schema(item) for item in evaluated],
            action=action_to_schema(action),
        )

    def evaluate_many(self, requests: Sequence[EvaluationRequest]) -> List[EvaluationResponse]:
        """Evaluate independent completions in parallel, preserving input order."""
        futures = [self.executor.submit(self.evaluate, request) for request in requests]
        responses: List[EvaluationResponse] = []
        for request, future in zip(requests, futures):
            try:
                responses.append(future.result())
            except Exception:  # pragma: no cover
                logger.exception(
                    "Evaluation failed", extra={"record_id": request.record.record_id}
                )
                responses.append(EvaluationResponse(record_id=request.record.record_id))
        return responses

    def resolve_follow_up(self, request: MonitoringResolveRequest) -> MonitoringResolveResponse:
        """Attach a monitoring task's new reading and classify it."""
        assets = assets_from_schema(request.assets)
        context = self.orchestrator.resolve_monitoring(
            context_from_schema(request.context),
            request.completion_data,
            assets,
            completed_at=parse_timestamp(request.completed_at),
        )

        new_status = None
        if context.new_reading is not None:
            ranges = range_map(assets)
            range_ = ranges.get(context.new_reading.asset_id or "")
            new_status = self.evaluator.evaluate(context.new_reading, range_)

        return MonitoringResolveResponse(
            state=self.orchestrator.monitoring_state(context),
            context=context_to_schema(context),
            new_status=new_status,
        )

    def shutdown(self) -> None:
        """Clean up executor and log source resources during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        close = getattr(self.log_fetcher, "close", None)
        if callable(close):
            close()

    @staticmethod
    def _context_from_flag(record: CompletionRecord, context: FollowUpContext) -> FollowUpContext:
        flag = record.completion_data.get("flag_reason")
        reason = _FLAG_REASONS.get(flag.strip().lower()) if isinstance(flag, str) else None
        if reason is None or reason is FollowUpReason.monitoring:
            return context
        return FollowUpContext(reason=reason)


@lru_cache
def build_default_engine(
    workers: Optional[int] = None,
) -> ComplianceEngine:
    """Factory that wires the engine with settings and the default log source."""
    settings = get_settings()
    resolver = SourceResolver(
        log_window=timedelta(minutes=settings.log_window_minutes),
        log_limit=settings.log_limit,
    )
    worker_count = workers or settings.engine_workers
    return ComplianceEngine(
        resolver=resolver,
        evaluator=RangeEvaluator(),
        orchestrator=FollowUpOrchestrator(),
        log_fetcher=build_default_log_fetcher(),
        workers=worker_count,
    )
