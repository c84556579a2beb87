"""Follow-up decisions and the monitoring task lifecycle."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from models.follow_up import (
    ActionKind,
    CompletionSignals,
    FollowUpAction,
    FollowUpContext,
    FollowUpReason,
    MonitoringState,
    Thresholds,
)
from models.readings import (
    UNKNOWN_EQUIPMENT,
    AssetReading,
    AssetRef,
    CompletionRecord,
    EvaluatedReading,
    ReadingSource,
    Status,
)
from services.evaluator import describe_range
from services.extractors import (
    ENTRY_VALUE_FIELDS,
    EquipmentListExtractor,
    ExtractionContext,
)
from services.parsing import (
    coerce_identifier,
    first_present,
    parse_temperature,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

OPERATOR_CHOICES = frozenset({"monitor", "callout"})
TIMING_FLAGS = frozenset({FollowUpReason.completed_late.value, FollowUpReason.completed_early.value})

PASS_FAIL_FIELDS = ("pass_fail_result", "passFailResult", "passFailStatus")


def _first_list(data: Mapping[str, Any], *keys: str) -> List[Any]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, list):
            return value
    return []


def _operator_actions(data: Mapping[str, Any]) -> frozenset[str]:
    actions: set[str] = set()
    for key in ("temp_action", "flag_reason"):
        value = data.get(key)
        if isinstance(value, str) and value.strip().lower() in OPERATOR_CHOICES:
            actions.add(value.strip().lower())

    per_asset = data.get("out_of_range_actions")
    if isinstance(per_asset, Mapping):
        per_asset = list(per_asset.values())
    if not isinstance(per_asset, list):
        per_asset = _first_list(data, "outOfRangeAssets")
    for item in per_asset:
        choice = item.get("action") if isinstance(item, Mapping) else item
        if isinstance(choice, str) and choice.strip().lower() in OPERATOR_CHOICES:
            actions.add(choice.strip().lower())
    return frozenset(actions)


def _flag_reason(data: Mapping[str, Any]) -> Optional[str]:
    flag = data.get("flag_reason")
    if not isinstance(flag, str):
        return None
    flag = flag.strip().lower()
    if not flag or flag == FollowUpReason.none.value or flag in TIMING_FLAGS:
        return None
    return flag


def signals_from_completion(record: CompletionRecord) -> CompletionSignals:
    """Collect the non-temperature issue markers a completion may carry."""
    data = record.merged_data()

    pass_fail = first_present(data, PASS_FAIL_FIELDS)
    checklist = _first_list(data, "checklist_items", "checklistItems")
    yes_no = _first_list(data, "yes_no_checklist_items", "yesNoChecklistItems", "yes_no_items")

    return CompletionSignals(
        pass_fail_result=pass_fail.strip().lower() if isinstance(pass_fail, str) else None,
        operator_actions=_operator_actions(data),
        incomplete_checklist=any(
            isinstance(item, Mapping) and item.get("completed") is False for item in checklist
        ),
        failed_yes_no=any(
            isinstance(item, Mapping)
            and isinstance(item.get("answer"), str)
            and item["answer"].strip().lower() == "no"
            for item in yes_no
        ),
        monitoring_task_id=coerce_identifier(data.get("monitoring_task_id")),
        callout_id=coerce_identifier(data.get("callout_id")),
        flag_reason=_flag_reason(data),
    )


def _label(reading: AssetReading) -> str:
    if reading.nickname:
        return f"{reading.equipment_name} | {reading.nickname}"
    return reading.equipment_name


class FollowUpOrchestrator:
    """Decides whether monitoring or a callout is needed for a completion."""

    def decide(
        self,
        readings: Sequence[EvaluatedReading],
        thresholds: Optional[Thresholds] = None,
        context: Optional[FollowUpContext] = None,
        signals: Optional[CompletionSignals] = None,
    ) -> FollowUpAction:
        thresholds = thresholds or Thresholds()
        context = context or FollowUpContext()
        signals = signals or CompletionSignals()

        required: List[str] = []
        warnings: List[str] = []

        for evaluated in readings:
            value = evaluated.value
            if value is None:
                continue
            name = _label(evaluated.reading)
            if thresholds.fail is not None and value > thresholds.fail:
                required.append(
                    f"{name} reading {value:g}°C exceeds fail threshold {thresholds.fail:g}°C"
                )
            elif thresholds.warn is not None and value > thresholds.warn:
                warnings.append(
                    f"{name} reading {value:g}°C exceeds warning threshold {thresholds.warn:g}°C"
                )
            if evaluated.status is Status.failed:
                required.append(
                    f"{name} reading {value:g}°C is outside {describe_range(evaluated.range)}"
                    if evaluated.range is not None
                    else f"{name} reading {value:g}°C failed"
                )

        if signals.pass_fail_result == "fail":
            required.append("Manual pass/fail result recorded as fail")
        if signals.incomplete_checklist:
            required.append("Checklist item left incomplete")
        if signals.failed_yes_no:
            required.append("Yes/no check answered no")
        if context.reason is FollowUpReason.callout_report:
            required.append("Callout report submitted")
        if signals.operator_actions:
            required.append(
                f"Operator requested {' and '.join(sorted(signals.operator_actions))}"
            )
        if signals.monitoring_task_id:
            required.append(f"Monitoring task {signals.monitoring_task_id} already raised")
        if signals.callout_id:
            required.append(f"Callout {signals.callout_id} already raised")
        flag = signals.flag_reason
        if flag and flag not in OPERATOR_CHOICES and flag != context.reason.value:
            required.append(f"Completion flagged: {flag}")

        if required:
            action = self._required_action(signals.operator_actions, required)
        elif warnings:
            action = FollowUpAction(kind=ActionKind.monitor, silent=True, reasons=tuple(warnings))
        else:
            action = FollowUpAction()

        if action.kind is not ActionKind.none:
            logger.info(
                "Follow-up required",
                extra={"action": action.kind, "reason": action.justification},
            )
        return action

    @staticmethod
    def _required_action(choices: Iterable[str], reasons: List[str]) -> FollowUpAction:
        chosen = set(choices)
        if chosen >= OPERATOR_CHOICES:
            kind = ActionKind.monitor_and_callout
        elif "monitor" in chosen:
            kind = ActionKind.monitor
        elif "callout" in chosen:
            kind = ActionKind.callout
        else:
            # Operator has not picked yet; both options stay on the table.
            return FollowUpAction(
                kind=ActionKind.monitor_and_callout,
                awaiting_choice=True,
                reasons=tuple(reasons),
            )
        return FollowUpAction(kind=kind, reasons=tuple(reasons))

    # Monitoring lifecycle: none -> monitoring -> resolved.

    @staticmethod
    def open_monitoring(
        reading: AssetReading, created_at: Optional[datetime] = None
    ) -> FollowUpContext:
        return FollowUpContext(
            reason=FollowUpReason.monitoring,
            original_reading=reading,
            created_at=created_at or datetime.now(timezone.utc),
        )

    @staticmethod
    def monitoring_state(context: FollowUpContext) -> MonitoringState:
        if context.reason is not FollowUpReason.monitoring:
            return MonitoringState.none
        if context.new_reading is not None:
            return MonitoringState.resolved
        return MonitoringState.monitoring

    def resolve_monitoring(
        self,
        context: FollowUpContext,
        completion_data: Mapping[str, Any],
        assets: Sequence[AssetRef] = (),
        completed_at: Optional[datetime] = None,
    ) -> FollowUpContext:
        """Attach the follow-up task's own reading; the original is left untouched."""
        if self.monitoring_state(context) is not MonitoringState.monitoring:
            return context

        new_reading = self._new_reading(context, completion_data, assets, completed_at)
        if new_reading is None:
            logger.debug("Monitoring follow-up completed without a reading")
            return context
        return replace(context, new_reading=new_reading)

    @staticmethod
    def _new_reading(
        context: FollowUpContext,
        completion_data: Mapping[str, Any],
        assets: Sequence[AssetRef],
        completed_at: Optional[datetime],
    ) -> Optional[AssetReading]:
        original = context.original_reading
        target = original.asset_id if original else None

        extraction = EquipmentListExtractor().extract(
            ExtractionContext(
                record=CompletionRecord(completion_data=completion_data, completed_at=completed_at),
                assets=tuple(assets),
            )
        )
        for reading in extraction.readings:
            if target and reading.asset_id == target:
                return reading

        entries = completion_data.get("equipment_list")
        if not isinstance(entries, list) or not entries or not isinstance(entries[0], Mapping):
            return None
        # Monitoring tasks cover a single asset, so the first entry is its reading.
        first = entries[0]
        return AssetReading(
            asset_id=target,
            equipment_name=original.equipment_name if original else UNKNOWN_EQUIPMENT,
            nickname=original.nickname if original else None,
            value=parse_temperature(first_present(first, ENTRY_VALUE_FIELDS)),
            recorded_at=parse_timestamp(first.get("recorded_at")) or completed_at,
            source=ReadingSource.equipment_list,
        )
