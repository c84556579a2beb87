"""Tests for follow-up decisions and the monitoring lifecycle."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from models.follow_up import (
    ActionKind,
    CompletionSignals,
    FollowUpContext,
    FollowUpReason,
    MonitoringState,
    Thresholds,
)
from models.readings import (
    AssetReading,
    AssetRef,
    CompletionRecord,
    EvaluatedReading,
    ReadingSource,
    Status,
    TemperatureRange,
)
from services.evaluator import RangeEvaluator
from services.orchestrator import FollowUpOrchestrator, signals_from_completion

FREEZER = AssetRef(
    asset_id="f1", name="Chest Freezer", range=TemperatureRange(min=-18, max=-20)
)


def _evaluated(value, status: Status = Status.ok, range_=None) -> EvaluatedReading:
    reading = AssetReading(asset_id="a1", equipment_name="Fridge", value=value)
    return EvaluatedReading(reading=reading, status=status, range=range_)


def test_no_issues_means_no_follow_up() -> None:
    action = FollowUpOrchestrator().decide([_evaluated(3)], Thresholds(warn=5, fail=8))

    assert action.kind is ActionKind.none
    assert action.justification == "No follow-up required."


def test_warning_threshold_alone_is_silent_monitoring() -> None:
    action = FollowUpOrchestrator().decide([_evaluated(6)], Thresholds(warn=5, fail=8))

    assert action.kind is ActionKind.monitor
    assert action.silent is True
    assert "warning threshold" in action.justification


def test_fail_threshold_without_choice_offers_both_actions() -> None:
    action = FollowUpOrchestrator().decide([_evaluated(9)], Thresholds(warn=5, fail=8))

    assert action.kind is ActionKind.monitor_and_callout
    assert action.awaiting_choice is True
    assert action.silent is False
    assert "fail threshold" in action.justification


def test_failed_status_requires_follow_up() -> None:
    range_ = TemperatureRange(min=1, max=5)

    action = FollowUpOrchestrator().decide([_evaluated(0, Status.failed, range_)])

    assert action.kind is ActionKind.monitor_and_callout
    assert "outside 1°C to 5°C" in action.justification


@pytest.mark.parametrize(
    ("choices", "expected"),
    [
        (frozenset({"monitor"}), ActionKind.monitor),
        (frozenset({"callout"}), ActionKind.callout),
        (frozenset({"monitor", "callout"}), ActionKind.monitor_and_callout),
    ],
)
def test_operator_choice_selects_action(choices, expected) -> None:
    action = FollowUpOrchestrator().decide(
        [_evaluated(9)],
        Thresholds(fail=8),
        signals=CompletionSignals(operator_actions=choices),
    )

    assert action.kind is expected
    assert action.awaiting_choice is False


@pytest.mark.parametrize(
    "signals",
    [
        CompletionSignals(pass_fail_result="fail"),
        CompletionSignals(incomplete_checklist=True),
        CompletionSignals(failed_yes_no=True),
    ],
)
def test_non_temperature_signals_require_follow_up(signals) -> None:
    action = FollowUpOrchestrator().decide([_evaluated(3)], signals=signals)

    assert action.kind is ActionKind.monitor_and_callout


def test_callout_report_context_requires_follow_up() -> None:
    action = FollowUpOrchestrator().decide(
        [], context=FollowUpContext(reason=FollowUpReason.callout_report)
    )

    assert action.kind is ActionKind.monitor_and_callout
    assert action.justification == "Callout report submitted"


def test_missing_values_are_ignored_by_thresholds() -> None:
    action = FollowUpOrchestrator().decide([_evaluated(None)], Thresholds(warn=0, fail=0))

    assert action.kind is ActionKind.none


def test_signals_from_completion_reads_all_markers() -> None:
    record = CompletionRecord(
        completion_data={
            "passFailResult": "Fail",
            "checklist_items": [{"completed": True}, {"completed": False}],
            "yes_no_checklist_items": [{"answer": "No"}],
            "temp_action": "monitor",
            "out_of_range_actions": {"f1": {"action": "callout"}},
        }
    )

    signals = signals_from_completion(record)

    assert signals.pass_fail_result == "fail"
    assert signals.incomplete_checklist is True
    assert signals.failed_yes_no is True
    assert signals.operator_actions == frozenset({"monitor", "callout"})


def test_signals_default_to_clean_completion() -> None:
    signals = signals_from_completion(CompletionRecord(completion_data={"checklist_items": []}))

    assert signals == CompletionSignals()


def test_monitoring_lifecycle_keeps_original_reading() -> None:
    orchestrator = FollowUpOrchestrator()
    original = AssetReading(
        asset_id="f1",
        equipment_name="Chest Freezer",
        value=-15.0,
        source=ReadingSource.equipment_list,
    )
    created_at = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    context = orchestrator.open_monitoring(original, created_at=created_at)
    assert orchestrator.monitoring_state(context) is MonitoringState.monitoring

    resolved = orchestrator.resolve_monitoring(
        context,
        {"equipment_list": [{"asset_id": "f1", "temperature": -19}]},
        assets=[FREEZER],
    )

    assert orchestrator.monitoring_state(resolved) is MonitoringState.resolved
    assert resolved.original_reading == original
    assert resolved.created_at == created_at
    assert resolved.new_reading is not None
    assert resolved.new_reading.value == -19.0
    assert RangeEvaluator().evaluate(resolved.new_reading, FREEZER.range) is Status.ok

    # A resolved follow-up is not re-resolved.
    again = orchestrator.resolve_monitoring(
        resolved, {"equipment_list": [{"asset_id": "f1", "temperature": -10}]}
    )
    assert again is resolved


def test_monitoring_uses_first_entry_when_identifier_differs() -> None:
    orchestrator = FollowUpOrchestrator()
    original = AssetReading(asset_id="f1", equipment_name="Chest Freezer", nickname="Back", value=-15.0)
    context = orchestrator.open_monitoring(original)

    resolved = orchestrator.resolve_monitoring(
        context, {"equipment_list": [{"asset_id": "[object Object]", "temperature": "0"}]}
    )

    assert resolved.new_reading is not None
    assert resolved.new_reading.asset_id == "f1"
    assert resolved.new_reading.equipment_name == "Chest Freezer"
    assert resolved.new_reading.nickname == "Back"
    assert resolved.new_reading.value == 0.0


def test_monitoring_without_reading_stays_open() -> None:
    orchestrator = FollowUpOrchestrator()
    context = orchestrator.open_monitoring(
        AssetReading(asset_id="f1", equipment_name="Chest Freezer", value=-15.0)
    )

    unchanged = orchestrator.resolve_monitoring(context, {"notes": "door was open"})

    assert unchanged is context
    assert orchestrator.monitoring_state(unchanged) is MonitoringState.monitoring


def test_non_monitoring_context_is_not_resolved() -> None:
    context = FollowUpContext(reason=FollowUpReason.callout_report)
    orchestrator = FollowUpOrchestrator()

    assert orchestrator.monitoring_state(context) is MonitoringState.none
    assert orchestrator.resolve_monitoring(context, {"equipment_list": []}) is context


@pytest.mark.parametrize(
    "completion_data",
    [
        {"temp_action": "monitor"},
        {"temp_action": "callout"},
        {"monitoring_task_id": "task-9"},
        {"callout_id": 42},
        {"flag_reason": "equipment_fault"},
        {"passFailStatus": "fail"},
    ],
)
def test_recorded_follow_up_markers_require_follow_up(completion_data) -> None:
    signals = signals_from_completion(CompletionRecord(completion_data=completion_data))

    action = FollowUpOrchestrator().decide([], Thresholds(), FollowUpContext(), signals)

    assert action.kind is not ActionKind.none
    assert action.silent is False


def test_operator_choice_alone_selects_its_action() -> None:
    signals = signals_from_completion(CompletionRecord(completion_data={"temp_action": "callout"}))

    action = FollowUpOrchestrator().decide([], signals=signals)

    assert action.kind is ActionKind.callout
    assert action.awaiting_choice is False
    assert action.justification == "Operator requested callout"


def test_signals_read_follow_up_identifiers_and_flags() -> None:
    signals = signals_from_completion(
        CompletionRecord(
            completion_data={
                "passFailStatus": "FAIL",
                "monitoring_task_id": "task-9",
                "callout_id": 42,
                "flag_reason": " Equipment_Fault ",
            }
        )
    )

    assert signals.pass_fail_result == "fail"
    assert signals.monitoring_task_id == "task-9"
    assert signals.callout_id == "42"
    assert signals.flag_reason == "equipment_fault"


@pytest.mark.parametrize("flag", ["completed_late", "completed_early", "none", ""])
def test_timing_flags_do_not_require_follow_up(flag) -> None:
    signals = signals_from_completion(CompletionRecord(completion_data={"flag_reason": flag}))

    assert signals.flag_reason is None
    assert FollowUpOrchestrator().decide([_evaluated(3)], signals=signals).kind is ActionKind.none
