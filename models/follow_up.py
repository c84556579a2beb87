"""Follow-up workflow models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from models.readings import AssetReading


class FollowUpReason(str, Enum):
    none = "none"
    monitoring = "monitoring"
    callout_report = "callout_report"
    completed_late = "completed_late"
    completed_early = "completed_early"


class MonitoringState(str, Enum):
    none = "none"
    monitoring = "monitoring"
    resolved = "resolved"


class ActionKind(str, Enum):
    none = "none"
    monitor = "monitor"
    callout = "callout"
    monitor_and_callout = "monitor_and_callout"


@dataclass(frozen=True, slots=True)
class Thresholds:
    warn: Optional[float] = None
    fail: Optional[float] = None


@dataclass(frozen=True, slots=True)
class FollowUpContext:
    """Why a follow-up exists and what it has observed so far.

    ``original_reading`` is captured when a monitoring task is created and is
    never replaced; ``new_reading`` only appears once that task is completed.
    """

    reason: FollowUpReason = FollowUpReason.none
    original_reading: Optional[AssetReading] = None
    created_at: Optional[datetime] = None
    new_reading: Optional[AssetReading] = None


@dataclass(frozen=True, slots=True)
class CompletionSignals:
    """Non-temperature compliance signals recorded alongside a completion."""

    pass_fail_result: Optional[str] = None
    operator_actions: FrozenSet[str] = field(default_factory=frozenset)
    incomplete_checklist: bool = False
    failed_yes_no: bool = False
    monitoring_task_id: Optional[str] = None
    callout_id: Optional[str] = None
    # Lower-cased; late/early completion flags are timing notes, not issues.
    flag_reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class FollowUpAction:
    kind: ActionKind = ActionKind.none
    silent: bool = False
    awaiting_choice: bool = False
    reasons: Tuple[str, ...] = ()

    @property
    def justification(self) -> str:
        if not self.reasons:
            return "No follow-up required."
        return "; ".join(self.reasons)
