"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from models.follow_up import ActionKind, FollowUpReason, MonitoringState
from models.readings import UNKNOWN_EQUIPMENT, ReadingSource, Status
from services.parsing import is_corrupt_identifier


class TemperatureRangeSchema(BaseModel):
    """Configured range; ``min > max`` denotes a freezer (inverted) range."""

    min: Optional[float] = None
    max: Optional[float] = None


class AssetConfig(BaseModel):
    """Per-asset configuration captured when the task was created."""

    asset_id: str = Field(..., min_length=1)
    name: str = UNKNOWN_EQUIPMENT
    nickname: Optional[str] = None
    temp_min: Optional[float] = None
    temp_max: Optional[float] = None

    @field_validator("asset_id")
    @classmethod
    def validate_asset_id(cls, v: str) -> str:
        candidate = v.strip()
        if not candidate or is_corrupt_identifier(candidate):
            raise ValueError(f"Invalid asset id: {v!r}")
        return candidate


class CompletionRecordIn(BaseModel):
    """A task completion exactly as the completion store holds it."""

    record_id: Optional[str] = None
    task_id: Optional[str] = None
    completion_data: Dict[str, Any] = Field(default_factory=dict)
    task_data: Dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    site_id: Optional[str] = None
    template_asset_id: Optional[str] = None
    repeatable_field_name: Optional[str] = None


class ThresholdsIn(BaseModel):
    warn: Optional[float] = None
    fail: Optional[float] = None


class AssetReadingSchema(BaseModel):
    asset_id: Optional[str] = None
    equipment_name: str = UNKNOWN_EQUIPMENT
    nickname: Optional[str] = None
    value: Optional[float] = Field(default=None, allow_inf_nan=False)
    recorded_at: Optional[datetime] = None
    source: Optional[ReadingSource] = None


class FollowUpContextSchema(BaseModel):
    reason: FollowUpReason = FollowUpReason.none
    original_reading: Optional[AssetReadingSchema] = None
    created_at: Optional[datetime] = None
    new_reading: Optional[AssetReadingSchema] = None


class EvaluationRequest(BaseModel):
    """Inputs for one evaluation pass.

    When ``assets`` is omitted the configuration is recovered from the
    record's task data.
    """

    record: CompletionRecordIn
    assets: Optional[List[AssetConfig]] = None
    thresholds: ThresholdsIn = Field(default_factory=ThresholdsIn)
    context: FollowUpContextSchema = Field(default_factory=FollowUpContextSchema)
    directory: Dict[str, str] = Field(
        default_factory=dict, description="Asset id to display name lookup."
    )


class EvaluatedReadingSchema(AssetReadingSchema):
    status: Status
    range: Optional[TemperatureRangeSchema] = None
    range_label: str = "No range set"


class FollowUpActionSchema(BaseModel):
    kind: ActionKind = ActionKind.none
    silent: bool = False
    awaiting_choice: bool = False
    reasons: List[str] = Field(default_factory=list)
    justification: str = ""


class EvaluationResponse(BaseModel):
    record_id: Optional[str] = None
    readings: List[EvaluatedReadingSchema] = Field(default_factory=list)
    action: FollowUpActionSchema = Field(default_factory=FollowUpActionSchema)


class BatchEvaluationRequest(BaseModel):
    evaluations: List[EvaluationRequest] = Field(default_factory=list)


class BatchEvaluationResponse(BaseModel):
    results: List[EvaluationResponse] = Field(default_factory=list)


class MonitoringResolveRequest(BaseModel):
    """A monitoring follow-up task's completion, matched to its origin."""

    context: FollowUpContextSchema
    completion_data: Dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None
    assets: List[AssetConfig] = Field(default_factory=list)


class MonitoringResolveResponse(BaseModel):
    state: MonitoringState
    context: FollowUpContextSchema
    new_status: Optional[Status] = None


class TemperatureLogRecord(BaseModel):
    """Row of the standalone temperature log."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    asset_id: str = Field(..., min_length=1)
    reading: float = Field(..., allow_inf_nan=False)
    recorded_at: datetime
    recorded_by: str = Field(..., min_length=1)
    site_id: Optional[str] = None
    status: Optional[str] = None
    asset_name: Optional[str] = None
