"""Reading-level domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


UNKNOWN_EQUIPMENT = "Unknown Equipment"


class ReadingSource(str, Enum):
    """Storage shape a reading was reconstructed from, in resolver priority order."""

    equipment_list = "equipment_list"
    temperature_array = "temperature_array"
    keyed_field = "keyed_field"
    asset_id_key = "asset_id_key"
    template_field = "template_field"
    heuristic_match = "heuristic_match"
    external_log = "external_log"


class Status(str, Enum):
    ok = "ok"
    warning = "warning"
    failed = "failed"


class RangeKind(str, Enum):
    normal = "normal"
    inverted = "inverted"
    unbounded = "unbounded"


@dataclass(frozen=True, slots=True)
class TemperatureRange:
    """Acceptable interval for an asset.

    Both bounds set with ``min > max`` is the freezer convention: the
    acceptable zone runs from ``max`` (coldest) to ``min`` (warmest).
    """

    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def kind(self) -> RangeKind:
        if self.min is None and self.max is None:
            return RangeKind.unbounded
        if self.min is not None and self.max is not None and self.min > self.max:
            return RangeKind.inverted
        return RangeKind.normal

    @property
    def lower(self) -> Optional[float]:
        if self.kind is RangeKind.inverted:
            return self.max
        return self.min

    @property
    def upper(self) -> Optional[float]:
        if self.kind is RangeKind.inverted:
            return self.min
        return self.max


@dataclass(frozen=True, slots=True)
class AssetRef:
    """An asset as configured on the task when it was created."""

    asset_id: str
    name: str = UNKNOWN_EQUIPMENT
    nickname: Optional[str] = None
    range: TemperatureRange = field(default_factory=TemperatureRange)

    @property
    def display_name(self) -> str:
        if self.nickname:
            return f"{self.name} | {self.nickname}"
        return self.name


@dataclass(frozen=True, slots=True)
class AssetReading:
    """A single temperature value attributed to one asset.

    ``value`` is ``None`` when no reading was taken; ``0.0`` is a real reading.
    ``source`` is ``None`` only for a configured asset no strategy could read.
    """

    equipment_name: str
    asset_id: Optional[str] = None
    nickname: Optional[str] = None
    value: Optional[float] = None
    recorded_at: Optional[datetime] = None
    source: Optional[ReadingSource] = None

    @property
    def has_value(self) -> bool:
        return self.value is not None


@dataclass(frozen=True, slots=True)
class EvaluatedReading:
    reading: AssetReading
    status: Status
    range: Optional[TemperatureRange] = None

    @property
    def asset_id(self) -> Optional[str]:
        return self.reading.asset_id

    @property
    def value(self) -> Optional[float]:
        return self.reading.value


@dataclass(frozen=True, slots=True)
class CompletionRecord:
    """A task completion as stored by the completion store.

    ``completion_data`` and ``task_data`` are untyped bags written by many
    generations of forms; everything else scopes the external log lookup.
    """

    completion_data: Mapping[str, Any] = field(default_factory=dict)
    task_data: Mapping[str, Any] = field(default_factory=dict)
    record_id: Optional[str] = None
    task_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    site_id: Optional[str] = None
    template_asset_id: Optional[str] = None

    def merged_data(self) -> Dict[str, Any]:
        """Task defaults overlaid with completion data (completion wins)."""
        return {**dict(self.task_data), **dict(self.completion_data)}


@dataclass(frozen=True, slots=True)
class LogQuery:
    recorded_by: str
    window_start: datetime
    window_end: datetime
    site_id: Optional[str] = None
    limit: int = 10


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A row returned by the external temperature log source."""

    asset_id: str
    reading: float
    recorded_at: datetime
    status: Optional[str] = None
    asset_name: Optional[str] = None
