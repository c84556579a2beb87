"""Extraction strategies for the storage shapes a completion record may use.

Each strategy reads one shape and returns an :class:`ExtractionResult`. The
resolver asks them in priority order and keeps the first non-empty result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from models.readings import (
    UNKNOWN_EQUIPMENT,
    AssetReading,
    AssetRef,
    CompletionRecord,
    ReadingSource,
)
from services.parsing import (
    clean_text,
    coerce_identifier,
    first_present,
    is_corrupt_identifier,
    is_present,
    parse_temperature,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

ENTRY_ID_FIELDS = ("asset_id", "assetId", "id", "value")
ENTRY_VALUE_FIELDS = ("temperature", "reading", "temp")
ENTRY_NAME_FIELDS = ("asset_name", "name", "equipment", "assetName")

KEYED_PREFIX = "temp_"

# Structural completion fields that never hold a temperature for an asset.
RESERVED_KEYS = frozenset(
    {
        "asset_id",
        "asset_name",
        "callout_details",
        "callout_id",
        "callout_photos",
        "callout_type",
        "checklistItems",
        "checklist_items",
        "completed_at",
        "completed_by",
        "contractor_id",
        "contractor_name",
        "default_checklist_items",
        "equipment_config",
        "equipment_list",
        "evidence_attachments",
        "fault_description",
        "flag_reason",
        "id",
        "monitoring_duration",
        "monitoring_task_details",
        "monitoring_task_id",
        "notes",
        "original_task_data",
        "out_of_range_actions",
        "outOfRangeAssets",
        "passFailResult",
        "pass_fail_result",
        "photos",
        "site_id",
        "task_id",
        "temp_action",
        "temp_max",
        "temp_min",
        "temp_unit",
        "temperature",
        "temperatures",
        "troubleshooting",
        "yesNoChecklistItems",
        "yes_no_checklist_items",
        "yes_no_items",
    }
)


@dataclass(frozen=True)
class ExtractionContext:
    """Everything a strategy may look at for one completion record."""

    record: CompletionRecord
    assets: Sequence[AssetRef] = ()
    directory: Mapping[str, str] = field(default_factory=dict)

    @property
    def completion_data(self) -> Mapping[str, Any]:
        return self.record.completion_data

    @property
    def merged_data(self) -> Dict[str, Any]:
        return self.record.merged_data()

    @property
    def asset_ids(self) -> List[str]:
        return [asset.asset_id for asset in self.assets]

    def configured(self, asset_id: Optional[str]) -> Optional[AssetRef]:
        for asset in self.assets:
            if asset.asset_id == asset_id:
                return asset
        return None

    def build_reading(
        self,
        asset_id: str,
        value: Optional[float],
        source: ReadingSource,
        name_hint: Optional[str] = None,
        nickname_hint: Optional[str] = None,
        recorded_at: Optional[datetime] = None,
    ) -> AssetReading:
        asset = self.configured(asset_id)
        configured_name = asset.name if asset and asset.name != UNKNOWN_EQUIPMENT else None
        name = (
            self.directory.get(asset_id)
            or configured_name
            or name_hint
            or UNKNOWN_EQUIPMENT
        )
        return AssetReading(
            asset_id=asset_id,
            equipment_name=name,
            nickname=(asset.nickname if asset else None) or nickname_hint,
            value=value,
            recorded_at=recorded_at or self.record.completed_at,
            source=source,
        )


@dataclass(frozen=True)
class ExtractionResult:
    source: Optional[ReadingSource]
    readings: Tuple[AssetReading, ...] = ()
    confidence: float = 0.0

    def __bool__(self) -> bool:
        return bool(self.readings)

    @property
    def has_values(self) -> bool:
        return any(reading.has_value for reading in self.readings)


EMPTY_RESULT = ExtractionResult(source=None)


def names_match(left: Optional[str], right: Optional[str]) -> bool:
    """Equal, or one name contains the other (case-insensitive)."""
    if not left or not right:
        return False
    a, b = left.casefold(), right.casefold()
    return a == b or a in b or b in a


class Extractor:
    """Base strategy: subclasses read one storage shape."""

    source: ReadingSource
    confidence: float = 0.0

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        raise NotImplementedError

    def _result(self, readings: List[AssetReading]) -> ExtractionResult:
        if not readings:
            return EMPTY_RESULT
        return ExtractionResult(
            source=self.source, readings=tuple(readings), confidence=self.confidence
        )


class _EntryListExtractor(Extractor):
    """Shared identifier/value resolution for lists of per-asset objects."""

    field_name: str
    time_fields: Tuple[str, ...] = ("recorded_at",)

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        entries = context.completion_data.get(self.field_name)
        if not isinstance(entries, list):
            return EMPTY_RESULT

        readings: List[AssetReading] = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                continue
            asset_id = self.resolve_identifier(context, entry, index)
            if asset_id is None:
                logger.debug(
                    "Dropping %s entry without a recoverable asset id",
                    self.field_name,
                    extra={"record_id": context.record.record_id, "source": self.source},
                )
                continue
            if asset_id in seen:
                continue
            seen.add(asset_id)
            readings.append(
                context.build_reading(
                    asset_id,
                    parse_temperature(first_present(entry, ENTRY_VALUE_FIELDS)),
                    self.source,
                    name_hint=self._entry_name(entry),
                    nickname_hint=clean_text(entry.get("nickname")),
                    recorded_at=parse_timestamp(first_present(entry, self.time_fields)),
                )
            )
        return self._result(readings)

    def resolve_identifier(
        self, context: ExtractionContext, entry: Mapping[str, Any], index: int
    ) -> Optional[str]:
        corrupt = None
        for name in ENTRY_ID_FIELDS:
            raw = entry.get(name)
            if is_corrupt_identifier(raw):
                corrupt = corrupt or raw
                continue
            identifier = coerce_identifier(raw)
            if identifier:
                return identifier
        if corrupt is None:
            return None

        recovered = self._recover_identifier(context, entry, index)
        if recovered:
            logger.info(
                "Recovered corrupted asset id",
                extra={
                    "record_id": context.record.record_id,
                    "asset_id": recovered,
                    "invalid_value": corrupt,
                },
            )
        return recovered

    def _recover_identifier(
        self, context: ExtractionContext, entry: Mapping[str, Any], index: int
    ) -> Optional[str]:
        if index < len(context.assets):
            return context.assets[index].asset_id
        entry_name = self._entry_name(entry)
        for asset in context.assets:
            if names_match(asset.name, entry_name) or names_match(asset.nickname, entry_name):
                return asset.asset_id
        return None

    @staticmethod
    def _entry_name(entry: Mapping[str, Any]) -> Optional[str]:
        for name in ENTRY_NAME_FIELDS:
            text = clean_text(entry.get(name))
            if text:
                return text
        return None


class EquipmentListExtractor(_EntryListExtractor):
    source = ReadingSource.equipment_list
    confidence = 1.0
    field_name = "equipment_list"


class TemperatureArrayExtractor(_EntryListExtractor):
    source = ReadingSource.temperature_array
    confidence = 0.9
    field_name = "temperatures"
    time_fields = ("recorded_at", "time")


class KeyedFieldExtractor(Extractor):
    """``temp_<assetId>`` keys written by the generic completion form."""

    source = ReadingSource.keyed_field
    confidence = 0.8

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        completion = context.completion_data
        merged = context.merged_data
        readings: List[AssetReading] = []
        seen: set[str] = set()

        for asset_id in context.asset_ids:
            key = f"{KEYED_PREFIX}{asset_id}"
            raw = completion.get(key) if key in completion else merged.get(key)
            value = parse_temperature(raw)
            if value is None:
                continue
            seen.add(asset_id)
            readings.append(context.build_reading(asset_id, value, self.source))

        for data in (completion, merged):
            for key, asset_id in self._keyed_ids(data):
                if asset_id in seen:
                    continue
                value = parse_temperature(data[key])
                if value is None:
                    continue
                seen.add(asset_id)
                readings.append(context.build_reading(asset_id, value, self.source))

        return self._result(readings)

    @staticmethod
    def _keyed_ids(data: Mapping[str, Any]) -> Iterator[Tuple[str, str]]:
        for key in data:
            if not isinstance(key, str) or key in RESERVED_KEYS:
                continue
            if not key.startswith(KEYED_PREFIX):
                continue
            asset_id = key[len(KEYED_PREFIX):]
            if asset_id and not is_corrupt_identifier(asset_id):
                yield key, asset_id


class AssetIdKeyExtractor(Extractor):
    """Top-level keys that are exactly a configured asset id."""

    source = ReadingSource.asset_id_key
    confidence = 0.7

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        completion = context.completion_data
        readings: List[AssetReading] = []
        for asset_id in context.asset_ids:
            if asset_id in RESERVED_KEYS or asset_id not in completion:
                continue
            value = parse_temperature(completion[asset_id])
            if value is None:
                continue
            readings.append(context.build_reading(asset_id, value, self.source))
        return self._result(readings)


class TemplateFieldExtractor(Extractor):
    """A lone ``temperature`` field belonging to the template's linked asset."""

    source = ReadingSource.template_field
    confidence = 0.6

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        asset_id = context.record.template_asset_id
        raw = context.completion_data.get("temperature")
        if not asset_id or is_corrupt_identifier(asset_id) or not is_present(raw):
            return EMPTY_RESULT
        value = parse_temperature(raw)
        if value is None:
            return EMPTY_RESULT
        return self._result([context.build_reading(asset_id, value, self.source)])


class HeuristicExtractor(Extractor):
    """Last resort: any key mentioning a configured asset's id, name or nickname."""

    source = ReadingSource.heuristic_match
    confidence = 0.3

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        data = context.merged_data
        candidates = [
            (key, key.casefold())
            for key in data
            if isinstance(key, str) and key not in RESERVED_KEYS
        ]
        readings: List[AssetReading] = []
        for asset in context.assets:
            tokens = [
                token.casefold()
                for token in (asset.asset_id, asset.name, asset.nickname)
                if token and token != UNKNOWN_EQUIPMENT
            ]
            for key, folded in candidates:
                if not any(token in folded for token in tokens):
                    continue
                value = parse_temperature(data[key])
                if value is None:
                    continue
                logger.debug(
                    "Heuristic match on key %r",
                    key,
                    extra={"record_id": context.record.record_id, "asset_id": asset.asset_id},
                )
                readings.append(context.build_reading(asset.asset_id, value, self.source))
                break
        return self._result(readings)


def default_extractors() -> Tuple[Extractor, ...]:
    return (
        EquipmentListExtractor(),
        TemperatureArrayExtractor(),
        KeyedFieldExtractor(),
        AssetIdKeyExtractor(),
        TemplateFieldExtractor(),
        HeuristicExtractor(),
    )
