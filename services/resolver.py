"""Reconstruct a canonical list of asset readings from a completion record."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from models.readings import (
    UNKNOWN_EQUIPMENT,
    AssetReading,
    AssetRef,
    CompletionRecord,
    LogEntry,
    LogQuery,
    ReadingSource,
)
from services.extractors import (
    EMPTY_RESULT,
    ExtractionContext,
    ExtractionResult,
    Extractor,
    default_extractors,
)
from services.parsing import is_corrupt_identifier

logger = logging.getLogger(__name__)

LogFetcher = Callable[[LogQuery], Sequence[LogEntry]]

DEFAULT_LOG_WINDOW = timedelta(minutes=5)
DEFAULT_LOG_LIMIT = 10


def build_log_query(
    record: CompletionRecord,
    window: timedelta = DEFAULT_LOG_WINDOW,
    limit: int = DEFAULT_LOG_LIMIT,
) -> Optional[LogQuery]:
    """Query for logs by the same recorder around the completion time."""
    if not record.completed_by or record.completed_at is None:
        return None
    return LogQuery(
        recorded_by=record.completed_by,
        site_id=record.site_id,
        window_start=record.completed_at - window,
        window_end=record.completed_at + window,
        limit=limit,
    )


class SourceResolver:
    """Runs the extraction cascade and the external log fallback."""

    def __init__(
        self,
        extractors: Optional[Iterable[Extractor]] = None,
        log_window: timedelta = DEFAULT_LOG_WINDOW,
        log_limit: int = DEFAULT_LOG_LIMIT,
    ) -> None:
        self.extractors = tuple(extractors) if extractors is not None else default_extractors()
        self.log_window = log_window
        self.log_limit = log_limit

    def resolve(
        self,
        record: CompletionRecord,
        assets: Sequence[AssetRef] = (),
        log_fetcher: Optional[LogFetcher] = None,
        directory: Optional[Mapping[str, str]] = None,
    ) -> List[AssetReading]:
        usable = tuple(asset for asset in assets if not is_corrupt_identifier(asset.asset_id))
        if len(usable) != len(assets):
            logger.warning(
                "Ignoring configured assets with corrupted ids",
                extra={"record_id": record.record_id},
            )
        context = ExtractionContext(record=record, assets=usable, directory=directory or {})
        result = self.select(context)
        readings = self._assemble(context, result)

        if not any(reading.has_value for reading in readings) and log_fetcher is not None:
            readings = self._merge_external(context, readings, log_fetcher)

        logger.debug(
            "Resolved completion readings",
            extra={
                "record_id": record.record_id,
                "task_id": record.task_id,
                "source": result.source,
                "reading_count": len(readings),
            },
        )
        return readings

    def select(self, context: ExtractionContext) -> ExtractionResult:
        """First strategy with a non-empty result wins; nothing is merged."""
        for extractor in self.extractors:
            result = extractor.extract(context)
            if result:
                return result
        return EMPTY_RESULT

    @staticmethod
    def _assemble(
        context: ExtractionContext, result: ExtractionResult
    ) -> List[AssetReading]:
        by_asset: Dict[str, AssetReading] = {}
        for reading in result.readings:
            if reading.asset_id is not None:
                by_asset.setdefault(reading.asset_id, reading)

        readings: List[AssetReading] = []
        for asset in context.assets:
            found = by_asset.pop(asset.asset_id, None)
            if found is None:
                found = AssetReading(
                    asset_id=asset.asset_id,
                    equipment_name=context.directory.get(asset.asset_id) or asset.name,
                    nickname=asset.nickname,
                    recorded_at=context.record.completed_at,
                )
            readings.append(found)

        readings.extend(
            reading
            for reading in result.readings
            if reading.asset_id is None or reading.asset_id in by_asset
        )
        return readings

    def _merge_external(
        self,
        context: ExtractionContext,
        readings: List[AssetReading],
        log_fetcher: LogFetcher,
    ) -> List[AssetReading]:
        query = build_log_query(context.record, self.log_window, self.log_limit)
        if query is None:
            logger.debug(
                "Skipping external log lookup without recorder or completion time",
                extra={"record_id": context.record.record_id},
            )
            return readings

        try:
            entries = list(log_fetcher(query))
        except Exception as exc:  # noqa: BLE001 - log source failures never block evaluation
            logger.warning(
                "External log lookup failed: %s",
                exc,
                extra={"record_id": context.record.record_id, "recorded_by": query.recorded_by},
            )
            return readings

        entries = [entry for entry in entries if not is_corrupt_identifier(entry.asset_id)]
        entries.sort(key=lambda entry: entry.recorded_at, reverse=True)
        entries = entries[: query.limit]
        if not entries:
            return readings

        if not readings:
            return self._readings_from_log(context, entries)

        used: set[int] = set()
        merged: List[AssetReading] = []
        for reading in readings:
            if reading.has_value:
                merged.append(reading)
                continue
            index = self._match_entry(reading, entries, used)
            if index is None:
                merged.append(reading)
                continue
            used.add(index)
            entry = entries[index]
            merged.append(
                replace(
                    reading,
                    value=entry.reading,
                    recorded_at=entry.recorded_at,
                    source=ReadingSource.external_log,
                )
            )
        logger.info(
            "Merged external log readings",
            extra={"record_id": context.record.record_id, "reading_count": len(used)},
        )
        return merged

    @staticmethod
    def _match_entry(
        reading: AssetReading, entries: Sequence[LogEntry], used: set[int]
    ) -> Optional[int]:
        for index, entry in enumerate(entries):
            if index not in used and reading.asset_id and entry.asset_id == reading.asset_id:
                return index
        for index, entry in enumerate(entries):
            if index in used or not entry.asset_name:
                continue
            if entry.asset_name.casefold() == reading.equipment_name.casefold():
                return index
        return None

    @staticmethod
    def _readings_from_log(
        context: ExtractionContext, entries: Sequence[LogEntry]
    ) -> List[AssetReading]:
        readings: List[AssetReading] = []
        seen: set[str] = set()
        for entry in entries:
            if entry.asset_id in seen:
                continue
            seen.add(entry.asset_id)
            readings.append(
                AssetReading(
                    asset_id=entry.asset_id,
                    equipment_name=(
                        context.directory.get(entry.asset_id)
                        or entry.asset_name
                        or UNKNOWN_EQUIPMENT
                    ),
                    value=entry.reading,
                    recorded_at=entry.recorded_at,
                    source=ReadingSource.external_log,
                )
            )
        return readings
