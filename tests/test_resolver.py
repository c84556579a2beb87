"""Tests for the extraction cascade and the external log fallback."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List

from models.readings import (
    AssetRef,
    CompletionRecord,
    LogEntry,
    LogQuery,
    ReadingSource,
    TemperatureRange,
)
from services.resolver import SourceResolver, build_log_query

COMPLETED_AT = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

ASSETS = (
    AssetRef(asset_id="a1", name="Walk-in Fridge", range=TemperatureRange(min=1, max=5)),
    AssetRef(asset_id="f1", name="Chest Freezer", range=TemperatureRange(min=-18, max=-20)),
)


def _record(completion_data=None, **fields) -> CompletionRecord:
    defaults = {
        "record_id": "rec-1",
        "completed_at": COMPLETED_AT,
        "completed_by": "user-1",
        "site_id": "site-1",
    }
    defaults.update(fields)
    return CompletionRecord(completion_data=completion_data or {}, **defaults)


class RecordingFetcher:
    def __init__(self, entries: List[LogEntry]) -> None:
        self.entries = entries
        self.queries: List[LogQuery] = []

    def __call__(self, query: LogQuery) -> List[LogEntry]:
        self.queries.append(query)
        return list(self.entries)


def test_equipment_list_beats_keyed_fields() -> None:
    record = _record(
        {
            "equipment_list": [{"asset_id": "a1", "temperature": 3}],
            "temp_a1": "9",
        }
    )

    readings = SourceResolver().resolve(record, ASSETS[:1])

    assert len(readings) == 1
    assert readings[0].value == 3.0
    assert readings[0].source is ReadingSource.equipment_list


def test_cascade_does_not_merge_lower_priority_sources() -> None:
    record = _record(
        {
            "equipment_list": [{"asset_id": "a1", "temperature": 3}],
            "temp_f1": "-19",
        }
    )

    readings = SourceResolver().resolve(record, ASSETS)

    assert [reading.asset_id for reading in readings] == ["a1", "f1"]
    assert readings[1].value is None
    assert readings[1].source is None
    assert readings[1].equipment_name == "Chest Freezer"


def test_unconfigured_readings_follow_configured_assets() -> None:
    record = _record({"temp_x9": "4", "temp_f1": "-19"})

    readings = SourceResolver().resolve(record, ASSETS)

    assert [reading.asset_id for reading in readings] == ["a1", "f1", "x9"]
    assert [reading.value for reading in readings] == [None, -19.0, 4.0]


def test_external_logs_fill_missing_readings() -> None:
    fetcher = RecordingFetcher(
        [
            LogEntry(asset_id="a1", reading=2.5, recorded_at=COMPLETED_AT - timedelta(minutes=3)),
            LogEntry(asset_id="a1", reading=7.0, recorded_at=COMPLETED_AT + timedelta(minutes=1)),
            LogEntry(
                asset_id="other",
                asset_name="chest freezer",
                reading=-19.0,
                recorded_at=COMPLETED_AT,
            ),
        ]
    )

    readings = SourceResolver().resolve(_record(), ASSETS, log_fetcher=fetcher)

    (query,) = fetcher.queries
    assert query.recorded_by == "user-1"
    assert query.site_id == "site-1"
    assert query.window_start == COMPLETED_AT - timedelta(minutes=5)
    assert query.window_end == COMPLETED_AT + timedelta(minutes=5)
    assert query.limit == 10

    # Most recent matching row wins for a1; f1 matches by name.
    assert [(reading.asset_id, reading.value) for reading in readings] == [
        ("a1", 7.0),
        ("f1", -19.0),
    ]
    assert all(reading.source is ReadingSource.external_log for reading in readings)


def test_external_logs_skipped_when_any_reading_present() -> None:
    fetcher = RecordingFetcher([LogEntry(asset_id="f1", reading=-19.0, recorded_at=COMPLETED_AT)])
    record = _record({"temp_a1": "0"})

    readings = SourceResolver().resolve(record, ASSETS, log_fetcher=fetcher)

    assert fetcher.queries == []
    assert readings[0].value == 0.0
    assert readings[1].value is None


def test_external_logs_capped_to_limit() -> None:
    entries = [
        LogEntry(
            asset_id=f"asset-{index}",
            reading=float(index),
            recorded_at=COMPLETED_AT - timedelta(seconds=index),
        )
        for index in range(15)
    ]

    readings = SourceResolver(log_limit=10).resolve(
        _record(), log_fetcher=RecordingFetcher(entries)
    )

    assert len(readings) == 10
    assert readings[0].asset_id == "asset-0"
    assert all(reading.source is ReadingSource.external_log for reading in readings)


def test_external_lookup_failure_is_logged_and_ignored(caplog) -> None:
    def failing_fetcher(query: LogQuery) -> List[LogEntry]:
        raise ConnectionError("log store unavailable")

    with caplog.at_level(logging.WARNING, logger="services.resolver"):
        readings = SourceResolver().resolve(_record(), ASSETS, log_fetcher=failing_fetcher)

    assert [reading.value for reading in readings] == [None, None]
    assert "External log lookup failed" in caplog.text


def test_build_log_query_requires_recorder_and_time() -> None:
    assert build_log_query(_record(completed_by=None)) is None
    assert build_log_query(_record(completed_at=None)) is None

    query = build_log_query(_record(), window=timedelta(minutes=2), limit=3)

    assert query is not None
    assert query.window_end - query.window_start == timedelta(minutes=4)
    assert query.limit == 3


def test_corrupt_log_rows_never_become_readings() -> None:
    fetcher = RecordingFetcher(
        [
            LogEntry(asset_id="[object Object]", reading=4.0, recorded_at=COMPLETED_AT),
            LogEntry(asset_id="a1", reading=3.0, recorded_at=COMPLETED_AT - timedelta(minutes=1)),
        ]
    )

    readings = SourceResolver().resolve(_record(), log_fetcher=fetcher)

    assert [(reading.asset_id, reading.value) for reading in readings] == [("a1", 3.0)]


def test_configured_asset_with_corrupt_id_is_ignored() -> None:
    record = _record({"[object Object]": 4, "temp_a1": "3"})
    assets = (AssetRef(asset_id="[object Object]"), ASSETS[0])

    readings = SourceResolver().resolve(record, assets)

    assert [reading.asset_id for reading in readings] == ["a1"]
    assert readings[0].value == 3.0
