from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.schemas import TemperatureLogRecord
from datastore.log_table import MockTemperatureLogTable
from models.readings import LogQuery
from services.log_fetcher import HttpLogFetcher, TableLogFetcher

CENTRE = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

QUERY = LogQuery(
    recorded_by="user-1",
    site_id="site-1",
    window_start=CENTRE - timedelta(minutes=5),
    window_end=CENTRE + timedelta(minutes=5),
    limit=2,
)


def _fetcher(handler) -> HttpLogFetcher:
    client = httpx.Client(base_url="http://logs.test", transport=httpx.MockTransport(handler))
    return HttpLogFetcher("http://logs.test", client=client)


def test_http_fetcher_sends_window_and_parses_rows() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json=[
                {"asset_id": "a1", "reading": 0, "recorded_at": "2024-01-01T12:01:00Z", "asset_name": "Fridge"},
                {"asset_id": "a2", "reading": "not a number", "recorded_at": "2024-01-01T12:00:00Z"},
                {"asset_id": "a3", "reading": -19.5, "recorded_at": "2024-01-01T11:59:00Z"},
                {"asset_id": "a4", "reading": 2, "recorded_at": "2024-01-01T11:58:00Z"},
            ],
        )

    fetcher = _fetcher(handler)
    try:
        entries = fetcher(QUERY)
    finally:
        fetcher.close()

    assert seen["path"] == "/temperature-logs"
    assert seen["params"]["recorded_by"] == "user-1"
    assert seen["params"]["site_id"] == "site-1"
    assert seen["params"]["limit"] == "2"
    assert seen["params"]["start"] == QUERY.window_start.isoformat()
    assert [(entry.asset_id, entry.reading) for entry in entries] == [("a1", 0.0), ("a3", -19.5)]
    assert entries[0].asset_name == "Fridge"
    assert entries[0].recorded_at == CENTRE + timedelta(minutes=1)


def test_http_fetcher_raises_on_error_status() -> None:
    fetcher = _fetcher(lambda request: httpx.Response(503, json={"detail": "down"}))

    with pytest.raises(httpx.HTTPStatusError):
        fetcher(QUERY)


def test_http_fetcher_rejects_non_list_payload() -> None:
    fetcher = _fetcher(lambda request: httpx.Response(200, json={"rows": []}))

    with pytest.raises(ValueError):
        fetcher(QUERY)


def test_table_fetcher_converts_stored_rows() -> None:
    table = MockTemperatureLogTable(name="temperature_logs")
    table.put_item(
        TemperatureLogRecord(
            asset_id="a1",
            reading=-18.0,
            recorded_at=CENTRE,
            recorded_by="user-1",
            site_id="site-1",
            asset_name="Chest Freezer",
        )
    )
    table.put_item(
        TemperatureLogRecord(
            asset_id="a2", reading=4.0, recorded_at=CENTRE, recorded_by="user-2", site_id="site-1"
        )
    )

    entries = TableLogFetcher(table)(QUERY)

    assert len(entries) == 1
    assert entries[0].asset_id == "a1"
    assert entries[0].reading == -18.0
    assert entries[0].asset_name == "Chest Freezer"


def test_http_fetcher_drops_rows_with_corrupt_asset_ids() -> None:
    rows = [
        {"asset_id": "[object Object]", "reading": 4, "recorded_at": "2024-01-01T12:01:00Z"},
        {"asset_id": {"id": "a1"}, "reading": 3, "recorded_at": "2024-01-01T12:00:00Z"},
    ]
    fetcher = _fetcher(lambda request: httpx.Response(200, json=rows))

    entries = fetcher(QUERY)

    assert [entry.asset_id for entry in entries] == ["a1"]
