"""Adapters that answer external temperature log queries."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from app.schemas import TemperatureLogRecord
from datastore.log_table import MockTemperatureLogTable, build_default_log_table
from models.readings import LogEntry, LogQuery
from services.parsing import clean_text, coerce_identifier, parse_temperature, parse_timestamp
from settings import get_settings

logger = logging.getLogger(__name__)


def _entry_from_payload(payload: Mapping[str, Any]) -> Optional[LogEntry]:
    asset_id = coerce_identifier(payload.get("asset_id"))
    reading = parse_temperature(payload.get("reading"))
    recorded_at = parse_timestamp(payload.get("recorded_at"))
    if asset_id is None or reading is None or recorded_at is None:
        return None
    return LogEntry(
        asset_id=asset_id,
        reading=reading,
        recorded_at=recorded_at,
        status=clean_text(payload.get("status")),
        asset_name=clean_text(payload.get("asset_name")),
    )


def entries_from_records(records: Iterable[TemperatureLogRecord]) -> List[LogEntry]:
    entries: List[LogEntry] = []
    for record in records:
        entry = _entry_from_payload(record.model_dump())
        if entry is not None:
            entries.append(entry)
    return entries


class TableLogFetcher:
    """Serves log queries from an in-process table."""

    def __init__(self, table: MockTemperatureLogTable) -> None:
        self.table = table

    def __call__(self, query: LogQuery) -> List[LogEntry]:
        return entries_from_records(self.table.query(query))


class HttpLogFetcher:
    """Queries a remote ``/temperature-logs`` endpoint; one attempt, no retry."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __call__(self, query: LogQuery) -> List[LogEntry]:
        params: Dict[str, Any] = {
            "recorded_by": query.recorded_by,
            "start": query.window_start.isoformat(),
            "end": query.window_end.isoformat(),
            "limit": query.limit,
        }
        if query.site_id:
            params["site_id"] = query.site_id

        response = self._client.get("/temperature-logs", params=params)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError("Unexpected temperature log payload.")

        entries: List[LogEntry] = []
        for item in payload:
            entry = _entry_from_payload(item) if isinstance(item, Mapping) else None
            if entry is None:
                logger.debug("Ignoring malformed temperature log row")
                continue
            entries.append(entry)
        return entries[: query.limit]


def build_default_log_fetcher() -> TableLogFetcher | HttpLogFetcher:
    settings = get_settings()
    if settings.log_base_url:
        return HttpLogFetcher(settings.log_base_url)
    return TableLogFetcher(build_default_log_table())
