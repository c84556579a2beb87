from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from app.schemas import TemperatureLogRecord
from models.readings import LogQuery
from services.parsing import parse_timestamp
from settings import get_settings


class MockTemperatureLogTable:
    """In-memory stand-in for the standalone temperature log store."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Dict[str, TemperatureLogRecord] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_item(self, item: TemperatureLogRecord) -> None:
        with self._lock:
            self._items[item.id] = item.model_copy(deep=True)
            self._persist()

    def get_item(self, key: str) -> Optional[TemperatureLogRecord]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self) -> list[TemperatureLogRecord]:
        """Return deep copies of all stored log rows."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def query(self, query: LogQuery) -> list[TemperatureLogRecord]:
        """Rows by one recorder inside the window, most recent first."""

        start = parse_timestamp(query.window_start)
        end = parse_timestamp(query.window_end)
        with self._lock:
            matches = [
                item.model_copy(deep=True)
                for item in self._items.values()
                if item.recorded_by == query.recorded_by
                and (query.site_id is None or item.site_id == query.site_id)
                and start <= parse_timestamp(item.recorded_at) <= end
            ]
        matches.sort(key=lambda item: parse_timestamp(item.recorded_at), reverse=True)
        return matches[: query.limit]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            log_id: item.model_dump(mode="json") for log_id, item in self._items.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for log_id, payload in data.items():
            self._items[log_id] = TemperatureLogRecord.model_validate(payload)


@lru_cache
def build_default_log_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockTemperatureLogTable:
    settings = get_settings()
    table_name = settings.log_table_name if name is None else name
    table_path = settings.log_table_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return MockTemperatureLogTable(name=table_name, persistence_path=persistence)
