"""Normalisation helpers shared by every extraction strategy."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

# Leading number of a form value; trailing units such as "°C" are ignored.
_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

_CORRUPT_MARKER = "[object"

_NESTED_ID_FIELDS = ("id", "value", "asset_id", "assetId")


def parse_temperature(raw: Any) -> Optional[float]:
    """Return a finite float for numeric or numeric-string input, else ``None``.

    ``0`` and ``"0"`` are readings, not absences.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return None
    elif isinstance(raw, str):
        match = _NUMBER_PREFIX.match(raw.strip())
        if match is None:
            return None
        try:
            value = float(match.group(0))
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value):
        return None
    # Normalise -0.0 so "-0" compares and renders like "0".
    return value + 0.0


def is_present(raw: Any) -> bool:
    return raw is not None and raw != ""


def first_present(mapping: Mapping[str, Any], fields: Iterable[str]) -> Any:
    """First value among ``fields`` that is neither ``None`` nor ``""``."""
    for name in fields:
        value = mapping.get(name)
        if is_present(value):
            return value
    return None


def is_corrupt_identifier(value: Any) -> bool:
    """True for an object reference that was stringified instead of unpacked."""
    return isinstance(value, str) and _CORRUPT_MARKER in value


def coerce_identifier(raw: Any) -> Optional[str]:
    """Extract a usable asset identifier without ever stringifying an object."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        candidate = raw.strip()
        if not candidate or is_corrupt_identifier(candidate):
            return None
        return candidate
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if not math.isfinite(raw):
            return None
        return str(int(raw)) if raw.is_integer() else str(raw)
    if isinstance(raw, Mapping):
        for name in _NESTED_ID_FIELDS:
            nested = raw.get(name)
            if isinstance(nested, Mapping):
                continue
            identifier = coerce_identifier(nested)
            if identifier:
                return identifier
    return None


def clean_text(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    candidate = raw.strip()
    return candidate or None


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime, else ``None``."""
    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, str):
        candidate = raw.strip()
        if not candidate:
            return None
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
