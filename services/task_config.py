"""Recover the per-asset configuration a task was created with."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from models.readings import UNKNOWN_EQUIPMENT, AssetRef, TemperatureRange
from services.parsing import clean_text, coerce_identifier, parse_temperature

logger = logging.getLogger(__name__)

_ITEM_ID_FIELDS = ("value", "asset_id", "id", "assetId")
_ITEM_NAME_FIELDS = ("label", "name", "asset_name", "equipment")


def _nested(item: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = item.get(key)
    return value if isinstance(value, Mapping) else {}


def _lookup(item: Mapping[str, Any], key: str) -> Any:
    """Read ``key`` from the item, falling back to the object nested under ``id``."""
    value = item.get(key)
    if value is None:
        value = _nested(item, "id").get(key)
    return value


def _item_identifier(item: Mapping[str, Any]) -> Optional[str]:
    for name in _ITEM_ID_FIELDS:
        identifier = coerce_identifier(item.get(name))
        if identifier:
            return identifier
    return None


def _item_name(item: Mapping[str, Any]) -> Optional[str]:
    for name in _ITEM_NAME_FIELDS:
        text = clean_text(_lookup(item, name))
        if text:
            return text
    return None


def _asset_from_item(
    item: Any, directory: Mapping[str, str]
) -> Optional[AssetRef]:
    if isinstance(item, str):
        identifier = coerce_identifier(item)
        if not identifier:
            return None
        return AssetRef(asset_id=identifier, name=directory.get(identifier, UNKNOWN_EQUIPMENT))
    if not isinstance(item, Mapping):
        return None

    identifier = _item_identifier(item)
    if not identifier:
        logger.debug("Skipping configured asset without a usable identifier")
        return None

    name = directory.get(identifier) or _item_name(item) or UNKNOWN_EQUIPMENT
    return AssetRef(
        asset_id=identifier,
        name=name,
        nickname=clean_text(_lookup(item, "nickname")),
        range=TemperatureRange(
            min=parse_temperature(_lookup(item, "temp_min")),
            max=parse_temperature(_lookup(item, "temp_max")),
        ),
    )


def _assets_from_list(raw: Any, directory: Mapping[str, str]) -> List[AssetRef]:
    if not isinstance(raw, list):
        return []
    assets: List[AssetRef] = []
    seen: set[str] = set()
    for item in raw:
        asset = _asset_from_item(item, directory)
        if asset is None or asset.asset_id in seen:
            continue
        seen.add(asset.asset_id)
        assets.append(asset)
    return assets


def assets_from_task_data(
    task_data: Mapping[str, Any],
    repeatable_field_name: Optional[str] = None,
    directory: Optional[Mapping[str, str]] = None,
) -> List[AssetRef]:
    """Return configured assets in the order the task lists them.

    The template's repeatable field wins, then ``equipment_config``, then a
    ``temperatures`` list saved on the task itself.
    """
    names = directory or {}
    candidates: List[Any] = []
    if repeatable_field_name:
        candidates.append(task_data.get(repeatable_field_name))
    candidates.append(task_data.get("equipment_config"))
    candidates.append(task_data.get("temperatures"))

    for raw in candidates:
        assets = _assets_from_list(raw, names)
        if assets:
            return assets
    return []


def range_map(assets: Sequence[AssetRef]) -> Dict[str, TemperatureRange]:
    return {asset.asset_id: asset.range for asset in assets}
