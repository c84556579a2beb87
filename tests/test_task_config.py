from __future__ import annotations

from models.readings import UNKNOWN_EQUIPMENT, RangeKind, TemperatureRange
from services.task_config import assets_from_task_data, range_map


def test_repeatable_field_wins_over_equipment_config() -> None:
    task_data = {
        "fridge_checks": [{"value": "a1", "label": "Walk-in", "temp_min": 1, "temp_max": 5}],
        "equipment_config": [{"asset_id": "b2", "name": "Ignored"}],
    }

    assets = assets_from_task_data(task_data, repeatable_field_name="fridge_checks")

    assert [asset.asset_id for asset in assets] == ["a1"]
    assert assets[0].name == "Walk-in"
    assert assets[0].range == TemperatureRange(min=1.0, max=5.0)


def test_equipment_config_reads_nested_identifier_objects() -> None:
    task_data = {
        "equipment_config": [
            {
                "id": {"id": "f1", "name": "Freezer", "nickname": "Back", "temp_min": -18, "temp_max": -20},
            },
            {"asset_id": "f1", "name": "Duplicate"},
            {"name": "No identifier"},
        ]
    }

    assets = assets_from_task_data(task_data)

    assert len(assets) == 1
    freezer = assets[0]
    assert freezer.asset_id == "f1"
    assert freezer.display_name == "Freezer | Back"
    assert freezer.range.kind is RangeKind.inverted


def test_temperatures_list_and_directory_names() -> None:
    task_data = {"temperatures": [{"asset_id": "a1"}, "a2", "[object Object]"]}

    assets = assets_from_task_data(task_data, directory={"a2": "Prep Fridge"})

    assert [asset.asset_id for asset in assets] == ["a1", "a2"]
    assert assets[0].name == UNKNOWN_EQUIPMENT
    assert assets[1].name == "Prep Fridge"
    assert assets[0].range.kind is RangeKind.unbounded


def test_missing_configuration_returns_empty_list() -> None:
    assert assets_from_task_data({}) == []
    assert assets_from_task_data({"equipment_config": "not-a-list"}) == []


def test_range_map_indexes_by_asset_id() -> None:
    assets = assets_from_task_data(
        {"equipment_config": [{"asset_id": "a1", "temp_min": "1", "temp_max": "4"}]}
    )

    assert range_map(assets) == {"a1": TemperatureRange(min=1.0, max=4.0)}
