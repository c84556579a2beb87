"""Classify readings against their configured temperature ranges."""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from models.readings import (
    AssetReading,
    EvaluatedReading,
    RangeKind,
    Status,
    TemperatureRange,
)


class RangeEvaluator:
    """Pure range comparison; never produces ``warning`` on its own."""

    def evaluate(self, reading: AssetReading, range_: Optional[TemperatureRange]) -> Status:
        if range_ is None or range_.kind is RangeKind.unbounded:
            return Status.ok
        if reading.value is None:
            return Status.ok
        if self.is_out_of_range(reading.value, range_):
            return Status.failed
        return Status.ok

    @staticmethod
    def is_out_of_range(value: float, range_: TemperatureRange) -> bool:
        # lower/upper already swap the bounds of an inverted (freezer) range.
        lower, upper = range_.lower, range_.upper
        if lower is not None and value < lower:
            return True
        if upper is not None and value > upper:
            return True
        return False

    def evaluate_all(
        self,
        readings: Sequence[AssetReading],
        ranges: Mapping[str, TemperatureRange],
    ) -> List[EvaluatedReading]:
        evaluated: List[EvaluatedReading] = []
        for reading in readings:
            range_ = ranges.get(reading.asset_id) if reading.asset_id else None
            evaluated.append(
                EvaluatedReading(
                    reading=reading,
                    status=self.evaluate(reading, range_),
                    range=range_,
                )
            )
        return evaluated


def describe_range(range_: Optional[TemperatureRange]) -> str:
    """Human-readable acceptable zone, coldest bound first."""
    if range_ is None or range_.min is None or range_.max is None:
        return "No range set"
    return f"{range_.lower:g}°C to {range_.upper:g}°C"
