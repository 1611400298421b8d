"""Reference bands for army totals and size-relative percentage bars."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from ..config import THRESHOLDS_PATH

logger = logging.getLogger(__name__)

BASELINE_GAME_SIZE = 2000
AXES = ("offense", "defense", "tactical")


@dataclass(frozen=True)
class Band:
    low: float
    high: float

    def scaled(self, ratio: float) -> "Band":
        return Band(low=self.low * ratio, high=self.high * ratio)


BASE_THRESHOLDS: dict[str, Band] = {
    "offense": Band(300, 600),
    "defense": Band(400, 800),
    "tactical": Band(250, 500),
}

# Rough number of units in a list; a single unit's bar is measured
# against its share of the high band.
UNITS_PER_LIST = 8

BAND_LABELS = {"low": "Low", "medium": "Medium", "high": "High"}


@lru_cache()
def threshold_config() -> dict[str, Any]:
    try:
        with THRESHOLDS_PATH.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError):
        logger.warning("Ignoring unreadable thresholds file %s", THRESHOLDS_PATH)
        return {}
    return data if isinstance(data, dict) else {}


def _apply_threshold_overrides() -> None:
    global UNITS_PER_LIST
    config = threshold_config()
    overrides = config.get("thresholds")
    if isinstance(overrides, dict):
        for axis, values in overrides.items():
            if axis not in BASE_THRESHOLDS or not isinstance(values, dict):
                continue
            current = BASE_THRESHOLDS[axis]
            try:
                low = float(values.get("low", current.low))
                high = float(values.get("high", current.high))
            except (TypeError, ValueError):
                continue
            if 0 < low <= high:
                BASE_THRESHOLDS[axis] = Band(low, high)
    units_per_list = config.get("units_per_list")
    if isinstance(units_per_list, int) and units_per_list > 0:
        UNITS_PER_LIST = units_per_list


_apply_threshold_overrides()


def size_ratio(game_size: int | float | None) -> float:
    try:
        size = float(game_size) if game_size is not None else 0.0
    except (TypeError, ValueError):
        size = 0.0
    if size <= 0:
        return 1.0
    return size / BASELINE_GAME_SIZE


def scaled_band(axis: str, game_size: int | float | None) -> Band:
    return BASE_THRESHOLDS[axis].scaled(size_ratio(game_size))


def unit_percentage(score: float, axis: str, game_size: int | float | None) -> float:
    share = BASE_THRESHOLDS[axis].high * size_ratio(game_size) / UNITS_PER_LIST
    if share <= 0:
        return 0.0
    return max(min(score / share * 100.0, 100.0), 0.0)


def band_rating(total: float, axis: str, game_size: int | float | None) -> str:
    band = scaled_band(axis, game_size)
    if total < band.low:
        return "low"
    if total > band.high:
        return "high"
    return "medium"


def band_text(axis: str, game_size: int | float | None) -> str:
    band = scaled_band(axis, game_size)
    low = f"{band.low:.0f}"
    high = f"{band.high:.0f}"
    return "\n".join(
        [
            f"{BAND_LABELS['low']}: < {low}",
            f"{BAND_LABELS['medium']}: {low} - {high}",
            f"{BAND_LABELS['high']}: > {high}",
        ]
    )


def army_bands(totals: dict[str, float], game_size: int | float | None) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    for axis in AXES:
        band = scaled_band(axis, game_size)
        total = float(totals.get(axis) or 0.0)
        rating = band_rating(total, axis, game_size)
        entries.append(
            {
                "axis": axis,
                "total": total,
                "low": band.low,
                "high": band.high,
                "rating": rating,
                "rating_label": BAND_LABELS[rating],
                "text": band_text(axis, game_size),
            }
        )
    return entries
