"""Anomaly detection over query results shaped as time series.

Accepted shapes:
  (time, value)          : one series
  (series, time, value)  : one series per distinct first column
"""

from __future__ import annotations

import statistics
from collections.abc import Callable, Sequence
from typing import Any

AnomalyDetector = Callable[[list[float]], bool]


class AnomalyDetectionError(ValueError):
    """Raised by a detector when a series cannot be judged."""


class StdDevDetector:
    """Flags the latest point when it sits more than ``threshold`` stdevs from the rest."""

    def __init__(self, threshold: float = 3.0, min_points: int = 8) -> None:
        self.threshold = threshold
        self.min_points = min_points

    def __call__(self, values: list[float]) -> bool:
        if len(values) < self.min_points:
            raise AnomalyDetectionError(
                f"Not enough data ({len(values)} points, need {self.min_points})"
            )
        history, latest = values[:-1], values[-1]
        mean = statistics.fmean(history)
        stdev = statistics.pstdev(history)
        if stdev == 0:
            return latest != mean
        return abs(latest - mean) / stdev > self.threshold


def _series(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> dict[Any, list[Sequence[Any]]] | None:
    if len(columns) == 2:
        return {None: list(rows)}
    if len(columns) == 3:
        grouped: dict[Any, list[Sequence[Any]]] = {}
        for r in rows:
            grouped.setdefault(r[0], []).append(r[1:])
        return grouped
    return None


def detect_anomaly(
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    detector: AnomalyDetector,
) -> tuple[bool | None, str | None]:
    """Run ``detector`` on each series. Returns ``(verdict, message)``."""
    if not rows:
        return None, "No data"

    series = _series(columns, rows)
    if series is None:
        return None, "Bad format"

    for name, points in series.items():
        try:
            ordered = sorted(points, key=lambda p: p[0])
            values = [float(p[1]) for p in ordered]
        except (TypeError, ValueError, IndexError) as e:
            return None, f"Bad format: {e}"

        try:
            anomalous = detector(values)
        except AnomalyDetectionError as e:
            return None, str(e)

        if anomalous:
            return True, (f"Anomaly detected in {name}" if name is not None else None)

    return False, None
