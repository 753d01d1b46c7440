from __future__ import annotations

import math

MINUTES_IN_DAY = 24 * 60


def clamp_minutes(value: float) -> float:
    return max(0.0, min(float(MINUTES_IN_DAY), value))


def round_half_up(value: float) -> int:
    # Halves round towards +infinity: 2.5 -> 3, -2.5 -> -2.
    return math.floor(value + 0.5)


def round_to_step(minutes: float, step: int) -> int:
    return round_half_up(minutes / step) * step
