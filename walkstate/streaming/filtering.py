"""Per-sample signal stages: rounding policy, low-pass filter and Euclidean norm.

Every arithmetic step that feeds the classifier is rounded to a fixed number
of decimal digits so that results are reproducible across platforms at that
precision. Rounding is half away from zero (C `round()`), not Python's
round-half-to-even.

Non-finite inputs are never coerced: NaN and infinities flow through every
function here unchanged, which makes them an upstream data-quality problem
visible at window evaluation time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


def round_to(value: float, precision: int) -> float:
    if not math.isfinite(value):
        return value
    divisor = 10.0**precision
    scaled = value * divisor
    a = abs(scaled)
    r = math.floor(a)
    if a - r >= 0.5:
        r += 1
    return math.copysign(r, scaled) / divisor


def low_pass_filter(raw: float, previous: float, factor: float, precision: int | None = None) -> float:
    """One-pole IIR smoothing: `factor` percent of weight stays on `previous`.

    `factor` is not range-checked; values outside [0, 100] extrapolate.
    """

    value = (previous * factor / 100) + (raw * (1 - factor / 100))
    if precision is None:
        return value
    return round_to(value, precision)


def euclidean_norm(x: float, y: float, z: float, precision: int) -> float:
    x_sq = round_to(x * x, precision)
    y_sq = round_to(y * y, precision)
    z_sq = round_to(z * z, precision)
    return round_to(math.sqrt(x_sq + y_sq + z_sq), precision)


@dataclass
class FilterState:
    """Previous filtered value per axis.

    Until `primed` is set, the filter runs against zero on every axis.
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    primed: bool = False

    def reset(self) -> None:
        self.x = 0.0
        self.y = 0.0
        self.z = 0.0
        self.primed = False

    def update(self, raw_x: float, raw_y: float, raw_z: float, *, factor: float, precision: int) -> tuple[float, float, float]:
        if self.primed:
            prev_x, prev_y, prev_z = self.x, self.y, self.z
        else:
            prev_x = prev_y = prev_z = 0.0
            self.primed = True

        self.x = low_pass_filter(round_to(raw_x, precision), prev_x, factor, precision)
        self.y = low_pass_filter(round_to(raw_y, precision), prev_y, factor, precision)
        self.z = low_pass_filter(round_to(raw_z, precision), prev_z, factor, precision)
        return self.x, self.y, self.z


def filter_stream(xyz: np.ndarray, *, factor: float, precision: int) -> np.ndarray:
    """Filter a whole (N, 3) recording; returns (N, 4) rows of filtered x/y/z plus magnitude."""

    xyz = np.asarray(xyz, dtype=np.float64)
    if xyz.ndim != 2 or xyz.shape[1] != 3:
        raise ValueError(f"Expected array shape (N, 3), got {xyz.shape}")

    state = FilterState()
    out = np.empty((xyz.shape[0], 4), dtype=np.float64)
    for i, (rx, ry, rz) in enumerate(xyz.tolist()):
        fx, fy, fz = state.update(rx, ry, rz, factor=factor, precision=precision)
        out[i] = (fx, fy, fz, euclidean_norm(fx, fy, fz, precision))
    return out
