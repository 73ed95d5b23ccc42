from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from walkstate.streaming.errors import InvalidConfigError
from walkstate.streaming.filtering import round_to


@dataclass(frozen=True)
class WindowStats:
    mean: float
    variance: float
    n_samples: int


def window_variance(values: Sequence[float], precision: int, *, total: float | None = None) -> WindowStats:
    """Population variance of `values` with a rounding step after every operation.

    `total` is the running sum kept by the caller; it is recomputed left to right
    when omitted.
    """

    n = len(values)
    if n == 0:
        raise ValueError("Cannot compute the variance of an empty window")

    if total is None:
        total = 0.0
        for v in values:
            total += v

    mean = round_to(total / n, precision)
    squared = 0.0
    for v in values:
        squared += round_to((v - mean) * (v - mean), precision)
    squared = round_to(squared, precision)

    return WindowStats(mean=mean, variance=round_to(squared / n, precision), n_samples=n)


class MagnitudeWindow:
    """Tumbling window of magnitudes, closed by an elapsed-time accumulator.

    Each `append` advances the accumulator by the nominal sampling interval. The
    window closes once the accumulator reaches `(samples_per_window - 0.5) * interval`;
    the half-interval of slack keeps float drift in the accumulator from adding or
    dropping a sample.
    """

    def __init__(self, *, interval: float, samples_per_window: int, precision: int):
        if interval <= 0:
            raise InvalidConfigError("interval must be > 0")
        if samples_per_window <= 0:
            raise InvalidConfigError("samples_per_window must be > 0")
        if precision < 0:
            raise InvalidConfigError("precision must be >= 0")

        self.interval = float(interval)
        self.samples_per_window = int(samples_per_window)
        self.precision = int(precision)
        self.completion_threshold = (self.samples_per_window - 0.5) * self.interval

        self._values: list[float] = []
        self._total = 0.0
        self._elapsed = 0.0

    def __len__(self) -> int:
        return len(self._values)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def total(self) -> float:
        return self._total

    def values(self) -> list[float]:
        return list(self._values)

    def clear(self) -> None:
        self._values = []
        self._total = 0.0
        self._elapsed = 0.0

    def append(self, magnitude: float) -> WindowStats | None:
        self._elapsed += self.interval
        self._values.append(magnitude)
        self._total += magnitude

        if self._elapsed < self.completion_threshold:
            return None

        stats = window_variance(self._values, self.precision, total=self._total)
        self.clear()
        return stats
