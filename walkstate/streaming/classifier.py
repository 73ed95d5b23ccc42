"""Streaming pedestrian-activity classifier.

Raw acceleration (g) is low-pass filtered per axis, collapsed to a magnitude,
and collected into one-second windows. The variance of each completed window
is compared against two thresholds:

    variance <  stationary_threshold                        -> STOPPED
    stationary_threshold <= variance <= slow_walk_threshold -> SLOW_WALKING
    variance >  slow_walk_threshold                         -> FAST_WALKING

There is no hysteresis. The observer is called once per completed window with
the state of that window, whether or not it differs from the previous one.

`MotionClassifier.ingest` is not re-entrant: a second call while one is still
running (from another thread, or from inside the observer) raises
`ConcurrentIngestError`.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Sequence

from walkstate.streaming.errors import ConcurrentIngestError, InvalidConfigError, NonFiniteSampleError
from walkstate.streaming.filtering import FilterState, euclidean_norm
from walkstate.streaming.protocol import AccelSample
from walkstate.streaming.windowing import MagnitudeWindow, WindowStats

logger = logging.getLogger(__name__)


class MotionState(str, Enum):
    STOPPED = "STOPPED"
    SLOW_WALKING = "SLOW_WALKING"
    FAST_WALKING = "FAST_WALKING"

    @property
    def label(self) -> str:
        return _STATE_LABELS[self]

    @property
    def is_moving(self) -> bool:
        return self is not MotionState.STOPPED


_STATE_LABELS = {
    MotionState.STOPPED: "STOPPED",
    MotionState.SLOW_WALKING: "Slow Walking",
    MotionState.FAST_WALKING: "Fast Walking",
}


class StateObserver(Protocol):
    def on_state_evaluated(self, state: MotionState) -> None: ...


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ClassifierConfig:
    filter_factor: float = 35.0
    precision: int = 3
    stationary_threshold: float = 0.013
    slow_walk_threshold: float = 0.05
    interval: float = 0.1
    window_seconds: float = 1.0
    samples_per_window: int | None = None
    strict: bool = False

    def __post_init__(self) -> None:
        if not (self.interval > 0) or not math.isfinite(self.interval):
            raise InvalidConfigError("interval must be a finite value > 0")
        if not (self.window_seconds > 0) or not math.isfinite(self.window_seconds):
            raise InvalidConfigError("window_seconds must be a finite value > 0")
        if self.precision < 0:
            raise InvalidConfigError("precision must be >= 0")
        if not math.isfinite(self.stationary_threshold) or not math.isfinite(self.slow_walk_threshold):
            raise InvalidConfigError("stationary_threshold and slow_walk_threshold must be finite")
        if self.stationary_threshold > self.slow_walk_threshold:
            raise InvalidConfigError("stationary_threshold must be <= slow_walk_threshold")

        derived = max(1, _round_half_up(self.window_seconds / self.interval))
        if self.samples_per_window is None:
            object.__setattr__(self, "samples_per_window", derived)
        elif self.samples_per_window != derived:
            raise InvalidConfigError(
                f"samples_per_window={self.samples_per_window} does not match "
                f"window_seconds/interval ({self.window_seconds}/{self.interval} -> {derived})"
            )

    @classmethod
    def from_sample_rate(cls, sample_rate_hz: float, **overrides: Any) -> "ClassifierConfig":
        if not (sample_rate_hz > 0):
            raise InvalidConfigError("sample_rate_hz must be > 0")
        return cls(interval=1.0 / sample_rate_hz, **overrides)


def classify_variance(variance: float, *, stationary_threshold: float, slow_walk_threshold: float) -> MotionState | None:
    """Map a window variance to a state; None when the variance is NaN."""

    if variance < stationary_threshold:
        return MotionState.STOPPED
    if stationary_threshold <= variance <= slow_walk_threshold:
        return MotionState.SLOW_WALKING
    if variance > slow_walk_threshold:
        return MotionState.FAST_WALKING
    return None


@dataclass(frozen=True)
class WindowEvaluation:
    index: int
    state: MotionState | None
    stats: WindowStats
    labels: list[str] = field(default_factory=list)


class MotionClassifier:
    def __init__(self, config: ClassifierConfig | None = None, *, observer: StateObserver | None = None):
        self.config = config if config is not None else ClassifierConfig()
        self.observer = observer

        assert self.config.samples_per_window is not None
        self._filter = FilterState()
        self._window = MagnitudeWindow(
            interval=self.config.interval,
            samples_per_window=self.config.samples_per_window,
            precision=self.config.precision,
        )
        self._window_labels: list[str] = []
        self._busy = threading.Lock()

        self.state: MotionState | None = None
        self.previous_state: MotionState | None = None
        self.last_evaluation: WindowEvaluation | None = None
        self.windows_completed = 0

    @property
    def filter_state(self) -> FilterState:
        return self._filter

    @property
    def pending_samples(self) -> int:
        return len(self._window)

    def reset(self) -> None:
        self._acquire()
        try:
            self._filter.reset()
            self._window.clear()
            self._window_labels = []
            self.state = None
            self.previous_state = None
            self.last_evaluation = None
            self.windows_completed = 0
        finally:
            self._busy.release()

    def ingest(self, sample: AccelSample | Sequence[float]) -> None:
        if not isinstance(sample, AccelSample):
            sample = AccelSample.from_xyz(sample)

        if self.config.strict and not sample.is_finite():
            raise NonFiniteSampleError(f"Non-finite acceleration sample: ({sample.x}, {sample.y}, {sample.z})")

        self._acquire()
        try:
            self._ingest(sample)
        finally:
            self._busy.release()

    def _acquire(self) -> None:
        # Held for the whole call, observer included, so a callback that feeds
        # samples back in fails here too.
        if not self._busy.acquire(blocking=False):
            raise ConcurrentIngestError("MotionClassifier is busy; ingest calls must be serialized")

    def _ingest(self, sample: AccelSample) -> None:
        cfg = self.config
        fx, fy, fz = self._filter.update(sample.x, sample.y, sample.z, factor=cfg.filter_factor, precision=cfg.precision)
        magnitude = euclidean_norm(fx, fy, fz, cfg.precision)

        if sample.label is not None:
            self._window_labels.append(sample.label)

        stats = self._window.append(magnitude)
        if stats is None:
            return

        evaluation = self._evaluate(stats)
        if evaluation.state is not None and self.observer is not None:
            self.observer.on_state_evaluated(evaluation.state)

    def _evaluate(self, stats: WindowStats) -> WindowEvaluation:
        cfg = self.config
        state = classify_variance(
            stats.variance,
            stationary_threshold=cfg.stationary_threshold,
            slow_walk_threshold=cfg.slow_walk_threshold,
        )
        evaluation = WindowEvaluation(
            index=self.windows_completed,
            state=state,
            stats=stats,
            labels=self._window_labels,
        )
        self._window_labels = []
        self.windows_completed += 1
        self.last_evaluation = evaluation

        if state is None:
            logger.warning(
                "Window %d has non-finite variance (%s); upstream samples are not finite, no state emitted",
                evaluation.index,
                stats.variance,
            )
            return evaluation

        self.previous_state = self.state
        self.state = state
        logger.debug("Window %d: mean=%.3f variance=%.3f -> %s", evaluation.index, stats.mean, stats.variance, state.label)
        return evaluation
