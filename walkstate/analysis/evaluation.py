from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
from sklearn.metrics import accuracy_score, classification_report, confusion_matrix

from walkstate.streaming.classifier import ClassifierConfig, MotionState, WindowEvaluation
from walkstate.streaming.protocol import AccelSample
from walkstate.streaming.session import replay

logger = logging.getLogger(__name__)

# Row/column order of every confusion matrix produced here.
STATE_ORDER: tuple[MotionState, ...] = tuple(MotionState)


@dataclass(frozen=True)
class ClassificationMetrics:
    """Window-level scores. `confusion[i, j]` counts windows of STATE_ORDER[i] classified as STATE_ORDER[j]."""

    accuracy: float
    report: dict
    confusion: np.ndarray

    @property
    def confusion_normalized(self) -> np.ndarray:
        """Confusion rows scaled to sum to 1; states with no windows stay all zero."""

        totals = self.confusion.sum(axis=1, keepdims=True)
        return np.divide(self.confusion, totals, out=np.zeros(self.confusion.shape), where=totals > 0)


@dataclass(frozen=True)
class StateConfusion:
    actual: MotionState
    predicted: MotionState
    count: int
    share: float


@dataclass(frozen=True)
class RecordingEvaluation:
    windows: list[WindowEvaluation]
    y_true: list[MotionState]
    y_pred: list[MotionState]
    metrics: ClassificationMetrics | None


def majority_label(labels: Sequence[str]) -> str | None:
    """Most common label in a window; ties go to the label seen first."""

    if not labels:
        return None
    counts = Counter(labels)
    best = max(counts.values())
    for label in labels:
        if counts[label] == best:
            return label
    return None


def score_states(y_true: Sequence[MotionState], y_pred: Sequence[MotionState]) -> ClassificationMetrics:
    if len(y_true) != len(y_pred):
        raise ValueError(f"y_true and y_pred differ in length ({len(y_true)} vs {len(y_pred)})")

    values = [s.value for s in STATE_ORDER]
    truth = [MotionState(s).value for s in y_true]
    predicted = [MotionState(s).value for s in y_pred]

    return ClassificationMetrics(
        accuracy=float(accuracy_score(truth, predicted)),
        report=classification_report(
            truth,
            predicted,
            labels=values,
            target_names=[s.label for s in STATE_ORDER],
            output_dict=True,
            zero_division=0,
        ),
        confusion=confusion_matrix(truth, predicted, labels=values),
    )


def evaluate_recording(
    samples: Iterable[AccelSample],
    config: ClassifierConfig | None = None,
    *,
    skip_first_windows: int = 0,
) -> RecordingEvaluation:
    """Replay labelled samples and score each window against its majority label.

    Windows whose majority label is missing or is not a state name are kept in
    `windows` but left out of the metrics. `skip_first_windows` drops filter
    warm-up windows from scoring.
    """

    windows = replay(samples, config)

    y_true: list[MotionState] = []
    y_pred: list[MotionState] = []
    unknown: Counter[str] = Counter()
    for w in windows[skip_first_windows:]:
        truth = majority_label(w.labels)
        if truth is None or w.state is None:
            continue
        try:
            y_true.append(MotionState(truth.upper()))
        except ValueError:
            unknown[truth] += 1
            continue
        y_pred.append(w.state)

    if unknown:
        logger.warning("Left %d windows with unknown labels out of scoring: %s", sum(unknown.values()), dict(unknown))

    metrics = score_states(y_true, y_pred) if y_true else None
    return RecordingEvaluation(windows=windows, y_true=y_true, y_pred=y_pred, metrics=metrics)


def top_confusions(confusion: np.ndarray, *, k: int = 5) -> list[StateConfusion]:
    """Most frequent misclassifications, largest count first.

    `share` is the fraction of the actual state's windows that went to `predicted`.
    """

    found: list[StateConfusion] = []
    for (i, j), count in np.ndenumerate(confusion):
        if i == j or count <= 0:
            continue
        found.append(
            StateConfusion(
                actual=STATE_ORDER[i],
                predicted=STATE_ORDER[j],
                count=int(count),
                share=float(count / confusion[i].sum()),
            )
        )

    found.sort(key=lambda c: c.count, reverse=True)
    return found[:k]
