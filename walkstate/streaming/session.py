from __future__ import annotations

import logging
from typing import Iterable, Sequence

from walkstate.streaming.classifier import ClassifierConfig, MotionClassifier, MotionState, WindowEvaluation
from walkstate.streaming.protocol import AccelSample
from walkstate.streaming.sources import AccelerometerSource, IterableSource, SampleHandler

logger = logging.getLogger(__name__)


class PedometerSession:
    """Wire a source to a classifier. `start` blocks until the source is exhausted or stopped."""

    def __init__(self, source: AccelerometerSource, classifier: MotionClassifier, *, tap: SampleHandler | None = None):
        self.source = source
        self.classifier = classifier
        self.tap = tap
        self.running = False

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Session already running")
        self.running = True
        logger.info(
            "Session started (interval=%.3fs, %d samples/window)",
            self.classifier.config.interval,
            self.classifier.config.samples_per_window,
        )
        try:
            self.source.start(self._handle)
        finally:
            self.running = False
            logger.info("Session stopped after %d windows", self.classifier.windows_completed)

    def stop(self) -> None:
        self.source.stop()

    def _handle(self, sample: AccelSample) -> None:
        if self.tap is not None:
            self.tap(sample)
        self.classifier.ingest(sample)


class _EvaluationRecorder:
    def __init__(self, classifier: MotionClassifier):
        self._classifier = classifier
        self.evaluations: list[WindowEvaluation] = []

    def on_state_evaluated(self, state: MotionState) -> None:
        evaluation = self._classifier.last_evaluation
        assert evaluation is not None and evaluation.state is state
        self.evaluations.append(evaluation)


def replay(
    samples: Iterable[AccelSample | Sequence[float]],
    config: ClassifierConfig | None = None,
) -> list[WindowEvaluation]:
    """Run a whole recording through a fresh classifier and return every window that produced a state.

    Windows whose variance is NaN are logged by the classifier and left out.
    """

    classifier = MotionClassifier(config)
    recorder = _EvaluationRecorder(classifier)
    classifier.observer = recorder
    PedometerSession(IterableSource(samples), classifier).start()
    return recorder.evaluations
