from __future__ import annotations

import numpy as np
import pytest

from walkstate.analysis.evaluation import (
    StateConfusion,
    evaluate_recording,
    majority_label,
    score_states,
    top_confusions,
)
from walkstate.data.synthetic_walk import create_synthetic_walk, synthetic_segment
from walkstate.streaming.classifier import ClassifierConfig, MotionClassifier, MotionState
from walkstate.streaming.protocol import AccelSample
from walkstate.streaming.session import PedometerSession, replay
from walkstate.streaming.sources import IterableSource


def test_session_wires_source_to_classifier_and_tap():
    states: list[MotionState] = []
    tapped: list[AccelSample] = []

    class Observer:
        def on_state_evaluated(self, state: MotionState) -> None:
            states.append(state)

    clf = MotionClassifier(observer=Observer())
    session = PedometerSession(IterableSource([(0.0, 0.0, 0.0)] * 25), clf, tap=tapped.append)
    session.start()

    assert states == [MotionState.STOPPED, MotionState.STOPPED]
    assert len(tapped) == 25
    assert clf.pending_samples == 5
    assert not session.running


def test_session_stop_ends_delivery():
    clf = MotionClassifier()
    source = IterableSource([(0.0, 0.0, 1.0)] * 100)
    session = PedometerSession(source, clf)

    def tap(_s: AccelSample) -> None:
        if source.samples_delivered == 14:
            session.stop()

    session.tap = tap
    session.start()
    assert source.samples_delivered == 15
    assert clf.windows_completed == 1


@pytest.mark.parametrize("state", list(MotionState))
def test_replay_synthetic_activity(state):
    rec = create_synthetic_walk([(state, 10.0)], seed=3)
    assert len(rec) == 100

    windows = replay(rec.xyz)
    assert len(windows) == 10
    # The first window includes the filter settling from zero.
    assert [w.state for w in windows[1:]] == [state] * 9
    assert [w.index for w in windows] == list(range(10))


def test_synthetic_segment_shapes_and_gravity():
    xyz = synthetic_segment(MotionState.STOPPED, seconds=2.0, sample_rate_hz=50.0, rng=np.random.default_rng(0))
    assert xyz.shape == (100, 3)
    assert np.abs(xyz[:, 2] - 1.0).max() < 0.05
    with pytest.raises(ValueError):
        synthetic_segment(MotionState.STOPPED, seconds=1.0, sample_rate_hz=0.0)


def test_evaluate_recording_on_mixed_walk():
    plan = [
        (MotionState.STOPPED, 5.0),
        (MotionState.SLOW_WALKING, 10.0),
        (MotionState.FAST_WALKING, 10.0),
    ]
    rec = create_synthetic_walk(plan, seed=11)
    result = evaluate_recording(rec.samples(), ClassifierConfig(), skip_first_windows=1)

    assert len(result.windows) == 25
    assert len(result.y_true) == 24
    assert result.metrics is not None
    assert result.metrics.accuracy >= 0.9
    assert result.metrics.confusion.shape == (3, 3)
    assert result.y_true[0] is MotionState.STOPPED


def test_evaluate_recording_without_labels_has_no_metrics():
    result = evaluate_recording([AccelSample(x=0.0, y=0.0, z=0.0)] * 20)
    assert len(result.windows) == 2
    assert result.metrics is None


def test_majority_label():
    assert majority_label([]) is None
    assert majority_label(["a", "b", "b"]) == "b"
    assert majority_label(["b", "a", "a", "b"]) == "b"


def test_top_confusions_orders_by_count():
    confusion = np.array([[5, 1, 0], [3, 4, 0], [0, 2, 6]])
    found = top_confusions(confusion, k=2)
    assert found == [
        StateConfusion(MotionState.SLOW_WALKING, MotionState.STOPPED, 3, 3 / 7),
        StateConfusion(MotionState.FAST_WALKING, MotionState.SLOW_WALKING, 2, 0.25),
    ]


def test_score_states_follows_state_order():
    y_true = [MotionState.STOPPED, MotionState.STOPPED, MotionState.FAST_WALKING]
    y_pred = [MotionState.STOPPED, MotionState.SLOW_WALKING, MotionState.FAST_WALKING]
    metrics = score_states(y_true, y_pred)

    assert metrics.accuracy == pytest.approx(2 / 3)
    np.testing.assert_array_equal(metrics.confusion, [[1, 1, 0], [0, 0, 0], [0, 0, 1]])
    # No slow-walking windows: that row stays zero instead of dividing by zero.
    np.testing.assert_allclose(metrics.confusion_normalized, [[0.5, 0.5, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    assert set(metrics.report) >= {"STOPPED", "Slow Walking", "Fast Walking"}

    with pytest.raises(ValueError):
        score_states(y_true, y_pred[:2])


def test_unknown_labels_are_left_out_of_scoring():
    samples = [AccelSample(x=0.0, y=0.0, z=1.0, label="standing")] * 10
    samples += [AccelSample(x=0.0, y=0.0, z=1.0, label="stopped")] * 10
    result = evaluate_recording(samples, ClassifierConfig(filter_factor=0.0))

    assert len(result.windows) == 2
    assert result.y_true == [MotionState.STOPPED]
    assert result.y_pred == [MotionState.STOPPED]
