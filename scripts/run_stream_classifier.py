#!/usr/bin/env python3
from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from walkstate.analysis.utils import configure_logging
from walkstate.streaming.classifier import ClassifierConfig, MotionClassifier, MotionState
from walkstate.streaming.errors import InvalidConfigError
from walkstate.streaming.protocol import AccelSample
from walkstate.streaming.session import PedometerSession
from walkstate.streaming.sources import JsonLinesSource, UdpSource

logger = logging.getLogger("walkstate.stream")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Classify a live accelerometer stream (UDP or stdin JSON) into stopped / slow / fast walking.")
    parser.add_argument(
        "--stdin",
        action="store_true",
        help="Read JSON payloads (one per line) from stdin instead of binding a UDP socket (useful for local smoke tests).",
    )
    parser.add_argument("--listen-host", default="0.0.0.0")
    parser.add_argument("--listen-port", type=int, default=5500)

    parser.add_argument("--interval", type=float, default=0.1, help="Nominal sampling interval (s) of the incoming stream.")
    parser.add_argument("--window-seconds", type=float, default=1.0)
    parser.add_argument("--filter-factor", type=float, default=35.0, help="Low-pass weight (%%) kept on the previous filtered value.")
    parser.add_argument("--precision", type=int, default=3, help="Decimal digits kept after every arithmetic step.")
    parser.add_argument("--stationary-threshold", type=float, default=0.013)
    parser.add_argument("--slow-walk-threshold", type=float, default=0.05)
    parser.add_argument("--strict", action="store_true", help="Reject non-finite samples instead of propagating them.")

    parser.add_argument("--log-raw-csv", default=None, help="Optional CSV to write raw samples (t, x, y, z, label).")
    parser.add_argument("--log-windows-jsonl", default=None, help="Optional JSONL to write per-window statistics.")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--quiet", action="store_true", help="Reduce console output.")
    return parser.parse_args()


class _StdoutObserver:
    def __init__(self, classifier: MotionClassifier, *, quiet: bool, windows_fh=None):
        self.classifier = classifier
        self.quiet = quiet
        self.windows_fh = windows_fh

    def on_state_evaluated(self, state: MotionState) -> None:
        evaluation = self.classifier.last_evaluation
        assert evaluation is not None
        out: dict[str, object] = {
            "window": evaluation.index,
            "state": state.value,
            "status": state.label,
            "moving": state.is_moving,
            "mean": evaluation.stats.mean,
            "variance": evaluation.stats.variance,
        }
        if self.windows_fh is not None:
            self.windows_fh.write(json.dumps({**out, "n_samples": evaluation.stats.n_samples}) + "\n")
            self.windows_fh.flush()
        if not self.quiet:
            print(json.dumps(out), flush=True)


def main() -> int:
    args = _parse_args()
    configure_logging(args.log_level)

    try:
        config = ClassifierConfig(
            filter_factor=args.filter_factor,
            precision=args.precision,
            stationary_threshold=args.stationary_threshold,
            slow_walk_threshold=args.slow_walk_threshold,
            interval=args.interval,
            window_seconds=args.window_seconds,
            strict=args.strict,
        )
    except InvalidConfigError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    win_fh = None
    if args.log_windows_jsonl:
        win_path = Path(args.log_windows_jsonl)
        win_path.parent.mkdir(parents=True, exist_ok=True)
        win_fh = win_path.open("w", encoding="utf-8")

    classifier = MotionClassifier(config)
    classifier.observer = _StdoutObserver(classifier, quiet=args.quiet, windows_fh=win_fh)

    raw_writer = None
    raw_fh = None
    if args.log_raw_csv:
        raw_path = Path(args.log_raw_csv)
        raw_path.parent.mkdir(parents=True, exist_ok=True)
        raw_fh = raw_path.open("w", newline="", encoding="utf-8")
        raw_writer = csv.DictWriter(raw_fh, fieldnames=["t", "x", "y", "z", "label"])
        raw_writer.writeheader()

    if args.stdin:
        source = JsonLinesSource(sys.stdin, skip_bad_payloads=True)
    else:
        source = UdpSource(args.listen_host, args.listen_port, skip_bad_payloads=True)

    tap = None
    if raw_writer is not None:

        def tap(s: AccelSample) -> None:
            raw_writer.writerow(
                {
                    "t": "" if s.t is None else f"{s.t:.6f}",
                    "x": s.x,
                    "y": s.y,
                    "z": s.z,
                    "label": "" if s.label is None else s.label,
                }
            )
            raw_fh.flush()

    if not args.quiet:
        if args.stdin:
            print("Input: stdin (one JSON payload per line)", file=sys.stderr)
        else:
            print(f"Listening UDP on {args.listen_host}:{args.listen_port}", file=sys.stderr)
        print(
            f"Window: {args.window_seconds:.2f}s ({config.samples_per_window} samples @ {config.interval:.3f}s) | "
            f"thresholds: {config.stationary_threshold} / {config.slow_walk_threshold}",
            file=sys.stderr,
        )

    session = PedometerSession(source, classifier, tap=tap)
    try:
        session.start()
    except KeyboardInterrupt:
        session.stop()
        if not args.quiet:
            print("\nStopping…", file=sys.stderr)
    finally:
        if raw_fh is not None:
            raw_fh.close()
        if win_fh is not None:
            win_fh.close()

    if source.bad_payloads:
        logger.warning("Skipped %d bad payloads", source.bad_payloads)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
