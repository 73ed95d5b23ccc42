#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from walkstate.analysis.evaluation import evaluate_recording, top_confusions
from walkstate.analysis.plots import plot_confusion_matrix, plot_variance_timeline
from walkstate.analysis.utils import configure_logging, ensure_dir
from walkstate.data.recordings import load_recording_csv
from walkstate.data.synthetic_walk import create_synthetic_walk
from walkstate.streaming.classifier import ClassifierConfig, MotionState
from walkstate.streaming.filtering import filter_stream


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay a labelled accelerometer recording through the classifier and score it.")
    parser.add_argument("--csv-path", default=None, help="Recording with t,x,y,z,label columns. Default: a synthetic walk.")
    parser.add_argument("--seed", type=int, default=42, help="Seed for the synthetic recording.")
    parser.add_argument("--interval", type=float, default=0.1)
    parser.add_argument("--filter-factor", type=float, default=35.0)
    parser.add_argument("--precision", type=int, default=3)
    parser.add_argument("--stationary-threshold", type=float, default=0.013)
    parser.add_argument("--slow-walk-threshold", type=float, default=0.05)
    parser.add_argument("--skip-first-windows", type=int, default=1, help="Filter warm-up windows left out of scoring.")
    parser.add_argument("--outputs-dir", default="outputs")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging(args.log_level)
    outputs_dir = ensure_dir(args.outputs_dir)

    config = ClassifierConfig(
        filter_factor=args.filter_factor,
        precision=args.precision,
        stationary_threshold=args.stationary_threshold,
        slow_walk_threshold=args.slow_walk_threshold,
        interval=args.interval,
    )

    if args.csv_path:
        rec = load_recording_csv(args.csv_path)
        samples = rec.samples()
        xyz = rec.xyz
        tag = Path(args.csv_path).stem
    else:
        plan = [
            (MotionState.STOPPED, 5.0),
            (MotionState.SLOW_WALKING, 10.0),
            (MotionState.FAST_WALKING, 10.0),
            (MotionState.STOPPED, 5.0),
        ]
        synth = create_synthetic_walk(plan, sample_rate_hz=1.0 / config.interval, seed=args.seed)
        samples = synth.samples()
        xyz = synth.xyz
        tag = "synthetic_walk"

    result = evaluate_recording(samples, config, skip_first_windows=args.skip_first_windows)

    print(f"Recording: {args.csv_path or 'synthetic'}")
    print(f"Samples: {len(samples):,} | Windows: {len(result.windows)} | Scored: {len(result.y_true)}")

    magnitudes = filter_stream(xyz, factor=config.filter_factor, precision=config.precision)[:, 3]
    plot_variance_timeline(
        result.windows,
        config,
        title=f"Window variance - {tag}",
        out_path=outputs_dir / f"{tag}_variance.png",
        magnitudes=magnitudes,
    )

    if result.metrics is None:
        print("No labelled windows; skipping metrics.")
        return 0

    print(f"Accuracy: {result.metrics.accuracy * 100:.2f}%")
    confusions = top_confusions(result.metrics.confusion, k=6)
    if confusions:
        print("\nTop confusions:")
        for c in confusions:
            print(f"- {c.actual.label} -> {c.predicted.label}: {c.count} ({c.share:.1%})")

    plot_confusion_matrix(
        result.metrics.confusion_normalized,
        title=f"Window states - {tag}",
        out_path=outputs_dir / f"{tag}_confusion.png",
    )
    (outputs_dir / f"{tag}_metrics.json").write_text(
        json.dumps({"accuracy": result.metrics.accuracy, "report": result.metrics.report}, indent=2),
        encoding="utf-8",
    )
    print(f"\nSaved outputs to {outputs_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
