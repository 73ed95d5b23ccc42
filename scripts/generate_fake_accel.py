#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from walkstate.data.recordings import save_recording_csv
from walkstate.data.synthetic_walk import create_synthetic_walk
from walkstate.streaming.classifier import MotionState
from walkstate.streaming.protocol import sample_to_dict


def _parse_plan(text: str) -> list[tuple[MotionState, float]]:
    """`STOPPED:5,SLOW_WALKING:10,FAST_WALKING:10` -> [(state, seconds), ...]"""

    plan: list[tuple[MotionState, float]] = []
    for part in text.split(","):
        name, _, seconds = part.strip().partition(":")
        try:
            plan.append((MotionState(name.strip().upper()), float(seconds)))
        except ValueError as e:
            raise argparse.ArgumentTypeError(f"Bad plan segment {part!r}: {e}") from e
    return plan


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate fake accelerometer JSON samples (for local smoke tests).")
    p.add_argument(
        "--plan",
        type=_parse_plan,
        default=_parse_plan("STOPPED:5,SLOW_WALKING:10,FAST_WALKING:10,STOPPED:5"),
        help="Comma-separated STATE:seconds segments.",
    )
    p.add_argument("--sample-rate-hz", type=float, default=10.0)
    p.add_argument("--cadence-hz", type=float, default=2.0)
    p.add_argument("--noise-g", type=float, default=0.003)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--with-labels", action="store_true", help="Include the segment state as a label field.")
    p.add_argument("--csv", default=None, help="Write a CSV recording instead of JSON lines on stdout.")
    p.add_argument("--realtime", action="store_true", help="Sleep between samples to simulate real-time streaming.")
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    sr = float(args.sample_rate_hz)
    if sr <= 0:
        raise SystemExit("--sample-rate-hz must be > 0")
    dt = 1.0 / sr

    rec = create_synthetic_walk(
        args.plan,
        sample_rate_hz=sr,
        cadence_hz=args.cadence_hz,
        noise_g=args.noise_g,
        seed=args.seed,
    )

    if args.csv:
        path = save_recording_csv(args.csv, rec.xyz, t=rec.t, labels=rec.labels if args.with_labels else None)
        print(f"Wrote {len(rec):,} samples to {path}", file=sys.stderr)
        return 0

    t0 = time.time()
    for s in rec.samples():
        msg = sample_to_dict(s)
        msg["t"] = t0 + float(s.t or 0.0)
        if not args.with_labels:
            msg.pop("label", None)

        sys.stdout.write(json.dumps(msg) + "\n")
        sys.stdout.flush()
        if args.realtime:
            time.sleep(dt)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
