from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from walkstate.streaming.protocol import AccelSample

_AXIS_ALIASES = {"ax": "x", "ay": "y", "az": "z"}


@dataclass(frozen=True)
class AccelRecording:
    t: np.ndarray | None
    xyz: np.ndarray  # (N, 3) float64
    labels: np.ndarray | None

    def __len__(self) -> int:
        return int(self.xyz.shape[0])

    def samples(self) -> list[AccelSample]:
        out: list[AccelSample] = []
        for i, (x, y, z) in enumerate(self.xyz.tolist()):
            t = None if self.t is None or np.isnan(self.t[i]) else float(self.t[i])
            label = None if self.labels is None else self.labels[i]
            out.append(AccelSample(x=x, y=y, z=z, t=t, label=label))
        return out


def load_recording_csv(csv_path: str | Path) -> AccelRecording:
    """Load a raw accelerometer recording (`t, x, y, z, label`; `ax/ay/az` also accepted).

    `t` and `label` are optional. Empty label cells become None.
    """

    csv_path = Path(csv_path)
    df = pd.read_csv(csv_path)
    df = df.rename(columns={k: v for k, v in _AXIS_ALIASES.items() if k in df.columns and v not in df.columns})

    missing = [c for c in ("x", "y", "z") if c not in df.columns]
    if missing:
        raise ValueError(f"{csv_path} is missing acceleration columns {missing}. Expected x/y/z (or ax/ay/az).")

    # Fail loudly on stray strings; NaN is allowed to flow through to the classifier.
    for col in ("x", "y", "z"):
        df[col] = pd.to_numeric(df[col], errors="raise")

    t = pd.to_numeric(df["t"], errors="coerce").to_numpy(dtype=np.float64) if "t" in df.columns else None

    labels = None
    if "label" in df.columns:
        labels = np.array([None if pd.isna(v) or v == "" else str(v) for v in df["label"]], dtype=object)

    return AccelRecording(t=t, xyz=df[["x", "y", "z"]].to_numpy(dtype=np.float64), labels=labels)


def save_recording_csv(
    csv_path: str | Path,
    xyz: np.ndarray,
    *,
    t: np.ndarray | None = None,
    labels: np.ndarray | list[str] | None = None,
) -> Path:
    csv_path = Path(csv_path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    xyz = np.asarray(xyz, dtype=np.float64)
    df = pd.DataFrame({"x": xyz[:, 0], "y": xyz[:, 1], "z": xyz[:, 2]})
    if t is not None:
        df.insert(0, "t", np.asarray(t, dtype=np.float64))
    if labels is not None:
        df["label"] = list(labels)
    df.to_csv(csv_path, index=False)
    return csv_path
