from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Sequence

from walkstate.streaming.errors import PayloadError


@dataclass(frozen=True)
class AccelSample:
    """One raw accelerometer reading, in units of g."""

    x: float
    y: float
    z: float
    t: float | None = None
    label: str | None = None

    @classmethod
    def from_xyz(cls, row: Sequence[float], *, t: float | None = None, label: str | None = None) -> "AccelSample":
        if len(row) != 3:
            raise ValueError(f"Expected an (x, y, z) row, got {len(row)} values")
        return cls(x=float(row[0]), y=float(row[1]), z=float(row[2]), t=t, label=label)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)


def _normalize_timestamp(value: Any) -> float | None:
    if value is None:
        return None
    try:
        t = float(value)
    except (TypeError, ValueError):
        return None

    # Heuristic: milliseconds vs seconds
    # - seconds since epoch ~ 1.7e9
    # - milliseconds since epoch ~ 1.7e12
    if t > 1e11:
        t = t / 1000.0
    return t


def _first_present(d: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if d.get(key) is not None:
            return d[key]
    return None


def _get_num(d: dict[str, Any], *keys: str) -> float | None:
    for key in keys:
        if key not in d:
            continue
        try:
            return float(d[key])
        except (TypeError, ValueError):
            return None
    return None


def _parse_one(sample_dict: Any) -> AccelSample:
    if not isinstance(sample_dict, dict):
        raise PayloadError(f"Expected a JSON object per sample, got {type(sample_dict).__name__}")

    t = _normalize_timestamp(_first_present(sample_dict, "t", "timestamp", "ts"))

    x = _get_num(sample_dict, "x", "ax")
    y = _get_num(sample_dict, "y", "ay")
    z = _get_num(sample_dict, "z", "az")

    missing = [k for k, v in (("x", x), ("y", y), ("z", z)) if v is None]
    if missing:
        raise PayloadError(f"Missing/invalid acceleration fields: {missing}. Expected keys x/y/z (or ax/ay/az).")

    label = sample_dict.get("label")
    if label is not None:
        label = str(label)

    return AccelSample(x=float(x), y=float(y), z=float(z), t=t, label=label)


def parse_payload(payload: bytes | str) -> list[AccelSample]:
    """Parse a stream payload into zero or more accelerometer samples.

    Supported JSON payload forms:
    1) Single sample dict: {"t":..., "x":..., "y":..., "z":...}
    2) Batch dict: {"samples": [ {...}, {...} ]}
    3) Raw list: [ {...}, {...} ]
    """

    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    text = text.strip()
    if not text:
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PayloadError(f"Invalid JSON payload: {e}") from e

    if isinstance(data, list):
        return [_parse_one(d) for d in data]

    if isinstance(data, dict) and isinstance(data.get("samples"), list):
        return [_parse_one(d) for d in data["samples"]]

    if isinstance(data, dict):
        return [_parse_one(data)]

    raise PayloadError("Invalid JSON payload. Expected a dict or list.")


def sample_to_dict(sample: AccelSample) -> dict[str, object]:
    out: dict[str, object] = {"x": sample.x, "y": sample.y, "z": sample.z}
    if sample.t is not None:
        out["t"] = sample.t
    if sample.label is not None:
        out["label"] = sample.label
    return out
