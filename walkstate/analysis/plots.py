from __future__ import annotations

import os
from pathlib import Path

_DEFAULT_MPLCONFIGDIR = Path.cwd() / ".cache" / "matplotlib"
if "MPLCONFIGDIR" not in os.environ:
    _DEFAULT_MPLCONFIGDIR.mkdir(parents=True, exist_ok=True)
    os.environ["MPLCONFIGDIR"] = str(_DEFAULT_MPLCONFIGDIR)

# Headless-safe backend.
os.environ.setdefault("MPLBACKEND", "Agg")

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from walkstate.streaming.classifier import ClassifierConfig, MotionState, WindowEvaluation

_STATE_COLORS = {
    MotionState.STOPPED: "tab:green",
    MotionState.SLOW_WALKING: "tab:orange",
    MotionState.FAST_WALKING: "tab:red",
}


def plot_confusion_matrix(
    confusion_normalized: np.ndarray,
    *,
    title: str,
    out_path: str | Path,
) -> None:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    names = [s.label for s in MotionState]
    fig, ax = plt.subplots(figsize=(6, 5))
    sns.heatmap(
        confusion_normalized,
        annot=True,
        fmt=".2f",
        cmap="Blues",
        xticklabels=names,
        yticklabels=names,
        ax=ax,
    )
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Actual")
    ax.set_title(title)
    plt.tight_layout()
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)


def plot_variance_timeline(
    windows: list[WindowEvaluation],
    config: ClassifierConfig,
    *,
    title: str,
    out_path: str | Path,
    magnitudes: np.ndarray | None = None,
) -> None:
    """Window variance against both thresholds, one point per window, coloured by state.

    With `magnitudes` (per-sample filtered magnitude) a second panel shows the raw input.
    """

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    window_s = config.samples_per_window * config.interval
    t_end = np.array([(w.index + 1) * window_s for w in windows], dtype=np.float64)
    variances = np.array([w.stats.variance for w in windows], dtype=np.float64)
    colors = [_STATE_COLORS.get(w.state, "tab:gray") for w in windows]

    n_panels = 2 if magnitudes is not None else 1
    fig, axes = plt.subplots(n_panels, 1, figsize=(12, 3.5 * n_panels), sharex=True, squeeze=False)

    ax = axes[0, 0]
    ax.step(t_end, variances, where="post", color="0.6", linewidth=1)
    ax.scatter(t_end, variances, c=colors, s=18, zorder=3)
    ax.axhline(config.stationary_threshold, color="tab:green", linestyle="--", label="stationary threshold")
    ax.axhline(config.slow_walk_threshold, color="tab:red", linestyle="--", label="slow-walk threshold")
    ax.set_ylabel("Magnitude variance (g²)")
    ax.set_title("Window variance")
    ax.legend(loc="upper right")
    ax.grid(True, alpha=0.3)

    if magnitudes is not None:
        ax2 = axes[1, 0]
        t = np.arange(len(magnitudes)) * config.interval
        ax2.plot(t, magnitudes, "b-", linewidth=0.8)
        ax2.set_ylabel("Filtered magnitude (g)")
        ax2.set_title("Low-pass filtered magnitude")
        ax2.grid(True, alpha=0.3)

    axes[-1, 0].set_xlabel("Time (s)")
    plt.suptitle(title, fontsize=12, fontweight="bold")
    plt.tight_layout()
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
