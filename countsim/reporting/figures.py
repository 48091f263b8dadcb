from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Mapping, Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from countsim.config import FIGURE_DPI, HIST_MAX_BINS, PROCESS_LABELS
from countsim.data.validate import assert_required_columns


def save_figure(fig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=FIGURE_DPI, bbox_inches="tight")


def figure_to_base64(fig) -> str:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=FIGURE_DPI, bbox_inches="tight")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _label(process: str, labels: Optional[Mapping[str, str]]) -> str:
    labels = PROCESS_LABELS if labels is None else labels
    return labels.get(process, process)


def plot_count_histograms(table: pd.DataFrame, labels: Optional[Mapping[str, str]] = None):
    """Histogram of the simulated counts, one panel per generating process."""
    assert_required_columns(table, ["process", "y"])
    processes = list(pd.unique(table["process"]))

    fig, axes = plt.subplots(1, len(processes), figsize=(4.2 * len(processes), 3.8), squeeze=False)
    for ax, process in zip(axes[0], processes):
        y = table.loc[table["process"] == process, "y"].to_numpy(dtype=int)
        top = int(y.max()) if y.size else 0
        n_bins = max(1, min(HIST_MAX_BINS, top + 1))
        ax.hist(y, bins=n_bins, range=(-0.5, top + 0.5), color="#4C72B0", edgecolor="white", linewidth=0.4)
        ax.set_title(_label(process, labels))
        ax.set_xlabel("y")
        ax.set_ylabel("Count")
    fig.suptitle("Simulated outcomes by generating process")
    fig.tight_layout()
    return fig


def plot_parameter_recovery(
    comparison: pd.DataFrame,
    labels: Optional[Mapping[str, str]] = None,
    terms: Optional[Sequence[str]] = None,
):
    """Point estimates with CIs per model, one panel per term, truth dashed."""
    assert_required_columns(comparison, ["model", "term", "lower", "estimate", "upper", "truth"])
    terms = list(pd.unique(comparison["term"])) if terms is None else list(terms)
    models = list(pd.unique(comparison["model"]))
    ypos = np.arange(len(models))

    fig, axes = plt.subplots(1, len(terms), figsize=(5.0 * len(terms), 0.8 * len(models) + 2.0), squeeze=False)
    for ax, term in zip(axes[0], terms):
        sub = comparison[comparison["term"] == term].set_index("model").loc[models]
        est = sub["estimate"].to_numpy(dtype=float)
        ax.errorbar(
            est,
            ypos,
            xerr=[est - sub["lower"].to_numpy(dtype=float), sub["upper"].to_numpy(dtype=float) - est],
            fmt="o",
            color="#4C72B0",
            capsize=4,
        )
        truth = float(sub["truth"].iloc[0])
        ax.axvline(truth, color="#C44E52", linestyle="--", linewidth=1.2, label=f"True value = {truth:g}")
        ax.set_yticks(ypos)
        ax.set_yticklabels([_label(m, labels) for m in models])
        ax.invert_yaxis()
        ax.set_title(term)
        ax.set_xlabel("Estimate (95% CI)")
        ax.legend(loc="best", fontsize=8)
    fig.suptitle("Parameter recovery")
    fig.tight_layout()
    return fig


def plot_pseudo_r2_spread(r2_draws: pd.DataFrame, kind: str, labels: Optional[Mapping[str, str]] = None):
    """Spread of one pseudo-R² kind across repeated simulations, per model."""
    assert_required_columns(r2_draws, ["model", kind])
    models = list(pd.unique(r2_draws["model"]))
    data = [r2_draws.loc[r2_draws["model"] == m, kind].dropna().to_numpy(dtype=float) for m in models]

    fig, ax = plt.subplots(figsize=(7, 4))
    ax.boxplot(data, showfliers=False)
    ax.set_xticks(np.arange(1, len(models) + 1))
    ax.set_xticklabels([_label(m, labels) for m in models])
    ax.set_ylabel(f"{kind} pseudo-R²")
    ax.set_ylim(0, 1)
    ax.set_title("Pseudo-R² across repeated simulations")
    fig.tight_layout()
    return fig
