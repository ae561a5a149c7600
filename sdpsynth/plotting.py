from __future__ import annotations

import os
import tempfile
from pathlib import Path

import numpy as np

from sdpsynth.markov.fit import SeriesFit, align_expected
from sdpsynth.markov.transition import TransitionMatrix


MPL_CACHE_NAME = "sdpsynth_mpl"


def _use_file_backend(disable_plots: bool) -> bool:
    # An explicit MPLBACKEND always wins.
    if "MPLBACKEND" in os.environ:
        return False
    return disable_plots or "DISPLAY" not in os.environ


def get_pyplot(disable_plots: bool = False):
    """
    matplotlib.pyplot for the demo scripts.

    Figures are only ever saved to disk, so the Agg backend is forced when
    plots are disabled or no display is available. The font cache goes to a
    temp directory unless MPLCONFIGDIR is already set.
    """
    if not os.environ.get("MPLCONFIGDIR"):
        cache = Path(tempfile.gettempdir()) / MPL_CACHE_NAME
        cache.mkdir(parents=True, exist_ok=True)
        os.environ["MPLCONFIGDIR"] = str(cache)

    import matplotlib

    if _use_file_backend(disable_plots):
        matplotlib.use("Agg", force=True)
    from matplotlib import pyplot

    return pyplot


def plot_transition_fit(
    expected: TransitionMatrix,
    fit: SeriesFit,
    out_path: Path,
    title: str = "Observed vs expected transitions",
) -> Path:
    """
    Point estimate with confidence bars per (from -> to) cell, expected marked
    as a cross. Degenerate fits are drawn as expected values only.
    """
    plt = get_pyplot(disable_plots=True)
    e = align_expected(expected, fit.states)
    labels = [f"{a}->{b}" for a in fit.states for b in fit.states]
    x = np.arange(len(labels))

    fig, ax = plt.subplots(figsize=(max(4.0, 0.9 * len(labels)), 3.5))
    if not fit.degenerate:
        est = fit.estimate.P.ravel()
        yerr = np.vstack([est - fit.lower.ravel(), fit.upper.ravel() - est])
        ax.errorbar(x, est, yerr=yerr, fmt="o", capsize=4, label=f"observed ({fit.confidence:.0%} CI)")
    ax.scatter(x, e.ravel(), marker="x", color="black", zorder=3, label="expected")
    ax.set_xticks(x)
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_ylim(-0.02, 1.02)
    ax.set_ylabel("Transition probability")
    ax.set_title(title)
    ax.legend(loc="best")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out_path
