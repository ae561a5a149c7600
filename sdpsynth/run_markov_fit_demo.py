from __future__ import annotations

import argparse

import numpy as np

from sdpsynth.config import PROJECT_ROOT, settings
from sdpsynth.markov.fit import check_fit, fit_report, fit_series
from sdpsynth.markov.sequence import make_markov_series
from sdpsynth.markov.transition import TransitionMatrix
from sdpsynth.plotting import plot_transition_fit
from sdpsynth.runtime_utils import add_common_simulation_args, setup_logging, write_run_metadata


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate one long binary Markov sequence and check it against its transition matrix."
    )
    add_common_simulation_args(parser, default_n_periods=9999)
    parser.add_argument("--confidence", type=float, default=settings.confidence_level)
    return parser


def main() -> None:
    args = build_parser().parse_args()
    setup_logging(args.log_level)

    tm = TransitionMatrix(states=("No", "Yes"), P=np.array([[0.66, 0.34], [0.33, 0.67]]))
    seq = make_markov_series(args.n_periods, tm, "No", include_initial=True, rng=args.seed)

    fit = fit_series(seq, states=tm.states, confidence=args.confidence)
    passed = check_fit(tm, fit)
    report = fit_report(tm, fit)

    print("=== Markov fit demo ===")
    print("Sequence length:", len(seq))
    print(report.to_string(index=False))
    print("Expected matrix within bounds:", passed)

    summary = {
        "sequence_length": int(len(seq)),
        "share_yes": float(np.mean(seq == "Yes")),
        "confidence": float(args.confidence),
        "passed": bool(passed),
    }
    if not args.no_plots:
        p = plot_transition_fit(tm, fit, settings.output_dir / "markov_fit_demo.png")
        print("Saved plot:", p)

    metadata_path = write_run_metadata(
        output_dir=settings.output_dir,
        run_name="run_markov_fit_demo",
        args=args,
        summary=summary,
        project_root=PROJECT_ROOT,
    )
    print("Saved metadata:", metadata_path)


if __name__ == "__main__":
    main()
