from __future__ import annotations

import argparse

from sdpsynth.config import PROJECT_ROOT, settings
from sdpsynth.datasets.toy_baselines import BASELINE_NAMES, generate_toy_baselines
from sdpsynth.runtime_utils import setup_logging, write_run_metadata


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate toy age x race baseline tables.")
    parser.add_argument("--seed", type=int, default=123)
    parser.add_argument("--metadata-tag", type=str, default="")
    parser.add_argument("--log-level", type=str, default="INFO")
    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.log_level)
    settings.processed_dir.mkdir(parents=True, exist_ok=True)

    tables = generate_toy_baselines(seed=args.seed)

    rows = {}
    for name in BASELINE_NAMES:
        df = tables[name]
        out_path = settings.processed_dir / f"baseline_{name}.csv"
        df.to_csv(out_path, index=False)
        rows[name] = int(len(df))
        print("Saved:", out_path)
        print(df.groupby("race")["prob"].mean().round(3).to_string())

    metadata_path = write_run_metadata(
        output_dir=settings.output_dir,
        run_name="build_toy_baselines",
        args=args,
        summary={"rows": rows, "baselines": list(BASELINE_NAMES)},
        project_root=PROJECT_ROOT,
    )
    print("Saved metadata:", metadata_path)


if __name__ == "__main__":
    main()
