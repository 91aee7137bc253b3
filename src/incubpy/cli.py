"""CLI for running the incubation-period analysis end to end."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import get_args

from .config import get_config
from .errors import IncubationError
from .pipeline import run_analysis
from .types import Family, ZeroWidthPolicy

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    defaults = get_config()
    parser = argparse.ArgumentParser(prog="incubpy")
    parser.add_argument(
        "--input", type=str, required=True, help="Line list path or http(s) URL (CSV or parquet)."
    )
    parser.add_argument(
        "--out-dir", type=Path, required=True, help="Directory for result tables and manifest."
    )
    parser.add_argument(
        "--published",
        type=Path,
        default=None,
        help="CSV of published estimates to compare against (default: bundled table).",
    )
    parser.add_argument("--seed", type=int, default=defaults.seed, help="Bootstrap seed.")
    parser.add_argument(
        "--n-boot", type=int, default=defaults.n_boot, help="Number of bootstrap replicates."
    )
    parser.add_argument(
        "--family",
        choices=get_args(Family),
        default=defaults.family,
        help="Incubation-period distribution family.",
    )
    parser.add_argument(
        "--jobs", type=int, default=defaults.n_jobs, help="Parallel bootstrap workers."
    )
    parser.add_argument(
        "--zero-width",
        choices=get_args(ZeroWidthPolicy),
        default=defaults.zero_width,
        help="Handling of zero-width exposure or symptom windows.",
    )
    parser.add_argument(
        "--ci-width", type=float, default=defaults.ci_width, help="Confidence interval width (%%)."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-case decisions.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the analysis CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = replace(
        get_config(),
        seed=args.seed,
        n_boot=args.n_boot,
        family=args.family,
        n_jobs=args.jobs,
        zero_width=args.zero_width,
        ci_width=args.ci_width,
    )
    out_dir: Path = args.out_dir.resolve()
    try:
        output = run_analysis(args.input, out_dir, config=config, published=args.published)
    except IncubationError as exc:
        logger.error("Analysis failed: %s", exc)
        return 1

    for path in output.files:
        print(f"Wrote {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
