#!/usr/bin/env python3
"""Command line entry point: compute class breaks or render the walkthrough maps."""

import argparse
import sys
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger

from census_choropleth.classify import (
    Breaks,
    available_strategies,
    compute_breaks,
    goodness_of_variance_fit,
)
from census_choropleth.config import Config, load_config_from_env
from census_choropleth.errors import ChoroplethError
from census_choropleth.walkthrough import WALKTHROUGH_STEPS, run_walkthrough


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="census-maps",
        description="Classify census percentages and render choropleth maps"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    breaks = commands.add_parser("breaks", help="Compute class breaks for a CSV column")
    breaks.add_argument("csv", help="Delimited file holding the values")
    breaks.add_argument("--column", required=True, help="Column to classify")
    breaks.add_argument(
        "--strategy",
        default="quantile",
        help=f"Classification strategy, one of: {', '.join(available_strategies())}",
    )
    breaks.add_argument("-k", "--classes", type=int, default=None, help="Number of classes")
    breaks.add_argument(
        "--breaks",
        type=float,
        nargs="+",
        help="Boundaries for the fixed strategy",
    )
    breaks.add_argument(
        "--clip",
        action="store_true",
        help="Fixed strategy: clip values outside the breaks instead of failing",
    )
    breaks.add_argument(
        "--threshold",
        type=float,
        help="Head/tails strategy: largest head proportion that still splits",
    )
    breaks.add_argument(
        "--log",
        action="store_true",
        help="Continuous strategy: use logarithmic scaling",
    )

    render = commands.add_parser("render", help="Render the walkthrough maps")
    render.add_argument("--config", help="YAML file overriding the default settings")
    render.add_argument("--output", help="Directory for the PNG files")
    render.add_argument(
        "--step",
        action="append",
        choices=list(WALKTHROUGH_STEPS),
        help="Render only this step (repeatable)",
    )

    return parser


def _strategy_options(args: argparse.Namespace) -> Dict[str, Any]:
    """Strategy options given on the command line."""
    options: Dict[str, Any] = {}
    if args.breaks is not None:
        options["breaks"] = args.breaks
    if args.clip:
        options["out_of_range"] = "clip"
    if args.threshold is not None:
        options["threshold"] = args.threshold
    if args.log:
        options["normalization"] = "log"
    return options


def run_breaks(args: argparse.Namespace) -> int:
    table = pd.read_csv(args.csv)
    if args.column not in table.columns:
        raise ValueError(
            f"Column '{args.column}' not found. Available columns: {list(table.columns)}"
        )

    values = pd.to_numeric(table[args.column], errors="coerce").to_numpy(dtype=float)
    result = compute_breaks(
        values,
        args.classes,
        args.strategy,
        **_strategy_options(args)
    )

    print(f"Strategy: {result.strategy}")
    print(f"Breaks: {[round(b, 6) for b in result.values.tolist()]}")

    if isinstance(result, Breaks):
        print()
        print("Classes:")
        for label, count in zip(result.labels(), result.counts(values)):
            print(f"  {label:>30}  {count}")
        print(f"Goodness of variance fit: {goodness_of_variance_fit(values, result):.4f}")

    return 0


def run_render(args: argparse.Namespace) -> int:
    config: Config = Config.from_yaml(args.config) if args.config else load_config_from_env()

    print("Rendering walkthrough maps...")
    print(f"  Data dir: {config.paths.data_dir}")
    print(f"  Output dir: {args.output or config.paths.output_dir}")
    print()

    written = run_walkthrough(config, output_dir=args.output, steps=args.step)

    for name, path in written.items():
        print(f"  {name}: {path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    handlers = {"breaks": run_breaks, "render": run_render}
    try:
        return handlers[args.command](args)
    except (ChoroplethError, FileNotFoundError, ValueError, KeyError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
