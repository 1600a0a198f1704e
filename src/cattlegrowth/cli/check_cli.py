# src/cattlegrowth/cli/check_cli.py
from __future__ import annotations

import argparse
import logging

from cattlegrowth.io.loader import load_cattle_data
from cattlegrowth.quality.data_checks import check_data_quality, log_quality_report, summarize_dataset


def add_check_subcommand(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "check",
        help="Print a dataset overview and data-quality diagnostics (no fitting).",
    )
    p.add_argument("input", help="Input .csv or .xlsx")
    p.add_argument("--z-threshold", type=float, default=3.0)
    p.add_argument(
        "--loglevel",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )
    p.set_defaults(_fn=_run_check)


def _run_check(args: argparse.Namespace) -> int:
    logging.basicConfig(level=getattr(logging, args.loglevel), format="%(levelname)s: %(message)s")

    df = load_cattle_data(args.input)
    overview = summarize_dataset(df)
    print("Summary statistics:")
    print(overview["summary"].to_string())
    print("\nBreed group occurrences:")
    print(overview["breed_counts"].to_string(index=False))

    report = check_data_quality(df, z_threshold=float(args.z_threshold))
    log_quality_report(report)
    print(f"\nMissing values: {report.missing_counts}")
    print(f"Duplicate rows: {report.n_duplicates}")
    print(f"Outliers (weight): {report.weight_outliers}")
    print(f"Outliers (age): {report.age_outliers}")
    return 0
