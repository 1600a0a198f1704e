# src/cattlegrowth/cli/synth_cli.py
from __future__ import annotations

import argparse
import logging

from cattlegrowth.growth.growth_models import MODEL_ORDER
from cattlegrowth.synthetic.cattle_data import DEFAULT_GROUPS, simulate_cattle_data, write_synthetic


def _parse_group(text: str):
    # "Hybrid=650,4,0.12"
    try:
        label, values = text.split("=", 1)
        A, B, k = (float(v) for v in values.split(","))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected LABEL=A,B,k, got {text!r}") from e
    return label.strip(), (A, B, k)


def add_synth_subcommand(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "synth",
        help="Generate a synthetic weight-at-age dataset from known growth-curve parameters.",
    )
    p.add_argument("--out", required=True, help="Output .csv or .xlsx path")
    p.add_argument("--model", default="logistic", choices=list(MODEL_ORDER))
    p.add_argument(
        "--group",
        action="append",
        type=_parse_group,
        default=None,
        help=f"Breed group parameters as LABEL=A,B,k (repeatable). Default: {DEFAULT_GROUPS}",
    )
    p.add_argument("--n-per-group", type=int, default=20)
    p.add_argument("--age-max", type=float, default=60.0, help="Oldest age (months)")
    p.add_argument("--noise-sd", type=float, default=5.0, help="Gaussian noise stdev (kg)")
    p.add_argument("--pct-missing", type=float, default=0.0, help="Fraction of weights set to NaN per group")
    p.add_argument("--pct-outliers", type=float, default=0.0, help="Fraction of weights shifted into outliers")
    p.add_argument("--seed", type=int, default=123)
    p.set_defaults(_fn=_run_synth)


def _run_synth(args: argparse.Namespace) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    groups = dict(args.group) if args.group else None
    df = simulate_cattle_data(
        groups=groups,
        model=args.model,
        n_per_group=args.n_per_group,
        age_max=args.age_max,
        noise_sd=args.noise_sd,
        seed=args.seed,
        pct_missing=args.pct_missing,
        pct_outliers=args.pct_outliers,
    )
    write_synthetic(df, args.out)
    return 0
