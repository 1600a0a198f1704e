# src/cattlegrowth/cli/fit_cli.py
from __future__ import annotations

import argparse
import logging
from pathlib import Path

import pandas as pd

from cattlegrowth.growth.growth_models import MODEL_ORDER
from cattlegrowth.growth.initializers import INITIALIZERS
from cattlegrowth.growth.pipeline import GrowthPipelineConfig, result_tables, run_growth_pipeline
from cattlegrowth.io.export import export_results_zip
from cattlegrowth.io.loader import read_any
from cattlegrowth.viz.plots import build_report_figures, write_figures_html


def add_fit_subcommand(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "fit",
        help="Fit growth models per breed group and write parameter/metric/convergence tables.",
    )
    p.add_argument("input", help="Input .csv or .xlsx with Age, Weight and Breed_Group columns")
    p.add_argument("--outdir", required=True, help="Output directory")
    p.add_argument("--models", nargs="+", default=list(MODEL_ORDER), choices=list(MODEL_ORDER))
    p.add_argument("--initializer", default="fixed", choices=list(INITIALIZERS),
                   help="Start values: fixed (A=730, B=0.5, k=0.01) or data-driven.")
    p.add_argument("--max-iter", type=int, default=1000, help="Cap on function evaluations per fit.")
    p.add_argument("--criterion", default="AIC", choices=["AIC", "BIC"])
    p.add_argument("--z-threshold", type=float, default=3.0, help="|z| above which values are flagged as outliers.")
    p.add_argument("--n-jobs", type=int, default=1, help="Parallel fits (joblib); 1 = sequential.")
    p.add_argument("--no-plots", action="store_true", default=False, help="Skip writing HTML plots.")
    p.add_argument("--zip-name", default="growth_outputs.zip")
    p.add_argument(
        "--loglevel",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )
    p.set_defaults(_fn=_run_fit)


def _run_fit(args: argparse.Namespace) -> int:
    logging.basicConfig(level=getattr(logging, args.loglevel), format="%(levelname)s: %(message)s")
    outdir = Path(args.outdir)

    cfg = GrowthPipelineConfig(
        models=tuple(args.models),
        initializer=args.initializer,
        max_iter=int(args.max_iter),
        z_threshold=float(args.z_threshold),
        criterion=args.criterion,
        n_jobs=int(args.n_jobs),
    )
    res = run_growth_pipeline(read_any(args.input), cfg)

    plot_paths = {}
    if not args.no_plots:
        figs = build_report_figures(res["strata"], res["fits"])
        plot_paths = write_figures_html(figs, outdir / "plots")

    out = export_results_zip(
        tables=result_tables(res),
        out_dir=outdir,
        zip_name=args.zip_name,
        extra_files=plot_paths,
    )

    with pd.option_context("display.width", 160, "display.max_columns", 20):
        print(res["metrics_table"].to_string(index=False))
        print()
        print(res["convergence"][["breed_group", "model", "status", "iterations"]].to_string(index=False))
        print()
        print(res["best_models"].to_string(index=False))
    print(f"[OK] {args.input} -> {out['zip_path']}")
    return 0
