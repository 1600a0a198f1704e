# src/cattlegrowth/growth/pipeline.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from cattlegrowth.io.loader import standardize_cattle_data, split_strata
from cattlegrowth.io.export import export_results_zip
from cattlegrowth.quality.data_checks import check_data_quality, log_quality_report, summarize_dataset
from .types import FitMetrics, FitResult
from .growth_models import MODEL_ORDER, get_growth_model
from .initializers import resolve_initializer
from .nls_fit import fit_growth_model, DEFAULT_MAX_ITER, DEFAULT_TOL
from .evaluate import convergence_info, evaluate_fit, rank_models

FitKey = Tuple[str, str]  # (breed_group, model)


@dataclass(frozen=True)
class GrowthPipelineConfig:
    models: Tuple[str, ...] = MODEL_ORDER
    initializer: str = "fixed"             # "fixed" | "data"
    max_iter: int = DEFAULT_MAX_ITER
    ftol: float = DEFAULT_TOL
    xtol: float = DEFAULT_TOL
    gtol: float = DEFAULT_TOL
    z_threshold: float = 3.0
    criterion: str = "AIC"                 # "AIC" | "BIC"
    n_jobs: int = 1


def fit_all(
    strata: Mapping[str, pd.DataFrame],
    cfg: GrowthPipelineConfig = GrowthPipelineConfig(),
) -> Dict[FitKey, FitResult]:
    """One independent fit per (breed_group, model); order of execution is irrelevant."""
    models = [get_growth_model(m).name for m in cfg.models]
    init = resolve_initializer(cfg.initializer)
    tasks = [(group, m) for group in strata for m in models]

    results = Parallel(n_jobs=cfg.n_jobs)(
        delayed(fit_growth_model)(
            m,
            strata[group]["age"].to_numpy(dtype=float),
            strata[group]["weight"].to_numpy(dtype=float),
            breed_group=group,
            initializer=init,
            max_iter=cfg.max_iter,
            ftol=cfg.ftol,
            xtol=cfg.xtol,
            gtol=cfg.gtol,
        )
        for group, m in tasks
    )
    return {key: fit for key, fit in zip(tasks, results)}


def evaluate_all(fits: Mapping[FitKey, FitResult]) -> Dict[FitKey, Optional[FitMetrics]]:
    return {key: evaluate_fit(fit) for key, fit in fits.items()}


def _num(v) -> float:
    return np.nan if v is None else float(v)


def parameter_table(fits: Mapping[FitKey, FitResult]) -> pd.DataFrame:
    rows = []
    for (group, model), fit in fits.items():
        row: Dict[str, Any] = {"breed_group": group, "model": model}
        for attr, suffix in (("params", ""), ("std_errors", "_se"), ("t_values", "_t"), ("p_values", "_p")):
            vec = getattr(fit, attr)
            for name in ("A", "B", "k"):
                row[f"{name}{suffix}"] = np.nan if vec is None else float(getattr(vec, name))
        row["params_valid"] = bool(fit.params_valid) if fit.converged else np.nan
        rows.append(row)
    cols = ["breed_group", "model", "A", "B", "k", "A_se", "B_se", "k_se", "A_t", "B_t", "k_t",
            "A_p", "B_p", "k_p", "params_valid"]
    return pd.DataFrame(rows, columns=cols)


def metrics_table(fits: Mapping[FitKey, FitResult], metrics: Mapping[FitKey, Optional[FitMetrics]]) -> pd.DataFrame:
    rows = []
    for key, fit in fits.items():
        m = metrics.get(key)
        rows.append(
            {
                "breed_group": key[0],
                "model": key[1],
                "n_obs": fit.n_obs,
                "rss": np.nan if m is None else m.rss,
                "log_lik": np.nan if m is None else _num(m.log_likelihood),
                "AIC": np.nan if m is None else _num(m.aic),
                "BIC": np.nan if m is None else _num(m.bic),
                "R2": np.nan if m is None else _num(m.r_squared),
            }
        )
    return pd.DataFrame(rows, columns=["breed_group", "model", "n_obs", "rss", "log_lik", "AIC", "BIC", "R2"])


def convergence_table(fits: Mapping[FitKey, FitResult]) -> pd.DataFrame:
    rows = []
    for (group, model), fit in fits.items():
        info = convergence_info(fit)
        rows.append(
            {
                "breed_group": group,
                "model": model,
                "status": info.status,
                "iterations": np.nan if info.iterations is None else info.iterations,
                "n_evaluations": np.nan if fit.n_evaluations is None else fit.n_evaluations,
                "tolerance": _num(info.tolerance),
                "stop_code": np.nan if info.stop_code is None else info.stop_code,
                "stop_message": info.stop_message,
            }
        )
    cols = ["breed_group", "model", "status", "iterations", "n_evaluations", "tolerance", "stop_code", "stop_message"]
    return pd.DataFrame(rows, columns=cols)


def result_tables(res: Mapping[str, Any]) -> Dict[str, pd.DataFrame]:
    # export file name -> table
    return {
        "parameters": res["parameters"],
        "metrics": res["metrics_table"],
        "convergence": res["convergence"],
        "best_models": res["best_models"],
    }


def run_growth_pipeline(
    data: pd.DataFrame,
    cfg: GrowthPipelineConfig = GrowthPipelineConfig(),
    export_dir: Optional[str | Path] = None,
    export_zip_name: str = "growth_outputs.zip",
) -> Dict[str, Any]:
    """
    Load -> quality check -> split by breed group -> fit every model -> evaluate.

    Returns:
      - data: standardized dataset
      - strata: breed_group -> observations used for fitting
      - quality / overview: diagnostics (never alter the data)
      - fits / metrics: dicts keyed by (breed_group, model)
      - parameters / metrics_table / convergence / best_models: DataFrames
      - zip_bytes/zip_path if export_dir is provided
    """
    df = standardize_cattle_data(data)

    quality = check_data_quality(df, z_threshold=cfg.z_threshold)
    log_quality_report(quality)
    overview = summarize_dataset(df)

    strata = split_strata(df)
    logging.info(f"Fitting {len(cfg.models)} model(s) for {len(strata)} breed group(s): {list(strata)}")

    fits = fit_all(strata, cfg)
    metrics = evaluate_all(fits)

    params_df = parameter_table(fits)
    metrics_df = metrics_table(fits, metrics)
    conv_df = convergence_table(fits)
    best_df = rank_models(metrics_df, criterion=cfg.criterion)

    n_failed = int((conv_df["status"] != "Converged").sum())
    if n_failed:
        logging.warning(f"{n_failed} of {len(conv_df)} fits did not converge; their metrics are reported as NA")

    res: Dict[str, Any] = {
        "data": df,
        "strata": strata,
        "quality": quality,
        "overview": overview,
        "fits": fits,
        "metrics": metrics,
        "parameters": params_df,
        "metrics_table": metrics_df,
        "convergence": conv_df,
        "best_models": best_df,
    }
    if export_dir is not None:
        res.update(
            export_results_zip(tables=result_tables(res), out_dir=Path(export_dir), zip_name=export_zip_name)
        )
    return res
