# src/cattlegrowth/growth/evaluate.py
from __future__ import annotations
import numpy as np
import pandas as pd
from typing import Optional

from .types import ConvergenceInfo, FitMetrics, FitResult
from .growth_models import MODEL_ORDER


def gaussian_log_likelihood(rss: float, n: int) -> Optional[float]:
    """
    Maximised Gaussian log-likelihood of a least-squares fit, with the
    error variance profiled out (sigma^2 = RSS / n).
    """
    if n <= 0 or not np.isfinite(rss) or rss <= 0:
        return None
    return float(-0.5 * n * (np.log(2.0 * np.pi) + 1.0 + np.log(rss / n)))


def aic_from_rss(rss: float, n: int, k: int) -> Optional[float]:
    # k regression parameters plus the residual variance
    ll = gaussian_log_likelihood(rss, n)
    if ll is None:
        return None
    return float(-2.0 * ll + 2.0 * (k + 1))


def bic_from_rss(rss: float, n: int, k: int) -> Optional[float]:
    ll = gaussian_log_likelihood(rss, n)
    if ll is None:
        return None
    return float(-2.0 * ll + np.log(n) * (k + 1))


def r_squared(residuals: np.ndarray, fitted: np.ndarray) -> Optional[float]:
    """1 - RSS/TSS on the observed values (fitted + residuals). None when TSS is 0."""
    residuals = np.asarray(residuals, float)
    fitted = np.asarray(fitted, float)
    if residuals.size == 0:
        return None
    actual = fitted + residuals
    tss = float(np.sum((actual - np.mean(actual)) ** 2))
    if not np.isfinite(tss) or tss <= 0:
        return None
    rss = float(np.sum(residuals**2))
    return float(1.0 - rss / tss)


def evaluate_fit(fit: FitResult) -> Optional[FitMetrics]:
    if not fit.converged:
        return None
    n = int(fit.residuals.size)
    p = int(fit.n_params)
    rss = float(np.sum(fit.residuals**2))
    return FitMetrics(
        aic=aic_from_rss(rss, n, p),
        bic=bic_from_rss(rss, n, p),
        r_squared=r_squared(fit.residuals, fit.fitted),
        rss=rss,
        log_likelihood=gaussian_log_likelihood(rss, n),
        n_obs=n,
        n_params=p,
    )


def convergence_info(fit: FitResult) -> ConvergenceInfo:
    return ConvergenceInfo(
        status=fit.status,
        iterations=fit.iterations,
        tolerance=fit.tolerance,
        stop_code=fit.stop_code,
        stop_message=fit.message,
    )


def rank_models(metrics_table: pd.DataFrame, criterion: str = "AIC") -> pd.DataFrame:
    """
    Pick the lowest-criterion model per breed group from a metrics table.
    Groups without any finite value get best_model = NA.
    """
    crit = str(criterion).upper()
    if crit not in {"AIC", "BIC"}:
        raise ValueError(f"Unknown criterion {criterion!r}; use 'AIC' or 'BIC'")

    order = {m: i for i, m in enumerate(MODEL_ORDER)}
    rows = []
    for group, g in metrics_table.groupby("breed_group", sort=False):
        vals = pd.to_numeric(g[crit], errors="coerce")
        g = g.assign(_v=vals, _o=g["model"].map(order).fillna(len(order)))
        g = g[np.isfinite(g["_v"].to_numpy(dtype=float))]
        if g.empty:
            rows.append({"breed_group": group, "best_model": np.nan, "criterion": crit, "value": np.nan})
            continue
        best = g.sort_values(["_v", "_o"], kind="mergesort").iloc[0]
        rows.append({"breed_group": group, "best_model": best["model"], "criterion": crit, "value": float(best["_v"])})
    return pd.DataFrame(rows, columns=["breed_group", "best_model", "criterion", "value"])
