from __future__ import annotations

import math
from pathlib import Path
from typing import Dict, Mapping, Tuple

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from cattlegrowth.growth.growth_models import MODEL_ORDER, get_growth_model
from cattlegrowth.growth.types import FitResult

# model -> (colour, dash)
MODEL_STYLE: Dict[str, Tuple[str, str]] = {
    "brody": ("red", "dashdot"),
    "von_bertalanffy": ("green", "solid"),
    "logistic": ("blue", "dash"),
}
N_GRID = 100


def _age_grid(age_min: float, age_max: float, n: int = N_GRID) -> np.ndarray:
    return np.linspace(float(age_min), float(age_max), n)


def _ordered(fits: Mapping[str, FitResult]) -> list[Tuple[str, FitResult]]:
    order = {m: i for i, m in enumerate(MODEL_ORDER)}
    return sorted(fits.items(), key=lambda kv: order.get(kv[0], len(order)))


def _layout(fig: go.Figure, title: str, height: int = 480) -> go.Figure:
    fig.update_layout(
        title=dict(text=title, x=0.5),
        template="simple_white",
        legend=dict(orientation="h", yanchor="top", y=-0.15, xanchor="center", x=0.5),
        height=height,
        margin=dict(l=40, r=10, t=60, b=60),
    )
    return fig


def plot_growth_comparison(
    observations: pd.DataFrame,
    fits: Mapping[str, FitResult],
    breed: str,
) -> go.Figure:
    """Observed weights plus every converged model curve over the observed age range."""
    age = observations["age"].to_numpy(dtype=float)
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=age,
            y=observations["weight"].to_numpy(dtype=float),
            mode="markers",
            name="Observed",
            marker=dict(color="grey", size=7, opacity=0.5),
        )
    )
    if age.size:
        grid = _age_grid(np.nanmin(age), np.nanmax(age))
        for model, fit in _ordered(fits):
            if not fit.converged:
                continue
            color, dash = MODEL_STYLE.get(model, ("black", "solid"))
            fig.add_trace(
                go.Scatter(
                    x=grid,
                    y=fit.predict(grid),
                    mode="lines",
                    name=get_growth_model(model).label,
                    line=dict(color=color, dash=dash, width=2),
                )
            )
    fig.update_xaxes(title_text="Age (months)")
    fig.update_yaxes(title_text="Weight (kg)")
    return _layout(fig, f"{breed} - Growth Model Comparison")


def plot_residuals(fits: Mapping[str, FitResult], breed: str) -> go.Figure:
    """One residual-vs-age panel per model; failed fits get an empty panel."""
    ordered = _ordered(fits)
    titles = [
        get_growth_model(m).label + ("" if f.converged else " (not converged)") for m, f in ordered
    ]
    fig = make_subplots(rows=1, cols=max(1, len(ordered)), shared_yaxes=True, subplot_titles=titles)
    for col, (model, fit) in enumerate(ordered, start=1):
        color, _ = MODEL_STYLE.get(model, ("black", "solid"))
        if fit.converged:
            fig.add_trace(
                go.Scatter(
                    x=fit.ages,
                    y=fit.residuals,
                    mode="markers",
                    name=get_growth_model(model).label,
                    marker=dict(color=color, opacity=0.5),
                ),
                row=1,
                col=col,
            )
        fig.add_hline(y=0.0, line_dash="dash", line_color="black", row=1, col=col)
        fig.update_xaxes(title_text="Age (months)", row=1, col=col)
    fig.update_yaxes(title_text="Residuals (kg)", row=1, col=1)
    return _layout(fig, f"{breed} - Residual Plot for Growth Models", height=420)


def plot_combined_growth_models(
    fits_by_group: Mapping[str, Mapping[str, FitResult]],
    data: pd.DataFrame,
    ncols: int = 2,
) -> go.Figure:
    """Faceted overlay, one panel per breed group, curves over the global age range."""
    groups = list(fits_by_group)
    nrows = max(1, math.ceil(len(groups) / ncols))
    fig = make_subplots(rows=nrows, cols=ncols, subplot_titles=groups, shared_xaxes=True)

    age_all = pd.to_numeric(data["age"], errors="coerce").to_numpy(dtype=float)
    finite = age_all[np.isfinite(age_all)]
    grid = _age_grid(finite.min(), finite.max()) if finite.size else np.array([])

    seen_legend: set[str] = set()
    for i, group in enumerate(groups):
        row, col = i // ncols + 1, i % ncols + 1
        obs = data[data["breed_group"] == group]
        fig.add_trace(
            go.Scatter(
                x=obs["age"],
                y=obs["weight"],
                mode="markers",
                name="Observed",
                marker=dict(color="grey", size=6, opacity=0.5),
                showlegend="Observed" not in seen_legend,
            ),
            row=row,
            col=col,
        )
        seen_legend.add("Observed")
        for model, fit in _ordered(fits_by_group[group]):
            if not fit.converged or grid.size == 0:
                continue
            color, dash = MODEL_STYLE.get(model, ("black", "solid"))
            label = get_growth_model(model).label
            fig.add_trace(
                go.Scatter(
                    x=grid,
                    y=fit.predict(grid),
                    mode="lines",
                    name=label,
                    line=dict(color=color, dash=dash, width=2),
                    showlegend=label not in seen_legend,
                ),
                row=row,
                col=col,
            )
            seen_legend.add(label)
    fig.update_xaxes(title_text="Age (months)", row=nrows)
    fig.update_yaxes(title_text="Weight (kg)", col=1)
    return _layout(fig, "Growth Model Comparison by Breed Group", height=max(480, 360 * nrows))


def group_fits(fits: Mapping[Tuple[str, str], FitResult]) -> Dict[str, Dict[str, FitResult]]:
    out: Dict[str, Dict[str, FitResult]] = {}
    for (group, model), fit in fits.items():
        out.setdefault(group, {})[model] = fit
    return out


def build_report_figures(
    strata: Mapping[str, pd.DataFrame],
    fits: Mapping[Tuple[str, str], FitResult],
) -> Dict[str, go.Figure]:
    by_group = group_fits(fits)
    figs: Dict[str, go.Figure] = {}
    for group, obs in strata.items():
        group_fit = by_group.get(group, {})
        figs[f"comparison_{group}"] = plot_growth_comparison(obs, group_fit, group)
        figs[f"residuals_{group}"] = plot_residuals(group_fit, group)
    combined = pd.concat(list(strata.values()), ignore_index=True)
    figs["combined"] = plot_combined_growth_models(by_group, combined)
    return figs


def write_figures_html(figs: Mapping[str, go.Figure], out_dir: Path) -> Dict[str, Path]:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths: Dict[str, Path] = {}
    for name, fig in figs.items():
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in name)
        path = out_dir / f"{safe}.html"
        fig.write_html(str(path), include_plotlyjs="cdn")
        paths[name] = path
    return paths
