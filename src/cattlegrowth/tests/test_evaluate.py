from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cattlegrowth.growth.evaluate import (
    aic_from_rss,
    bic_from_rss,
    convergence_info,
    evaluate_fit,
    gaussian_log_likelihood,
    r_squared,
    rank_models,
)
from cattlegrowth.growth.types import STATUS_CONVERGED, STATUS_FAILED, FitResult, ParameterVector

WEIGHTS = np.array([120.0, 210.0, 300.0, 380.0, 440.0, 480.0, 505.0, 520.0])
AGES = np.arange(len(WEIGHTS), dtype=float) * 6.0


def _converged(fitted, residuals) -> FitResult:
    vec = ParameterVector(600.0, 0.8, 0.05)
    return FitResult(
        model="brody",
        breed_group="X",
        status=STATUS_CONVERGED,
        message="`ftol` termination condition is satisfied.",
        n_obs=len(fitted),
        stop_code=2,
        iterations=7,
        n_evaluations=9,
        tolerance=1e-9,
        params=vec,
        std_errors=vec,
        t_values=vec,
        p_values=vec,
        ages=AGES[: len(fitted)],
        residuals=residuals,
        fitted=fitted,
    )


def test_r_squared_perfect_fit_is_one():
    fit = _converged(WEIGHTS, np.zeros_like(WEIGHTS))
    m = evaluate_fit(fit)
    assert m is not None
    assert m.r_squared == pytest.approx(1.0)
    assert m.rss == 0.0
    # log(0): information criteria are degenerate, not a crash
    assert m.aic is None and m.bic is None and m.log_likelihood is None


def test_r_squared_null_model_is_zero():
    mean = np.full_like(WEIGHTS, WEIGHTS.mean())
    fit = _converged(mean, WEIGHTS - mean)
    m = evaluate_fit(fit)
    assert m.r_squared == pytest.approx(0.0, abs=1e-12)
    assert m.aic is not None


def test_r_squared_undefined_when_weights_identical():
    fitted = np.full(6, 400.0)
    assert r_squared(np.zeros(6), fitted) is None
    m = evaluate_fit(_converged(fitted, np.zeros(6)))
    assert m.r_squared is None


def test_failed_fit_has_no_metrics():
    fit = FitResult(model="logistic", breed_group="X", status=STATUS_FAILED, message="boom", n_obs=2)
    assert evaluate_fit(fit) is None


def test_log_likelihood_and_criteria_values():
    # n = 10, RSS = 10  ->  logL = -5 * (ln(2*pi) + 1)
    ll = gaussian_log_likelihood(10.0, 10)
    assert ll == pytest.approx(-5.0 * (np.log(2 * np.pi) + 1.0))
    assert aic_from_rss(10.0, 10, 3) == pytest.approx(-2 * ll + 8.0)
    assert bic_from_rss(10.0, 10, 3) == pytest.approx(-2 * ll + np.log(10) * 4.0)


def test_aic_differs_from_textbook_form_by_a_constant():
    n, p = 25, 3
    offsets = [aic_from_rss(rss, n, p) - (n * np.log(rss / n) + 2 * p) for rss in (5.0, 50.0, 5000.0)]
    assert np.allclose(offsets, offsets[0])


@pytest.mark.parametrize("criterion", [aic_from_rss, bic_from_rss])
def test_criteria_monotone_in_rss(criterion):
    rss = np.array([1.0, 3.5, 10.0, 250.0, 1e4])
    vals = [criterion(r, 30, 3) for r in rss]
    assert all(a < b for a, b in zip(vals, vals[1:]))


def test_bic_penalises_more_than_aic_for_moderate_n():
    assert bic_from_rss(100.0, 40, 3) > aic_from_rss(100.0, 40, 3)


def test_convergence_info_is_passthrough():
    fit = _converged(WEIGHTS, np.zeros_like(WEIGHTS))
    info = convergence_info(fit)
    assert info.status == STATUS_CONVERGED
    assert info.iterations == 7
    assert info.tolerance == 1e-9
    assert info.stop_code == 2
    assert info.stop_message == fit.message


def test_rank_models_picks_lowest_and_marks_missing_groups():
    table = pd.DataFrame(
        {
            "breed_group": ["A", "A", "A", "B", "B", "B"],
            "model": ["brody", "von_bertalanffy", "logistic"] * 2,
            "AIC": [210.0, 205.0, 190.0, np.nan, np.nan, np.nan],
            "BIC": [212.0, 204.0, 193.0, np.nan, np.nan, np.nan],
        }
    )
    best = rank_models(table, "aic")
    assert best.set_index("breed_group").loc["A", "best_model"] == "logistic"
    assert pd.isna(best.set_index("breed_group").loc["B", "best_model"])

    with pytest.raises(ValueError):
        rank_models(table, "R2")


def test_rank_models_tie_goes_to_model_order():
    table = pd.DataFrame(
        {"breed_group": ["A", "A"], "model": ["logistic", "brody"], "AIC": [100.0, 100.0], "BIC": [1.0, 1.0]}
    )
    assert rank_models(table)["best_model"].iloc[0] == "brody"
