# src/cattlegrowth/growth/nls_fit.py
from __future__ import annotations
import logging
import numpy as np
from typing import Optional, Union
from scipy import stats
from scipy.optimize import least_squares

from .types import FitResult, ParameterVector, STATUS_CONVERGED, STATUS_FAILED
from .growth_models import GrowthModelSpec, get_growth_model
from .initializers import Initializer, resolve_initializer, summarize_stratum

DEFAULT_MAX_ITER = 1000
DEFAULT_TOL = 1e-8


def _failed(spec: GrowthModelSpec, breed_group, message: str, n: int, **kw) -> FitResult:
    logging.info(f"[{breed_group}] {spec.label}: not converged ({message})")
    return FitResult(
        model=spec.name,
        breed_group=breed_group,
        status=STATUS_FAILED,
        message=message,
        n_obs=int(n),
        n_params=spec.n_params,
        **kw,
    )


def _covariance(jac: np.ndarray) -> Optional[np.ndarray]:
    # inv(J^T J) via SVD; None when J is non-finite or rank deficient
    if jac.size == 0 or not np.all(np.isfinite(jac)):
        return None
    _, s, VT = np.linalg.svd(jac, full_matrices=False)
    if s.size == 0 or not np.all(np.isfinite(s)):
        return None
    threshold = np.finfo(float).eps * max(jac.shape) * s[0]
    if np.any(s <= threshold):
        return None
    return (VT.T / s**2) @ VT


def fit_growth_model(
    model: Union[str, GrowthModelSpec],
    t: np.ndarray,
    y: np.ndarray,
    *,
    breed_group: Optional[str] = None,
    initializer: Union[str, Initializer, None] = None,
    max_iter: int = DEFAULT_MAX_ITER,
    ftol: float = DEFAULT_TOL,
    xtol: float = DEFAULT_TOL,
    gtol: float = DEFAULT_TOL,
) -> FitResult:
    """
    Levenberg-Marquardt fit of one growth curve to one breed group.

    Never raises for numerical trouble: too few points, evaluation cap,
    singular gradient and non-finite estimates all come back as a
    "Not Converged" FitResult with the reason in ``message``.
    """
    spec = model if isinstance(model, GrowthModelSpec) else get_growth_model(model)
    init = resolve_initializer(initializer)

    t = np.asarray(t, float)
    y = np.asarray(y, float)
    mask = np.isfinite(t) & np.isfinite(y)
    t = t[mask]
    y = y[mask]
    n = int(len(t))
    p = int(spec.n_params)

    if n < p:
        return _failed(spec, breed_group, f"Too few observations for {p}-parameter fit (n={n})", n)
    if np.unique(t).size < p:
        return _failed(spec, breed_group, f"Singular gradient: fewer than {p} distinct ages", n)

    start = init(summarize_stratum(t, y))
    p0 = start.as_array()

    def resid(theta):
        with np.errstate(all="ignore"):
            return spec.func(t, *theta) - y

    def jac(theta):
        with np.errstate(all="ignore"):
            return spec.jac(t, *theta)

    logging.debug(f"[{breed_group}] {spec.label}: fitting n={n} from {start}")
    try:
        res = least_squares(
            resid,
            p0,
            jac=jac,
            method="lm",
            x_scale="jac",
            max_nfev=int(max_iter),
            ftol=ftol,
            xtol=xtol,
            gtol=gtol,
        )
    except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
        return _failed(spec, breed_group, f"Numerical error: {e}", n, start=start)

    iterations = int(res.njev) if res.njev is not None else int(res.nfev)
    bookkeeping = dict(
        stop_code=int(res.status),
        iterations=iterations,
        n_evaluations=int(res.nfev),
        tolerance=float(res.optimality),
        start=start,
    )

    if res.status == 0:
        return _failed(
            spec, breed_group, f"Number of iterations has reached maximum of {int(max_iter)}", n, **bookkeeping
        )
    if res.status < 0 or not res.success:
        return _failed(spec, breed_group, str(res.message), n, **bookkeeping)

    theta = np.asarray(res.x, float)
    with np.errstate(all="ignore"):
        fitted = np.asarray(spec.func(t, *theta), float)
    if not (np.all(np.isfinite(theta)) and np.all(np.isfinite(fitted))):
        return _failed(spec, breed_group, "Non-finite parameter estimates", n, **bookkeeping)

    try:
        with np.errstate(all="ignore"):
            J = np.asarray(spec.jac(t, *theta), float)
        cov = _covariance(J)
    except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
        logging.debug(f"[{breed_group}] {spec.label}: covariance failed ({e})")
        cov = None
    if cov is None:
        return _failed(spec, breed_group, "Singular gradient matrix at parameter estimates", n, **bookkeeping)

    residuals = y - fitted
    rss = float(np.sum(residuals**2))
    dof = n - p
    with np.errstate(divide="ignore", invalid="ignore"):
        if dof > 0:
            se = np.sqrt(np.diag(cov) * (rss / dof))
            t_vals = theta / se
            p_vals = 2.0 * stats.t.sf(np.abs(t_vals), dof)
        else:
            se = np.full(p, np.nan)
            t_vals = np.full(p, np.nan)
            p_vals = np.full(p, np.nan)

    logging.info(
        f"[{breed_group}] {spec.label}: converged in {iterations} iterations "
        f"(A={theta[0]:.4g}, B={theta[1]:.4g}, k={theta[2]:.4g}, RSS={rss:.4g})"
    )
    return FitResult(
        model=spec.name,
        breed_group=breed_group,
        status=STATUS_CONVERGED,
        message=str(res.message),
        n_obs=n,
        n_params=p,
        params=ParameterVector.from_array(theta),
        std_errors=ParameterVector.from_array(se),
        t_values=ParameterVector.from_array(t_vals),
        p_values=ParameterVector.from_array(p_vals),
        ages=t,
        residuals=residuals,
        fitted=fitted,
        **bookkeeping,
    )
