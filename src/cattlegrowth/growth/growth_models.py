# src/cattlegrowth/growth/growth_models.py
from __future__ import annotations
import numpy as np
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

# exp() overflows float64 just above 709
_EXP_CLIP = 700.0


def _decay(t, k):
    with np.errstate(over="ignore", invalid="ignore"):
        return np.exp(np.clip(-k * t, -_EXP_CLIP, _EXP_CLIP))


# --------- Model functions ---------
def brody(t, A, B, k):
    # y(t) = A * (1 - B * exp(-k t))
    with np.errstate(over="ignore", invalid="ignore"):
        return A * (1.0 - B * _decay(t, k))


def von_bertalanffy(t, A, B, k):
    # y(t) = A * (1 - exp(-k t))^B
    base = np.maximum(1.0 - _decay(t, k), 0.0)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return A * np.power(base, B)


def logistic(t, A, B, k):
    # y(t) = A / (1 + B * exp(-k t))
    with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
        return A / (1.0 + B * _decay(t, k))


# --------- Jacobians (d y / d [A, B, k]) ---------
def brody_jac(t, A, B, k):
    t = np.asarray(t, dtype=float)
    e = _decay(t, k)
    with np.errstate(over="ignore", invalid="ignore"):
        return np.column_stack([1.0 - B * e, -A * e, A * B * t * e])


def von_bertalanffy_jac(t, A, B, k):
    t = np.asarray(t, dtype=float)
    e = _decay(t, k)
    u = np.maximum(1.0 - e, 0.0)
    pos = u > 0
    safe_u = np.where(pos, u, 1.0)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        uB = np.where(pos, np.power(safe_u, B), 0.0)
        d_b = np.where(pos, A * uB * np.log(safe_u), 0.0)
        # derivatives are taken as 0 where the base vanishes (age 0)
        d_k = np.where(pos, A * B * np.power(safe_u, B - 1.0) * t * e, 0.0)
    return np.column_stack([uB, d_b, d_k])


def logistic_jac(t, A, B, k):
    t = np.asarray(t, dtype=float)
    e = _decay(t, k)
    with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
        denom = 1.0 + B * e
        return np.column_stack([1.0 / denom, -A * e / denom**2, A * B * t * e / denom**2])


@dataclass(frozen=True)
class GrowthModelSpec:
    name: str
    label: str
    func: Callable
    jac: Callable
    n_params: int = 3
    param_names: Tuple[str, ...] = ("A", "B", "k")

    def birth_weight(self, A: float, B: float, k: float) -> float:
        return float(self.func(np.array([0.0]), A, B, k)[0])


GROWTH_MODELS: Dict[str, GrowthModelSpec] = {
    "brody": GrowthModelSpec("brody", "Brody", brody, brody_jac),
    "von_bertalanffy": GrowthModelSpec("von_bertalanffy", "Von Bertalanffy", von_bertalanffy, von_bertalanffy_jac),
    "logistic": GrowthModelSpec("logistic", "Logistic", logistic, logistic_jac),
}

MODEL_ORDER: Tuple[str, ...] = tuple(GROWTH_MODELS)


def get_growth_model(name: str) -> GrowthModelSpec:
    key = str(name).strip().lower().replace(" ", "_").replace("-", "_")
    aliases = {"vonb": "von_bertalanffy", "log": "logistic"}
    key = aliases.get(key, key)
    if key not in GROWTH_MODELS:
        raise KeyError(f"Unknown growth model {name!r}. Choose from {list(GROWTH_MODELS)}")
    return GROWTH_MODELS[key]


def predict(model: str, age, A: float, B: float, k: float) -> np.ndarray:
    return get_growth_model(model).func(np.asarray(age, dtype=float), A, B, k)
