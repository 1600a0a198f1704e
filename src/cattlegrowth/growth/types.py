# src/cattlegrowth/growth/types.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Literal
import numpy as np

from .growth_models import get_growth_model

GrowthModelName = Literal["brody", "von_bertalanffy", "logistic"]
FitStatus = Literal["Converged", "Not Converged"]

STATUS_CONVERGED: FitStatus = "Converged"
STATUS_FAILED: FitStatus = "Not Converged"


class InputError(ValueError):
    """Malformed or empty input; raised before any fitting is attempted."""


@dataclass(frozen=True)
class ParameterVector:
    A: float   # asymptotic weight (kg)
    B: float   # shape / scale, meaning differs per model
    k: float   # maturation rate (1/month)

    def as_array(self) -> np.ndarray:
        return np.array([self.A, self.B, self.k], dtype=float)

    @classmethod
    def from_array(cls, values) -> "ParameterVector":
        a, b, k = (float(v) for v in values)
        return cls(A=a, B=b, k=k)


@dataclass(frozen=True)
class StratumSummary:
    n: int
    age_min: float
    age_max: float
    weight_min: float
    weight_max: float
    weight_mean: float


def _frozen(a) -> np.ndarray:
    out = np.array(a, dtype=float)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class FitResult:
    model: str
    breed_group: Optional[str]
    status: FitStatus
    message: str
    n_obs: int
    n_params: int = 3

    # optimizer bookkeeping
    stop_code: Optional[int] = None
    iterations: Optional[int] = None
    n_evaluations: Optional[int] = None
    tolerance: Optional[float] = None
    start: Optional[ParameterVector] = None

    # estimates (all present or all absent)
    params: Optional[ParameterVector] = None
    std_errors: Optional[ParameterVector] = None
    t_values: Optional[ParameterVector] = None
    p_values: Optional[ParameterVector] = None

    ages: np.ndarray = field(default_factory=lambda: _frozen([]))
    residuals: np.ndarray = field(default_factory=lambda: _frozen([]))
    fitted: np.ndarray = field(default_factory=lambda: _frozen([]))

    def __post_init__(self):
        for name in ("ages", "residuals", "fitted"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    @property
    def converged(self) -> bool:
        return self.status == STATUS_CONVERGED and self.params is not None

    @property
    def params_valid(self) -> bool:
        # biologically meaningful: positive asymptote and maturation rate
        if self.params is None:
            return False
        return self.params.A > 0 and self.params.k > 0

    def predict(self, age) -> np.ndarray:
        if self.params is None:
            raise ValueError(f"{self.model} fit for {self.breed_group!r} did not converge: {self.message}")
        spec = get_growth_model(self.model)
        return spec.func(np.asarray(age, dtype=float), *self.params.as_array())


@dataclass(frozen=True)
class FitMetrics:
    aic: Optional[float]
    bic: Optional[float]
    r_squared: Optional[float]
    rss: float
    log_likelihood: Optional[float]
    n_obs: int
    n_params: int


@dataclass(frozen=True)
class ConvergenceInfo:
    status: FitStatus
    iterations: Optional[int]
    tolerance: Optional[float]
    stop_code: Optional[int]
    stop_message: str

