"""
cattle_data.py
---------------------------------
Synthetic weight-at-age generator that writes a single long table:

  Columns: Age_Months, Weight_Kg, Breed_Group

Each breed group follows one growth model with its own (A, B, k) plus
Gaussian noise. Optional missing values and outliers can be injected to
exercise the quality checker.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from cattlegrowth.growth.growth_models import get_growth_model

# breed group -> (A, B, k) for a logistic curve
DEFAULT_GROUPS: dict[str, Tuple[float, float, float]] = {
    "Hybrid": (650.0, 3.0, 0.08),
    "Pure": (560.0, 2.5, 0.07),
}


def simulate_cattle_data(
    groups: Optional[Mapping[str, Tuple[float, float, float]]] = None,
    model: str = "logistic",
    n_per_group: int = 20,
    age_max: float = 60.0,
    noise_sd: float = 5.0,
    seed: Optional[int] = 123,
    pct_missing: float = 0.0,
    pct_outliers: float = 0.0,
    outlier_scale: float = 6.0,
) -> pd.DataFrame:
    spec = get_growth_model(model)
    groups = DEFAULT_GROUPS if groups is None else groups
    rng = np.random.default_rng(seed)

    frames = []
    for label, (A, B, k) in groups.items():
        age = np.linspace(0.0, float(age_max), int(n_per_group))
        weight = spec.func(age, A, B, k) + rng.normal(0.0, noise_sd, size=age.shape)
        weight = np.clip(weight, 1.0, None)

        if pct_outliers > 0:
            n_out = int(round(pct_outliers * len(age)))
            if n_out:
                idx = rng.choice(len(age), size=n_out, replace=False)
                weight[idx] += outlier_scale * float(np.std(weight))

        if pct_missing > 0:
            n_miss = int(round(pct_missing * len(age)))
            if n_miss:
                idx = rng.choice(len(age), size=n_miss, replace=False)
                weight[idx] = np.nan

        frames.append(pd.DataFrame({"Age_Months": age, "Weight_Kg": weight, "Breed_Group": label}))

    return pd.concat(frames, ignore_index=True)


def write_synthetic(df: pd.DataFrame, out_path: Union[str, Path]) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if out_path.suffix.lower() in (".xlsx", ".xls"):
        df.to_excel(out_path, index=False)
    else:
        df.to_csv(out_path, index=False)
    logging.info(f"Wrote synthetic dataset to {out_path} (rows={len(df)})")
    return out_path
