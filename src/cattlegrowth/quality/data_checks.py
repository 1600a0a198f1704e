from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pandas as pd

DEFAULT_Z_THRESHOLD = 3.0


@dataclass
class DataQualityReport:
    n_rows: int
    missing_counts: Dict[str, int]
    non_finite_rows: pd.DataFrame
    n_duplicates: int
    weight_outliers: List[int] = field(default_factory=list)
    age_outliers: List[int] = field(default_factory=list)
    z_threshold: float = DEFAULT_Z_THRESHOLD

    @property
    def has_issues(self) -> bool:
        return bool(
            len(self.non_finite_rows)
            or self.n_duplicates
            or self.weight_outliers
            or self.age_outliers
            or any(self.missing_counts.values())
        )


def zscore_outliers(values: pd.Series, threshold: float = DEFAULT_Z_THRESHOLD) -> List[int]:
    """Index labels whose |z| exceeds threshold (sample sd, NaNs ignored)."""
    x = pd.to_numeric(values, errors="coerce").astype(float)
    x = x[np.isfinite(x.to_numpy())]
    if len(x) < 2:
        return []
    sd = float(x.std(ddof=1))
    if not np.isfinite(sd) or sd == 0:
        return []
    z = (x - float(x.mean())) / sd
    return [idx for idx, v in z.items() if abs(v) > threshold]


def check_data_quality(df: pd.DataFrame, z_threshold: float = DEFAULT_Z_THRESHOLD) -> DataQualityReport:
    """
    Diagnostics on a standardized dataset (age, weight, breed_group).
    Read-only: nothing is dropped or modified here.
    """
    age = pd.to_numeric(df["age"], errors="coerce").to_numpy(dtype=float)
    weight = pd.to_numeric(df["weight"], errors="coerce").to_numpy(dtype=float)
    bad = ~np.isfinite(age) | ~np.isfinite(weight)

    return DataQualityReport(
        n_rows=int(len(df)),
        missing_counts={c: int(df[c].isna().sum()) for c in df.columns},
        non_finite_rows=df.loc[bad].copy(),
        n_duplicates=int(df.duplicated().sum()),
        weight_outliers=zscore_outliers(df["weight"], z_threshold),
        age_outliers=zscore_outliers(df["age"], z_threshold),
        z_threshold=float(z_threshold),
    )


def summarize_dataset(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """Descriptive statistics for age/weight plus breed-group occurrence counts."""
    summary = df[["age", "weight"]].describe().T
    counts = (
        df["breed_group"]
        .value_counts(dropna=False)
        .rename_axis("breed_group")
        .reset_index(name="occurrences")
        .sort_values("breed_group", na_position="last")
        .reset_index(drop=True)
    )
    by_group = df.groupby("breed_group")[["age", "weight"]].agg(["count", "mean", "std", "min", "max"])
    return {"summary": summary, "breed_counts": counts, "by_group": by_group}


def log_quality_report(report: DataQualityReport) -> None:
    if len(report.non_finite_rows):
        logging.warning(
            f"Non-finite values detected in {len(report.non_finite_rows)} row(s):\n"
            + report.non_finite_rows.to_string()
        )
    else:
        logging.info("No non-finite values detected.")

    missing = {k: v for k, v in report.missing_counts.items() if v}
    if missing:
        logging.warning(f"Missing values per column: {missing}")
    if report.n_duplicates:
        logging.warning(f"Duplicate rows: {report.n_duplicates}")
    if report.weight_outliers:
        logging.warning(f"Weight outliers (|z| > {report.z_threshold:g}): rows {report.weight_outliers}")
    if report.age_outliers:
        logging.warning(f"Age outliers (|z| > {report.z_threshold:g}): rows {report.age_outliers}")
