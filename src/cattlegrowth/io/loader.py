from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Union

import numpy as np
import pandas as pd

from cattlegrowth.growth.types import InputError

# canonical column -> accepted spellings in lab spreadsheets
COLUMN_ALIASES: Dict[str, tuple[str, ...]] = {
    "age": ("Age_Months", "Age", "age", "Age (months)", "age_months"),
    "weight": ("Weight_Kg", "Weight", "weight", "Weight (kg)", "weight_kg"),
    "breed_group": ("Breed_Group", "Breed Group", "Breed", "breed_group", "breed"),
}


def read_any(path: Union[str, Path]) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    if path.suffix.lower() in (".xlsx", ".xls"):
        return pd.read_excel(path)
    return pd.read_csv(path)


def _resolve_columns(df: pd.DataFrame) -> Dict[str, str]:
    lookup = {str(c).strip().lower(): c for c in df.columns}
    resolved: Dict[str, str] = {}
    for canon, aliases in COLUMN_ALIASES.items():
        for a in aliases:
            if a.lower() in lookup:
                resolved[canon] = lookup[a.lower()]
                break
    return resolved


def standardize_cattle_data(df: pd.DataFrame) -> pd.DataFrame:
    """
    Required columns after standardization:
      age (months), weight (kg), breed_group (str)

    Values are coerced to numeric; bad cells become NaN and are left for the
    quality checker to report. Raises InputError on missing columns or no rows.
    """
    if not isinstance(df, pd.DataFrame) or df.empty:
        raise InputError("Input dataset is empty")

    resolved = _resolve_columns(df)
    missing = [c for c in COLUMN_ALIASES if c not in resolved]
    if missing:
        raise InputError(
            f"Missing required columns {missing}. Expected one of "
            f"{[COLUMN_ALIASES[c][0] for c in missing]}. Got: {df.columns.tolist()}"
        )

    out = pd.DataFrame(
        {
            "age": pd.to_numeric(df[resolved["age"]], errors="coerce"),
            "weight": pd.to_numeric(df[resolved["weight"]], errors="coerce"),
            "breed_group": df[resolved["breed_group"]],
        },
        index=df.index,
    )
    out["breed_group"] = out["breed_group"].map(lambda v: np.nan if pd.isna(v) else str(v).strip())
    return out


def load_cattle_data(path: Union[str, Path]) -> pd.DataFrame:
    raw = read_any(path)
    df = standardize_cattle_data(raw)
    logging.info(f"Loaded {path}: rows={len(df)} breed_groups={df['breed_group'].nunique()}")
    return df


def usable_mask(df: pd.DataFrame) -> pd.Series:
    age = df["age"].to_numpy(dtype=float)
    weight = df["weight"].to_numpy(dtype=float)
    ok = np.isfinite(age) & np.isfinite(weight) & (age >= 0) & (weight > 0)
    ok &= df["breed_group"].notna().to_numpy() & (df["breed_group"].astype(str) != "").to_numpy()
    return pd.Series(ok, index=df.index)


def split_strata(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """
    Partition a standardized dataset by breed group (sorted labels).

    Rows with non-finite/negative age, non-positive weight or no breed label
    are left out of every stratum (they are reported by the quality checker).
    """
    if df.empty:
        raise InputError("Input dataset is empty")

    ok = usable_mask(df)
    n_dropped = int((~ok).sum())
    if n_dropped:
        logging.warning(f"Excluding {n_dropped} row(s) with unusable age/weight/breed values from fitting")

    labels = sorted(df["breed_group"].dropna().astype(str).unique().tolist())
    if not labels:
        raise InputError("No breed groups found in dataset")

    usable = df[ok]
    strata: Dict[str, pd.DataFrame] = {}
    for label in labels:
        g = usable[usable["breed_group"] == label][["age", "weight", "breed_group"]].copy()
        if g.empty:
            raise InputError(f"Breed group {label!r} has no usable observations")
        strata[label] = g
    return strata
