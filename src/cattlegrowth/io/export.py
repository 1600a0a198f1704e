# src/cattlegrowth/io/export.py
from __future__ import annotations
import io
import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import pandas as pd


def _non_empty(tables: Mapping[str, Optional[pd.DataFrame]]) -> Dict[str, pd.DataFrame]:
    return {name: df for name, df in tables.items() if df is not None and not df.empty}


def tables_zip_bytes(
    tables: Mapping[str, Optional[pd.DataFrame]],
    extra_files: Optional[Mapping[str, Path]] = None,
) -> bytes:
    """In-memory ZIP with <table name>.csv per non-empty table plus any extra files."""
    bio = io.BytesIO()
    with zipfile.ZipFile(bio, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, df in _non_empty(tables).items():
            zf.writestr(f"{name}.csv", df.to_csv(index=False))
        for p in (extra_files or {}).values():
            p = Path(p)
            zf.write(p, arcname=p.name)
    return bio.getvalue()


def export_results_zip(
    *,
    tables: Mapping[str, Optional[pd.DataFrame]],
    out_dir: Path,
    zip_name: str = "growth_outputs.zip",
    extra_files: Optional[Mapping[str, Path]] = None,
) -> Dict[str, Any]:
    """
    Write one CSV per table and bundle them in a ZIP.
    Files written:
      - <table name>.csv for every non-empty table
      - any extra_files (e.g. plot HTML) are added to the archive as-is
      - <zip_name>
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    csv_paths = []
    for name, df in _non_empty(tables).items():
        path = out_dir / f"{name}.csv"
        df.to_csv(path, index=False)
        csv_paths.append(path)

    zip_bytes = tables_zip_bytes(tables, extra_files)
    zip_path = out_dir / zip_name
    zip_path.write_bytes(zip_bytes)
    logging.info(f"Wrote {len(csv_paths) + len(extra_files or {})} file(s) to {zip_path}")

    return {"zip_bytes": zip_bytes, "zip_path": zip_path, "csv_paths": csv_paths}
