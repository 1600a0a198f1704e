# app/streamlit_app.py
from __future__ import annotations

import io
import sys
from pathlib import Path

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parents[1]
# Ensure repository paths are on sys.path for local imports
for cand in {ROOT / "src", Path.cwd() / "src"}:
    if cand.exists():
        sp = str(cand)
        if sp not in sys.path:
            sys.path.insert(0, sp)

from cattlegrowth.growth.growth_models import GROWTH_MODELS, MODEL_ORDER
from cattlegrowth.growth.initializers import INITIALIZERS
from cattlegrowth.growth.pipeline import GrowthPipelineConfig, result_tables, run_growth_pipeline
from cattlegrowth.growth.types import InputError
from cattlegrowth.io.export import tables_zip_bytes
from cattlegrowth.synthetic.cattle_data import simulate_cattle_data
from cattlegrowth.viz.plots import group_fits, plot_combined_growth_models, plot_growth_comparison, plot_residuals


def _read_upload(uploaded) -> pd.DataFrame:
    data = uploaded.getvalue()
    if uploaded.name.lower().endswith((".xlsx", ".xls")):
        return pd.read_excel(io.BytesIO(data))
    return pd.read_csv(io.BytesIO(data))


# =========================
# UI
# =========================
st.set_page_config(page_title="Cattle Growth Curves", layout="wide")
st.title("Cattle Growth Curves - Brody / Von Bertalanffy / Logistic")
st.caption("Upload -> data checks -> fit per breed group -> compare AIC / BIC / R2 -> plots")

with st.sidebar:
    st.header("Fitting settings")
    models = st.multiselect(
        "Models",
        options=list(MODEL_ORDER),
        default=list(MODEL_ORDER),
        format_func=lambda m: GROWTH_MODELS[m].label,
    )
    initializer = st.selectbox("Start values", options=list(INITIALIZERS), index=0,
                               help="fixed = A=730, B=0.5, k=0.01 for every fit")
    max_iter = st.number_input("Max iterations", min_value=10, max_value=100000, value=1000, step=100)
    criterion = st.radio("Rank models by", options=["AIC", "BIC"], horizontal=True)
    z_threshold = st.number_input("Outlier |z| threshold", min_value=1.0, value=3.0, step=0.5)

uploaded = st.file_uploader(
    "Upload file (Excel .xlsx or CSV .csv) with Age, Weight and Breed_Group columns",
    type=["xlsx", "csv"],
    accept_multiple_files=False,
)

with st.expander("Download sample input file", expanded=False):
    st.download_button(
        label="Download sample_cattle.csv",
        data=simulate_cattle_data().to_csv(index=False).encode("utf-8"),
        file_name="sample_cattle.csv",
        mime="text/csv",
        use_container_width=True,
    )

run = st.button("Fit growth curves", type="primary", disabled=(uploaded is None or not models))

results = st.session_state.get("last_run_results")
if uploaded is None and results and not run:
    st.session_state.pop("last_run_results", None)
    results = None

if run and uploaded is not None:
    cfg = GrowthPipelineConfig(
        models=tuple(models),
        initializer=initializer,
        max_iter=int(max_iter),
        criterion=criterion,
        z_threshold=float(z_threshold),
    )
    try:
        with st.spinner("Fitting growth models..."):
            results = run_growth_pipeline(_read_upload(uploaded), cfg)
        st.session_state["last_run_results"] = results
    except InputError as e:
        st.error(f"Input error: {e}")
        results = None

if results:
    quality = results["quality"]
    st.subheader("Dataset overview")
    c1, c2 = st.columns(2)
    with c1:
        st.dataframe(results["overview"]["summary"], use_container_width=True)
    with c2:
        st.dataframe(results["overview"]["breed_counts"], use_container_width=True, hide_index=True)
    if quality.has_issues:
        st.warning(
            f"Non-finite rows: {len(quality.non_finite_rows)} | duplicates: {quality.n_duplicates} | "
            f"weight outliers: {quality.weight_outliers} | age outliers: {quality.age_outliers}"
        )

    st.subheader("Model comparison")
    st.dataframe(results["metrics_table"], use_container_width=True, hide_index=True)
    st.dataframe(results["best_models"], use_container_width=True, hide_index=True)

    tab_params, tab_conv = st.tabs(["Parameters", "Convergence"])
    with tab_params:
        st.dataframe(results["parameters"], use_container_width=True, hide_index=True)
    with tab_conv:
        st.dataframe(results["convergence"], use_container_width=True, hide_index=True)

    st.download_button(
        label="Download tables (zip)",
        data=tables_zip_bytes(result_tables(results)),
        file_name="growth_outputs.zip",
        mime="application/zip",
    )

    st.subheader("Plots")
    by_group = group_fits(results["fits"])
    groups = list(results["strata"])
    chosen = st.selectbox("Breed group", options=groups)
    left, right = st.columns(2)
    with left:
        st.plotly_chart(
            plot_growth_comparison(results["strata"][chosen], by_group.get(chosen, {}), chosen),
            use_container_width=True,
        )
    with right:
        st.plotly_chart(plot_residuals(by_group.get(chosen, {}), chosen), use_container_width=True)
    st.plotly_chart(
        plot_combined_growth_models(by_group, pd.concat(list(results["strata"].values()), ignore_index=True)),
        use_container_width=True,
    )
