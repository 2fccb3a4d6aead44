# app.py
"""
DCF Engine Pro - Skyworks Solutions
===================================
Interactive DCF model with 3 controls:
1. Scenario (bear / base / bull)
2. Terminal growth rate and exit multiple
3. WACC risk premium adjustment

Run with: streamlit run app.py
"""

import logging

import altair as alt
import pandas as pd
import streamlit as st

from ai_thesis import generate_thesis
from dcf_engine import DomainError, ValuationInputs, run_valuation
from dcf_ui_adapter import (
    SENSITIVITY_BAND_COLORS,
    DCFUIAdapter,
    sensitivity_legend,
)
from formatting import fmt_price, pct
from peer_comps import PEER_DATA, PEER_DATA_DATE, PEER_DATA_SOURCE, get_peer, get_peer_table, get_subject_company
from scenarios import SCENARIO_ORDER, SCENARIOS

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# Control ranges: the engine trusts these to keep inputs in domain
TGR_RANGE = (1.0, 4.0, 0.1)
EXIT_MULTIPLE_RANGE = (6.0, 20.0, 0.5)
WACC_ADJ_RANGE = (-3.0, 3.0, 0.5)

UPSIDE_DRIVERS = [
    "Synergy potential from Qorvo consolidation estimated at $500M+ annually.",
    "WiFi 7 adoption cycle accelerating standard-setting growth in broad markets.",
    "Automotive content expansion via EV connectivity and powertrain optimization.",
    "Strategic share gains within the Android ecosystem to offset Apple plateauing.",
]
RISK_FACTORS = [
    "Apple (67% revenue) continues vertical integration of modem and RF components.",
    "Global smartphone shipment saturation limiting total addressable market expansion.",
    "Anti-trust and regulatory hurdles for the QRVO merger in key foreign jurisdictions.",
    "Technical price breakdown (RS 23) suggesting sustained institutional distribution.",
]
OPTIONALITY_METRICS = [
    ("Cost Synergy", "$500M+", "Run-rate Annualized"),
    ("Filter Mkt Share", "~65%", "BAW / SAW Combined"),
    ("Pro-Forma FCF", "$2.8B", "Integrated Target"),
]


def _clamp(value: float, bounds: tuple) -> float:
    low, high, _ = bounds
    return min(max(value, low), high)


def _style_sensitivity(frame: pd.DataFrame, adapter: DCFUIAdapter):
    bands = adapter.sensitivity_bands()
    base_index = adapter.result.sensitivity.base_case_index

    def colour(_):
        styles = []
        for r, row in enumerate(bands):
            row_styles = []
            for c, band in enumerate(row):
                css = f"background-color: {SENSITIVITY_BAND_COLORS[band]}"
                if base_index == (r, c):
                    css += "; border: 2px solid #4f46e5; font-weight: 700"
                row_styles.append(css)
            styles.append(row_styles)
        return pd.DataFrame(styles, index=frame.index, columns=frame.columns)

    return frame.style.apply(colour, axis=None).format(lambda v: f"${v:.0f}" if pd.notna(v) else "—")


# --- App Configuration ---
st.set_page_config(
    page_title="DCF Engine Pro",
    page_icon="📊",
    layout="wide",
)

if "thesis_text" not in st.session_state:
    st.session_state.thesis_text = None

subject = get_subject_company()
st.caption("DCF-Engine v2.5 • Semiconductor Coverage • FY2026 Analysis")
st.title(subject["name"])

scenario_id = st.selectbox(
    "Scenario",
    options=list(SCENARIO_ORDER),
    index=SCENARIO_ORDER.index("base"),
    format_func=lambda key: SCENARIOS[key].label,
)
# Sliders start from the selected scenario's own terminal assumptions
scenario_defaults = ValuationInputs.from_scenario_defaults(scenario_id)

col_tgr, col_exit, col_wacc = st.columns(3)
with col_tgr:
    tgr = st.slider("Terminal Growth Rate (%)", min_value=TGR_RANGE[0], max_value=TGR_RANGE[1],
                    value=float(scenario_defaults.terminal_growth_pct), step=TGR_RANGE[2], format="%.1f")
with col_exit:
    exit_multiple = st.slider("Free Cash Flow Multiple (x)", min_value=EXIT_MULTIPLE_RANGE[0],
                              max_value=EXIT_MULTIPLE_RANGE[1], value=float(scenario_defaults.exit_multiple),
                              step=EXIT_MULTIPLE_RANGE[2], format="%.1f")
with col_wacc:
    wacc_adj = st.slider("Risk Premium Adjustment (pp)", min_value=WACC_ADJ_RANGE[0],
                         max_value=WACC_ADJ_RANGE[1], value=scenario_defaults.wacc_adjustment_pct, step=WACC_ADJ_RANGE[2],
                         format="%.1f")

inputs = ValuationInputs(
    scenario_id=scenario_id,
    terminal_growth_pct=_clamp(tgr, TGR_RANGE),
    exit_multiple=_clamp(exit_multiple, EXIT_MULTIPLE_RANGE),
    wacc_adjustment_pct=_clamp(wacc_adj, WACC_ADJ_RANGE),
)

try:
    result = run_valuation(inputs)
except DomainError as e:
    st.error(f"Valuation undefined for these inputs: {e}")
    st.stop()

adapter = DCFUIAdapter(result)
ui = adapter.get_ui_data()

col_price, col_fair, col_rate, col_mos = st.columns(4)
col_price.metric("Current Price", fmt_price(ui["current_price"]))
col_fair.metric("Implied Fair Value", fmt_price(ui["implied_share_price"]), delta=pct(ui["upside"]))
col_rate.metric("WACC", pct(ui["wacc"], 2))
col_mos.metric("Margin of Safety Target", fmt_price(ui["margin_of_safety_target"]))

for warning in adapter.format_warnings():
    st.warning(warning)

tab_overview, tab_projections, tab_optionality, tab_sensitivity, tab_thesis, tab_comps = st.tabs(
    ["Overview", "Projections", "Optionality", "Sensitivity", "Thesis", "Comps"]
)

with tab_overview:
    metric_cols = st.columns(3)
    for col, key in zip(metric_cols, ["market_cap", "market_ev", "net_cash"]):
        metric = ui["metrics"][key]
        col.metric(metric.name, metric.formatted())

    st.markdown("**Valuation Bridge**")
    st.dataframe(pd.DataFrame(adapter.format_bridge_table()), use_container_width=True, hide_index=True)

    st.markdown("**Terminal Value Cross-Check**")
    st.dataframe(pd.DataFrame(adapter.format_terminal_table()), use_container_width=True, hide_index=True)

    st.markdown("**Scenario Comparison** (shared WACC, scenario default terminal assumptions)")
    st.dataframe(pd.DataFrame(adapter.format_scenario_table()), use_container_width=True, hide_index=True)
    chart = alt.Chart(adapter.scenario_chart_frame()).mark_line(point=True).encode(
        x=alt.X("Year:N", sort=None),
        y=alt.Y("Value ($M):Q"),
        color="Scenario:N",
        strokeDash="Metric:N",
        tooltip=["Scenario", "Year", "Metric", alt.Tooltip("Value ($M):Q", format=",.0f")],
    )
    st.altair_chart(chart, use_container_width=True)

with tab_projections:
    st.dataframe(pd.DataFrame(adapter.format_projection_table()), use_container_width=True, hide_index=True)
    st.markdown("**WACC Build-Up**")
    st.dataframe(pd.DataFrame(adapter.format_wacc_table()), use_container_width=True, hide_index=True)

with tab_optionality:
    st.subheader("The Strategic Consolidation Optionality")
    st.write(
        "The proposed merger with Qorvo combines the two largest pure-play RF specialists. "
        "These figures are not included in the standalone DCF."
    )
    option_cols = st.columns(len(OPTIONALITY_METRICS))
    for col, (label, value, note) in zip(option_cols, OPTIONALITY_METRICS):
        col.metric(label, value, help=note)

with tab_sensitivity:
    st.markdown("**Sensitivity Matrix: implied share price by WACC and terminal growth** (perpetuity method)")
    frame = adapter.format_sensitivity_frame()
    st.dataframe(_style_sensitivity(frame, adapter), use_container_width=True)
    legend_cols = st.columns(4)
    for col, entry in zip(legend_cols, sensitivity_legend()):
        col.markdown(
            f"<span style='background:{SENSITIVITY_BAND_COLORS[entry['band']]};padding:2px 8px;"
            f"border-radius:4px'>{entry['label']}</span>",
            unsafe_allow_html=True,
        )

with tab_thesis:
    col_up, col_risk = st.columns(2)
    with col_up:
        st.markdown("**Key Upside Drivers**")
        for item in UPSIDE_DRIVERS:
            st.markdown(f"- {item}")
    with col_risk:
        st.markdown("**Structural Risk Factors**")
        for item in RISK_FACTORS:
            st.markdown(f"- {item}")

    if st.button("Generate AI Thesis", type="primary", key="generate_thesis"):
        with st.spinner("Generating thesis..."):
            st.session_state.thesis_text = generate_thesis(result)
    thesis_text = st.session_state.thesis_text
    if thesis_text:
        if thesis_text.startswith(("Error", "AI Error")):
            st.error(thesis_text)
        else:
            st.markdown(thesis_text)

with tab_comps:
    st.dataframe(pd.DataFrame(get_peer_table()), use_container_width=True, hide_index=True)
    st.caption(f"Source: {PEER_DATA_SOURCE} ({PEER_DATA_DATE})")

    peer_tickers = [p["ticker"] for p in PEER_DATA if not p["highlight"]]
    peer_ticker = st.selectbox("Compare with", options=peer_tickers)
    peer = get_peer(peer_ticker)
    if peer:
        st.dataframe(
            pd.DataFrame({
                "Metric": ["EV/EBITDA", "P/E", "FCF Yield", "Gross Margin", "Rev Growth"],
                subject["ticker"]: [subject[k] for k in ("ev_ebitda", "pe", "fcf_yield", "gross_margin", "rev_growth")],
                peer["ticker"]: [peer[k] for k in ("ev_ebitda", "pe", "fcf_yield", "gross_margin", "rev_growth")],
            }),
            use_container_width=True,
            hide_index=True,
        )
