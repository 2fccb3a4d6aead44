"""
DCF UI Adapter: Transform engine output into display-ready tables
==================================================================
This adapter:
1. Maps ValuationResult fields to labelled table rows
2. Applies consistent formatting ($M values, percentages, multiples)
3. Builds the sensitivity matrix as a DataFrame and classifies each cell
4. Flags results that are not meaningful per share (non-positive equity)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pandas as pd

from dcf_engine import ValuationResult
from formatting import MISSING, fmt_millions, fmt_multiple, fmt_price, pct

BASE_YEAR_LABEL = "FY25A"
PROJECTION_YEAR_LABELS = ["FY26E", "FY27E", "FY28E", "FY29E", "FY30E"]
# Trailing-year growth shown in the FY25A column of the projection table
BASE_YEAR_GROWTH = -0.022

# Sensitivity cell bands: (lower bound on upside, band key, legend label)
SENSITIVITY_BANDS = [
    (0.20, "alpha", "Significant Alpha Potential (>20%)"),
    (0.0, "positive", "Positive Risk/Reward"),
    (-0.15, "aligned", "Market Value Alignment"),
]
SENSITIVITY_FALLBACK_BAND = ("avoid", "Avoid / Overvalued Area")
SENSITIVITY_BAND_COLORS = {
    "alpha": "#d1fae5",
    "positive": "#eef2ff",
    "aligned": "#fffbeb",
    "avoid": "#fff1f2",
    "invalid": "#f1f5f9",
}


def sensitivity_band(value: Optional[float], current_price: float) -> str:
    """Classify a grid price by its upside vs the current share price."""
    if value is None:
        return "invalid"
    upside = value / current_price - 1
    for lower_bound, band, _ in SENSITIVITY_BANDS:
        if upside > lower_bound:
            return band
    return SENSITIVITY_FALLBACK_BAND[0]


def sensitivity_legend() -> List[Dict[str, str]]:
    legend = [{"band": band, "label": label} for _, band, label in SENSITIVITY_BANDS]
    legend.append({"band": SENSITIVITY_FALLBACK_BAND[0], "label": SENSITIVITY_FALLBACK_BAND[1]})
    return legend


@dataclass
class FinancialMetric:
    """A single headline metric with its display units."""
    name: str
    value: Optional[float]
    units: str = "USD_M"  # USD_M, USD, %, x
    notes: Optional[str] = None

    def formatted(self, precision: int = 1) -> str:
        if self.value is None:
            return MISSING
        if self.units == "USD_M":
            return fmt_millions(self.value, precision)
        if self.units == "USD":
            return fmt_price(self.value)
        if self.units == "%":
            return pct(self.value, precision)
        if self.units == "x":
            return fmt_multiple(self.value, precision)
        return f"{self.value:.{precision}f}"

    def to_dict(self):
        return {
            "name": self.name,
            "value": self.value,
            "units": self.units,
            "notes": self.notes,
            "formatted": self.formatted(),
        }


class DCFUIAdapter:
    """Transform a ValuationResult into UI-safe rows."""

    def __init__(self, result: ValuationResult):
        self.result = result
        self.ui_data = {}
        self.diagnostics = []
        self._transform()

    def _transform(self):
        r = self.result
        snap = r.snapshot
        bridge = r.bridge

        # Net debt larger than EV leaves no value for shareholders
        if bridge.equity_value <= 0:
            self.diagnostics.append(
                f"🔴 Non-positive equity value ({fmt_millions(bridge.equity_value)}): net debt exceeds "
                f"enterprise value ({fmt_millions(bridge.enterprise_value)}); per-share price is not meaningful."
            )

        self.ui_data = {
            "scenario": r.scenario_label,
            "current_price": snap.price,
            "implied_share_price": bridge.implied_share_price,
            "upside": bridge.upside,
            "margin_of_safety_target": bridge.margin_of_safety_target,
            "wacc": r.wacc.wacc,
            "enterprise_value": bridge.enterprise_value,
            "equity_value": bridge.equity_value,
            "metrics": {
                "market_cap": FinancialMetric("Market Cap", snap.market_cap),
                "market_ev": FinancialMetric("Enterprise Value", snap.market_enterprise_value,
                                             notes="Market Cap − Cash + Debt"),
                "net_cash": FinancialMetric("Net Cash Pos.", snap.net_cash),
                "wacc": FinancialMetric("WACC", r.wacc.wacc, units="%"),
                "implied": FinancialMetric("Implied Fair Value", bridge.implied_share_price, units="USD"),
                "mos_target": FinancialMetric("Margin of Safety Target", bridge.margin_of_safety_target, units="USD",
                                              notes="Implied value × 0.75"),
            },
            "warnings": list(r.warnings),
            "diagnostics": self.diagnostics,
        }

    def get_ui_data(self) -> Dict[str, Any]:
        return self.ui_data

    def format_bridge_table(self) -> List[Dict]:
        """PV(FCF) → EV → Equity → Per-share bridge."""
        r = self.result
        return [
            {"Component": "PV of 5-Year Cash Flows", "Value": fmt_millions(r.discounted.total),
             "Formula/Notes": "Σ(FCF_t / (1+WACC)^t) for t=1..5"},
            {"Component": "PV of Terminal Value (Blended)", "Value": fmt_millions(r.terminal.blended_pv),
             "Formula/Notes": "(PV perpetuity + PV exit multiple) / 2"},
            {"Component": "= Implied Enterprise Value", "Value": fmt_millions(r.bridge.enterprise_value),
             "Formula/Notes": "PV(FCF) + PV(TV)"},
            {"Component": "+ Net Cash & Debt Adjustments", "Value": fmt_millions(r.snapshot.net_cash),
             "Formula/Notes": f"Cash ({fmt_millions(r.snapshot.cash)}) − Debt ({fmt_millions(r.snapshot.total_debt)})"},
            {"Component": "= Implied Equity Value", "Value": fmt_millions(r.bridge.equity_value),
             "Formula/Notes": "EV + Cash − Debt"},
            {"Component": "= Implied Share Price", "Value": fmt_price(r.bridge.implied_share_price),
             "Formula/Notes": f"Equity ÷ {r.snapshot.shares:.1f}M diluted shares"},
        ]

    def format_projection_table(self) -> List[Dict]:
        """One row per metric; FY25A column followed by five projected years."""
        r = self.result
        snap = r.snapshot
        proj = r.projection
        columns = [BASE_YEAR_LABEL] + PROJECTION_YEAR_LABELS

        def row(label, base_value, values):
            out = {"Metric": label}
            out.update(zip(columns, [base_value] + list(values)))
            return out

        return [
            row("Revenue", fmt_millions(snap.trailing_revenue), [fmt_millions(v) for v in proj.revenues]),
            row("YoY Growth Rate", pct(BASE_YEAR_GROWTH), [pct(g) for g in proj.growth_rates]),
            row("FCF Margin", pct(snap.trailing_fcf_margin), [pct(m) for m in proj.fcf_margins]),
            row("Free Cash Flow", fmt_millions(snap.trailing_fcf), [fmt_millions(v) for v in proj.free_cash_flows]),
            row("Discount Factor", MISSING, [f"{df:.4f}" for df in r.discounted.discount_factors]),
            row("PV of Free Cash Flow", MISSING, [fmt_millions(v) for v in r.discounted.present_values]),
        ]

    def format_wacc_table(self) -> List[Dict]:
        w = self.result.wacc
        return [
            {"Component": "Risk-Free Rate", "Value": pct(w.risk_free_rate, 2)},
            {"Component": "Equity Beta", "Value": f"{w.beta:.2f}"},
            {"Component": "Equity Risk Premium", "Value": pct(w.equity_risk_premium, 2)},
            {"Component": "Risk Premium Adjustment", "Value": f"{w.adjustment_pct:+.1f}pp"},
            {"Component": "Cost of Equity", "Value": pct(w.cost_of_equity, 2)},
            {"Component": "Pre-Tax Cost of Debt", "Value": pct(w.pre_tax_cost_of_debt, 2)},
            {"Component": "After-Tax Cost of Debt", "Value": pct(w.after_tax_cost_of_debt, 2)},
            {"Component": "Equity Weight", "Value": pct(w.equity_weight)},
            {"Component": "Debt Weight", "Value": pct(w.debt_weight)},
            {"Component": "WACC", "Value": pct(w.wacc, 2)},
        ]

    def format_terminal_table(self) -> List[Dict]:
        r = self.result
        t = r.terminal
        return [
            {"Method": "Perpetuity Growth", "Assumption": f"{r.inputs.terminal_growth_pct:.1f}%",
             "Terminal Value": fmt_millions(t.perpetuity_tv), "PV": fmt_millions(t.perpetuity_pv),
             "Price (method only)": fmt_price(r.cross_check.perpetuity_price)},
            {"Method": "Exit Multiple", "Assumption": fmt_multiple(r.inputs.exit_multiple),
             "Terminal Value": fmt_millions(t.exit_tv), "PV": fmt_millions(t.exit_pv),
             "Price (method only)": fmt_price(r.cross_check.exit_multiple_price)},
            {"Method": "Blended (50/50)", "Assumption": MISSING,
             "Terminal Value": MISSING, "PV": fmt_millions(t.blended_pv),
             "Price (method only)": fmt_price(r.bridge.implied_share_price)},
        ]

    def format_scenario_table(self) -> List[Dict]:
        rows = []
        for sc in self.result.scenarios:
            rows.append({
                "Scenario": sc.label,
                "Implied Price": fmt_price(sc.implied_price),
                "Upside": pct(sc.upside),
                "Terminal Growth": f"{sc.terminal_growth_pct:.1f}%",
                "Exit Multiple": fmt_multiple(sc.exit_multiple),
                "Year 5 Revenue": fmt_millions(sc.revenues[-1]),
                "Year 5 FCF": fmt_millions(sc.free_cash_flows[-1]),
            })
        return rows

    def scenario_chart_frame(self) -> pd.DataFrame:
        """Long-format revenue/FCF by scenario and year, for altair."""
        records = []
        for sc in self.result.scenarios:
            for year, revenue, fcf in zip(PROJECTION_YEAR_LABELS, sc.revenues, sc.free_cash_flows):
                records.append({"Scenario": sc.label, "Year": year, "Metric": "Revenue", "Value ($M)": revenue})
                records.append({"Scenario": sc.label, "Year": year, "Metric": "Free Cash Flow", "Value ($M)": fcf})
        return pd.DataFrame(records)

    def format_sensitivity_frame(self) -> pd.DataFrame:
        """Implied prices with WACC rows and terminal growth columns."""
        s = self.result.sensitivity
        index = [pct(s.wacc_for_row(r)) for r in range(len(s.wacc_deltas_pct))]
        columns = [f"{t:.1f}%" for t in s.tgr_values_pct]
        frame = pd.DataFrame([list(row) for row in s.grid], index=index, columns=columns, dtype=float)
        frame.index.name = "WACC \\ TGR"
        return frame

    def sensitivity_bands(self) -> List[List[str]]:
        price = self.result.snapshot.price
        return [[sensitivity_band(v, price) for v in row] for row in self.result.sensitivity.grid]

    def format_warnings(self) -> List[str]:
        return list(self.result.warnings) + list(self.diagnostics)
