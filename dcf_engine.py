"""
DCF Engine: Deterministic five-year DCF with blended terminal value
====================================================================
Implements:
- CAPM cost of equity with an additive risk-premium adjustment, book-debt WACC
- Sequential revenue / FCF projection from scenario presets
- Explicit discount factor tracking
- Pluggable terminal value strategies (Perpetuity Growth, Exit Multiple), blended 50/50
- EV→Equity bridge with net cash
- 5×5 WACC × terminal growth sensitivity grid (perpetuity method only)
- Side-by-side scenario comparison at a shared WACC
- Calculation trace and sanity warnings

Every function is pure: same inputs always give the same result.
All monetary values are in $ millions; share counts in millions.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional, Sequence, Tuple

from scenarios import PROJECTION_YEARS, SCENARIO_ORDER, Scenario, get_scenario

logger = logging.getLogger(__name__)

MARGIN_OF_SAFETY_FACTOR = 0.75  # Buy target = 25% below implied value
SENSITIVITY_WACC_DELTAS_PCT = (-2.0, -1.0, 0.0, 1.0, 2.0)  # Percentage points added to WACC
SENSITIVITY_TGR_VALUES_PCT = (1.5, 2.0, 2.5, 3.0, 3.5)  # Terminal growth, %
BASE_CASE_WACC_DELTA_PCT = 0.0
BASE_CASE_TGR_PCT = 2.5

# Sanity check thresholds
MIN_WACC_G_SPREAD = 0.03
TV_DOMINANCE_WARN = 0.75
TV_DOMINANCE_HIGH = 0.85
MAX_REASONABLE_TGR = 0.04
MAX_TV_METHOD_GAP = 0.50
UNDERVALUED_UPSIDE = 0.20
OVERVALUED_UPSIDE = -0.15


class DomainError(ValueError):
    """Inputs fall outside the region where the DCF formulas are defined."""


class ReadOnlyDict(dict):
    """dict that rejects mutation once built. Still JSON- and asdict-friendly."""

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} is read-only")

    __setitem__ = __delitem__ = __ior__ = _readonly
    clear = pop = popitem = setdefault = update = _readonly


@dataclass(frozen=True)
class MarketSnapshot:
    """Static market/company snapshot used for every run ($M, M shares)."""
    price: float = 62.10
    shares: float = 150.4
    total_debt: float = 1000.0
    cash: float = 1600.0
    trailing_revenue: float = 4090.0
    trailing_fcf: float = 1110.0
    risk_free_rate: float = 0.0434
    beta: float = 1.55
    equity_risk_premium: float = 0.05
    pre_tax_cost_of_debt: float = 0.045
    tax_rate: float = 0.10

    @property
    def market_cap(self) -> float:
        return self.price * self.shares

    @property
    def market_enterprise_value(self) -> float:
        """EV implied by the market: Market Cap − Cash + Debt."""
        return self.market_cap - self.cash + self.total_debt

    @property
    def net_cash(self) -> float:
        return self.cash - self.total_debt

    @property
    def trailing_fcf_margin(self) -> float:
        return self.trailing_fcf / self.trailing_revenue


DEFAULT_SNAPSHOT = MarketSnapshot()


@dataclass(frozen=True)
class ValuationInputs:
    """Per-run parameters. Not clamped here; the control layer owns ranges."""
    scenario_id: str = "base"
    terminal_growth_pct: float = 2.5  # 2.5 = 2.5%
    exit_multiple: float = 12.0  # × Year 5 FCF
    wacc_adjustment_pct: float = 0.0  # Percentage points added to cost of equity

    @classmethod
    def from_scenario_defaults(cls, scenario_id: str, wacc_adjustment_pct: float = 0.0) -> "ValuationInputs":
        """Inputs using a scenario's own terminal growth and exit multiple."""
        scenario = get_scenario(scenario_id)
        return cls(
            scenario_id=scenario_id,
            terminal_growth_pct=scenario.default_terminal_growth_pct,
            exit_multiple=scenario.default_exit_multiple,
            wacc_adjustment_pct=wacc_adjustment_pct,
        )


DEFAULT_INPUTS = ValuationInputs()


@dataclass(frozen=True)
class CalculationTraceStep:
    """Single step in the DCF calculation trace."""
    name: str
    formula: Optional[str] = None
    inputs: Dict = field(default_factory=dict)
    output: Optional[float] = None
    output_units: Optional[str] = None
    notes: str = ""

    def __post_init__(self):
        object.__setattr__(self, "inputs", ReadOnlyDict(self.inputs))

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class WaccBreakdown:
    wacc: float
    cost_of_equity: float
    pre_tax_cost_of_debt: float
    after_tax_cost_of_debt: float
    equity_weight: float
    debt_weight: float
    risk_free_rate: float
    beta: float
    equity_risk_premium: float
    tax_rate: float
    adjustment_pct: float


@dataclass(frozen=True)
class CashFlowProjection:
    revenues: Tuple[float, ...]
    free_cash_flows: Tuple[float, ...]
    growth_rates: Tuple[float, ...]
    fcf_margins: Tuple[float, ...]


@dataclass(frozen=True)
class DiscountedCashFlows:
    rate: float
    discount_factors: Tuple[float, ...]
    present_values: Tuple[float, ...]
    total: float


@dataclass(frozen=True)
class TerminalValueBlend:
    perpetuity_tv: float
    perpetuity_pv: float
    exit_tv: float
    exit_pv: float
    blended_pv: float


@dataclass(frozen=True)
class EquityBridge:
    enterprise_value: float
    equity_value: float
    implied_share_price: float
    upside: float  # Fraction vs current price
    margin_of_safety_target: float


@dataclass(frozen=True)
class TerminalCrossCheck:
    """Per-share value if only one terminal method were used."""
    perpetuity_price: float
    exit_multiple_price: float


@dataclass(frozen=True)
class SensitivityGrid:
    """
    Implied share price for each (WACC delta, terminal growth) pair.

    grid[r][c] uses WACC = base_wacc + wacc_deltas_pct[r] / 100 and
    g = tgr_values_pct[c] / 100. Cells where WACC ≤ g are None.
    """
    base_wacc: float
    wacc_deltas_pct: Tuple[float, ...]
    tgr_values_pct: Tuple[float, ...]
    grid: Tuple[Tuple[Optional[float], ...], ...]

    def wacc_for_row(self, row: int) -> float:
        return self.base_wacc + self.wacc_deltas_pct[row] / 100

    def is_base_case(self, row: int, col: int) -> bool:
        # Exact match on the axis values, not nearest neighbour
        return (self.wacc_deltas_pct[row] == BASE_CASE_WACC_DELTA_PCT
                and self.tgr_values_pct[col] == BASE_CASE_TGR_PCT)

    @property
    def base_case_index(self) -> Optional[Tuple[int, int]]:
        for r in range(len(self.wacc_deltas_pct)):
            for c in range(len(self.tgr_values_pct)):
                if self.is_base_case(r, c):
                    return r, c
        return None

    @property
    def base_case_value(self) -> Optional[float]:
        index = self.base_case_index
        if index is None:
            return None
        return self.grid[index[0]][index[1]]

    @property
    def invalid_cells(self) -> List[Tuple[int, int]]:
        return [
            (r, c)
            for r, row in enumerate(self.grid)
            for c, value in enumerate(row)
            if value is None
        ]


@dataclass(frozen=True)
class ScenarioComparison:
    scenario_key: str
    label: str
    implied_price: float
    upside: float
    revenues: Tuple[float, ...]
    free_cash_flows: Tuple[float, ...]
    terminal_growth_pct: float
    exit_multiple: float


@dataclass(frozen=True)
class ValuationResult:
    """Complete output of one valuation run. Never mutated after construction."""
    inputs: ValuationInputs
    snapshot: MarketSnapshot
    scenario_label: str
    wacc: WaccBreakdown
    projection: CashFlowProjection
    discounted: DiscountedCashFlows
    terminal: TerminalValueBlend
    bridge: EquityBridge
    cross_check: TerminalCrossCheck
    sensitivity: SensitivityGrid
    scenarios: Tuple[ScenarioComparison, ...]
    sanity_checks: Dict = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    trace: Tuple[CalculationTraceStep, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "sanity_checks", ReadOnlyDict(self.sanity_checks))

    @property
    def wacc_rate(self) -> float:
        return self.wacc.wacc

    @property
    def enterprise_value(self) -> float:
        return self.bridge.enterprise_value

    @property
    def equity_value(self) -> float:
        return self.bridge.equity_value

    @property
    def implied_share_price(self) -> float:
        return self.bridge.implied_share_price

    @property
    def upside(self) -> float:
        return self.bridge.upside

    def to_dict(self):
        data = asdict(self)
        data["market_cap"] = self.snapshot.market_cap
        data["market_enterprise_value"] = self.snapshot.market_enterprise_value
        return data


def _record(trace: Optional[List[CalculationTraceStep]], step: CalculationTraceStep):
    if trace is not None:
        trace.append(step)


# ---------------------------------------------------------------------------
# Discount rate
# ---------------------------------------------------------------------------

def compute_wacc(wacc_adjustment_pct: float, market_cap: float, debt: float, risk_free: float,
                 beta: float, equity_risk_premium: float, pre_tax_cost_of_debt: float,
                 tax_rate: float, trace: Optional[List[CalculationTraceStep]] = None) -> WaccBreakdown:
    """
    WACC = We × Re + Wd × Rd × (1 − t)

    Re = Rf + β × ERP + adjustment/100 (CAPM with an additive risk-premium shock).
    Weights use market value of equity and book value of debt.
    """
    cost_of_equity = risk_free + beta * equity_risk_premium + wacc_adjustment_pct / 100
    after_tax_cost_of_debt = pre_tax_cost_of_debt * (1 - tax_rate)
    capital = market_cap + debt
    equity_weight = market_cap / capital
    debt_weight = debt / capital
    wacc = cost_of_equity * equity_weight + after_tax_cost_of_debt * debt_weight

    _record(trace, CalculationTraceStep(
        name="Cost of Equity (CAPM)",
        formula="Rf + β × ERP + Risk Premium Adjustment",
        inputs={
            "risk_free_rate": risk_free,
            "beta": beta,
            "equity_risk_premium": equity_risk_premium,
            "adjustment_pct": wacc_adjustment_pct,
        },
        output=cost_of_equity,
        output_units="rate",
    ))
    _record(trace, CalculationTraceStep(
        name="WACC",
        formula="We × Re + Wd × Rd × (1 − t)",
        inputs={
            "equity_weight": equity_weight,
            "debt_weight": debt_weight,
            "cost_of_equity": cost_of_equity,
            "after_tax_cost_of_debt": after_tax_cost_of_debt,
        },
        output=wacc,
        output_units="rate",
        notes="Book value of debt, market value of equity",
    ))

    return WaccBreakdown(
        wacc=wacc,
        cost_of_equity=cost_of_equity,
        pre_tax_cost_of_debt=pre_tax_cost_of_debt,
        after_tax_cost_of_debt=after_tax_cost_of_debt,
        equity_weight=equity_weight,
        debt_weight=debt_weight,
        risk_free_rate=risk_free,
        beta=beta,
        equity_risk_premium=equity_risk_premium,
        tax_rate=tax_rate,
        adjustment_pct=wacc_adjustment_pct,
    )


# ---------------------------------------------------------------------------
# Projection and discounting
# ---------------------------------------------------------------------------

def project_cash_flows(scenario: Scenario, base_revenue: float,
                       trace: Optional[List[CalculationTraceStep]] = None) -> CashFlowProjection:
    """Revenue_t = Revenue_{t−1} × (1 + g_t); FCF_t = Revenue_t × margin_t."""
    revenues = []
    free_cash_flows = []
    prior_revenue = base_revenue
    for growth, margin in zip(scenario.growth_rates, scenario.fcf_margins):
        revenue = prior_revenue * (1 + growth)
        revenues.append(revenue)
        free_cash_flows.append(revenue * margin)
        prior_revenue = revenue

    _record(trace, CalculationTraceStep(
        name=f"Revenue & FCF Projection ({scenario.label})",
        formula="Revenue_t = Revenue_{t-1} × (1 + g_t); FCF_t = Revenue_t × margin_t",
        inputs={"base_revenue": base_revenue, "growth_rates": scenario.growth_rates,
                "fcf_margins": scenario.fcf_margins},
        output=free_cash_flows[-1],
        output_units="USD_M",
        notes="Output is Year 5 FCF",
    ))

    return CashFlowProjection(
        revenues=tuple(revenues),
        free_cash_flows=tuple(free_cash_flows),
        growth_rates=scenario.growth_rates,
        fcf_margins=scenario.fcf_margins,
    )


def discount_cash_flows(cash_flows: Sequence[float], rate: float,
                        trace: Optional[List[CalculationTraceStep]] = None) -> DiscountedCashFlows:
    """PV_t = CF_t / (1 + rate)^t, end-of-year convention, t = 1..N."""
    discount_factors = tuple((1 + rate) ** year for year in range(1, len(cash_flows) + 1))
    present_values = tuple(cf / df for cf, df in zip(cash_flows, discount_factors))
    total = sum(present_values)

    _record(trace, CalculationTraceStep(
        name="PV of Explicit FCF",
        formula="Σ FCF_t / (1 + WACC)^t",
        inputs={"rate": rate, "years": len(cash_flows)},
        output=total,
        output_units="USD_M",
    ))

    return DiscountedCashFlows(
        rate=rate,
        discount_factors=discount_factors,
        present_values=present_values,
        total=total,
    )


# ---------------------------------------------------------------------------
# Terminal value
# ---------------------------------------------------------------------------

class TerminalValueStrategy(ABC):
    """Abstract base for terminal value calculation strategies."""

    @abstractmethod
    def calculate(self, final_year_fcf: float, wacc: float, years: int = PROJECTION_YEARS,
                  trace: Optional[List[CalculationTraceStep]] = None) -> Tuple[float, float]:
        """Return (terminal_value_yearN, pv_terminal_value)."""


class PerpetuityGrowthTerminalValue(TerminalValueStrategy):
    """Terminal Value = FCF_N × (1 + g) / (WACC − g)."""

    def __init__(self, terminal_growth_pct: float):
        self.terminal_growth_pct = float(terminal_growth_pct)

    def calculate(self, final_year_fcf: float, wacc: float, years: int = PROJECTION_YEARS,
                  trace: Optional[List[CalculationTraceStep]] = None) -> Tuple[float, float]:
        g = self.terminal_growth_pct / 100
        if wacc <= g:
            raise DomainError(
                f"Terminal growth ({g:.2%}) must be strictly less than discount rate ({wacc:.2%})"
            )

        terminal_value = final_year_fcf * (1 + g) / (wacc - g)
        pv_terminal_value = terminal_value / (1 + wacc) ** years

        _record(trace, CalculationTraceStep(
            name="Terminal Value (Perpetuity Growth)",
            formula="FCF_N × (1 + g) / (WACC − g)",
            inputs={"final_year_fcf": final_year_fcf, "terminal_growth_rate": g, "wacc": wacc},
            output=terminal_value,
            output_units="USD_M",
            notes=f"Assumes perpetual {g:.1%} growth",
        ))
        _record(trace, CalculationTraceStep(
            name="PV of Terminal Value (Perpetuity Growth)",
            formula=f"Terminal Value / (1 + WACC)^{years}",
            inputs={"terminal_value": terminal_value, "wacc": wacc, "years": years},
            output=pv_terminal_value,
            output_units="USD_M",
        ))
        return terminal_value, pv_terminal_value


class ExitMultipleTerminalValue(TerminalValueStrategy):
    """Terminal Value = FCF_N × exit multiple."""

    def __init__(self, exit_multiple: float):
        self.exit_multiple = float(exit_multiple)

    def calculate(self, final_year_fcf: float, wacc: float, years: int = PROJECTION_YEARS,
                  trace: Optional[List[CalculationTraceStep]] = None) -> Tuple[float, float]:
        terminal_value = final_year_fcf * self.exit_multiple
        pv_terminal_value = terminal_value / (1 + wacc) ** years

        _record(trace, CalculationTraceStep(
            name="Terminal Value (Exit Multiple)",
            formula=f"Year {years} FCF × exit_multiple",
            inputs={"final_year_fcf": final_year_fcf, "exit_multiple": self.exit_multiple},
            output=terminal_value,
            output_units="USD_M",
            notes=f"Exit multiple = {self.exit_multiple}x FCF",
        ))
        _record(trace, CalculationTraceStep(
            name="PV of Terminal Value (Exit Multiple)",
            formula=f"Terminal Value / (1 + WACC)^{years}",
            inputs={"terminal_value": terminal_value, "wacc": wacc, "years": years},
            output=pv_terminal_value,
            output_units="USD_M",
        ))
        return terminal_value, pv_terminal_value


def blend_terminal_values(final_year_fcf: float, terminal_growth_pct: float, exit_multiple: float,
                          wacc: float, years: int = PROJECTION_YEARS,
                          trace: Optional[List[CalculationTraceStep]] = None) -> TerminalValueBlend:
    """
    Compute both terminal values and average their present values 50/50.

    Raises:
        DomainError: if wacc <= terminal growth
    """
    perpetuity_tv, perpetuity_pv = PerpetuityGrowthTerminalValue(terminal_growth_pct).calculate(
        final_year_fcf, wacc, years, trace
    )
    exit_tv, exit_pv = ExitMultipleTerminalValue(exit_multiple).calculate(
        final_year_fcf, wacc, years, trace
    )
    blended_pv = (perpetuity_pv + exit_pv) / 2

    _record(trace, CalculationTraceStep(
        name="Blended PV of Terminal Value",
        formula="(PV_perpetuity + PV_exit) / 2",
        inputs={"perpetuity_pv": perpetuity_pv, "exit_pv": exit_pv},
        output=blended_pv,
        output_units="USD_M",
        notes="Fixed 50/50 blend",
    ))

    return TerminalValueBlend(
        perpetuity_tv=perpetuity_tv,
        perpetuity_pv=perpetuity_pv,
        exit_tv=exit_tv,
        exit_pv=exit_pv,
        blended_pv=blended_pv,
    )


# ---------------------------------------------------------------------------
# EV → Equity bridge
# ---------------------------------------------------------------------------

def _implied_share_price(sum_pv: float, terminal_pv: float, cash: float, debt: float,
                         shares: float) -> Tuple[float, float, float]:
    """Return (enterprise_value, equity_value, price_per_share)."""
    enterprise_value = sum_pv + terminal_pv
    equity_value = enterprise_value + cash - debt
    return enterprise_value, equity_value, equity_value / shares


def roll_up(sum_pv: float, terminal_pv: float, cash: float, debt: float, shares: float,
            current_price: float, trace: Optional[List[CalculationTraceStep]] = None) -> EquityBridge:
    """EV = PV(FCF) + PV(TV); Equity = EV + Cash − Debt; Price = Equity / Shares."""
    enterprise_value, equity_value, implied = _implied_share_price(sum_pv, terminal_pv, cash, debt, shares)
    upside = (implied - current_price) / current_price

    _record(trace, CalculationTraceStep(
        name="Enterprise Value",
        formula="Sum(PV of Explicit FCF) + PV(Terminal Value)",
        inputs={"pv_fcf_sum": sum_pv, "pv_terminal_value": terminal_pv},
        output=enterprise_value,
        output_units="USD_M",
    ))
    _record(trace, CalculationTraceStep(
        name="Equity Value",
        formula="Enterprise Value + Cash − Debt",
        inputs={"enterprise_value": enterprise_value, "cash": cash, "total_debt": debt},
        output=equity_value,
        output_units="USD_M",
        notes="Net cash bridge",
    ))
    _record(trace, CalculationTraceStep(
        name="Implied Share Price",
        formula="Equity Value / Diluted Shares",
        inputs={"equity_value": equity_value, "shares": shares, "current_price": current_price},
        output=implied,
        output_units="USD",
        notes=f"Upside vs current: {upside:+.1%}",
    ))

    return EquityBridge(
        enterprise_value=enterprise_value,
        equity_value=equity_value,
        implied_share_price=implied,
        upside=upside,
        margin_of_safety_target=implied * MARGIN_OF_SAFETY_FACTOR,
    )


# ---------------------------------------------------------------------------
# Sensitivity and scenario sweeps
# ---------------------------------------------------------------------------

def build_sensitivity(free_cash_flows: Sequence[float], wacc: float, cash: float, debt: float,
                      shares: float) -> SensitivityGrid:
    """
    Re-price the same FCF projection on a fixed WACC × terminal growth grid.

    Perpetuity growth terminal value only (no exit-multiple blend).
    """
    rows = []
    for delta_pct in SENSITIVITY_WACC_DELTAS_PCT:
        rate = wacc + delta_pct / 100
        discounted = discount_cash_flows(free_cash_flows, rate)
        row = []
        for tgr_pct in SENSITIVITY_TGR_VALUES_PCT:
            try:
                _, pv_tv = PerpetuityGrowthTerminalValue(tgr_pct).calculate(free_cash_flows[-1], rate)
            except DomainError:
                logger.warning("Sensitivity cell dropped: WACC %.2f%% <= g %.2f%%", rate * 100, tgr_pct)
                row.append(None)
                continue
            _, _, price = _implied_share_price(discounted.total, pv_tv, cash, debt, shares)
            row.append(price)
        rows.append(tuple(row))

    return SensitivityGrid(
        base_wacc=wacc,
        wacc_deltas_pct=SENSITIVITY_WACC_DELTAS_PCT,
        tgr_values_pct=SENSITIVITY_TGR_VALUES_PCT,
        grid=tuple(rows),
    )


def compare_scenarios(wacc: float, cash: float, debt: float, shares: float,
                      base_revenue: float = DEFAULT_SNAPSHOT.trailing_revenue,
                      current_price: float = DEFAULT_SNAPSHOT.price) -> Tuple[ScenarioComparison, ...]:
    """
    Value every preset at one shared WACC.

    Each scenario uses its own default terminal growth and exit multiple, so
    only operating and terminal assumptions vary, never the discount rate.

    Raises:
        DomainError: a preset's default growth is not below wacc (message names the preset)
    """
    comparisons = []
    for key in SCENARIO_ORDER:
        scenario = get_scenario(key)
        projection = project_cash_flows(scenario, base_revenue)
        discounted = discount_cash_flows(projection.free_cash_flows, wacc)
        try:
            terminal = blend_terminal_values(
                projection.free_cash_flows[-1],
                scenario.default_terminal_growth_pct,
                scenario.default_exit_multiple,
                wacc,
            )
        except DomainError as e:
            raise DomainError(f"{scenario.label} ({key}) comparison: {e}") from e
        bridge = roll_up(discounted.total, terminal.blended_pv, cash, debt, shares, current_price)
        comparisons.append(ScenarioComparison(
            scenario_key=key,
            label=scenario.label,
            implied_price=bridge.implied_share_price,
            upside=bridge.upside,
            revenues=projection.revenues,
            free_cash_flows=projection.free_cash_flows,
            terminal_growth_pct=scenario.default_terminal_growth_pct,
            exit_multiple=scenario.default_exit_multiple,
        ))
    return tuple(comparisons)


# ---------------------------------------------------------------------------
# Sanity checks
# ---------------------------------------------------------------------------

def _run_sanity_checks(inputs: ValuationInputs, wacc: float, terminal: TerminalValueBlend,
                       bridge: EquityBridge, sensitivity: SensitivityGrid) -> Tuple[Dict, List[str]]:
    """Flag fragile assumptions. Never changes any valuation number."""
    checks = {}
    warnings = []
    g = inputs.terminal_growth_pct / 100

    checks["terminal_growth_valid"] = wacc > g
    spread = wacc - g
    checks["wacc_g_spread"] = spread
    if spread < MIN_WACC_G_SPREAD:
        warnings.append(
            f"⚠️ Low WACC-g spread ({spread:.1%}). Terminal value is extremely sensitive to small "
            f"changes in either WACC or terminal growth."
        )

    if g > MAX_REASONABLE_TGR:
        warnings.append(
            f"⚠️ Terminal growth ({g:.1%}) exceeds typical long-run nominal GDP (3-4%)."
        )

    ev = bridge.enterprise_value
    tv_ratio = terminal.blended_pv / ev if ev > 0 else 0
    checks["tv_pct_of_ev"] = round(tv_ratio * 100, 1)
    if tv_ratio > TV_DOMINANCE_HIGH:
        warnings.append(
            f"🔴 Terminal value dominates ({tv_ratio:.0%} of EV > 85%). "
            f"Valuation is extremely sensitive to terminal assumptions."
        )
    elif tv_ratio > TV_DOMINANCE_WARN:
        warnings.append(
            f"⚠️ Terminal value is high ({tv_ratio:.0%} of EV). "
            f"Results are sensitive to terminal growth and exit multiple."
        )

    gap = abs(terminal.perpetuity_pv - terminal.exit_pv) / terminal.blended_pv if terminal.blended_pv > 0 else 0
    checks["perpetuity_vs_exit_gap"] = gap
    if gap > MAX_TV_METHOD_GAP:
        warnings.append(
            f"⚠️ Perpetuity and exit-multiple terminal values disagree by {gap:.0%} of the blend. "
            f"Check that the exit multiple is consistent with the growth assumption."
        )

    if bridge.upside > UNDERVALUED_UPSIDE:
        checks["valuation_signal"] = "Potentially UNDERVALUED by market"
    elif bridge.upside < OVERVALUED_UPSIDE:
        checks["valuation_signal"] = "Potentially OVERVALUED by market"
    else:
        checks["valuation_signal"] = "Fairly valued within margin of error"

    invalid = sensitivity.invalid_cells
    checks["sensitivity_invalid_cells"] = len(invalid)
    if invalid:
        warnings.append(
            f"{len(invalid)} sensitivity cell(s) left blank where WACC ≤ terminal growth."
        )

    return checks, warnings


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def run_valuation(inputs: ValuationInputs, snapshot: MarketSnapshot = DEFAULT_SNAPSHOT) -> ValuationResult:
    """
    Execute the full DCF pipeline for one set of inputs.

    Raises:
        ValueError: unknown scenario id
        DomainError: terminal growth (slider or any preset default) not strictly below WACC
    """
    scenario = get_scenario(inputs.scenario_id)
    logger.debug(
        "Running valuation: scenario=%s tgr=%.2f%% exit=%.1fx wacc_adj=%+.2fpp",
        inputs.scenario_id, inputs.terminal_growth_pct, inputs.exit_multiple, inputs.wacc_adjustment_pct,
    )
    trace: List[CalculationTraceStep] = []

    wacc = compute_wacc(
        inputs.wacc_adjustment_pct,
        snapshot.market_cap,
        snapshot.total_debt,
        snapshot.risk_free_rate,
        snapshot.beta,
        snapshot.equity_risk_premium,
        snapshot.pre_tax_cost_of_debt,
        snapshot.tax_rate,
        trace=trace,
    )
    rate = wacc.wacc

    projection = project_cash_flows(scenario, snapshot.trailing_revenue, trace=trace)
    discounted = discount_cash_flows(projection.free_cash_flows, rate, trace=trace)
    terminal = blend_terminal_values(
        projection.free_cash_flows[-1], inputs.terminal_growth_pct, inputs.exit_multiple, rate, trace=trace
    )
    bridge = roll_up(
        discounted.total, terminal.blended_pv, snapshot.cash, snapshot.total_debt, snapshot.shares,
        snapshot.price, trace=trace,
    )

    # Single-method prices for the cross-check
    _, _, perpetuity_price = _implied_share_price(
        discounted.total, terminal.perpetuity_pv, snapshot.cash, snapshot.total_debt, snapshot.shares
    )
    _, _, exit_price = _implied_share_price(
        discounted.total, terminal.exit_pv, snapshot.cash, snapshot.total_debt, snapshot.shares
    )
    cross_check = TerminalCrossCheck(perpetuity_price=perpetuity_price, exit_multiple_price=exit_price)

    sensitivity = build_sensitivity(
        projection.free_cash_flows, rate, snapshot.cash, snapshot.total_debt, snapshot.shares
    )
    scenarios = compare_scenarios(
        rate, snapshot.cash, snapshot.total_debt, snapshot.shares,
        base_revenue=snapshot.trailing_revenue, current_price=snapshot.price,
    )

    sanity_checks, warnings = _run_sanity_checks(inputs, rate, terminal, bridge, sensitivity)

    return ValuationResult(
        inputs=inputs,
        snapshot=snapshot,
        scenario_label=scenario.label,
        wacc=wacc,
        projection=projection,
        discounted=discounted,
        terminal=terminal,
        bridge=bridge,
        cross_check=cross_check,
        sensitivity=sensitivity,
        scenarios=scenarios,
        sanity_checks=sanity_checks,
        warnings=tuple(warnings),
        trace=tuple(trace),
    )


def compute_valuation(scenario_id: str, terminal_growth_pct: float, exit_multiple: float,
                      wacc_adjustment_pct: float, snapshot: MarketSnapshot = DEFAULT_SNAPSHOT) -> ValuationResult:
    """Convenience wrapper taking the four control values directly."""
    inputs = ValuationInputs(
        scenario_id=scenario_id,
        terminal_growth_pct=terminal_growth_pct,
        exit_multiple=exit_multiple,
        wacc_adjustment_pct=wacc_adjustment_pct,
    )
    return run_valuation(inputs, snapshot)
