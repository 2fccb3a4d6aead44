"""
Unit tests for the DCF engine
"""

import json

import pytest

from dcf_engine import (
    DEFAULT_SNAPSHOT, MARGIN_OF_SAFETY_FACTOR, SENSITIVITY_TGR_VALUES_PCT, SENSITIVITY_WACC_DELTAS_PCT,
    CalculationTraceStep, DomainError, ExitMultipleTerminalValue, MarketSnapshot,
    PerpetuityGrowthTerminalValue, ValuationInputs, blend_terminal_values, build_sensitivity,
    compare_scenarios, compute_valuation, compute_wacc, discount_cash_flows, project_cash_flows,
    roll_up, run_valuation,
)
from scenarios import SCENARIOS, SCENARIO_ORDER


def base_wacc(adjustment_pct=0.0):
    snap = DEFAULT_SNAPSHOT
    return compute_wacc(
        adjustment_pct, snap.market_cap, snap.total_debt, snap.risk_free_rate, snap.beta,
        snap.equity_risk_premium, snap.pre_tax_cost_of_debt, snap.tax_rate,
    )


class TestMarketSnapshot:
    """Test the static market snapshot."""

    def test_defaults(self):
        snap = MarketSnapshot()
        assert snap.price == 62.10
        assert snap.shares == 150.4
        assert snap.trailing_revenue == 4090
        assert snap.trailing_fcf == 1110

    def test_derived_values(self):
        snap = MarketSnapshot()
        assert snap.market_cap == pytest.approx(9339.84)
        assert snap.market_enterprise_value == pytest.approx(9339.84 - 1600 + 1000)
        assert snap.net_cash == 600
        assert snap.trailing_fcf_margin == pytest.approx(1110 / 4090)


class TestComputeWacc:
    """Test WACC build-up."""

    def test_components(self):
        w = base_wacc()
        assert w.cost_of_equity == pytest.approx(0.0434 + 1.55 * 0.05)
        assert w.after_tax_cost_of_debt == pytest.approx(0.045 * 0.9)
        assert w.equity_weight + w.debt_weight == pytest.approx(1.0)
        assert w.wacc == pytest.approx(
            w.cost_of_equity * w.equity_weight + w.after_tax_cost_of_debt * w.debt_weight
        )

    def test_wacc_between_debt_and_equity_cost(self):
        w = base_wacc()
        assert w.after_tax_cost_of_debt < w.wacc < w.cost_of_equity
        # Market cap >> debt, so WACC sits closer to the cost of equity
        midpoint = (w.after_tax_cost_of_debt + w.cost_of_equity) / 2
        assert w.wacc > midpoint
        assert w.equity_weight > 0.9

    def test_adjustment_is_additive_to_cost_of_equity(self):
        plain = base_wacc()
        shocked = base_wacc(2.0)
        assert shocked.cost_of_equity - plain.cost_of_equity == pytest.approx(0.02)
        assert shocked.after_tax_cost_of_debt == plain.after_tax_cost_of_debt

    def test_trace_recorded(self):
        trace = []
        compute_wacc(0, 100, 50, 0.04, 1.0, 0.05, 0.05, 0.2, trace=trace)
        assert [s.name for s in trace] == ["Cost of Equity (CAPM)", "WACC"]


class TestProjection:
    """Test the revenue / FCF recurrence."""

    @pytest.mark.parametrize("scenario_id", SCENARIO_ORDER)
    def test_recurrence(self, scenario_id):
        scenario = SCENARIOS[scenario_id]
        proj = project_cash_flows(scenario, 4090)
        prior = 4090
        for i in range(5):
            assert proj.revenues[i] == prior * (1 + scenario.growth_rates[i])
            assert proj.free_cash_flows[i] == proj.revenues[i] * scenario.fcf_margins[i]
            prior = proj.revenues[i]

    def test_base_case_year_one(self):
        proj = project_cash_flows(SCENARIOS["base"], 4090)
        assert proj.revenues[0] == pytest.approx(3926.4)
        assert proj.free_cash_flows[0] == pytest.approx(1020.864)
        assert len(proj.revenues) == 5


class TestDiscounting:
    """Test explicit-period discounting."""

    def test_present_values(self):
        flows = [100, 110, 121, 133.1, 146.41]
        d = discount_cash_flows(flows, 0.10)
        for i, cf in enumerate(flows):
            assert d.present_values[i] == pytest.approx(cf / 1.10 ** (i + 1))
        assert d.total == pytest.approx(sum(d.present_values))
        # Flows grow at the discount rate, so every PV is 100/1.1
        assert d.present_values[-1] == pytest.approx(100 / 1.1)

    def test_discount_factors(self):
        d = discount_cash_flows([1, 1, 1, 1, 1], 0.08)
        assert d.discount_factors[0] == pytest.approx(1.08)
        assert d.discount_factors[4] == pytest.approx(1.08 ** 5)


class TestTerminalValue:
    """Test both terminal value strategies and the blend."""

    def test_perpetuity_growth(self):
        tv, pv = PerpetuityGrowthTerminalValue(3.0).calculate(100, 0.10)
        # 100 × 1.03 / 0.07 ≈ 1471.43
        assert tv == pytest.approx(100 * 1.03 / 0.07)
        assert pv == pytest.approx(tv / 1.10 ** 5)

    def test_perpetuity_rejects_growth_at_or_above_wacc(self):
        with pytest.raises(DomainError):
            PerpetuityGrowthTerminalValue(6.0).calculate(100, 0.05)
        with pytest.raises(DomainError):
            PerpetuityGrowthTerminalValue(5.0).calculate(100, 0.05)

    def test_domain_error_is_value_error(self):
        assert issubclass(DomainError, ValueError)

    def test_exit_multiple(self):
        tv, pv = ExitMultipleTerminalValue(12).calculate(100, 0.10)
        assert tv == 1200
        assert pv == pytest.approx(1200 / 1.10 ** 5)

    def test_exit_multiple_trace_same_for_int_and_float(self):
        int_trace, float_trace = [], []
        ExitMultipleTerminalValue(12).calculate(100, 0.10, trace=int_trace)
        ExitMultipleTerminalValue(12.0).calculate(100, 0.10, trace=float_trace)
        assert int_trace == float_trace
        assert int_trace[0].notes == "Exit multiple = 12.0x FCF"

    def test_blend_is_simple_average(self):
        t = blend_terminal_values(500, 2.5, 12, 0.11)
        assert t.perpetuity_pv == pytest.approx(500 * 1.025 / (0.11 - 0.025) / 1.11 ** 5)
        assert t.exit_pv == pytest.approx(500 * 12 / 1.11 ** 5)
        assert t.blended_pv == (t.perpetuity_pv + t.exit_pv) / 2

    def test_trace_steps(self):
        trace = []
        blend_terminal_values(500, 2.5, 12, 0.11, trace=trace)
        assert len(trace) == 5
        assert all(isinstance(s, CalculationTraceStep) for s in trace)
        assert trace[-1].name == "Blended PV of Terminal Value"


class TestRollUp:
    """Test the EV → equity → per-share bridge."""

    def test_bridge(self):
        b = roll_up(4000, 6000, 1600, 1000, 150.4, 62.10)
        assert b.enterprise_value == 10000
        assert b.equity_value == 10600
        assert b.implied_share_price == pytest.approx(10600 / 150.4)
        assert b.upside == pytest.approx(b.implied_share_price / 62.10 - 1)
        assert b.margin_of_safety_target == pytest.approx(b.implied_share_price * 0.75)

    def test_net_debt_reduces_equity(self):
        b = roll_up(4000, 6000, 500, 2000, 100, 50)
        assert b.equity_value < b.enterprise_value


class TestSensitivity:
    """Test the WACC × terminal growth grid."""

    def setup_method(self):
        self.fcfs = project_cash_flows(SCENARIOS["base"], 4090).free_cash_flows
        self.wacc = base_wacc().wacc

    def test_shape_and_axes(self):
        s = build_sensitivity(self.fcfs, self.wacc, 1600, 1000, 150.4)
        assert len(s.grid) == 5
        assert all(len(row) == 5 for row in s.grid)
        assert s.wacc_deltas_pct == (-2.0, -1.0, 0.0, 1.0, 2.0)
        assert s.tgr_values_pct == (1.5, 2.0, 2.5, 3.0, 3.5)

    def test_cell_uses_perturbed_wacc_and_perpetuity_only(self):
        s = build_sensitivity(self.fcfs, self.wacc, 1600, 1000, 150.4)
        for r, delta in enumerate(SENSITIVITY_WACC_DELTAS_PCT):
            w = self.wacc + delta / 100
            pv_sum = sum(f / (1 + w) ** (i + 1) for i, f in enumerate(self.fcfs))
            for c, tgr in enumerate(SENSITIVITY_TGR_VALUES_PCT):
                g = tgr / 100
                pv_tv = self.fcfs[-1] * (1 + g) / (w - g) / (1 + w) ** 5
                expected = (pv_sum + pv_tv + 1600 - 1000) / 150.4
                assert s.grid[r][c] == pytest.approx(expected)

    def test_base_case_cell_exact_match(self):
        s = build_sensitivity(self.fcfs, self.wacc, 1600, 1000, 150.4)
        assert s.base_case_index == (2, 2)
        assert s.is_base_case(2, 2)
        assert not s.is_base_case(2, 1)
        assert s.base_case_value == s.grid[2][2]

    def test_price_falls_with_wacc_and_rises_with_growth(self):
        s = build_sensitivity(self.fcfs, self.wacc, 1600, 1000, 150.4)
        for c in range(5):
            column = [s.grid[r][c] for r in range(5)]
            assert column == sorted(column, reverse=True)
        for row in s.grid:
            assert list(row) == sorted(row)

    def test_invalid_cells_are_blank(self):
        # Row 0 is discounted at 2%, below the upper growth values
        s = build_sensitivity(self.fcfs, 0.04, 1600, 1000, 150.4)
        assert s.grid[0][0] is not None
        assert s.grid[0][2] is None
        assert s.grid[0][4] is None
        assert all(v is not None for v in s.grid[4])
        assert (0, 4) in s.invalid_cells


class TestCompareScenarios:
    """Test the side-by-side scenario comparison."""

    def test_order_and_labels(self):
        comps = compare_scenarios(base_wacc().wacc, 1600, 1000, 150.4)
        assert [c.scenario_key for c in comps] == ["bear", "base", "bull"]
        assert [c.label for c in comps] == ["Bear Case", "Base Case", "Bull Case"]

    def test_uses_scenario_defaults(self):
        wacc = base_wacc().wacc
        comps = compare_scenarios(wacc, 1600, 1000, 150.4)
        bear = SCENARIOS["bear"]
        proj = project_cash_flows(bear, 4090)
        pv = discount_cash_flows(proj.free_cash_flows, wacc).total
        tv = blend_terminal_values(proj.free_cash_flows[-1], bear.default_terminal_growth_pct,
                                   bear.default_exit_multiple, wacc)
        assert comps[0].implied_price == pytest.approx((pv + tv.blended_pv + 1600 - 1000) / 150.4)
        assert comps[0].terminal_growth_pct == 2.0
        assert comps[0].exit_multiple == 8

    def test_scenario_ordering(self):
        comps = compare_scenarios(base_wacc().wacc, 1600, 1000, 150.4)
        bear, base, bull = (c.implied_price for c in comps)
        assert bull >= base >= bear


class TestRunValuation:
    """Integration tests for the full pipeline."""

    def setup_method(self):
        self.result = compute_valuation("base", 2.5, 12, 0)

    def test_default_inputs(self):
        assert run_valuation(ValuationInputs()) == self.result

    def test_numeric_type_of_controls_does_not_matter(self):
        assert compute_valuation("base", 2.5, 12, 0) == compute_valuation("base", 2.5, 12.0, 0.0)
        assert compute_valuation("bull", 3, 15, 1) == compute_valuation("bull", 3.0, 15.0, 1.0)

    def test_roll_up_identity(self):
        r = self.result
        snap = r.snapshot
        assert r.enterprise_value == pytest.approx(r.discounted.total + r.terminal.blended_pv)
        assert r.equity_value == pytest.approx(r.enterprise_value + snap.cash - snap.total_debt)
        assert r.implied_share_price == pytest.approx(r.equity_value / snap.shares)
        assert r.upside == pytest.approx(r.implied_share_price / snap.price - 1)
        assert r.bridge.margin_of_safety_target == pytest.approx(r.implied_share_price * MARGIN_OF_SAFETY_FACTOR)

    def test_terminal_consistency(self):
        r = self.result
        fcf5 = r.projection.free_cash_flows[4]
        w = r.wacc_rate
        assert r.terminal.perpetuity_pv == pytest.approx(fcf5 * 1.025 / (w - 0.025) / (1 + w) ** 5)
        assert r.terminal.exit_pv == pytest.approx(fcf5 * 12 / (1 + w) ** 5)

    def test_grid_base_cell_matches_perpetuity_cross_check(self):
        r = self.result
        assert r.sensitivity.base_case_value == pytest.approx(r.cross_check.perpetuity_price)

    def test_cross_check_brackets_blend(self):
        r = self.result
        low = min(r.cross_check.perpetuity_price, r.cross_check.exit_multiple_price)
        high = max(r.cross_check.perpetuity_price, r.cross_check.exit_multiple_price)
        assert low <= r.implied_share_price <= high

    def test_determinism(self):
        again = compute_valuation("base", 2.5, 12, 0)
        assert again == self.result
        assert again.to_dict() == self.result.to_dict()

    def test_to_dict_is_json_serialisable(self):
        data = self.result.to_dict()
        json.dumps(data)
        assert data["bridge"]["implied_share_price"] == self.result.implied_share_price
        assert data["market_cap"] == pytest.approx(9339.84)
        assert len(data["sensitivity"]["grid"]) == 5

    def test_trace_covers_pipeline(self):
        names = [s.name for s in self.result.trace]
        assert "WACC" in names
        assert "Blended PV of Terminal Value" in names
        assert names[-1] == "Implied Share Price"

    def test_sanity_checks(self):
        checks = self.result.sanity_checks
        assert checks["terminal_growth_valid"] is True
        assert checks["sensitivity_invalid_cells"] == 0
        assert 0 < checks["tv_pct_of_ev"] < 100
        assert "valuation_signal" in checks

    def test_three_scenarios_returned(self):
        assert len(self.result.scenarios) == 3

    def test_unknown_scenario(self):
        with pytest.raises(ValueError):
            compute_valuation("sideways", 2.5, 12, 0)

    def test_growth_above_wacc_raises(self):
        with pytest.raises(DomainError):
            compute_valuation("base", 6.0, 12, -6)

    def test_scenario_comparison_error_names_preset(self):
        # Slider growth 1% is valid at ~2.5% WACC, but the bull default of 3% is not
        with pytest.raises(DomainError, match=r"Bull Case \(bull\) comparison") as excinfo:
            compute_valuation("base", 1.0, 12, -9.75)
        assert isinstance(excinfo.value.__cause__, DomainError)

    def test_result_mappings_are_read_only(self):
        with pytest.raises(TypeError):
            self.result.sanity_checks["valuation_signal"] = "changed"
        with pytest.raises(TypeError):
            self.result.sanity_checks.update(extra=1)
        with pytest.raises(TypeError):
            self.result.trace[0].inputs["beta"] = 0
        assert self.result == compute_valuation("base", 2.5, 12, 0)

    def test_from_scenario_defaults(self):
        inputs = ValuationInputs.from_scenario_defaults("bull")
        assert inputs.terminal_growth_pct == 3.0
        assert inputs.exit_multiple == 15
        assert inputs.wacc_adjustment_pct == 0.0

    def test_alternative_snapshot(self):
        richer = MarketSnapshot(cash=2600.0)
        r = run_valuation(ValuationInputs(), richer)
        assert r.equity_value - self.result.equity_value == pytest.approx(1000, rel=0.05)


class TestMonotonicity:
    """Implied price moves the right way with each control."""

    def test_decreasing_in_wacc(self):
        prices = [compute_valuation("base", 2.5, 12, adj).implied_share_price for adj in (-3, -1.5, 0, 1.5, 3)]
        assert all(a > b for a, b in zip(prices, prices[1:]))

    def test_increasing_in_terminal_growth(self):
        prices = [compute_valuation("base", g, 12, 0).implied_share_price for g in (1.0, 2.0, 3.0, 4.0)]
        assert all(a < b for a, b in zip(prices, prices[1:]))

    def test_increasing_in_exit_multiple(self):
        prices = [compute_valuation("base", 2.5, m, 0).implied_share_price for m in (6, 10, 14, 20)]
        assert all(a < b for a, b in zip(prices, prices[1:]))

    def test_scenario_ordering_primary_run(self):
        prices = [compute_valuation(s, 2.5, 12, 0).implied_share_price for s in SCENARIO_ORDER]
        assert prices == sorted(prices)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
