"""
Unit tests for scenario presets
"""

import pytest

from scenarios import PROJECTION_YEARS, SCENARIO_ORDER, SCENARIOS, Scenario, get_scenario


class TestScenarioPresets:

    def test_three_presets_in_order(self):
        assert SCENARIO_ORDER == ("bear", "base", "bull")
        assert set(SCENARIOS) == set(SCENARIO_ORDER)

    @pytest.mark.parametrize("scenario_id", SCENARIO_ORDER)
    def test_schedules_have_five_years(self, scenario_id):
        scenario = SCENARIOS[scenario_id]
        assert len(scenario.growth_rates) == PROJECTION_YEARS
        assert len(scenario.fcf_margins) == PROJECTION_YEARS

    def test_terminal_defaults(self):
        assert (SCENARIOS["bear"].default_terminal_growth_pct, SCENARIOS["bear"].default_exit_multiple) == (2.0, 8)
        assert (SCENARIOS["base"].default_terminal_growth_pct, SCENARIOS["base"].default_exit_multiple) == (2.5, 12)
        assert (SCENARIOS["bull"].default_terminal_growth_pct, SCENARIOS["bull"].default_exit_multiple) == (3.0, 15)

    def test_cagr_ordering(self):
        cagrs = [SCENARIOS[key].revenue_cagr() for key in SCENARIO_ORDER]
        assert cagrs == sorted(cagrs)
        assert SCENARIOS["bear"].revenue_cagr() < 0

    def test_presets_are_immutable(self):
        with pytest.raises(AttributeError):
            SCENARIOS["base"].default_exit_multiple = 20


class TestScenarioValidation:

    def test_lists_normalised_to_tuples(self):
        s = Scenario("Flat", [0.0] * 5, [0.2] * 5, 2.0, 10)
        assert isinstance(s.growth_rates, tuple)
        assert s.revenue_cagr() == 0.0

    def test_wrong_growth_length(self):
        with pytest.raises(ValueError, match="growth rates"):
            Scenario("Short", [0.01] * 4, [0.2] * 5, 2.0, 10)

    def test_wrong_margin_length(self):
        with pytest.raises(ValueError, match="FCF margins"):
            Scenario("Long", [0.01] * 5, [0.2] * 6, 2.0, 10)


class TestGetScenario:

    def test_known(self):
        assert get_scenario("bull").label == "Bull Case"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown scenario"):
            get_scenario("sideways")
