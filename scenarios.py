"""
Scenario presets for the five-year projection
=============================================
Three operating cases (bear / base / bull). Each holds per-year revenue growth
and FCF margin schedules plus the terminal assumptions used when scenarios are
compared side by side.

Growth and margins are fractions (0.05 = 5%). Terminal growth is in percentage
points (2.5 = 2.5%); the exit multiple applies to Year 5 free cash flow.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

PROJECTION_YEARS = 5


@dataclass(frozen=True)
class Scenario:
    """Immutable operating preset."""
    label: str
    growth_rates: Tuple[float, ...]
    fcf_margins: Tuple[float, ...]
    default_terminal_growth_pct: float
    default_exit_multiple: float

    def __post_init__(self):
        # Normalise lists to tuples so presets stay hashable/immutable
        object.__setattr__(self, "growth_rates", tuple(self.growth_rates))
        object.__setattr__(self, "fcf_margins", tuple(self.fcf_margins))
        if len(self.growth_rates) != PROJECTION_YEARS:
            raise ValueError(
                f"{self.label}: expected {PROJECTION_YEARS} growth rates, got {len(self.growth_rates)}"
            )
        if len(self.fcf_margins) != PROJECTION_YEARS:
            raise ValueError(
                f"{self.label}: expected {PROJECTION_YEARS} FCF margins, got {len(self.fcf_margins)}"
            )

    def revenue_cagr(self) -> float:
        """Compound annual revenue growth implied by the growth schedule."""
        compounded = 1.0
        for g in self.growth_rates:
            compounded *= (1 + g)
        return compounded ** (1.0 / PROJECTION_YEARS) - 1


SCENARIOS: Dict[str, Scenario] = {
    "bear": Scenario(
        label="Bear Case",
        growth_rates=(-0.08, -0.03, 0.01, 0.02, 0.03),
        fcf_margins=(0.22, 0.23, 0.24, 0.25, 0.26),
        default_terminal_growth_pct=2.0,
        default_exit_multiple=8,
    ),
    "base": Scenario(
        label="Base Case",
        growth_rates=(-0.04, 0.02, 0.05, 0.06, 0.06),
        fcf_margins=(0.26, 0.27, 0.28, 0.29, 0.30),
        default_terminal_growth_pct=2.5,
        default_exit_multiple=12,
    ),
    "bull": Scenario(
        label="Bull Case",
        growth_rates=(0.00, 0.06, 0.09, 0.10, 0.10),
        fcf_margins=(0.27, 0.29, 0.31, 0.32, 0.33),
        default_terminal_growth_pct=3.0,
        default_exit_multiple=15,
    ),
}

# Display / comparison order
SCENARIO_ORDER = ("bear", "base", "bull")


def get_scenario(scenario_id: str) -> Scenario:
    """
    Look up a preset by id.

    Raises:
        ValueError: if scenario_id is not one of bear/base/bull
    """
    try:
        return SCENARIOS[scenario_id]
    except KeyError:
        raise ValueError(
            f"Unknown scenario '{scenario_id}'. Expected one of: {', '.join(SCENARIO_ORDER)}"
        ) from None
