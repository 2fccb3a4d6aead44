"""
Unit tests for display formatting helpers
"""

from formatting import MISSING, fmt, fmt_millions, fmt_multiple, fmt_price, pct


class TestFmt:

    def test_billions(self):
        assert fmt(1.5e9) == "$1.5B"
        assert fmt(9.33984e9) == "$9.3B"

    def test_millions(self):
        assert fmt(2.5e6) == "$2.5M"

    def test_small_values_show_cents(self):
        assert fmt(12.5) == "$12.50"

    def test_negative_sign_before_currency(self):
        assert fmt(-6e8) == "-$600.0M"

    def test_precision(self):
        assert fmt(1.25e9, 2) == "$1.25B"

    def test_none(self):
        assert fmt(None) == MISSING


class TestFmtMillions:

    def test_scales_from_millions(self):
        assert fmt_millions(1600) == "$1.6B"
        assert fmt_millions(600) == "$600.0M"

    def test_none(self):
        assert fmt_millions(None) == MISSING


class TestPctAndPrice:

    def test_pct(self):
        assert pct(0.025) == "2.5%"
        assert pct(0.25, 2) == "25.00%"
        assert pct(-0.04) == "-4.0%"
        assert pct(None) == MISSING

    def test_price(self):
        assert fmt_price(62.1) == "$62.10"
        assert fmt_price(-3.5) == "-$3.50"
        assert fmt_price(None) == MISSING

    def test_multiple(self):
        assert fmt_multiple(12) == "12.0x"
        assert fmt_multiple(None) == MISSING
