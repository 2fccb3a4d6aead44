"""
Display formatting helpers.

Pure number → string functions; no business logic. Engine values are in
$ millions, so use fmt_millions for anything coming out of the model.
"""

MISSING = "—"


def fmt(n: float, d: int = 1) -> str:
    """Currency with B/M suffix above a million, cents below."""
    if n is None:
        return MISSING
    sign = "-" if n < 0 else ""
    value = abs(n)
    if value >= 1e9:
        return f"{sign}${value / 1e9:.{d}f}B"
    if value >= 1e6:
        return f"{sign}${value / 1e6:.{d}f}M"
    return f"{sign}${value:.2f}"


def fmt_millions(n_millions: float, d: int = 1) -> str:
    if n_millions is None:
        return MISSING
    return fmt(n_millions * 1e6, d)


def pct(n: float, d: int = 1) -> str:
    """Fraction → percent string (0.025 → '2.5%')."""
    if n is None:
        return MISSING
    return f"{n * 100:.{d}f}%"


def fmt_price(n: float, d: int = 2) -> str:
    if n is None:
        return MISSING
    sign = "-" if n < 0 else ""
    return f"{sign}${abs(n):.{d}f}"


def fmt_multiple(x: float, d: int = 1) -> str:
    if x is None:
        return MISSING
    return f"{x:.{d}f}x"
