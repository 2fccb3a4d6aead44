"""
Peer Company Multiples (RF / Analog Semiconductors)
===================================================
Static snapshot of comparable-company trading multiples shown on the Comps tab.
Values are display strings and are rendered verbatim; nothing here feeds the
DCF calculation.
"""

PEER_DATA = [
    {"name": "Skyworks Solutions", "ticker": "SWKS", "mkt_cap": "$9.3B", "ev_rev": "2.1x", "ev_ebitda": "8.5x",
     "pe": "10.5x", "fcf_yield": "11.9%", "gross_margin": "46.6%", "rev_growth": "-2%", "highlight": True},
    {"name": "Qorvo", "ticker": "QRVO", "mkt_cap": "$8.0B", "ev_rev": "2.5x", "ev_ebitda": "11.2x",
     "pe": "18.0x", "fcf_yield": "6.8%", "gross_margin": "44.4%", "rev_growth": "-3%", "highlight": False},
    {"name": "Broadcom", "ticker": "AVGO", "mkt_cap": "$1.1T", "ev_rev": "18.5x", "ev_ebitda": "28.0x",
     "pe": "38.0x", "fcf_yield": "3.2%", "gross_margin": "76.0%", "rev_growth": "+44%", "highlight": False},
    {"name": "Analog Devices", "ticker": "ADI", "mkt_cap": "$105B", "ev_rev": "11.8x", "ev_ebitda": "24.5x",
     "pe": "32.0x", "fcf_yield": "3.5%", "gross_margin": "57.0%", "rev_growth": "+5%", "highlight": False},
    {"name": "Texas Instruments", "ticker": "TXN", "mkt_cap": "$175B", "ev_rev": "10.5x", "ev_ebitda": "22.0x",
     "pe": "33.0x", "fcf_yield": "3.0%", "gross_margin": "58.0%", "rev_growth": "+3%", "highlight": False},
    {"name": "NXP Semi", "ticker": "NXPI", "mkt_cap": "$55B", "ev_rev": "4.2x", "ev_ebitda": "12.5x",
     "pe": "17.0x", "fcf_yield": "5.5%", "gross_margin": "57.5%", "rev_growth": "+1%", "highlight": False},
    {"name": "Microchip Tech", "ticker": "MCHP", "mkt_cap": "$35B", "ev_rev": "6.0x", "ev_ebitda": "15.0x",
     "pe": "25.0x", "fcf_yield": "4.2%", "gross_margin": "60.0%", "rev_growth": "-8%", "highlight": False},
]

# Column headers for the Comps table, in display order
PEER_COLUMNS = {
    "name": "Company",
    "ticker": "Ticker",
    "mkt_cap": "Mkt Cap",
    "ev_rev": "EV/Rev",
    "ev_ebitda": "EV/EBITDA",
    "pe": "P/E",
    "fcf_yield": "FCF Yield",
    "gross_margin": "Gross Margin",
    "rev_growth": "Rev Growth",
}


def get_peer(ticker: str):
    """
    Look up a peer row by ticker (case-insensitive).

    Returns:
        dict or None if the ticker is not in the peer set
    """
    if not ticker:
        return None
    wanted = ticker.strip().upper()
    for peer in PEER_DATA:
        if peer["ticker"] == wanted:
            return peer
    return None


def get_subject_company() -> dict:
    """The highlighted row (the company being valued)."""
    return next(peer for peer in PEER_DATA if peer["highlight"])


def get_peer_table() -> list:
    """
    Peer rows keyed by display header, for st.dataframe.

    Returns:
        List of dicts, one per peer, in PEER_DATA order
    """
    return [
        {header: peer[key] for key, header in PEER_COLUMNS.items()}
        for peer in PEER_DATA
    ]


PEER_DATA_SOURCE = "Company filings and consensus estimates"
PEER_DATA_DATE = "FY2026"
