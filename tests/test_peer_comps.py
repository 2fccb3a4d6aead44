"""
Unit tests for the peer comparables snapshot
"""

from peer_comps import PEER_COLUMNS, PEER_DATA, get_peer, get_peer_table, get_subject_company


class TestPeerLookup:

    def test_case_insensitive(self):
        assert get_peer("qrvo")["name"] == "Qorvo"
        assert get_peer(" AVGO ")["name"] == "Broadcom"

    def test_missing(self):
        assert get_peer("XXXX") is None
        assert get_peer("") is None
        assert get_peer(None) is None

    def test_subject_company(self):
        subject = get_subject_company()
        assert subject["ticker"] == "SWKS"
        assert sum(1 for p in PEER_DATA if p["highlight"]) == 1


class TestPeerTable:

    def test_rows_keyed_by_header(self):
        table = get_peer_table()
        assert len(table) == len(PEER_DATA)
        assert list(table[0].keys()) == list(PEER_COLUMNS.values())
        assert table[0]["Ticker"] == "SWKS"
        assert table[1]["EV/EBITDA"] == "11.2x"
