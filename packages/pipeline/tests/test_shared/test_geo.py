"""
tests/test_shared/test_geo.py — Tests for BBL, borough and coordinate helpers.
"""

from __future__ import annotations

import pytest

from nycdata_shared.geo import borough_name, is_valid_bbl, normalize_bbl, parse_coordinate


class TestNormalizeBbl:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("1000123456", "1000123456"),
            ("1-00012-3456", "1000123456"),
            (1000123456, "1000123456"),
            (1000123456.0, "1000123456"),
            ("300012345", "0300012345"),
            ("12345", None),
            ("10001234567", None),
            ("", None),
            (None, None),
            ("no digits", None),
            (float("nan"), None),
        ],
    )
    def test_normalize(self, value, expected):
        assert normalize_bbl(value) == expected

    def test_is_valid_bbl(self):
        assert is_valid_bbl("")
        assert is_valid_bbl("1000123456")
        assert not is_valid_bbl("300012345")


class TestBoroughName:
    @pytest.mark.parametrize(
        "code, expected",
        [
            ("1", "Manhattan"),
            (2, "Bronx"),
            ("3.0", "Brooklyn"),
            (4, "Queens"),
            (" 5 ", "Staten Island"),
            ("6", "Unknown"),
            (None, "Unknown"),
        ],
    )
    def test_mapping(self, code, expected):
        assert borough_name(code) == expected


class TestParseCoordinate:
    @pytest.mark.parametrize(
        "value, expected",
        [("40.7128", 40.7128), (-74.006, -74.006), (" -73.9 ", -73.9)],
    )
    def test_valid(self, value, expected):
        assert parse_coordinate(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "0", 0, 0.0, "abc", "inf", "nan", True])
    def test_rejected(self, value):
        assert parse_coordinate(value) is None
