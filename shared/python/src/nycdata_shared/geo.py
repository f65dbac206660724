"""
geo.py — Property identifier, borough, and coordinate normalization helpers.

NYC data sets key parcels by BBL (borough + block + lot) but publish it in
many shapes: "1000123456", "1-00012-3456", 1000123456.0, or with the leading
borough digit's zero stripped. These helpers reduce every variant to the
canonical 10-digit string, or None when the value cannot be one.

Usage:
    from nycdata_shared.geo import normalize_bbl, borough_name, parse_coordinate

    normalize_bbl("1-00012-3456")    # "1000123456"
    normalize_bbl("300012345")       # "0300012345"
    normalize_bbl("12345")           # None
    borough_name("3")                # "Brooklyn"
    parse_coordinate("40.7128")      # 40.7128
    parse_coordinate("0")            # None
"""

from __future__ import annotations

import math
import re
from typing import Any

from nycdata_shared.constants import BOROUGH_NAMES, UNKNOWN_BOROUGH

_NON_DIGIT = re.compile(r"[^0-9]")

BBL_LENGTH = 10


def normalize_bbl(value: Any) -> str | None:
    """
    Normalize a BBL to the standard 10-digit string.

    Non-digit characters are stripped. Nine-digit results are left-padded
    with a zero; any other length yields None.
    """
    if value is None or value == "":
        return None

    # Float BBLs from JSON (1000123456.0) must not contribute the fractional zero
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = int(value)

    digits = _NON_DIGIT.sub("", str(value))
    if len(digits) == BBL_LENGTH:
        return digits
    if len(digits) == BBL_LENGTH - 1:
        return "0" + digits
    return None


def is_valid_bbl(value: Any) -> bool:
    """True when value is absent or strips to exactly 10 digits."""
    if not value:
        return True
    return len(_NON_DIGIT.sub("", str(value))) == BBL_LENGTH


def borough_name(code: Any) -> str:
    """Map a DCP borough code (1-5) to its name; anything else is 'Unknown'."""
    if code is None:
        return UNKNOWN_BOROUGH
    key = str(code).strip()
    # Codes occasionally arrive as floats ("3.0")
    if key.endswith(".0"):
        key = key[:-2]
    return BOROUGH_NAMES.get(key, UNKNOWN_BOROUGH)


def parse_coordinate(value: Any) -> float | None:
    """
    Parse a latitude/longitude value.

    Returns None for values that are missing, unparseable, non-finite, or
    exactly zero (the providers' placeholder for "not geocoded").
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(parsed) or parsed == 0:
        return None
    return parsed


def is_valid_latitude(value: Any) -> bool:
    lat = parse_coordinate(value)
    return lat is not None and -90 <= lat <= 90


def is_valid_longitude(value: Any) -> bool:
    lon = parse_coordinate(value)
    return lon is not None and -180 <= lon <= 180
