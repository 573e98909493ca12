"""
Unit Normalizer
===============
Converts activity quantities between units of the same physical
dimension. Units are compared case-insensitively with non-alphanumerics
dropped, so "ton-km", "Ton km" and "tonkm" are the same unit.
"""

import re
from typing import Any, Optional

from utils.helpers import to_number

# Multiplier from each unit to its family's base unit.
UNIT_FAMILIES: dict[str, dict[str, float]] = {
    "energy": {  # base: kWh
        "kwh": 1.0,
        "mwh": 1_000.0,
        "gwh": 1_000_000.0,
        "wh": 0.001,
        "gj": 277.77778,
        "mj": 0.27777778,
    },
    "mass": {  # base: kg
        "kg": 1.0,
        "t": 1_000.0,
        "ton": 1_000.0,
        "tonne": 1_000.0,
        "tonelada": 1_000.0,
        "toneladas": 1_000.0,
    },
    "distance": {  # base: km
        "km": 1.0,
        "mi": 1.60934,
        "mile": 1.60934,
        "miles": 1.60934,
        "milla": 1.60934,
        "millas": 1.60934,
    },
    "freight": {  # base: ton-km
        "tonkm": 1.0,
        "tkm": 1.0,
    },
    "currency": {  # base: USD-equivalent
        "usd": 1.0,
        "usdeq": 1.0,
        "dolar": 1.0,
        "dolares": 1.0,
    },
}

_UNIT_INDEX: dict[str, tuple[str, float]] = {
    unit: (family, multiplier)
    for family, units in UNIT_FAMILIES.items()
    for unit, multiplier in units.items()
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def unit_key(unit: Optional[str]) -> str:
    """Comparison key for a unit label."""
    if unit is None:
        return ""
    return _NON_ALNUM.sub("", str(unit).lower())


def unit_family(unit: Optional[str]) -> Optional[str]:
    """Physical dimension of ``unit``, or None when unknown."""
    entry = _UNIT_INDEX.get(unit_key(unit))
    return entry[0] if entry else None


def normalize(value: Any, from_unit: Optional[str], to_unit: Optional[str]) -> Optional[float]:
    """
    Convert ``value`` from ``from_unit`` to ``to_unit``.

    Returns None when the value is not numeric or the units cannot be
    converted (different families, or an unknown unit). A missing unit on
    either side means the quantity is already expressed in the target unit.
    """
    numeric = to_number(value)
    if numeric is None:
        return None

    source, target = unit_key(from_unit), unit_key(to_unit)
    if not source or not target or source == target:
        return numeric

    source_entry = _UNIT_INDEX.get(source)
    target_entry = _UNIT_INDEX.get(target)
    if source_entry is None or target_entry is None:
        return None
    if source_entry[0] != target_entry[0]:
        return None
    return numeric * source_entry[1] / target_entry[1]
