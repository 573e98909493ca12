"""
Helpers & Utilities
===================
Shared utility functions used across the application: logging setup,
JSON serialization for VARIANT columns, and the single rounding policy
for emission figures.
"""

import json
import logging
import math
import sys
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

# ── Precision policy ──────────────────────────────────────
CO2E_PRECISION = 4  # tCO2e figures (results, totals, scenarios)
ACTIVITY_PRECISION = 6  # activity quantities
PERCENT_PRECISION = 2  # period-over-period change %


# ── Logging ───────────────────────────────────────────────
def setup_logger(name: str = "carbon_app", level: int | str = logging.INFO) -> logging.Logger:
    """
    Create and configure a logger with console output.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s — %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


logger = setup_logger()


# ── JSON Helpers ──────────────────────────────────────────
class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def to_json(data: Any, pretty: bool = False) -> str:
    """Serialize data to JSON, handling datetimes."""
    return json.dumps(data, cls=DateTimeEncoder, indent=2 if pretty else None)


def from_json(raw: Any) -> Any:
    """Parse a VARIANT/JSON column value; already-decoded values pass through."""
    if raw is None or isinstance(raw, (dict, list)):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return None


# ── Numbers ───────────────────────────────────────────────
def to_number(value: Any) -> Optional[float]:
    """Coerce a value to a finite float, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


def round_value(value: Any, decimals: int = CO2E_PRECISION) -> float:
    """
    Round half-up to ``decimals`` places.

    ``None`` and non-numeric values round to 0.0 so totals never carry NaN.
    """
    numeric = to_number(value)
    if numeric is None:
        return 0.0
    try:
        quantized = Decimal(repr(numeric)).quantize(
            Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP
        )
    except InvalidOperation:
        return numeric
    result = float(quantized)
    return 0.0 if result == 0 else result
