"""
Emission Factor Resolver
========================
Picks the emission factor set used by a calculation. Resolution stops at
the first non-empty step:

  1. exact (country, year)
  2. same country, nearest earlier year (else its latest year)
  3. global set for the year, seeded from the built-in dataset if absent

and fails with ``FactorResolutionFailure`` when all of them are empty.
"""

import json
import logging
import threading
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Optional

from db.models import EmissionFactor, FactorSet, RawFactor
from db.stores import FactorStore
from utils.errors import FactorResolutionFailure

logger = logging.getLogger("carbon_app.factors")


def load_default_factors(path: Path) -> list[RawFactor]:
    """Load the built-in factor dataset (year-less) from JSON."""
    with open(path, "r", encoding="utf-8") as f:
        return [RawFactor.model_validate(row) for row in json.load(f)]


def build_factor_map(factors: Iterable[EmissionFactor]) -> dict[str, dict[str, EmissionFactor]]:
    """Index factors as ``{scope: {category: factor}}``."""
    factor_map: dict[str, dict[str, EmissionFactor]] = {}
    for factor in factors:
        factor_map.setdefault(factor.scope, {})[factor.category] = factor
    return factor_map


def _stamp(raw: RawFactor | dict[str, Any], year: int) -> EmissionFactor:
    data = RawFactor.model_validate(raw).model_dump()
    if data.get("year") is None:
        data["year"] = year
    return EmissionFactor.model_validate(data)


class FactorResolver:
    """
    Resolves factor sets against a ``FactorStore``.

    Resolved sets are cached per (country, year) for the lifetime of the
    resolver; every write through ``sync_factors``/``ensure_default_factors``
    clears the cache.
    """

    def __init__(self, store: FactorStore, defaults: Iterable[RawFactor]):
        self.store = store
        self.defaults = list(defaults)
        self._cache: dict[tuple[Optional[str], int], FactorSet] = {}
        self._lock = threading.Lock()

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()

    def resolve_factor_set(self, country_code: Optional[str], year: int) -> FactorSet:
        """
        Factor set for ``country_code`` (None = global) and ``year``.

        ``country_code`` is reset to None on the result when none of the
        returned factors carries it.
        """
        code = (country_code.strip().upper() or None) if country_code else None
        with self._lock:
            cached = self._cache.get((code, year))
        if cached is not None:
            return cached

        factors = self.store.get_factors(code, year)

        if not factors and code:
            fallback_year = self._closest_year(code, year)
            if fallback_year is not None:
                logger.warning(
                    "No %s factors for %s; falling back to %s", code, year, fallback_year
                )
                factors = self.store.get_factors(code, fallback_year)

        if not factors:
            logger.warning("Falling back to global factors for %s (requested %s)", year, code)
            factors = self.ensure_default_factors(year)
            if code:
                # seeding may have created rows for this country
                factors = self.store.get_factors(code, year) or factors

        if not factors:
            raise FactorResolutionFailure(
                "Unable to resolve emission factors for the calculation.",
                {"countryCode": code, "year": year},
            )

        resolved_code = code if code and any(f.country_code == code for f in factors) else None
        country_name = "Global"
        if resolved_code:
            country_name = next(
                (f.country for f in factors if f.country_code == resolved_code and f.country),
                resolved_code,
            )
        factor_set = FactorSet(
            country_code=resolved_code, country_name=country_name, year=year, factors=factors
        )
        with self._lock:
            self._cache[(code, year)] = factor_set
        return factor_set

    def _closest_year(self, country_code: str, year: int) -> Optional[int]:
        years = self.store.list_years(country_code)
        if not years:
            return None
        earlier = [y for y in years if y <= year]
        return max(earlier) if earlier else max(years)

    def ensure_default_factors(self, year: int) -> list[EmissionFactor]:
        """Global factors for ``year``, seeding the built-in dataset when missing."""
        existing = self.store.get_factors(None, year)
        if existing:
            return existing
        logger.info("Seeding %d default emission factors for %s", len(self.defaults), year)
        self.store.upsert_factors([_stamp(raw, year) for raw in self.defaults])
        self.invalidate()
        return self.store.get_factors(None, year)

    def sync_factors(
        self, factors: Iterable[RawFactor | dict[str, Any]], year: Optional[int] = None
    ) -> list[EmissionFactor]:
        """Bulk upsert; an empty batch reseeds the built-in dataset for ``year``."""
        year = year or date.today().year
        batch = list(factors)
        if batch:
            dataset = [_stamp(raw, year) for raw in batch]
        else:
            dataset = [_stamp(raw, year) for raw in self.defaults]
        stored = self.store.upsert_factors(dataset)
        self.invalidate()
        logger.info("Synced %d emission factors", len(stored))
        return stored
