"""Tests for the per-category breakdown and reported-total reconciliation."""

import pytest

from db.models import EmissionFactor
from engine.activities import ActivityBundle
from engine.breakdown import ADJUSTMENT_NOTE, compute_breakdown
from engine.factors import build_factor_map
from utils.helpers import round_value

NO_REPORTED = {"scope1": None, "scope2": None, "scope3": None}


def _bundle(scope, category, activity, unit, source="ingestion"):
    return ActivityBundle(
        scope=scope, category=category, activity=activity, unit=unit, source=source
    )


@pytest.fixture
def factor_map():
    return build_factor_map(
        [
            EmissionFactor(
                scope="scope1",
                category="combustion_estacionaria",
                year=2024,
                value=0.074,
                activity_unit="GJ",
            ),
            EmissionFactor(
                scope="scope2",
                category="electricidad",
                year=2024,
                value=0.000355,
                activity_unit="kWh",
            ),
        ]
    )


def test_activity_times_factor(factor_map):
    activities = {"scope2": {"electricidad": _bundle("scope2", "electricidad", 1000, "kWh")}}
    result = compute_breakdown(activities, factor_map, NO_REPORTED)

    item = result.breakdown[0]
    assert item.result == 0.355
    assert item.factor == 0.000355
    assert item.notes is None
    assert result.totals.scope2 == 0.355
    assert result.totals.total == 0.355


def test_converts_activity_to_factor_unit(factor_map):
    activities = {"scope2": {"electricidad": _bundle("scope2", "electricidad", 2, "MWh")}}
    result = compute_breakdown(activities, factor_map, NO_REPORTED)
    item = result.breakdown[0]
    assert item.activity == 2000
    assert item.unit == "kWh"
    assert item.result == 0.71


def test_missing_factor_does_not_abort(factor_map):
    activities = {
        "scope2": {"electricidad": _bundle("scope2", "electricidad", 1000, "kWh")},
        "scope3": {"cadena_valor": _bundle("scope3", "cadena_valor", 5000, "USD")},
    }
    result = compute_breakdown(activities, factor_map, NO_REPORTED)

    missing = next(i for i in result.breakdown if i.category == "cadena_valor")
    assert missing.result == 0
    assert missing.factor is None
    assert missing.notes == "Missing emission factor."
    assert "Missing emission factor for scope3/cadena_valor." in result.notes
    assert result.totals.scope3 == 0
    assert result.totals.total == 0.355


def test_unconvertible_unit(factor_map):
    activities = {"scope2": {"electricidad": _bundle("scope2", "electricidad", 40, "km")}}
    result = compute_breakdown(activities, factor_map, NO_REPORTED)
    item = result.breakdown[0]
    assert item.result == 0
    assert item.factor == 0.000355
    assert item.notes == "Unable to convert unit km to kWh."
    assert result.totals.total == 0


class TestReconciliation:
    @pytest.fixture
    def activities(self):
        return {
            "scope1": {
                "combustion_estacionaria": _bundle(
                    "scope1", "combustion_estacionaria", 100, "GJ"
                )
            }
        }

    def test_adjustment_line_aligns_to_reported(self, activities, factor_map):
        result = compute_breakdown(
            activities, factor_map, {**NO_REPORTED, "scope1": 10.0}
        )
        adjustment = next(i for i in result.breakdown if i.category == "ajuste_reportado")

        assert result.totals.scope1 == 10.0
        assert adjustment.result == 2.6
        assert adjustment.unit == "tCO2e"
        assert adjustment.source == "metricas"
        assert adjustment.notes == ADJUSTMENT_NOTE
        scope1_sum = sum(i.result for i in result.breakdown if i.scope == "scope1")
        assert round_value(scope1_sum) == result.totals.scope1

    def test_within_tolerance_keeps_computed(self, activities, factor_map):
        result = compute_breakdown(
            activities, factor_map, {**NO_REPORTED, "scope1": 7.405}
        )
        assert result.totals.scope1 == 7.4
        assert all(i.category != "ajuste_reportado" for i in result.breakdown)

    def test_negative_adjustment(self, activities, factor_map):
        result = compute_breakdown(activities, factor_map, {**NO_REPORTED, "scope1": 5})
        adjustment = next(i for i in result.breakdown if i.category == "ajuste_reportado")
        assert adjustment.result == -2.4
        assert result.totals.scope1 == 5

    def test_negative_reported_total_is_clamped(self, activities, factor_map):
        result = compute_breakdown(activities, factor_map, {**NO_REPORTED, "scope1": -3})
        assert result.totals.scope1 == 0
        assert result.totals.total == 0

    def test_reported_total_without_activity(self, factor_map):
        result = compute_breakdown({}, factor_map, {**NO_REPORTED, "scope3": 4.2})
        assert result.totals.scope3 == 4.2
        assert result.breakdown[0].result == 4.2


def test_total_is_sum_of_scopes(factor_map):
    activities = {
        "scope1": {
            "combustion_estacionaria": _bundle("scope1", "combustion_estacionaria", 33.3, "GJ")
        },
        "scope2": {"electricidad": _bundle("scope2", "electricidad", 12345, "kWh")},
    }
    result = compute_breakdown(activities, factor_map, {**NO_REPORTED, "scope3": 1.11119})
    totals = result.totals
    assert totals.total == round_value(totals.scope1 + totals.scope2 + totals.scope3)
    assert min(totals.scope1, totals.scope2, totals.scope3) >= 0
