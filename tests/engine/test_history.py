"""Tests for period parsing and the footprint timeline."""

import pytest

from db.models import Snapshot
from engine.history import build_timeline, parse_period_year, period_sort_key


def _snapshot(period, total):
    return Snapshot(company_id="1", period=period, scope1=total, total=total)


@pytest.mark.parametrize(
    "period,year",
    [("2024", 2024), ("2024-Q3", 2024), ("Q1 2023", 2023), ("FY2019", 2019), ("sin dato", None)],
)
def test_parse_period_year(period, year):
    assert parse_period_year(period) == year


def test_period_sort_key():
    assert period_sort_key("2024") == 20240
    assert period_sort_key("2024-Q3") == 20243
    assert period_sort_key("q2 2024") == 20242
    assert period_sort_key("anual") > period_sort_key("2099-Q4")


def test_timeline_is_chronological_with_change():
    timeline = build_timeline(
        [_snapshot("2023-Q4", 20), _snapshot("2024-Q1", 25), _snapshot("2023-Q1", 10)]
    )
    assert [e.period for e in timeline] == ["2023-Q1", "2023-Q4", "2024-Q1"]
    assert [e.change for e in timeline] == [None, 10.0, 5.0]
    assert [e.change_percent for e in timeline] == [None, 100.0, 25.0]


def test_unparseable_periods_sort_last():
    timeline = build_timeline(
        [_snapshot("sin periodo", 1), _snapshot("2022", 2), _snapshot("2021-Q2", 3)]
    )
    assert [e.period for e in timeline] == ["2021-Q2", "2022", "sin periodo"]


def test_change_percent_undefined_after_zero_total():
    timeline = build_timeline([_snapshot("2023", 0), _snapshot("2024", 4.5)])
    assert timeline[1].change == 4.5
    assert timeline[1].change_percent is None


def test_change_percent_rounding():
    timeline = build_timeline([_snapshot("2023", 3), _snapshot("2024", 4)])
    assert timeline[1].change_percent == 33.33


def test_timeline_serializes_camel_case():
    entry = build_timeline([_snapshot("2024", 1)])[0]
    assert entry.to_dict() == {
        "period": "2024",
        "scope1": 1.0,
        "scope2": 0.0,
        "scope3": 0.0,
        "total": 1.0,
        "change": None,
        "changePercent": None,
    }
