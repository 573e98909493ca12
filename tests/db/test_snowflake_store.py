"""Tests for the Snowflake stores against a mocked connection."""

from unittest.mock import MagicMock, patch

import pytest

from db.models import BreakdownItem, EmissionFactor, ScenarioResult, Snapshot
from db.snowflake_store import (
    SnowflakeFactorStore,
    SnowflakeMetricsStore,
    SnowflakeSnapshotStore,
)
from utils.errors import ConcurrentRecalculation


@pytest.fixture
def conn():
    connection = MagicMock()
    connection.cursor.return_value.rowcount = 1
    return connection


@pytest.fixture
def cursor(conn):
    return conn.cursor.return_value


def _executed_sql(cursor):
    return [" ".join(c.args[0].split()) for c in cursor.execute.call_args_list]


@pytest.fixture
def snapshot():
    return Snapshot(
        id="snap-1",
        company_id="1",
        period="2024",
        scope2=0.355,
        total=0.355,
        breakdown=[
            BreakdownItem(scope="scope2", category="electricidad", result=0.355),
            BreakdownItem(scope="scope3", category="cadena_valor", result=0.0),
        ],
        scenarios=[ScenarioResult(name="x", scope="scope2", category="all", reduction_percent=10)],
        factors={"countryCode": None},
        metadata={"notes": []},
    )


def test_metrics_payload_is_wrapped(conn, cursor):
    cursor.fetchone.return_value = {"PAYLOAD": '{"energiaKwh": 10}'}
    store = SnowflakeMetricsStore(connect=lambda: conn)
    assert store.get_metrics("1", "2024") == {"environmental": {"energiaKwh": 10}}
    conn.close.assert_called_once()


def test_metrics_missing_row(conn, cursor):
    cursor.fetchone.return_value = None
    assert SnowflakeMetricsStore(connect=lambda: conn).get_metrics("1", "2024") is None


def test_get_factors_maps_rows(conn, cursor):
    cursor.fetchall.return_value = [
        {
            "ID": "f1",
            "COUNTRY": "Uruguay",
            "COUNTRY_CODE": "UY",
            "SCOPE": "scope2",
            "CATEGORY": "electricidad",
            "YEAR": 2024,
            "VALUE": "0.000095",
            "ACTIVITY_UNIT": "kWh",
            "RESULT_UNIT": None,
            "SOURCE": "UTE",
            "UPDATED_AT": None,
        }
    ]
    factors = SnowflakeFactorStore(connect=lambda: conn).get_factors("UY", 2024)

    assert factors[0].value == 0.000095
    assert factors[0].result_unit == "tCO2e"
    assert cursor.execute.call_args.args[1] == (2024, "UY")


def test_upsert_factor_merges_null_safe(conn, cursor):
    cursor.fetchone.return_value = None
    factor = EmissionFactor(scope="scope2", category="electricidad", year=2024, value=0.1)
    stored = SnowflakeFactorStore(connect=lambda: conn).upsert_factors([factor])

    merge_sql = _executed_sql(cursor)[0]
    assert merge_sql.startswith("MERGE INTO emission_factors")
    assert "EQUAL_NULL(tgt.country_code, src.country_code)" in merge_sql
    assert stored == [factor]


class TestSaveSnapshot:
    def test_insert_replaces_children_and_commits(self, conn, cursor, snapshot):
        store = SnowflakeSnapshotStore(connect=lambda: conn)
        with patch.object(store, "get_snapshot", return_value=None):
            saved = store.save_snapshot(snapshot, expected_version=None)

        sql = _executed_sql(cursor)
        assert sql[0] == "BEGIN"
        assert sql[1].startswith("MERGE INTO footprint_snapshots")
        assert "ON tgt.company_id = src.company_id AND tgt.period = src.period" in sql[1]
        assert "WHEN NOT MATCHED THEN INSERT" in sql[1]
        assert "WHEN MATCHED" not in sql[1].replace("WHEN NOT MATCHED", "")
        assert sum(s.startswith("INSERT INTO footprint_breakdown") for s in sql) == 2
        assert sum(s.startswith("INSERT INTO reduction_scenarios") for s in sql) == 1
        assert sql.index("DELETE FROM footprint_breakdown WHERE snapshot_id = %s") < sql.index(
            next(s for s in sql if s.startswith("INSERT INTO footprint_breakdown"))
        )
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        assert saved is snapshot

    def test_update_checks_expected_version(self, conn, cursor, snapshot):
        store = SnowflakeSnapshotStore(connect=lambda: conn)
        with patch.object(store, "get_snapshot", return_value=snapshot):
            store.save_snapshot(snapshot, expected_version=3)

        update = cursor.execute.call_args_list[1]
        assert "WHERE company_id = %s AND period = %s AND version = %s" in " ".join(
            update.args[0].split()
        )
        assert update.args[1][-1] == 3

    def test_first_write_loses_to_existing_row(self, conn, cursor, snapshot):
        cursor.rowcount = 0
        store = SnowflakeSnapshotStore(connect=lambda: conn)

        with pytest.raises(ConcurrentRecalculation):
            store.save_snapshot(snapshot, expected_version=None)

        assert _executed_sql(cursor)[1].startswith("MERGE INTO footprint_snapshots")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        assert not any(s.startswith("INSERT INTO footprint_breakdown") for s in _executed_sql(cursor))

    def test_version_conflict_rolls_back(self, conn, cursor, snapshot):
        cursor.rowcount = 0
        store = SnowflakeSnapshotStore(connect=lambda: conn)

        with pytest.raises(ConcurrentRecalculation):
            store.save_snapshot(snapshot, expected_version=1)

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()
        assert not any(s.startswith("DELETE") for s in _executed_sql(cursor))
