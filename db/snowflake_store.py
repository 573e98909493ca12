"""
Snowflake Stores
================
Snowflake-backed implementations of the metrics, ingestion, factor and
snapshot stores. Snapshot writes run in one transaction guarded by a
version check so readers never observe a half-replaced breakdown.
"""

import logging
import uuid
from typing import Any, Callable, Iterable, Optional

from snowflake.connector import DictCursor

from db.models import (
    BreakdownItem,
    EmissionFactor,
    IngestionItem,
    ScenarioResult,
    Snapshot,
)
from db.snowflake_client import get_connection
from utils.errors import ConcurrentRecalculation
from utils.helpers import from_json, to_json

logger = logging.getLogger("carbon_app.snowflake")

FACTOR_COLUMNS = (
    "id, country, country_code, scope, category, year, value, "
    "activity_unit, result_unit, source, updated_at"
)


class _SnowflakeStore:
    def __init__(self, connect: Optional[Callable[[], Any]] = None):
        self._connect = connect or get_connection


# ── Metrics / ingestion (read-only) ───────────────────────
class SnowflakeMetricsStore(_SnowflakeStore):
    def get_metrics(self, company_id: str, period: str) -> Optional[dict[str, Any]]:
        conn = self._connect()
        try:
            cur = conn.cursor(DictCursor)
            cur.execute(
                "SELECT payload FROM environmental_metrics WHERE company_id = %s AND period = %s",
                (company_id, period),
            )
            row = cur.fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return {"environmental": from_json(row["PAYLOAD"])}


class SnowflakeIngestionStore(_SnowflakeStore):
    def list_items(self, company_id: str, period: str, limit: int = 500) -> list[IngestionItem]:
        conn = self._connect()
        try:
            cur = conn.cursor(DictCursor)
            cur.execute(
                """
                SELECT indicator, value, unit, source, recorded_at, period
                FROM ingestion_items
                WHERE company_id = %s AND period = %s
                ORDER BY recorded_at DESC
                LIMIT %s
                """,
                (company_id, period, limit),
            )
            rows = cur.fetchall()
        finally:
            conn.close()
        return [
            IngestionItem(
                indicator=row["INDICATOR"],
                value=row["VALUE"],
                unit=row["UNIT"],
                source=row["SOURCE"],
                recorded_at=row["RECORDED_AT"],
                period=row["PERIOD"],
            )
            for row in rows
        ]


# ── Emission factors ─────────────────────────────────────
def _map_factor(row: dict[str, Any]) -> EmissionFactor:
    return EmissionFactor(
        country=row["COUNTRY"],
        country_code=row["COUNTRY_CODE"],
        scope=row["SCOPE"],
        category=row["CATEGORY"],
        year=row["YEAR"],
        value=float(row["VALUE"]),
        activity_unit=row["ACTIVITY_UNIT"],
        result_unit=row["RESULT_UNIT"] or "tCO2e",
        source=row["SOURCE"],
        updated_at=row["UPDATED_AT"],
    )


class SnowflakeFactorStore(_SnowflakeStore):
    def get_factors(self, country_code: Optional[str], year: int) -> list[EmissionFactor]:
        conn = self._connect()
        try:
            cur = conn.cursor(DictCursor)
            cur.execute(
                f"""
                SELECT {FACTOR_COLUMNS}
                FROM emission_factors
                WHERE year = %s AND EQUAL_NULL(country_code, %s)
                ORDER BY scope, category
                """,
                (year, country_code),
            )
            return [_map_factor(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def list_years(self, country_code: Optional[str]) -> list[int]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT DISTINCT year FROM emission_factors
                WHERE EQUAL_NULL(country_code, %s)
                ORDER BY year
                """,
                (country_code,),
            )
            return [int(row[0]) for row in cur.fetchall()]
        finally:
            conn.close()

    def upsert_factors(self, factors: Iterable[EmissionFactor]) -> list[EmissionFactor]:
        """MERGE keyed by (country_code, scope, category, year), null-safe on country."""
        stored: list[EmissionFactor] = []
        conn = self._connect()
        try:
            cur = conn.cursor(DictCursor)
            for factor in factors:
                cur.execute(
                    """
                    MERGE INTO emission_factors AS tgt
                    USING (
                        SELECT %s AS country_code, %s AS scope, %s AS category, %s AS year
                    ) AS src
                    ON EQUAL_NULL(tgt.country_code, src.country_code)
                       AND tgt.scope = src.scope
                       AND tgt.category = src.category
                       AND tgt.year = src.year
                    WHEN MATCHED THEN UPDATE SET
                        country = %s,
                        value = %s,
                        activity_unit = %s,
                        result_unit = %s,
                        source = %s,
                        updated_at = CURRENT_TIMESTAMP()
                    WHEN NOT MATCHED THEN INSERT
                        (id, country, country_code, scope, category, year,
                         value, activity_unit, result_unit, source)
                    VALUES
                        (UUID_STRING(), %s, src.country_code, src.scope, src.category, src.year,
                         %s, %s, %s, %s)
                    """,
                    (
                        factor.country_code,
                        factor.scope,
                        factor.category,
                        factor.year,
                        factor.country,
                        factor.value,
                        factor.activity_unit,
                        factor.result_unit,
                        factor.source,
                        factor.country,
                        factor.value,
                        factor.activity_unit,
                        factor.result_unit,
                        factor.source,
                    ),
                )
                cur.execute(
                    f"""
                    SELECT {FACTOR_COLUMNS} FROM emission_factors
                    WHERE EQUAL_NULL(country_code, %s) AND scope = %s
                      AND category = %s AND year = %s
                    """,
                    (factor.country_code, factor.scope, factor.category, factor.year),
                )
                row = cur.fetchone()
                stored.append(_map_factor(row) if row else factor)
        finally:
            conn.close()
        return stored


# ── Snapshots ────────────────────────────────────────────
def _map_snapshot(row: dict[str, Any]) -> Snapshot:
    return Snapshot(
        id=row["ID"],
        company_id=row["COMPANY_ID"],
        period=row["PERIOD"],
        scope1=float(row["SCOPE1"] or 0),
        scope2=float(row["SCOPE2"] or 0),
        scope3=float(row["SCOPE3"] or 0),
        total=float(row["TOTAL"] or 0),
        factors=from_json(row["FACTORS"]),
        metadata=from_json(row["METADATA"]),
        calculated_at=row["CALCULATED_AT"],
        version=int(row["VERSION"] or 0),
    )


def _map_breakdown(row: dict[str, Any]) -> BreakdownItem:
    return BreakdownItem(
        scope=row["SCOPE"],
        category=row["CATEGORY"],
        activity=row["ACTIVITY"],
        unit=row["UNIT"],
        factor=row["FACTOR"],
        result=float(row["RESULT"] or 0),
        source=row["SOURCE"],
        notes=row["NOTES"],
    )


def _map_scenario(row: dict[str, Any]) -> ScenarioResult:
    return ScenarioResult(
        name=row["NAME"],
        description=row["DESCRIPTION"],
        scope=row["SCOPE"],
        category=row["CATEGORY"],
        reduction_percent=float(row["REDUCTION_PERCENT"] or 0),
        baseline=float(row["BASELINE"] or 0),
        reduction=float(row["REDUCTION"] or 0),
        projected=float(row["PROJECTED"] or 0),
        delta=float(row["DELTA"] or 0),
    )


class SnowflakeSnapshotStore(_SnowflakeStore):
    def get_snapshot(self, company_id: str, period: str) -> Optional[Snapshot]:
        conn = self._connect()
        try:
            cur = conn.cursor(DictCursor)
            cur.execute(
                "SELECT * FROM footprint_snapshots WHERE company_id = %s AND period = %s",
                (company_id, period),
            )
            row = cur.fetchone()
            if row is None:
                return None
            return self._with_children(cur, [_map_snapshot(row)])[0]
        finally:
            conn.close()

    def list_snapshots(self, company_id: str, limit: int = 12) -> list[Snapshot]:
        conn = self._connect()
        try:
            cur = conn.cursor(DictCursor)
            cur.execute(
                """
                SELECT * FROM footprint_snapshots
                WHERE company_id = %s
                ORDER BY period DESC
                LIMIT %s
                """,
                (company_id, limit),
            )
            snapshots = [_map_snapshot(row) for row in cur.fetchall()]
            return self._with_children(cur, snapshots)
        finally:
            conn.close()

    @staticmethod
    def _with_children(cur, snapshots: list[Snapshot]) -> list[Snapshot]:
        if not snapshots:
            return snapshots
        ids = [s.id for s in snapshots]
        placeholders = ", ".join(["%s"] * len(ids))
        by_id = {s.id: s for s in snapshots}

        cur.execute(
            f"""
            SELECT * FROM footprint_breakdown
            WHERE snapshot_id IN ({placeholders})
            ORDER BY scope, category
            """,
            ids,
        )
        for row in cur.fetchall():
            by_id[row["SNAPSHOT_ID"]].breakdown.append(_map_breakdown(row))

        cur.execute(
            f"""
            SELECT * FROM reduction_scenarios
            WHERE snapshot_id IN ({placeholders})
            ORDER BY name
            """,
            ids,
        )
        for row in cur.fetchall():
            by_id[row["SNAPSHOT_ID"]].scenarios.append(_map_scenario(row))
        return snapshots

    def save_snapshot(self, snapshot: Snapshot, expected_version: Optional[int]) -> Snapshot:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            if expected_version is None:
                # MERGE locks the table, so two first writes cannot both insert
                cur.execute(
                    """
                    MERGE INTO footprint_snapshots AS tgt
                    USING (
                        SELECT %s AS id, %s AS company_id, %s AS period,
                               %s AS scope1, %s AS scope2, %s AS scope3, %s AS total,
                               PARSE_JSON(%s) AS factors, PARSE_JSON(%s) AS metadata
                    ) AS src
                    ON tgt.company_id = src.company_id AND tgt.period = src.period
                    WHEN NOT MATCHED THEN INSERT
                        (id, company_id, period, scope1, scope2, scope3, total,
                         factors, metadata, version, calculated_at)
                    VALUES
                        (src.id, src.company_id, src.period, src.scope1, src.scope2,
                         src.scope3, src.total, src.factors, src.metadata, 1,
                         CURRENT_TIMESTAMP())
                    """,
                    (
                        snapshot.id,
                        snapshot.company_id,
                        snapshot.period,
                        snapshot.scope1,
                        snapshot.scope2,
                        snapshot.scope3,
                        snapshot.total,
                        to_json(snapshot.factors),
                        to_json(snapshot.metadata),
                    ),
                )
            else:
                cur.execute(
                    """
                    UPDATE footprint_snapshots SET
                        scope1 = %s, scope2 = %s, scope3 = %s, total = %s,
                        factors = PARSE_JSON(%s), metadata = PARSE_JSON(%s),
                        version = version + 1, calculated_at = CURRENT_TIMESTAMP()
                    WHERE company_id = %s AND period = %s AND version = %s
                    """,
                    (
                        snapshot.scope1,
                        snapshot.scope2,
                        snapshot.scope3,
                        snapshot.total,
                        to_json(snapshot.factors),
                        to_json(snapshot.metadata),
                        snapshot.company_id,
                        snapshot.period,
                        expected_version,
                    ),
                )
            if cur.rowcount != 1:
                logger.warning(
                    "Rejected concurrent write for %s/%s", snapshot.company_id, snapshot.period
                )
                raise ConcurrentRecalculation(
                    f"Snapshot {snapshot.company_id}/{snapshot.period} changed during calculation.",
                    {"expected": expected_version},
                )

            self._replace_children(cur, snapshot)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        saved = self.get_snapshot(snapshot.company_id, snapshot.period)
        return saved if saved is not None else snapshot

    @staticmethod
    def _replace_children(cur, snapshot: Snapshot) -> None:
        cur.execute("DELETE FROM footprint_breakdown WHERE snapshot_id = %s", (snapshot.id,))
        for item in snapshot.breakdown:
            cur.execute(
                """
                INSERT INTO footprint_breakdown
                    (id, snapshot_id, scope, category, activity, unit, factor, result, source, notes)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(uuid.uuid4()),
                    snapshot.id,
                    item.scope,
                    item.category,
                    item.activity,
                    item.unit,
                    item.factor,
                    item.result,
                    item.source,
                    item.notes,
                ),
            )

        cur.execute("DELETE FROM reduction_scenarios WHERE snapshot_id = %s", (snapshot.id,))
        for scenario in snapshot.scenarios:
            cur.execute(
                """
                INSERT INTO reduction_scenarios
                    (id, snapshot_id, name, description, scope, category,
                     reduction_percent, baseline, reduction, projected, delta)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(uuid.uuid4()),
                    snapshot.id,
                    scenario.name,
                    scenario.description,
                    scenario.scope,
                    scenario.category,
                    scenario.reduction_percent,
                    scenario.baseline,
                    scenario.reduction,
                    scenario.projected,
                    scenario.delta,
                ),
            )
