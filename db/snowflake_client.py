"""
Snowflake Database Client
=========================
Handles connections and table initialization for Snowflake.
"""

import snowflake.connector

from config.settings import settings


def get_connection() -> snowflake.connector.SnowflakeConnection:
    """Return a Snowflake connection using environment credentials."""
    return snowflake.connector.connect(
        account=settings.SNOWFLAKE_ACCOUNT,
        user=settings.SNOWFLAKE_USER,
        password=settings.SNOWFLAKE_PASSWORD,
        database=settings.SNOWFLAKE_DATABASE,
        schema=settings.SNOWFLAKE_SCHEMA,
        warehouse=settings.SNOWFLAKE_WAREHOUSE,
    )


def init_tables() -> None:
    """Create application tables if they do not already exist."""
    ddl_statements = [
        """
        CREATE TABLE IF NOT EXISTS emission_factors (
            id            STRING PRIMARY KEY,
            country       STRING,
            country_code  STRING,
            scope         STRING NOT NULL,
            category      STRING NOT NULL,
            year          INTEGER NOT NULL,
            value         FLOAT NOT NULL,
            activity_unit STRING,
            result_unit   STRING DEFAULT 'tCO2e',
            source        STRING,
            updated_at    TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP()
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS environmental_metrics (
            company_id    STRING,
            period        STRING,
            payload       VARIANT,
            updated_at    TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP()
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS ingestion_items (
            id            STRING PRIMARY KEY,
            company_id    STRING,
            period        STRING,
            indicator     STRING,
            value         FLOAT,
            unit          STRING,
            source        STRING,
            recorded_at   TIMESTAMP_NTZ
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS footprint_snapshots (
            id            STRING PRIMARY KEY,
            company_id    STRING NOT NULL,
            period        STRING NOT NULL,
            scope1        FLOAT,
            scope2        FLOAT,
            scope3        FLOAT,
            total         FLOAT,
            factors       VARIANT,
            metadata      VARIANT,
            version       INTEGER DEFAULT 1,
            calculated_at TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP()
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS footprint_breakdown (
            id            STRING PRIMARY KEY,
            snapshot_id   STRING REFERENCES footprint_snapshots(id),
            scope         STRING,
            category      STRING,
            activity      FLOAT,
            unit          STRING,
            factor        FLOAT,
            result        FLOAT,
            source        STRING,
            notes         STRING
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS reduction_scenarios (
            id                STRING PRIMARY KEY,
            snapshot_id       STRING REFERENCES footprint_snapshots(id),
            name              STRING,
            description       STRING,
            scope             STRING,
            category          STRING,
            reduction_percent FLOAT,
            baseline          FLOAT,
            reduction         FLOAT,
            projected         FLOAT,
            delta             FLOAT
        )
        """,
    ]

    conn = get_connection()
    try:
        cur = conn.cursor()
        for ddl in ddl_statements:
            cur.execute(ddl)
    finally:
        conn.close()
