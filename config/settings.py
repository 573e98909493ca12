"""
Application Settings
====================
Loads configuration from environment variables / .env file.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class Settings(BaseSettings):
    """Central configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Snowflake ─────────────────────────────────────────
    SNOWFLAKE_ACCOUNT: str = ""
    SNOWFLAKE_USER: str = ""
    SNOWFLAKE_PASSWORD: str = ""
    SNOWFLAKE_DATABASE: str = "CARBON_FOOTPRINT"
    SNOWFLAKE_SCHEMA: str = "PUBLIC"
    SNOWFLAKE_WAREHOUSE: str = "COMPUTE_WH"

    # ── Storage ───────────────────────────────────────────
    STORE_BACKEND: str = "snowflake"  # snowflake | memory

    # ── Reference data ────────────────────────────────────
    ACTIVITY_MAPPING_PATH: Path = DATA_DIR / "activity_mapping.json"
    DEFAULT_FACTORS_PATH: Path = DATA_DIR / "default_factors.json"

    # ── Calculation ───────────────────────────────────────
    RECONCILIATION_TOLERANCE: float = 0.01
    HISTORY_LIMIT: int = 12
    HISTORY_WINDOW: int = 24
    INGESTION_ITEM_LIMIT: int = 500

    # ── Logging ───────────────────────────────────────────
    LOG_LEVEL: str = "INFO"


settings = Settings()
