"""
Shared pytest fixtures: in-memory stores and a service wired against them.
"""

from types import SimpleNamespace

import pytest

from config.settings import Settings, settings
from db.memory_store import (
    InMemoryFactorStore,
    InMemoryIngestionStore,
    InMemoryMetricsStore,
    InMemorySnapshotStore,
)
from engine.activities import load_activity_mapping
from engine.factors import load_default_factors
from services.carbon_service import CarbonFootprintService


@pytest.fixture
def test_settings():
    return Settings(STORE_BACKEND="memory")


@pytest.fixture
def mapping():
    return load_activity_mapping(settings.ACTIVITY_MAPPING_PATH)


@pytest.fixture
def default_factors():
    return load_default_factors(settings.DEFAULT_FACTORS_PATH)


@pytest.fixture
def stores():
    return SimpleNamespace(
        metrics=InMemoryMetricsStore(),
        ingestion=InMemoryIngestionStore(),
        factors=InMemoryFactorStore(),
        snapshots=InMemorySnapshotStore(),
    )


@pytest.fixture
def service(stores, test_settings):
    return CarbonFootprintService(
        stores.metrics,
        stores.ingestion,
        stores.factors,
        stores.snapshots,
        config=test_settings,
    )
