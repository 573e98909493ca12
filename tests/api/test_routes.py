"""HTTP tests for the carbon footprint routes."""

import pytest
from fastapi.testclient import TestClient

from main import app
from services.carbon_service import get_carbon_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_carbon_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(stores):
    stores.metrics.put("7", "2024-Q1", {"environmental": {"energiaKwh": 1000}})
    return stores


def test_calculate(client, seeded):
    response = client.post("/api/carbon/calculate", json={"companyId": 7, "period": "2024-Q1"})

    assert response.status_code == 201
    body = response.json()
    assert body["snapshot"]["companyId"] == "7"
    assert body["snapshot"]["scope2"] == 0.355
    assert body["snapshot"]["version"] == 1
    assert body["breakdown"][0]["category"] == "electricidad"
    assert body["scenarios"][0]["reductionPercent"] == 10
    assert body["history"][0]["changePercent"] is None


def test_calculate_without_source_data(client):
    response = client.post("/api/carbon/calculate", json={"companyId": 7, "period": "2024-Q1"})
    assert response.status_code == 404
    assert "detail" in response.json()


def test_calculate_rejects_invalid_scenario(client, seeded):
    response = client.post(
        "/api/carbon/calculate",
        json={"companyId": 7, "period": "2024-Q1", "scenarios": [{"scope": "scope9"}]},
    )
    assert response.status_code == 422


def test_calculate_requires_period(client, seeded):
    response = client.post("/api/carbon/calculate", json={"companyId": 7, "period": ""})
    assert response.status_code == 422


def test_summary(client, seeded):
    params = {"companyId": "7", "period": "2024-Q1"}
    assert client.get("/api/carbon/summary", params=params).status_code == 404

    response = client.get("/api/carbon/summary", params={**params, "auto": "true"})
    assert response.status_code == 200
    assert response.json()["total"] == 0.355

    assert client.get("/api/carbon/summary", params=params).json()["version"] == 1


def test_history(client, seeded):
    client.post("/api/carbon/calculate", json={"companyId": 7, "period": "2024-Q1"})

    response = client.get("/api/carbon/history", params={"companyId": "7"})

    assert response.status_code == 200
    assert [item["period"] for item in response.json()["items"]] == ["2024-Q1"]
    assert client.get("/api/carbon/history", params={"companyId": "7", "limit": 0}).status_code == 422


def test_simulate(client, seeded):
    client.post("/api/carbon/calculate", json={"companyId": 7, "period": "2024-Q1"})

    response = client.post(
        "/api/carbon/simulate",
        json={
            "companyId": 7,
            "period": "2024-Q1",
            "scenario": {"scope": "all", "category": "all", "reductionPercent": 100},
        },
    )

    assert response.status_code == 200
    assert response.json()["scenario"]["projected"] == 0
    assert response.json()["scenario"]["baseline"] == 0.355


def test_simulate_without_snapshot(client):
    response = client.post(
        "/api/carbon/simulate",
        json={"companyId": 7, "period": "2024-Q1", "scenario": {"scope": "scope1"}},
    )
    assert response.status_code == 404


def test_sync_factors(client):
    response = client.post("/api/carbon/factors/sync", json={"factors": [], "year": 2023})

    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 10
    assert {item["year"] for item in items} == {2023}
    assert "activityUnit" in items[0]
