import pytest
from fastapi.testclient import TestClient

from conftest import BASE_URL, TODAY

import multitracker.main as main
from multitracker.session.controller import SelectionController
from multitracker.store.client import ProgressClient
from multitracker.store.credentials import StaticTokenProvider

USERS = {"users": [{"id": 1, "name": "Ada Lovelace"}, {"id": 2, "name": "Alan Turing"}]}
WEEKLY = {"totalSteps": 60000, "totalWater": 22, "totalSleep": 45, "progressPercentage": 71}


@pytest.fixture
def api(monkeypatch, store):
    """TestClient whose controller talks to the fake store."""
    progress = ProgressClient(
        BASE_URL,
        StaticTokenProvider("secret-token"),
        transport=store.transport,
        clock=lambda: TODAY,
    )
    monkeypatch.setattr(main, "controller", SelectionController(progress, clock=lambda: TODAY))
    return TestClient(main.app)


def test_root_ok(api) -> None:
    r = api.get("/")
    assert r.status_code == 200
    assert "endpoints" in r.json()


def test_dashboard_loads_first_user(api, store) -> None:
    store.on("GET", "/api/auth/users", USERS)
    store.on("GET", "/api/progress/daily", {"progress": [{"id": 1, "date": "2025-09-15", "water_intake": 4}]})
    store.on("POST", "/api/progress/weekly", WEEKLY)

    r = api.get("/api/dashboard")

    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ready"
    assert data["selected_user"]["id"] == 1
    assert data["rows"][0]["water"] == "4"
    assert {card["title"]: card["value"] for card in data["stats"]}["Weekly Goal"] == "71%"


def test_dashboard_reports_errors(api, store) -> None:
    store.on("GET", "/api/auth/users", {"error": "Token expired"}, status=401)

    r = api.get("/api/dashboard")

    assert r.status_code == 200
    assert r.json()["status"] == "error"
    assert r.json()["error"] == "Token expired"


def test_select_user(api, store) -> None:
    store.on("GET", "/api/auth/users", USERS)
    store.on("GET", "/api/progress/daily", {"progress": []})
    store.on("POST", "/api/progress/weekly", WEEKLY)
    api.get("/api/dashboard")

    r = api.post("/api/dashboard/select/2")
    assert r.status_code == 200
    assert r.json()["selected_user"]["id"] == 2

    r = api.post("/api/dashboard/select/99")
    assert r.status_code == 404


def test_create_entry(api, store) -> None:
    store.on("GET", "/api/auth/users", USERS)
    store.on("GET", "/api/progress/daily", {"progress": []})
    store.on("POST", "/api/progress/weekly", WEEKLY)
    store.on("POST", "/api/progress/daily", {"message": "Progress saved"})
    api.get("/api/dashboard")

    r = api.post("/api/entries", json={"waterIntake": "12", "firstBath": "on"})

    assert r.status_code == 200, r.text
    entry = r.json()["entry"]
    assert entry["water_intake_liters"] == 10
    assert entry["first_bath"] is True
    assert entry["date"] == TODAY.isoformat()


def test_create_entry_conflict(api, store) -> None:
    store.on("GET", "/api/auth/users", USERS)
    store.on("GET", "/api/progress/daily", {"progress": []})
    store.on("POST", "/api/progress/weekly", WEEKLY)
    store.on("POST", "/api/progress/daily", {"error": "Entry already exists"}, status=409)
    api.get("/api/dashboard")

    r = api.post("/api/entries", json={"date": "2025-09-15"})

    assert r.status_code == 409
    assert r.json()["error"] == "Entry already exists"


def test_create_entry_validation_error(api, store) -> None:
    store.on("GET", "/api/auth/users", USERS)
    store.on("GET", "/api/progress/daily", {"progress": []})
    store.on("POST", "/api/progress/weekly", WEEKLY)
    api.get("/api/dashboard")

    r = api.post("/api/entries", json={"date": "2025-09-15", "stepsAchievement": "maybe"})

    assert r.status_code == 422
    assert r.json()["fields"][0]["field"] == "walk_10k_steps"
