from fastapi.testclient import TestClient

from conftest import FakeFetch
from ratedesk.main import create_app
from ratedesk.schemas.indicator import INDICATORS, RATE_FX, REPO_RATES


def test_summary_lists_every_indicator(config) -> None:
    with TestClient(create_app(config, fetch=FakeFetch())) as client:
        response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["meta"] == {"route": "/"}
    assert set(body["data"]) == set(INDICATORS)
    assert body["data"][RATE_FX] == {
        "value": None,
        "source": None,
        "updatedAt": None,
        "status": "initial",
    }


def test_indicator_routes(config) -> None:
    app = create_app(config, fetch=FakeFetch())
    with TestClient(app) as client:
        app.state.store.record_success(REPO_RATES, {"raw": ["30.5%"]}, "https://iol.example")
        direct = client.get(f"/indicators/{REPO_RATES}")
        legacy = client.get("/cauciones")
        missing = client.get("/indicators/gold")

    assert direct.status_code == 200
    assert direct.json()["data"]["value"] == {"raw": ["30.5%"]}
    assert legacy.json()["meta"] == {"route": "/cauciones"}
    assert legacy.json()["data"] == direct.json()["data"]
    assert missing.status_code == 404


def test_force_update_reports_fallbacks_as_success(config) -> None:
    with TestClient(create_app(config, fetch=FakeFetch())) as client:
        response = client.post("/admin/force-update")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["report"]["statuses"] == {name: "fallback" for name in INDICATORS}


async def _raising(store, config, fetch):
    raise RuntimeError("boom")


def test_force_update_surfaces_unexpected_errors(config) -> None:
    app = create_app(config, fetch=FakeFetch())
    app.state.orchestrator.refreshers[0] = (RATE_FX, _raising)
    with TestClient(app) as client:
        response = client.get("/admin/force-update")

    assert response.status_code == 500
    body = response.json()
    assert body["ok"] is False
    assert "rate-fx: boom" in body["error"]
    assert body["report"]["statuses"][RATE_FX] == "error"
