import json
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from injection_rotation.api.injection import get_rotation_service
from injection_rotation.core.settings import Settings
from injection_rotation.main import app
from injection_rotation.services.rotation_service import build_rotation_service
from injection_rotation.services.store import PersistenceError


@pytest.fixture()
def client(mixed_service):
    app.dependency_overrides[get_rotation_service] = lambda: mixed_service
    yield TestClient(app)
    app.dependency_overrides = {}


def test_health_ok(client):
    response = client.get("/api/health/")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_list_sites(client):
    body = client.get("/api/injection/sites").json()
    assert [s["id"] for s in body] == ["abd-left", "thigh-left", "abd-right", "glute-left", "arm-left"]
    assert body[1]["type"] == "im"


def test_log_injection_and_read_back(client, clock):
    resp = client.post(
        "/api/injection/log",
        json={"site_id": "abd-left", "compound_name": "BPC-157", "notes": "am"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["site_id"] == "abd-left"
    assert body["site_label"] == "Abdomen (Left)"
    assert body["notes"] == "am"

    last = client.get("/api/injection/last-used/abd-left").json()
    assert last["last_used"] is not None
    assert client.get("/api/injection/last-used/arm-left").json()["last_used"] is None

    history = client.get("/api/injection/history").json()
    assert [h["site_id"] for h in history] == ["abd-left"]


def test_unknown_site_is_422(client):
    resp = client.post("/api/injection/log", json={"site_id": "elbow", "compound_name": "X"})
    assert resp.status_code == 422
    assert "Unknown injection site" in resp.json()["detail"]


def test_persistence_failure_is_503(client, mixed_service, mocker):
    mocker.patch.object(mixed_service.history.backend, "save", side_effect=PersistenceError("disk full"))
    resp = client.post("/api/injection/log", json={"site_id": "abd-left", "compound_name": "X"})
    assert resp.status_code == 503
    assert client.get("/api/injection/history").json() == []


def test_recommended_by_type(client, clock):
    client.post("/api/injection/log", json={"site_id": "abd-left", "compound_name": "X"})
    clock.advance(days=2)

    body = client.get("/api/injection/recommended", params={"type": "subq", "count": 3}).json()
    assert body == [
        {"site_id": "abd-right", "days_since_last_use": None},
        {"site_id": "arm-left", "days_since_last_use": None},
        {"site_id": "abd-left", "days_since_last_use": 2},
    ]

    assert client.get("/api/injection/recommended", params={"type": "iv"}).status_code == 422


def test_recency_endpoints(client, clock):
    client.post("/api/injection/log", json={"site_id": "glute-left", "compound_name": "X"})
    clock.advance(days=3)

    assert client.get("/api/injection/recency/glute-left").json() == {"site_id": "glute-left", "bucket": "caution"}
    assert client.get("/api/injection/recency/arm-left").json()["bucket"] == "unused"

    buckets = {r["site_id"]: r["bucket"] for r in client.get("/api/injection/recency").json()}
    assert buckets["glute-left"] == "caution"
    assert buckets["abd-left"] == "unused"


def test_score(client):
    assert client.get("/api/injection/score").json()["score"] == 100

    for site in ("abd-left", "abd-left"):
        client.post("/api/injection/log", json={"site_id": site, "compound_name": "X"})

    body = client.get("/api/injection/score").json()
    # diversity 1/5 -> 8, one repeat -> 0, evenness 1 -> 30
    assert body["score"] == 38
    assert body["label"] == "poor"
    assert body["window_size"] == 2


def test_full_health_reports_storage_mode(client):
    body = client.get("/api/health/full").json()
    assert body["ok"] is True
    assert "uptime_seconds" in body
    assert body["storage"]["ok"] is True


def test_concurrent_posts_are_all_kept(tmp_path, clock):
    settings = Settings.model_validate({"data": {"data_dir": str(tmp_path)}})
    service = build_rotation_service(settings, clock=clock)
    app.dependency_overrides[get_rotation_service] = lambda: service
    client = TestClient(app)
    sites = ["abd-left", "abd-right", "arm-left", "arm-right"]

    def post(i):
        return client.post(
            "/api/injection/log",
            json={"site_id": sites[i % len(sites)], "compound_name": f"dose-{i}"},
        ).status_code

    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            codes = list(pool.map(post, range(40)))
        assert codes == [201] * 40
        assert len(client.get("/api/injection/history", params={"limit": 100}).json()) == 40
    finally:
        app.dependency_overrides = {}

    on_disk = json.loads((tmp_path / f"{settings.data.history_key}.json").read_text(encoding="utf-8"))
    assert sorted(r["compoundName"] for r in on_disk) == sorted(f"dose-{i}" for i in range(40))
