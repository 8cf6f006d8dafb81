from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import routers.health as health_module


@pytest.fixture
def client():
    app = FastAPI()
    app.state.session = None
    app.include_router(health_module.router)
    return TestClient(app)


def test_health_ok(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    body = r.json()

    assert body["ok"] is True
    assert body["env"] == "test"
    assert body["device"] == "http://device.test"
    assert "paths" in body and "checks" in body


def test_health_paths_are_strings(client):
    body = client.get("/api/v1/health").json()
    assert isinstance(body["paths"]["output_dir"], str)


def test_health_flags_without_session(client):
    checks = client.get("/api/v1/health").json()["checks"]
    # config.py 会自动创建 outputs
    assert checks["output_dir_exists"] is True
    assert checks["session_loaded"] is False
    assert checks["playing"] is False


def test_health_does_not_need_state_attribute():
    app = FastAPI()
    app.include_router(health_module.router)
    body = TestClient(app).get("/api/v1/health").json()
    assert body["checks"]["session_loaded"] is False
