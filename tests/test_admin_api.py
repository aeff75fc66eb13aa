"""
Tests for the cache admin API.
"""
import pytest
from fastapi.testclient import TestClient

from app.cache import get_cache_manager, reset_cache_manager
from app.main import app


@pytest.fixture
def client():
    reset_cache_manager()
    with TestClient(app) as client:
        yield client
    reset_cache_manager()


def test_health_endpoint_returns_ok(client):
    """Test that /health returns status: ok"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_maintenance_loop_runs_with_app(client):
    """Test that the lifespan starts the maintenance loop"""
    assert get_cache_manager().is_running


def test_list_default_strategies(client):
    """Test that strategies are listed in resolution order"""
    response = client.get("/cache/strategies")
    assert response.status_code == 200
    data = response.json()
    assert [s["pattern"] for s in data][:2] == ["user-profile-*", "feed-*"]
    assert data[1]["dependencies"] == ["user-behavior-*"]
    assert data[1]["priority"] == "high"


def test_put_strategy(client):
    """Test that a new strategy is appended"""
    response = client.put("/cache/strategies", json={
        "pattern": "hashtag-*",
        "ttl_seconds": 120,
        "refresh_threshold": 0.5,
        "priority": "low",
    })
    assert response.status_code == 200
    patterns = [s["pattern"] for s in client.get("/cache/strategies").json()]
    assert patterns[-1] == "hashtag-*"


def test_put_strategy_rejects_bad_threshold(client):
    """Test that refresh_threshold outside (0, 1] is rejected"""
    response = client.put("/cache/strategies", json={
        "pattern": "hashtag-*",
        "ttl_seconds": 120,
        "refresh_threshold": 0,
    })
    assert response.status_code == 422


def test_delete_unknown_strategy_returns_404(client):
    response = client.delete("/cache/strategies", params={"pattern": "nope-*"})
    assert response.status_code == 404


def test_invalidate_pattern(client):
    manager = get_cache_manager()
    manager.set("feed-home", 1)
    manager.set("feed-trending", 2)

    response = client.post("/cache/invalidate", params={"pattern": "feed-*"})
    assert response.status_code == 200
    assert response.json()["invalidated"] == 2


def test_invalidate_dependencies(client):
    get_cache_manager().set("feed-home", 1)

    response = client.post("/cache/invalidate-dependencies", params={"key": "user-behavior-9"})
    assert response.json() == {"pattern": None, "key": "user-behavior-9", "invalidated": 1}


def test_analytics_shape(client):
    get_cache_manager().set("entity-1", 1)

    response = client.get("/cache/analytics")
    assert response.status_code == 200
    data = response.json()
    assert data["total_keys"] == 1
    assert data["strategies_count"] == 5
    assert data["hit_rate"] == 0


def test_maintenance_endpoint(client):
    response = client.post("/cache/maintenance")
    assert response.json() == {"metrics_pruned": 0, "entries_evicted": 0}


def test_toggle_background_refresh(client):
    response = client.post("/cache/background-refresh", params={"enabled": "false"})
    assert response.json() == {"background_refresh_enabled": False}
    assert not get_cache_manager().background_refresh_enabled
