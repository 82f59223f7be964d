import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from everlast.api import build_market, set_market
from everlast.config import Settings
from everlast.db import get_db
from everlast.fixed_point import WAD
from everlast.main import app
from everlast.models import Base

W = WAD
SETTINGS = Settings(center_price=2000 * W, spot_price=2000 * W, num_regular=5)
CALL = {"option_type": "call", "strike": 2000 * W, "size": W}


@pytest.fixture
def client():
    db_fd, db_path = tempfile.mkstemp()
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    set_market(build_market(SETTINGS))
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    set_market(None)
    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


def _auth(client, username, password):
    res = client.post("/token", data={"username": username, "password": password})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def manager(client):
    return _auth(client, SETTINGS.option_manager, SETTINGS.option_manager_password)


@pytest.fixture
def keeper(client):
    return _auth(client, SETTINGS.keeper, SETTINGS.keeper_password)


def test_health(client):
    assert client.get("/").status_code == 200
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"


def test_grid(client):
    body = client.get("/grid").json()
    assert body["center_price"] == 2000 * W
    assert body["num_buckets"] == 7
    assert body["needs_rebalance"] is False
    assert body["buckets"][0]["low"] == 0
    res = client.get("/grid/index", params={"price": 2000 * W})
    assert res.json()["idx"] == 3
    assert client.get("/grid/index", params={"price": -1}).status_code == 400


def test_engine_and_distribution(client):
    state = client.get("/engine").json()
    assert state["quantities"] == [0] * 7
    assert state["cached_cost"] == state["utility_level"]
    dist = client.get("/distribution").json()
    assert len(set(dist["probabilities"])) == 1
    summary = client.get("/distribution/summary", params={"strike": 2000 * W}).json()
    assert summary["prob_above_empirical"] == pytest.approx(3 / 7)
    assert len(client.get("/bid_ask").json()) == 7


def test_quote(client):
    res = client.get("/quote", params=CALL)
    assert res.status_code == 200
    body = res.json()
    assert body["amount"] > 0
    assert body["valid"] is True
    sell = client.get("/quote", params={**CALL, "side": "sell"}).json()
    assert sell["amount"] < body["amount"]


def test_quote_malformed(client):
    assert client.get("/quote", params={**CALL, "size": 0}).status_code == 400
    assert client.get("/quote", params={**CALL, "option_type": "straddle"}).status_code == 422


def test_funding(client):
    res = client.get("/funding", params=CALL)
    assert res.status_code == 200
    body = res.json()
    assert body["intrinsic_value"] == 0
    assert body["mark_price"] > 0
    assert body["oracle_fresh"] is True


def test_arbitrage_bounds(client):
    req = {
        "strikes": [1900 * W, 2000 * W, 2100 * W],
        "call_prices": [150 * W, 120 * W, 50 * W],
        "put_prices": [0, 0, 0],
    }
    body = client.post("/arbitrage/bounds", json=req).json()
    assert body["call_asks"][1] == 100 * W


def test_login_rejects_bad_password(client):
    res = client.post("/token", data={"username": SETTINGS.option_manager, "password": "nope"})
    assert res.status_code == 401


def test_trade_requires_token(client):
    assert client.post("/trades", json=CALL).status_code == 401


def test_trade_by_manager(client, manager):
    quoted = client.get("/quote", params=CALL).json()["amount"]
    res = client.post("/trades", json=CALL, headers=manager)
    assert res.status_code == 200
    assert res.json()["amount"] == quoted
    trades = client.get("/trades").json()
    assert len(trades) == 1
    assert int(trades[0]["strike"]) == 2000 * W
    assert client.get("/engine").json()["quantities"][6] == 500 * W


def test_trade_by_keeper_is_forbidden(client, keeper):
    res = client.post("/trades", json=CALL, headers=keeper)
    assert res.status_code == 403
    assert client.get("/trades").json() == []


def test_cost_submission_rejected(client, manager):
    cost = client.get("/engine").json()["cached_cost"]
    res = client.post(
        "/cost",
        json={"proposed_cost": cost, "new_quantities": [1] * 7, "trades": []},
        headers=manager,
    )
    assert res.status_code == 422
    assert res.json()["detail"]["check"] == "delta"


def test_cost_refresh_accepted(client, manager):
    cost = client.get("/engine").json()["cached_cost"]
    res = client.post(
        "/cost",
        json={"proposed_cost": cost, "new_quantities": [0] * 7, "trades": []},
        headers=manager,
    )
    assert res.status_code == 200
    assert res.json()["cached_cost"] == cost


def test_recenter_and_rebalance(client, keeper):
    res = client.post("/recenter", json={"new_center": 2100 * W}, headers=keeper)
    assert res.status_code == 200
    assert res.json()["center_price"] == 2100 * W
    recenters = client.get("/recenters").json()
    assert len(recenters) == 1
    assert int(recenters[0]["new_center"]) == 2100 * W
    assert len(client.get("/cost_updates").json()) == 1
    assert client.post("/recenter", json={"new_center": 100 * W}, headers=keeper).status_code == 422
    res = client.post("/rebalance", headers=keeper)
    assert res.status_code == 200
    # spot 2000 is within 10% of 2100
    assert res.json()["rebalanced"] is False


def test_run_serves_app(monkeypatch):
    from everlast import main
    from everlast.config import API_PORT

    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    main.run()
    assert len(calls) == 1
    assert calls[0][0] is main.app
    assert calls[0][1]["port"] == API_PORT


def test_engine_reports_center(client, keeper):
    assert client.get("/engine").json()["center_price"] == 2000 * W
    client.post("/recenter", json={"new_center": 2100 * W}, headers=keeper)
    assert client.get("/engine").json()["center_price"] == 2100 * W
