"""Read API tests over a seeded in-process ledger."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from matchoracle.api.main import app
from matchoracle.ledger import MemoryLedger

ORACLE = "0xOracle"


@pytest.fixture
def client():
    ledger = MemoryLedger()
    ledger._create_market("0xc", "Topson [100]{https://twitch.tv/topson}: Which team wins?", ["Radiant", "Dire"], 600, ORACLE, 0, 70)
    ledger._place_stake("alice", 0, 1, 30)
    ledger._create_market("0xc", "Topson [100]: Total kills?", ["10+", "30+", "50+"], 600, ORACLE, 2, 10)
    ledger._create_market("0xc", "Will it rain?", ["Yes", "No"], 600, ORACLE, 0, 0)
    asyncio.run(ledger.cancel_market(ORACLE, 2))
    app.state.ledger = ledger
    try:
        yield TestClient(app)
    finally:
        app.state.ledger = None


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_markets_list(client):
    r = client.get("/markets", params={"limit": 2})
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 3
    assert [m["id"] for m in data["markets"]] == [0, 1]
    first = data["markets"][0]
    assert first["subject"] == "Topson"
    assert first["event_id"] == "100"
    assert first["question"] == "Which team wins?"
    assert first["embed_url"] == "https://player.twitch.tv/?channel=topson&parent=localhost"
    assert first["status"] == "open"
    assert first["total_pool"] == 100
    assert [o["percent"] for o in first["outcomes"]] == [70.0, 30.0]


def test_market_detail_and_missing(client):
    r = client.get("/markets/2")
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["event_id"] is None
    r = client.get("/markets/99")
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_quote(client):
    r = client.get("/markets/0/quote", params={"outcome": 1, "stake": 10})
    assert r.status_code == 200
    data = r.json()
    assert data["multiplier"] == pytest.approx(110 / 40)
    assert data["projected_payout"] == 27
    assert data["implied_probability"] == pytest.approx(0.3)


def test_quote_invalid_outcome(client):
    r = client.get("/markets/0/quote", params={"outcome": 2, "stake": 10})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_outcome"


def test_threads(client):
    r = client.get("/threads")
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 2
    by_key = {t["key"]: t for t in data["threads"]}
    topson = by_key["e100:Topson"]
    assert topson["total_pool"] == 110
    assert topson["is_open"] is True
    assert topson["stream_url"] == "https://twitch.tv/topson"
    assert [m["id"] for m in topson["markets"]] == [0, 1]
    assert by_key["m2"]["is_open"] is False


def test_threads_open_only_and_detail(client):
    r = client.get("/threads", params={"open_only": True})
    assert [t["key"] for t in r.json()["threads"]] == ["e100:Topson"]
    r = client.get("/threads/e100:Topson")
    assert r.status_code == 200
    assert r.json()["title"] == "Topson"
    assert client.get("/threads/m99").status_code == 404


def test_oracle_status_when_not_running(client):
    r = client.get("/oracle/status")
    assert r.json()["running"] is False
