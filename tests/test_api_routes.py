from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from staking_rewards.api.app import create_app
from staking_rewards.ledger.constants import SECONDS_PER_DAY
from staking_rewards.runtime.engine import RewardsEngine

DAY = SECONDS_PER_DAY
T0 = 19_675 * DAY


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("STAKING_REWARDS_MODE", "dev")
    monkeypatch.delenv("STAKING_REWARDS_MAX_REQUEST_BYTES", raising=False)
    monkeypatch.delenv("STAKING_REWARDS_SIZE_LIMIT_DISABLE", raising=False)
    monkeypatch.delenv("STAKING_REWARDS_CORS_ORIGINS", raising=False)

    eng = RewardsEngine(pool_id="api", clock=lambda: T0)
    eng.initialize_pool()
    return TestClient(create_app(engine=eng))


def _ok(r) -> dict:
    assert r.status_code == 200, r.text
    j = r.json()
    assert j.get("ok") is True
    return j


def test_health_without_engine() -> None:
    c = TestClient(create_app(boot_runtime=False))
    j = _ok(c.get("/v1/health"))
    assert j["engine"] is False

    r = c.get("/v1/pool")
    assert r.status_code == 500
    assert r.json()["error"]["code"] == "not_ready"


def test_stake_distribute_claim_flow(client: TestClient) -> None:
    _ok(client.post("/v1/positions", json={"owner": "alice"}))
    _ok(client.post("/v1/positions", json={"owner": "bob"}))

    j = _ok(client.post("/v1/positions/alice/deposit", json={"amount": 100, "period": "one_year"}))
    assert j["position"]["share"] == 600
    _ok(client.post("/v1/positions/bob/deposit", json={"amount": 100, "period": "three_months"}))

    j = _ok(client.post("/v1/pool/fill_vault", json={"amount": 100, "distribution_ends_at": T0}))
    assert j["tokens_available_for_distribution"] == 100
    assert _ok(client.get("/v1/pool/rewards_to_distribute"))["rewards_to_distribute"] == 100

    j = _ok(client.post("/v1/pool/distribute", json={}))
    assert j["advanced"] is True

    j = _ok(client.post("/v1/positions/alice/claim", json={"now": T0 + DAY}))
    assert j["amount"] == 75
    j = _ok(client.post("/v1/positions/bob/claim", json={"now": T0 + DAY}))
    assert j["amount"] == 25

    pool = _ok(client.get("/v1/pool"))["pool"]
    assert pool["pool_id"] == "api"
    assert pool["total_share"] == 800
    assert pool["tokens_available_for_distribution"] == 0


def test_slash_extend_delegate_decrease_close(client: TestClient) -> None:
    for owner in ("alice", "bob", "carol"):
        _ok(client.post("/v1/positions", json={"owner": owner}))

    _ok(client.post("/v1/positions/alice/deposit", json={"amount": 150, "period": "six_months", "delegate": "bob"}))
    expiry = T0 + 180 * DAY

    j = _ok(
        client.post(
            "/v1/positions/alice/slash",
            json={"native_amount": 50, "weighted_amount": 200, "expiry": expiry},
        )
    )
    assert j["position"]["share"] == 400
    assert j["position"]["local_decays"] == [[expiry, 300]]

    _ok(
        client.post(
            "/v1/positions/alice/change_delegate",
            json={"staked_amount": 150, "old_delegate": "bob", "new_delegate": "carol"},
        )
    )
    assert _ok(client.get("/v1/positions/carol"))["position"]["stake_from_others"] == 150

    j = _ok(
        client.post(
            "/v1/positions/alice/extend",
            json={
                "old_period": "six_months",
                "new_period": "one_year",
                "old_start": T0,
                "base_amount": 100,
                "extra_amount": 0,
                "now": T0 + DAY,
            },
        )
    )
    assert j["position"]["share"] == 600

    j = _ok(client.post("/v1/positions/alice/decrease_rewards", json={"decrease": 100}))
    assert j["position"]["share"] == 500

    _ok(client.post("/v1/positions/bob/close", json={}))
    assert client.get("/v1/positions/bob").status_code == 404


def test_domain_errors_map_to_http(client: TestClient) -> None:
    _ok(client.post("/v1/positions", json={"owner": "alice"}))

    r = client.post("/v1/positions", json={"owner": "alice"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "already_initialized"

    r = client.post("/v1/positions/alice/deposit", json={"amount": 10, "period": "none"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_lockup_period"

    r = client.post("/v1/pool/distribute", json={})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "no_deposits"

    _ok(client.post("/v1/positions/alice/deposit", json={"amount": 10, "period": "flex"}))
    r = client.post(
        "/v1/positions/alice/slash",
        json={"native_amount": 1, "weighted_amount": 2, "expiry": T0 + 77 * DAY},
    )
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "no_weighted_stake_modifiers_at_a_date"

    r = client.post("/v1/positions/alice/withdraw", json={"amount": 11})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "math_overflow"

    # nothing from the failed calls stuck
    assert _ok(client.get("/v1/positions/alice"))["position"]["share"] == 10


def test_unknown_position_is_404(client: TestClient) -> None:
    r = client.post("/v1/positions/ghost/claim", json={})
    assert r.status_code == 404
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "position_not_found"


def test_request_validation_is_400(client: TestClient) -> None:
    _ok(client.post("/v1/positions", json={"owner": "alice"}))
    r = client.post("/v1/positions/alice/deposit", json={"amount": -5, "period": "flex"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_request"

    r = client.post("/v1/positions/alice/deposit", json={"amount": 5, "period": "flex", "bogus": 1})
    assert r.status_code == 400


def test_request_size_limit_returns_413(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STAKING_REWARDS_MAX_REQUEST_BYTES", "128")
    monkeypatch.delenv("STAKING_REWARDS_SIZE_LIMIT_DISABLE", raising=False)

    eng = RewardsEngine(clock=lambda: T0)
    eng.initialize_pool()
    c = TestClient(create_app(engine=eng))

    r = c.post("/v1/positions", json={"owner": "x" * 500})
    assert r.status_code == 413
    j = r.json()
    assert j.get("ok") is False
    assert j["error"].get("code") == "request_too_large"
    assert not eng.has_position("x" * 500)
    assert j["error"]["details"] == {"size": int(r.request.headers["content-length"]), "limit": 128}


def test_request_size_limit_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STAKING_REWARDS_MAX_REQUEST_BYTES", "128")
    monkeypatch.setenv("STAKING_REWARDS_SIZE_LIMIT_DISABLE", "1")

    eng = RewardsEngine(clock=lambda: T0)
    eng.initialize_pool()
    c = TestClient(create_app(engine=eng))

    r = c.post("/v1/positions", json={"owner": "x" * 500})
    assert r.status_code == 200
    assert eng.has_position("x" * 500)


def test_metrics_endpoint_is_opt_in(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STAKING_REWARDS_METRICS_ENABLED", raising=False)
    assert client.get("/v1/metrics").status_code == 404

    monkeypatch.setenv("STAKING_REWARDS_METRICS_ENABLED", "1")
    _ok(client.post("/v1/positions", json={"owner": "alice"}))
    _ok(client.post("/v1/positions/alice/deposit", json={"amount": 10, "period": "flex"}))

    r = client.get("/v1/metrics")
    assert r.status_code == 200
    assert "staking_rewards_op_deposit_total 1" in r.text
    assert "staking_rewards_pool_total_share 10" in r.text


def test_boot_runtime_uses_build_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    import staking_rewards.api.app as app_mod

    eng = RewardsEngine(pool_id="booted", clock=lambda: T0)
    eng.initialize_pool()
    monkeypatch.setattr(app_mod, "build_engine", lambda: eng)

    c = TestClient(app_mod.create_app())
    j = _ok(c.get("/v1/health"))
    assert j["pool_id"] == "booted"
    assert j["pool_initialized"] is True
