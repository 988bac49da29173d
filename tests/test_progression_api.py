"""Progression HTTP API tests."""

import pytest
from httpx import AsyncClient


async def _provision(client: AsyncClient, player_id: int, username: str | None = None) -> None:
    response = await client.post("/api/v1/players", json={"player_id": player_id, "username": username})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_catalog(client: AsyncClient) -> None:
    response = await client.get("/api/v1/catalog")
    assert response.status_code == 200
    data = response.json()
    keys = [c["key"] for c in data["categories"]]
    assert keys[:2] == ["multitap", "tap_increase"]
    assert len(keys) == 10
    assert len(data["farm_levels"]) == 6
    assert data["daily_rewards"]["3"] == 20_000
    assert {t["id"] for t in data["tasks"]} >= {"join_channel", "invite_1"}


@pytest.mark.asyncio
async def test_provision_is_idempotent(client: AsyncClient) -> None:
    first = await client.post("/api/v1/players", json={"player_id": 11, "username": "alice"})
    second = await client.post("/api/v1/players", json={"player_id": 11, "username": "alice"})
    assert first.json() == {"player_id": 11, "created": True}
    assert second.json() == {"player_id": 11, "created": False}


@pytest.mark.asyncio
async def test_progress(client: AsyncClient) -> None:
    await _provision(client, 11, "alice")
    response = await client.get("/api/v1/players/11/progress")
    assert response.status_code == 200
    data = response.json()
    assert data["player_id"] == 11
    assert data["username"] == "alice"
    assert data["balance"] == 0
    assert data["energy"]["max"] == 1000
    assert data["can_collect_daily"] is True
    assert data["rank"]["title"] == "Beginner"


@pytest.mark.asyncio
async def test_unknown_player_is_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/players/404404/progress")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "UnknownUser"
    assert data["retryable"] is False


@pytest.mark.asyncio
async def test_tap_and_replay(client: AsyncClient) -> None:
    await _provision(client, 11)
    body = {"taps": 25, "request_id": "abc-1"}

    first = await client.post("/api/v1/players/11/tap", json=body)
    replay = await client.post("/api/v1/players/11/tap", json=body)

    assert first.status_code == 200
    assert first.json()["applied"] is True
    assert first.json()["earned"] == 25
    assert replay.json()["applied"] is False
    assert replay.json()["new_balance"] == 25


@pytest.mark.asyncio
async def test_tap_batch_too_large(client: AsyncClient) -> None:
    await _provision(client, 11)
    response = await client.post("/api/v1/players/11/tap", json={"taps": 10_000})
    assert response.status_code == 400
    assert response.json()["code"] == "InvalidAmount"


@pytest.mark.asyncio
async def test_purchase_insufficient_funds(client: AsyncClient) -> None:
    await _provision(client, 11)
    response = await client.post("/api/v1/players/11/upgrades/multitap")
    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "InsufficientFunds"
    assert data["retryable"] is False


@pytest.mark.asyncio
async def test_purchase_unknown_category(client: AsyncClient) -> None:
    await _provision(client, 11)
    response = await client.post("/api/v1/players/11/upgrades/rocket")
    assert response.status_code == 404
    assert response.json()["code"] == "UnknownCategory"


@pytest.mark.asyncio
async def test_farm_insufficient_funds(client: AsyncClient) -> None:
    await _provision(client, 11)
    response = await client.post("/api/v1/players/11/farm")
    assert response.status_code == 409
    assert response.json()["code"] == "InsufficientFunds"


@pytest.mark.asyncio
async def test_daily_then_purchase(client: AsyncClient) -> None:
    await _provision(client, 11)

    daily = await client.post("/api/v1/players/11/daily", json={"day": 1})
    assert daily.status_code == 200
    assert daily.json() == {"collected_day": 1, "reward": 10_000, "new_balance": 10_000, "new_streak_day": 2}

    again = await client.post("/api/v1/players/11/daily", json={"day": 2})
    assert again.status_code == 409
    assert again.json()["code"] == "AlreadyCollected"

    bought = await client.post("/api/v1/players/11/upgrades/upgrade1")
    assert bought.status_code == 200
    assert bought.json()["new_level"] == 2
    assert bought.json()["new_income_per_hour"] == 100
    assert bought.json()["new_balance"] == 9_000


@pytest.mark.asyncio
async def test_daily_wrong_day(client: AsyncClient) -> None:
    await _provision(client, 11)
    response = await client.post("/api/v1/players/11/daily", json={"day": 5})
    assert response.status_code == 400
    assert response.json()["code"] == "InvalidDay"


@pytest.mark.asyncio
async def test_task_flow(client: AsyncClient) -> None:
    await _provision(client, 11)

    not_ready = await client.post("/api/v1/players/11/tasks/join_channel/collect")
    assert not_ready.status_code == 409
    assert not_ready.json()["code"] == "TaskNotReady"

    marked = await client.post("/api/v1/players/11/tasks/join_channel/complete")
    assert marked.json() == {"task_id": "join_channel", "marked": True}

    collected = await client.post("/api/v1/players/11/tasks/join_channel/collect")
    assert collected.status_code == 200
    assert collected.json()["new_balance"] == 5_000

    unknown = await client.post("/api/v1/players/11/tasks/nope/collect")
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "InvalidTask"


@pytest.mark.asyncio
async def test_referral_and_friends(client: AsyncClient) -> None:
    await _provision(client, 1, "host")
    await _provision(client, 2, "guest")

    response = await client.post("/api/v1/players/2/referral", json={"referrer_id": 1})
    assert response.status_code == 200
    assert response.json()["referrer_bonus"] == 20_000

    duplicate = await client.post("/api/v1/players/2/referral", json={"referrer_id": 1})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "AlreadyReferred"

    self_ref = await client.post("/api/v1/players/1/referral", json={"referrer_id": 1})
    assert self_ref.status_code == 400
    assert self_ref.json()["code"] == "SelfReferral"

    friends = await client.get("/api/v1/players/1/referrals")
    assert friends.status_code == 200
    assert friends.json()["total"] == 1
    assert friends.json()["friends"][0]["username"] == "guest"


@pytest.mark.asyncio
async def test_friends_unknown_player(client: AsyncClient) -> None:
    response = await client.get("/api/v1/players/5/referrals")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_ledger(client: AsyncClient) -> None:
    await _provision(client, 11)
    await client.post("/api/v1/players/11/daily", json={"day": 1})
    await client.post("/api/v1/players/11/tap", json={"taps": 3})

    response = await client.get("/api/v1/players/11/ledger")

    assert response.status_code == 200
    entries = response.json()["entries"]
    assert [e["source"] for e in entries] == ["tap", "daily"]
    assert entries[0]["balance_after"] == 10_003


@pytest.mark.asyncio
async def test_validation_error(client: AsyncClient) -> None:
    await _provision(client, 11)
    response = await client.post("/api/v1/players/11/tap", json={"taps": "many"})
    assert response.status_code == 422
    assert response.json()["detail"] == "Validation error"
