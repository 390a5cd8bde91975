"""Monthly budget and alert API tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest


async def _category(client, headers, name):
    r = await client.post("/api/v1/categories", json={"name": name}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


async def _expense(client, headers, category_id, amount, when=None, type="Expense"):
    r = await client.post(
        "/api/v1/transactions",
        json={
            "category_id": category_id,
            "amount": amount,
            "type": type,
            "date": (when or datetime.now(timezone.utc)).isoformat(),
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text


@pytest.mark.asyncio
async def test_budget_is_set_for_current_month(client, admin, user):
    category_id = await _category(client, admin.headers, "Food")
    r = await client.post(
        "/api/v1/budgets",
        json={"category_id": category_id, "amount": "300.00"},
        headers=user.headers,
    )
    assert r.status_code == 201
    today = datetime.now(timezone.utc).date()
    assert r.json()["month"] == today.replace(day=1).isoformat()
    assert r.json()["user_id"] == user.id


@pytest.mark.asyncio
async def test_duplicate_budget_is_409(client, admin, user):
    category_id = await _category(client, admin.headers, "Food")
    body = {"category_id": category_id, "amount": "300.00"}
    assert (await client.post("/api/v1/budgets", json=body, headers=user.headers)).status_code == 201

    r = await client.post("/api/v1/budgets", json=body, headers=user.headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Budget for this category already exists."

    # Another user may budget the same category
    other = await client.post("/api/v1/budgets", json=body, headers=admin.headers)
    assert other.status_code == 201


@pytest.mark.asyncio
async def test_budget_for_unknown_category_is_422(client, user):
    r = await client.post(
        "/api/v1/budgets", json={"category_id": 999, "amount": "10"}, headers=user.headers
    )
    assert r.status_code == 422
    assert "category_id" in r.json()["errors"]


@pytest.mark.asyncio
async def test_budget_status_counts_this_months_expenses(client, admin, user):
    food = await _category(client, admin.headers, "Food")
    fun = await _category(client, admin.headers, "Fun")
    for category_id, amount in ((food, "200.00"), (fun, "50.00")):
        await client.post(
            "/api/v1/budgets",
            json={"category_id": category_id, "amount": amount},
            headers=user.headers,
        )

    await _expense(client, user.headers, food, "30.00")
    await _expense(client, user.headers, food, "20.00")
    await _expense(client, user.headers, food, "999.00", type="Income")
    await _expense(client, user.headers, food, "70.00", when=datetime(2020, 1, 5, tzinfo=timezone.utc))

    rows = (await client.get("/api/v1/budgets", headers=user.headers)).json()
    by_name = {row["category_name"]: row for row in rows}
    assert list(by_name) == ["Food", "Fun"]
    assert Decimal(by_name["Food"]["budget_amount"]) == Decimal("200")
    assert Decimal(by_name["Food"]["spent_amount"]) == Decimal("50")
    assert Decimal(by_name["Fun"]["spent_amount"]) == Decimal("0")


@pytest.mark.asyncio
async def test_budget_status_is_per_user(client, admin, user):
    food = await _category(client, admin.headers, "Food")
    await client.post(
        "/api/v1/budgets", json={"category_id": food, "amount": "10"}, headers=admin.headers
    )
    assert (await client.get("/api/v1/budgets", headers=user.headers)).json() == []


# ═══════════════════════════════════════════════════════════
# Alerts
# ═══════════════════════════════════════════════════════════


async def _overspend(client, admin, account):
    category_id = await _category(client, admin.headers, f"Cat {account.id}")
    await client.post(
        "/api/v1/budgets",
        json={"category_id": category_id, "amount": "10.00"},
        headers=account.headers,
    )
    await _expense(client, account.headers, category_id, "20.00")
    await _expense(client, account.headers, category_id, "5.00")


@pytest.mark.asyncio
async def test_mark_as_read_and_unread_filter(client, admin, user):
    await _overspend(client, admin, user)
    alerts = (await client.get("/api/v1/alerts", headers=user.headers)).json()
    assert len(alerts) == 2
    assert all(not a["is_read"] for a in alerts)

    r = await client.post(
        "/api/v1/alerts/mark-as-read",
        json={"alert_ids": [alerts[0]["id"]]},
        headers=user.headers,
    )
    assert r.status_code == 200
    assert r.json() == {"marked": 1}

    unread = (
        await client.get("/api/v1/alerts", params={"unread_only": True}, headers=user.headers)
    ).json()
    assert [a["id"] for a in unread] == [alerts[1]["id"]]


@pytest.mark.asyncio
async def test_mark_as_read_empty_list_is_422(client, user):
    r = await client.post(
        "/api/v1/alerts/mark-as-read", json={"alert_ids": []}, headers=user.headers
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "No alert IDs provided."


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_alerts(client, admin, user, pro):
    await _overspend(client, admin, pro)
    theirs = (await client.get("/api/v1/alerts", headers=pro.headers)).json()

    r = await client.post(
        "/api/v1/alerts/mark-as-read",
        json={"alert_ids": [a["id"] for a in theirs]},
        headers=user.headers,
    )
    assert r.status_code == 404

    still_unread = (
        await client.get("/api/v1/alerts", params={"unread_only": True}, headers=pro.headers)
    ).json()
    assert len(still_unread) == len(theirs)
