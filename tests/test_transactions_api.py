"""Transaction API tests: CRUD, listing, goal progress, budget alerts."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest


async def _category(client, headers, name="Food"):
    r = await client.post("/api/v1/categories", json={"name": name}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


async def _tx(client, headers, category_id, amount="10.00", type="Expense",
              date="2025-03-15T12:00:00Z", **extra):
    r = await client.post(
        "/api/v1/transactions",
        json={
            "category_id": category_id,
            "amount": amount,
            "type": type,
            "date": date,
            **extra,
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@pytest.mark.asyncio
async def test_create_and_get(client, admin, user):
    category_id = await _category(client, admin.headers, "Rent")
    created = await _tx(client, user.headers, category_id, "850.00",
                        description="March rent")

    assert created["user_id"] == user.id
    assert created["category_name"] == "Rent"
    assert Decimal(created["amount"]) == Decimal("850")
    assert created["version"] == 1

    r = await client.get(f"/api/v1/transactions/{created['id']}", headers=user.headers)
    assert r.status_code == 200
    assert r.json()["description"] == "March rent"


@pytest.mark.asyncio
async def test_amount_must_be_positive(client, admin, user):
    category_id = await _category(client, admin.headers)
    r = await client.post(
        "/api/v1/transactions",
        json={"category_id": category_id, "amount": "0", "type": "Expense",
              "date": "2025-03-15T12:00:00Z"},
        headers=user.headers,
    )
    assert r.status_code == 422
    assert "amount" in r.json()["errors"]


@pytest.mark.asyncio
async def test_private_category_of_other_user_is_rejected(client, pro, user):
    category_id = await _category(client, pro.headers, "Mine")
    r = await client.post(
        "/api/v1/transactions",
        json={"category_id": category_id, "amount": "5", "type": "Expense",
              "date": "2025-03-15T12:00:00Z"},
        headers=user.headers,
    )
    assert r.status_code == 422
    assert "category_id" in r.json()["errors"]


@pytest.mark.asyncio
async def test_other_users_transaction_is_forbidden(client, admin, user, pro):
    category_id = await _category(client, admin.headers)
    created = await _tx(client, user.headers, category_id)
    url = f"/api/v1/transactions/{created['id']}"

    assert (await client.get(url, headers=pro.headers)).status_code == 403
    assert (await client.delete(url, headers=pro.headers)).status_code == 403
    # Admins can see anyone's
    assert (await client.get(url, headers=admin.headers)).status_code == 200


@pytest.mark.asyncio
async def test_user_cannot_create_for_someone_else(client, admin, user, pro):
    category_id = await _category(client, admin.headers)
    r = await client.post(
        "/api/v1/transactions",
        json={"category_id": category_id, "amount": "5", "type": "Income",
              "date": "2025-03-15T12:00:00Z", "user_id": pro.id},
        headers=user.headers,
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_creates_for_user(client, admin, user):
    category_id = await _category(client, admin.headers)
    created = await _tx(client, admin.headers, category_id, user_id=user.id)
    assert created["user_id"] == user.id

    r = await client.get("/api/v1/transactions", headers=user.headers)
    assert r.json()["total_items"] == 1


@pytest.mark.asyncio
async def test_update_and_version_conflict(client, admin, user):
    category_id = await _category(client, admin.headers)
    created = await _tx(client, user.headers, category_id, "20.00")
    url = f"/api/v1/transactions/{created['id']}"
    body = {
        "category_id": category_id,
        "amount": "25.00",
        "type": "Expense",
        "date": "2025-03-16T09:00:00Z",
        "description": "corrected",
        "version": created["version"],
    }

    r = await client.put(url, json=body, headers=user.headers)
    assert r.status_code == 200
    assert Decimal(r.json()["amount"]) == Decimal("25")
    assert r.json()["version"] == created["version"] + 1

    r = await client.put(url, json=body, headers=user.headers)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_delete(client, admin, user):
    category_id = await _category(client, admin.headers)
    created = await _tx(client, user.headers, category_id)
    url = f"/api/v1/transactions/{created['id']}"

    r = await client.delete(url, headers=user.headers)
    assert r.status_code == 200
    assert (await client.get(url, headers=user.headers)).status_code == 404


# ═══════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_filters_and_search(client, admin, user):
    food = await _category(client, admin.headers, "Food")
    salary = await _category(client, admin.headers, "Salary")
    await _tx(client, user.headers, food, "12.00", date="2025-01-31T23:30:00Z",
              description="Pizza night")
    await _tx(client, user.headers, food, "30.00", date="2025-02-10T12:00:00Z",
              description="Groceries")
    await _tx(client, user.headers, salary, "2000.00", type="Income",
              date="2025-02-01T08:00:00Z", description="Paycheck")

    async def ids(**params):
        r = await client.get("/api/v1/transactions", params=params, headers=user.headers)
        assert r.status_code == 200, r.text
        return [item["description"] for item in r.json()["items"]]

    assert await ids(type="Income") == ["Paycheck"]
    assert sorted(await ids(category_id=food)) == ["Groceries", "Pizza night"]
    assert await ids(search="pizza") == ["Pizza night"]
    # end_date covers the whole day
    assert await ids(start_date="2025-01-01", end_date="2025-01-31") == ["Pizza night"]
    assert await ids(start_date="2025-02-01", sort_by="amount", sort_order="asc") == [
        "Groceries",
        "Paycheck",
    ]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(client, admin, user):
    category_id = await _category(client, admin.headers)
    for description in ["100% juice", "1000 apples", "a_c", "abc", "back\\slash"]:
        await _tx(client, user.headers, category_id, description=description)

    async def found(search):
        r = await client.get(
            "/api/v1/transactions", params={"search": search}, headers=user.headers
        )
        assert r.status_code == 200, r.text
        return sorted(item["description"] for item in r.json()["items"])

    assert await found("100%") == ["100% juice"]
    assert await found("%") == ["100% juice"]
    assert await found("a_c") == ["a_c"]
    assert await found("_") == ["a_c"]
    assert await found("\\") == ["back\\slash"]
    assert await found("100") == ["100% juice", "1000 apples"]


@pytest.mark.asyncio
async def test_list_paging(client, admin, user):
    category_id = await _category(client, admin.headers)
    for day in range(1, 13):
        await _tx(client, user.headers, category_id,
                  date=f"2025-04-{day:02d}T10:00:00Z", description=f"day {day}")

    r = await client.get(
        "/api/v1/transactions", params={"page": 2, "page_size": 5}, headers=user.headers
    )
    body = r.json()
    assert body["total_items"] == 12
    assert body["total_pages"] == 3
    assert body["page"] == 2
    # Newest first by default
    assert [i["description"] for i in body["items"]] == [
        "day 7", "day 6", "day 5", "day 4", "day 3",
    ]


@pytest.mark.asyncio
async def test_list_is_scoped_to_caller(client, admin, user, pro):
    category_id = await _category(client, admin.headers)
    await _tx(client, user.headers, category_id)
    await _tx(client, pro.headers, category_id)

    r = await client.get("/api/v1/transactions", headers=user.headers)
    assert r.json()["total_items"] == 1
    r = await client.get("/api/v1/transactions", headers=admin.headers)
    assert r.json()["total_items"] == 2


@pytest.mark.asyncio
async def test_invalid_sort_key_is_422(client, user):
    r = await client.get(
        "/api/v1/transactions", params={"sort_by": "colour"}, headers=user.headers
    )
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Goal progress
# ═══════════════════════════════════════════════════════════


async def _goal(client, headers, target="100.00", progress="0"):
    r = await client.post(
        "/api/v1/goals",
        json={"name": "Bike", "target_amount": target, "current_progress": progress},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_expense_adds_goal_progress(client, admin, user):
    category_id = await _category(client, admin.headers)
    goal = await _goal(client, user.headers)
    await _tx(client, user.headers, category_id, "40.00", goal_id=goal["id"])

    r = await client.get(f"/api/v1/goals/{goal['id']}", headers=user.headers)
    assert Decimal(r.json()["current_progress"]) == Decimal("40")
    assert (await client.get("/api/v1/alerts", headers=user.headers)).json() == []


@pytest.mark.asyncio
async def test_goal_completion_caps_progress_and_alerts(client, admin, user):
    category_id = await _category(client, admin.headers)
    goal = await _goal(client, user.headers, progress="90.00")
    await _tx(client, user.headers, category_id, "25.00", goal_id=goal["id"])

    r = await client.get(f"/api/v1/goals/{goal['id']}", headers=user.headers)
    assert Decimal(r.json()["current_progress"]) == Decimal("100")

    alerts = (await client.get("/api/v1/alerts", headers=user.headers)).json()
    assert [a["message"] for a in alerts] == [
        "Congratulations! You have completed the goal 'Bike'."
    ]

    # A completed goal gains nothing more and raises no second alert
    await _tx(client, user.headers, category_id, "5.00", goal_id=goal["id"])
    alerts = (await client.get("/api/v1/alerts", headers=user.headers)).json()
    assert len(alerts) == 1


@pytest.mark.asyncio
async def test_income_cannot_link_goal(client, admin, user):
    category_id = await _category(client, admin.headers)
    goal = await _goal(client, user.headers)
    r = await client.post(
        "/api/v1/transactions",
        json={"category_id": category_id, "amount": "5", "type": "Income",
              "date": "2025-03-15T12:00:00Z", "goal_id": goal["id"]},
        headers=user.headers,
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "Only expense transactions can be linked to a goal."


@pytest.mark.asyncio
async def test_cannot_link_someone_elses_goal(client, admin, user, pro):
    category_id = await _category(client, admin.headers)
    goal = await _goal(client, pro.headers)
    r = await client.post(
        "/api/v1/transactions",
        json={"category_id": category_id, "amount": "5", "type": "Expense",
              "date": "2025-03-15T12:00:00Z", "goal_id": goal["id"]},
        headers=user.headers,
    )
    assert r.status_code == 422
    assert "goal_id" in r.json()["errors"]


# ═══════════════════════════════════════════════════════════
# Budget alerts
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_budget_warning_then_overspend(client, admin, user):
    category_id = await _category(client, admin.headers, "Food")
    r = await client.post(
        "/api/v1/budgets",
        json={"category_id": category_id, "amount": "100.00"},
        headers=user.headers,
    )
    assert r.status_code == 201

    await _tx(client, user.headers, category_id, "50.00", date=_now_iso())
    assert (await client.get("/api/v1/alerts", headers=user.headers)).json() == []

    await _tx(client, user.headers, category_id, "45.00", date=_now_iso())
    alerts = (await client.get("/api/v1/alerts", headers=user.headers)).json()
    assert [a["message"] for a in alerts] == [
        "You have less than 10% of the budget left for category Food."
    ]

    await _tx(client, user.headers, category_id, "20.00", date=_now_iso())
    alerts = (await client.get("/api/v1/alerts", headers=user.headers)).json()
    assert alerts[0]["message"] == (
        "You have exceeded the budget for category Food by 15.00."
    )


@pytest.mark.asyncio
async def test_income_never_triggers_budget_alerts(client, admin, user):
    category_id = await _category(client, admin.headers)
    await client.post(
        "/api/v1/budgets",
        json={"category_id": category_id, "amount": "10.00"},
        headers=user.headers,
    )
    await _tx(client, user.headers, category_id, "500.00", type="Income", date=_now_iso())
    assert (await client.get("/api/v1/alerts", headers=user.headers)).json() == []
