"""API tests for expenses, settlements, and reminders behind the bearer-token gate."""

import asyncio
import csv
import io
from decimal import Decimal

import pytest

from smartbudget.services.reminders import ReminderService


@pytest.fixture
async def owner(client):
    resp = await client.post(
        "/api/auth/register", json={"name": "Owner", "email": "owner@x.com", "password": "secret1"}
    )
    body = resp.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['access_token']}"}


@pytest.fixture
def headers(owner):
    return owner[1]


class TestExpenses:
    async def test_crud(self, client, headers):
        created = await client.post(
            "/api/expenses",
            json={"title": "Lunch", "amount": "12.50", "category": "Food", "date": "2026-03-01T12:00:00Z"},
            headers=headers,
        )
        assert created.status_code == 201
        expense = created.json()
        assert expense["category"] == "Food"
        assert Decimal(expense["amount"]) == Decimal("12.50")

        listed = await client.get("/api/expenses", headers=headers)
        assert [e["id"] for e in listed.json()] == [expense["id"]]

        updated = await client.put(
            f"/api/expenses/{expense['id']}", json={"amount": "15.00", "description": "with tip"}, headers=headers
        )
        assert updated.status_code == 200
        assert Decimal(updated.json()["amount"]) == Decimal("15.00")
        assert updated.json()["title"] == "Lunch"
        assert updated.json()["description"] == "with tip"

        deleted = await client.delete(f"/api/expenses/{expense['id']}", headers=headers)
        assert deleted.json() == {"message": "Expense deleted successfully."}
        assert (await client.get("/api/expenses", headers=headers)).json() == []

    async def test_unknown_category_is_rejected(self, client, headers):
        resp = await client.post(
            "/api/expenses", json={"title": "Thing", "amount": "1", "category": "Gadgets"}, headers=headers
        )
        assert resp.status_code == 400

    async def test_other_users_expenses_are_invisible(self, client, headers, auth_header, owner):
        expense = (
            await client.post(
                "/api/expenses", json={"title": "Taxi", "amount": "9", "category": "Transport"}, headers=headers
            )
        ).json()
        stranger = auth_header(owner[0] + 1000)

        assert (await client.get("/api/expenses", headers=stranger)).json() == []
        resp = await client.put(f"/api/expenses/{expense['id']}", json={"title": "Mine"}, headers=stranger)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Expense not found."
        assert (await client.delete(f"/api/expenses/{expense['id']}", headers=stranger)).status_code == 404

    async def test_stats(self, client, headers):
        for title, amount, category in [("Lunch", "12.50", "Food"), ("Dinner", "7.25", "Food"), ("Bus", "3", "Transport")]:
            await client.post(
                "/api/expenses", json={"title": title, "amount": amount, "category": category}, headers=headers
            )

        stats = (await client.get("/api/expenses/stats", headers=headers)).json()
        assert stats["count"] == 3
        assert Decimal(stats["total"]) == Decimal("22.75")
        assert Decimal(stats["average"]) == Decimal("7.58")
        assert {k: Decimal(v) for k, v in stats["by_category"].items()} == {
            "Food": Decimal("19.75"),
            "Transport": Decimal("3"),
        }

    async def test_stats_when_empty(self, client, headers):
        stats = (await client.get("/api/expenses/stats", headers=headers)).json()
        assert stats["count"] == 0
        assert Decimal(stats["average"]) == 0

    async def test_export_csv(self, client, headers):
        await client.post(
            "/api/expenses",
            json={"title": "Rent", "amount": "800", "category": "Bills", "date": "2026-02-01T00:00:00"},
            headers=headers,
        )

        resp = await client.get("/api/expenses/export", params={"format": "csv"}, headers=headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.headers["content-disposition"].startswith('attachment; filename="expenses-')

        rows = list(csv.reader(io.StringIO(resp.text)))
        assert rows[0] == ["Title", "Amount", "Category", "Date", "Description"]
        assert rows[1][0] == "Rent"
        assert Decimal(rows[1][1]) == Decimal("800")
        assert rows[1][2:] == ["Bills", "2026-02-01", ""]

    async def test_export_json(self, client, headers):
        await client.post("/api/expenses", json={"title": "Film", "amount": "10", "category": "Entertainment"}, headers=headers)

        resp = await client.get("/api/expenses/export", params={"format": "json"}, headers=headers)
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.headers["content-disposition"].endswith('.json"')
        assert [item["title"] for item in resp.json()] == ["Film"]

    async def test_export_rejects_unknown_format(self, client, headers):
        resp = await client.get("/api/expenses/export", params={"format": "pdf"}, headers=headers)
        assert resp.status_code == 400

    async def test_requires_authentication(self, client):
        assert (await client.get("/api/expenses")).status_code == 401
        assert (await client.post("/api/expenses", json={})).status_code == 401


class TestSettlements:
    async def test_summary_splits_outstanding_and_settled(self, client, headers):
        ids = []
        for person, amount in [("Sam", "20"), ("Sam", "5.50"), ("Kim", "40")]:
            resp = await client.post("/api/settlements", json={"person": person, "amount": amount}, headers=headers)
            assert resp.status_code == 201
            assert resp.json()["settled"] is False
            ids.append(resp.json()["id"])

        settled = await client.put(f"/api/settlements/{ids[2]}", json={"settled": True}, headers=headers)
        assert settled.json()["settled"] is True

        summary = (await client.get("/api/settlements/summary", headers=headers)).json()
        assert Decimal(summary["outstanding_total"]) == Decimal("25.50")
        assert Decimal(summary["settled_total"]) == Decimal("40")
        assert {k: Decimal(v) for k, v in summary["by_person"].items()} == {"Sam": Decimal("25.50")}

    async def test_delete_and_not_found(self, client, headers):
        created = (await client.post("/api/settlements", json={"person": "Sam", "amount": "1"}, headers=headers)).json()

        assert (await client.delete(f"/api/settlements/{created['id']}", headers=headers)).status_code == 200
        resp = await client.delete(f"/api/settlements/{created['id']}", headers=headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Settlement not found."


class TestReminders:
    async def create(self, client, headers, title, date, time):
        resp = await client.post(
            "/api/reminders", json={"title": title, "date": date, "time": time}, headers=headers
        )
        assert resp.status_code == 201
        return resp.json()

    async def test_invalid_time_is_rejected(self, client, headers):
        resp = await client.post(
            "/api/reminders", json={"title": "Rent", "date": "2026-03-01", "time": "25:00"}, headers=headers
        )
        assert resp.status_code == 400

    async def test_due_list_and_single_claim(self, client, headers):
        rent = await self.create(client, headers, "Rent", "2026-03-01", "08:30")
        await self.create(client, headers, "Gym", "2026-03-01", "10:00")
        await self.create(client, headers, "Insurance", "2026-04-01", "08:00")

        due = await client.get("/api/reminders/due", params={"now": "2026-03-01T09:00:00"}, headers=headers)
        assert [r["title"] for r in due.json()] == ["Rent"]

        first = await client.post(f"/api/reminders/{rent['id']}/notify", headers=headers)
        second = await client.post(f"/api/reminders/{rent['id']}/notify", headers=headers)
        assert first.json() == {"id": rent["id"], "claimed": True}
        assert second.json() == {"id": rent["id"], "claimed": False}

        due = await client.get("/api/reminders/due", params={"now": "2026-03-01T09:00:00"}, headers=headers)
        assert due.json() == []

    async def test_rescheduling_can_reset_notified(self, client, headers):
        rent = await self.create(client, headers, "Rent", "2026-03-01", "08:30")
        await client.post(f"/api/reminders/{rent['id']}/notify", headers=headers)

        updated = await client.put(
            f"/api/reminders/{rent['id']}",
            json={"date": "2026-04-01", "notified": False},
            headers=headers,
        )
        assert updated.json()["date"] == "2026-04-01"
        assert updated.json()["time"] == "08:30"
        assert updated.json()["notified"] is False

    async def test_claim_unknown_reminder_is_not_found(self, client, headers):
        resp = await client.post("/api/reminders/999/notify", headers=headers)
        assert resp.status_code == 404

    async def test_concurrent_claims_notify_once(self, client, headers, owner, session_factory):
        rent = await self.create(client, headers, "Rent", "2026-03-01", "08:30")

        async def claim():
            async with session_factory() as s:
                return await ReminderService(s, owner[0]).claim_notification(rent["id"])

        results = await asyncio.gather(claim(), claim(), claim())
        assert sorted(results) == [False, False, True]


async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "message": "Server is running"}
