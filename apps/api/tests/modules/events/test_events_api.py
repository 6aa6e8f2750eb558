"""
HTTP tests for the events endpoints.
"""

import pytest


class TestEventsApi:
    """Event CRUD over HTTP."""

    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client, created_event):
        assert created_event["courseName"] == "JS101"
        assert created_event["id"]

        response = await client.get(f"/api/events/{created_event['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["venue"] == "Dublin"
        assert body["price"] == 100
        assert body["emailText"] == "hi"

    @pytest.mark.asyncio
    async def test_list_is_public(self, client, created_event):
        response = await client.get("/api/events")

        assert response.status_code == 200
        assert [event["id"] for event in response.json()] == [created_event["id"]]

    @pytest.mark.asyncio
    async def test_list_latest_date_first(self, client, admin_headers, event_payload):
        for date in ("2026-01-10", "2026-03-01", "2026-02-01"):
            await client.post("/api/events", json={**event_payload, "date": date}, headers=admin_headers)

        response = await client.get("/api/events")

        dates = [event["date"][:10] for event in response.json()]
        assert dates == ["2026-03-01", "2026-02-01", "2026-01-10"]

    @pytest.mark.asyncio
    async def test_unknown_event(self, client):
        response = await client.get("/api/events/missing")

        assert response.status_code == 404
        assert response.json() == {"status": "fail", "message": "Event not found"}

    @pytest.mark.asyncio
    async def test_create_requires_token(self, client, event_payload):
        response = await client.post("/api/events", json=event_payload)

        assert response.status_code == 401
        assert response.json()["message"] == "No authentication token provided"

    @pytest.mark.asyncio
    async def test_create_requires_admin(self, client, user_token, event_payload):
        response = await client.post(
            "/api/events", json=event_payload, headers={"Authorization": f"Bearer {user_token}"}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_create_rejects_bad_token(self, client, event_payload):
        response = await client.post(
            "/api/events", json=event_payload, headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_create_reports_every_violation(self, client, admin_headers):
        response = await client.post(
            "/api/events",
            json={"courseName": "JS", "date": "tomorrow", "venue": "Du", "price": -5},
            headers=admin_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "fail"
        fields = {error["field"] for error in body["errors"]}
        assert fields == {"courseName", "date", "venue", "price", "emailText"}

    @pytest.mark.asyncio
    async def test_replace(self, client, admin_headers, created_event, event_payload):
        response = await client.put(
            f"/api/events/{created_event['id']}",
            json={**event_payload, "venue": "Cork", "price": 120},
            headers=admin_headers,
        )

        assert response.status_code == 204
        assert response.headers["RateLimit-Limit"] == "50"

        fetched = (await client.get(f"/api/events/{created_event['id']}")).json()
        assert fetched["venue"] == "Cork"
        assert fetched["price"] == 120

    @pytest.mark.asyncio
    async def test_replace_unknown_event(self, client, admin_headers, event_payload):
        response = await client.put("/api/events/missing", json=event_payload, headers=admin_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_cascades_to_submissions(self, client, admin_headers, created_event, fake_minio):
        event_id = created_event["id"]
        for name in ("Ann Lee", "Bob Ray"):
            response = await client.post(
                "/api/submissions",
                data={"eventId": event_id, "type": "person", "name": name, "email": "x@example.com"},
                files={"file": ("cv.pdf", b"%PDF-1.4 data", "application/pdf")},
            )
            assert response.status_code == 201
        assert len(fake_minio.keys()) == 2

        response = await client.delete(f"/api/events/{event_id}", headers=admin_headers)

        assert response.status_code == 204
        assert (await client.get(f"/api/events/{event_id}")).status_code == 404
        remaining = await client.get("/api/submissions", params={"eventId": event_id}, headers=admin_headers)
        assert remaining.json() == []
        assert fake_minio.keys() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_event(self, client, admin_headers):
        response = await client.delete("/api/events/missing", headers=admin_headers)

        assert response.status_code == 404
