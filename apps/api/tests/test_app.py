"""
HTTP tests for application-level routes: health, token verification and
the background job endpoints.
"""

from unittest.mock import AsyncMock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from courseapp.core import scheduler


@pytest.fixture
def registered_job():
    """A job in the registry, removed again afterwards."""
    saved = dict(scheduler._job_registry)
    job = AsyncMock(return_value={"total_purged": 0})
    scheduler._job_registry.clear()
    scheduler.register_job("test_job", job, IntervalTrigger(hours=1))
    yield job
    scheduler._job_registry.clear()
    scheduler._job_registry.update(saved)


class TestHealth:
    """Health and root routes."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_health_is_never_rate_limited(self, client):
        for _ in range(120):
            response = await client.get("/health")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"status": "fail", "message": "Route not found"}


class TestVerifyToken:
    """GET /api/auth/verify"""

    @pytest.mark.asyncio
    async def test_admin_token(self, client, admin_headers):
        response = await client.get("/api/auth/verify", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"uid": "admin-1", "email": "admin@example.com", "admin": True}

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/auth/verify")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_auth_attempts_are_rate_limited(self, client):
        statuses = [(await client.get("/api/auth/verify")).status_code for _ in range(6)]

        assert statuses == [401] * 5 + [429]


class TestJobEndpoints:
    """Admin background job routes."""

    @pytest.mark.asyncio
    async def test_list_jobs(self, client, admin_headers, registered_job):
        response = await client.get("/api/admin/jobs", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"jobs": [{"job_id": "test_job", "next_run_time": None}]}

    @pytest.mark.asyncio
    async def test_trigger_job(self, client, admin_headers, registered_job):
        response = await client.post("/api/admin/jobs/test_job/trigger", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        registered_job.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_trigger_unknown_job(self, client, admin_headers, registered_job):
        response = await client.post("/api/admin/jobs/missing/trigger", headers=admin_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_jobs_require_admin(self, client, user_token):
        response = await client.get("/api/admin/jobs", headers={"Authorization": f"Bearer {user_token}"})

        assert response.status_code == 403
