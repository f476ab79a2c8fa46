"""
End-to-end tests of the HTTP surface.
"""
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient

from app.core.security import create_access_token
from app.infrastructure.store import MemoryStore
from tests.fixtures.records import (
    HR_GROUP_ID,
    INTERNAL_KEY,
    MAIN_GROUP_ID,
    MODERATION_GROUP_ID,
    FakeMembershipClient,
    department_doc,
    membership,
    memberships,
    user_record,
)

API = "/api/v1"
GOOD_ANSWER = "I want to join the team. I enjoy helping other people."


def bearer(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture
async def seeded(store: MemoryStore, membership_client: FakeMembershipClient):
    await store.set("users/u1", user_record(level=3))
    await store.set("users/head", user_record(role="moderation_head"))
    await store.set("applications/maia", {"name": "Maia", "order": 1})
    await store.set("applications/oam-basic", {"name": "OAM"})
    await store.set("departments/moderation", department_doc("Moderation", MODERATION_GROUP_ID, auto_approve=True))
    await store.set("departments/hr", department_doc("HR", HR_GROUP_ID, required_rank=50))
    await store.set("forms/templates/apply", {
        "title": "Apply",
        "status": "active",
        "department": "moderation",
        "fields": [{"id": "why", "type": "text", "required": True, "validation": {"minLength": 50}}],
    })
    await store.set("sessions/sessions/s1", {
        "title": "Training",
        "capacity": {"min": 1, "max": 1, "current": 0},
    })
    membership_client.roles["u1"] = memberships(
        membership(MAIN_GROUP_ID, 5, "Staff"),
        membership(MODERATION_GROUP_ID, 10, "Moderator"),
    )
    return store


class TestHealthAndAuth:
    """Test the public endpoints and authentication."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_ready(self, client: AsyncClient):
        response = await client.get(f"{API}/health/ready")

        assert response.json()["components"]["store"] == "healthy"

    @pytest.mark.asyncio
    async def test_no_credentials(self, client: AsyncClient):
        response = await client.get(f"{API}/applications")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_api_key(self, client: AsyncClient):
        response = await client.get(f"{API}/applications", headers={"X-API-Key": "wrong"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, seeded):
        token = create_access_token("u1", expires_delta=timedelta(minutes=-1))

        response = await client.get(f"{API}/applications", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user_token(self, client: AsyncClient, seeded):
        response = await client.get(f"{API}/applications", headers=bearer("ghost"))

        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"

    @pytest.mark.asyncio
    async def test_malformed_record_is_422(self, client: AsyncClient, store: MemoryStore):
        await store.set("users/bad", {"permissions": {"role": "wizard"}})

        response = await client.get(f"{API}/applications", headers=bearer("bad"))

        assert response.status_code == 422
        assert response.json()["details"]["field"] == "permissions.role"


class TestApplicationsApi:
    """Test the catalog endpoints."""

    @pytest.mark.asyncio
    async def test_list_and_access(self, client: AsyncClient, seeded):
        # Act
        listed = await client.get(f"{API}/applications", headers=bearer("u1"))
        denied = await client.get(f"{API}/applications/oam-basic/access", headers=bearer("u1"))
        missing = await client.get(f"{API}/applications/nope/access", headers=bearer("u1"))

        # Assert
        assert [a["id"] for a in listed.json()] == ["maia"]
        assert denied.status_code == 403
        assert denied.json()["detail"] == "Access denied to this application"
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_service_key_sees_everything(self, client: AsyncClient, seeded):
        response = await client.get(f"{API}/applications", headers={"X-API-Key": INTERNAL_KEY})

        assert {a["id"] for a in response.json()} == {"maia", "oam-basic"}

    @pytest.mark.asyncio
    async def test_favorites_and_tracking(self, client: AsyncClient, seeded):
        added = await client.put(f"{API}/applications/maia/favorite", headers=bearer("u1"))
        tracked = await client.post(f"{API}/applications/maia/access", headers=bearer("u1"))
        analytics = await client.get(f"{API}/applications/analytics", headers=bearer("u1"))

        assert added.json() == {"favorites": ["maia"]}
        assert tracked.json()["analytics"]["totalAccesses"] == 1
        assert analytics.json()["most_used"] == [{"app_id": "maia", "count": 1}]


class TestDepartmentsApi:
    """Test department endpoints."""

    @pytest.mark.asyncio
    async def test_eligibility_auto_assigns(self, client: AsyncClient, seeded):
        response = await client.get(f"{API}/departments/eligibility", headers=bearer("u1"))

        body = response.json()
        assert response.status_code == 200
        assert body["auto_added"] == ["moderation"]
        assert body["primary_department"] == "moderation"
        assert await seeded.get("departments/moderation", "members/u1") is not None

    @pytest.mark.asyncio
    async def test_primary_denied(self, client: AsyncClient, seeded):
        response = await client.post(
            f"{API}/departments/primary", json={"department_id": "hr"}, headers=bearer("u1")
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "User is not eligible for this department"

    @pytest.mark.asyncio
    async def test_create_requires_level(self, client: AsyncClient, seeded):
        payload = {"name": "Events", "description": "Party planning"}

        denied = await client.post(f"{API}/departments", json=payload, headers=bearer("head"))
        created = await client.post(f"{API}/departments", json=payload, headers={"X-API-Key": INTERNAL_KEY})

        assert denied.status_code == 403
        assert created.status_code == 201
        assert created.json()["id"] == "events"


class TestFormsAndSessionsApi:
    """Test form and session endpoints."""

    @pytest.mark.asyncio
    async def test_submit_then_blocked(self, client: AsyncClient, seeded):
        # Arrange
        payload = {"responses": {"why": GOOD_ANSWER}}

        # Act
        first = await client.post(f"{API}/forms/apply/submit", json=payload, headers=bearer("u1"))
        second = await client.post(f"{API}/forms/apply/submit", json=payload, headers=bearer("u1"))

        # Assert
        assert first.status_code == 201
        assert first.json()["status"] == "approved"
        assert first.json()["score"] == 100
        assert second.status_code == 403
        assert second.json()["detail"] == "Already submitted or approved"

    @pytest.mark.asyncio
    async def test_invalid_responses_422(self, client: AsyncClient, seeded):
        response = await client.post(f"{API}/forms/apply/submit", json={"responses": {}}, headers=bearer("u1"))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_review_terminal_submission_refused(self, client: AsyncClient, seeded):
        submitted = await client.post(
            f"{API}/forms/apply/submit", json={"responses": {"why": GOOD_ANSWER}}, headers=bearer("u1")
        )

        response = await client.put(
            f"{API}/forms/submissions/{submitted.json()['submission_id']}/review",
            json={"decision": "rejected", "feedback": "Changed our minds, sorry."},
            headers=bearer("head"),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Only pending submissions can be reviewed"

    @pytest.mark.asyncio
    async def test_form_eligibility_reports_reason(self, client: AsyncClient, seeded):
        response = await client.get(f"{API}/forms/missing/eligibility", headers=bearer("u1"))

        assert response.status_code == 200
        assert response.json() == {"eligible": False, "reason": "Form not found"}

    @pytest.mark.asyncio
    async def test_register_last_seat(self, client: AsyncClient, seeded):
        first = await client.post(f"{API}/sessions/s1/register", headers=bearer("u1"))
        second = await client.post(f"{API}/sessions/s1/register", headers=bearer("head"))

        assert first.status_code == 200
        assert second.status_code == 403
        assert second.json()["detail"] == "Session is full"


class TestAssignmentsApi:
    """Test assignment endpoints."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, client: AsyncClient, seeded):
        created = await client.post(
            f"{API}/assignments",
            json={"title": "Guide", "description": "Write it", "assignedTo": "u1", "dueDate": 4102444800},
            headers=bearer("head"),
        )
        assignment_id = created.json()["id"]

        started = await client.patch(
            f"{API}/assignments/{assignment_id}/status", json={"status": "in_progress"}, headers=bearer("u1")
        )
        skipped = await client.patch(
            f"{API}/assignments/{assignment_id}/status", json={"status": "completed"}, headers=bearer("u1")
        )

        assert created.status_code == 201
        assert started.json()["new_status"] == "in_progress"
        assert skipped.status_code == 403
