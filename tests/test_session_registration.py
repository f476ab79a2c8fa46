"""
Tests for session registration and scheduling.
"""
import asyncio

import pytest

from app.core.exceptions import ValidationError
from app.domain.schemas.eligibility import EligibilityResult
from app.domain.schemas.profiles import Department, PermissionProfile, Role
from app.domain.schemas.sessions import SessionCreate, SessionResource
from app.infrastructure.store import MemoryStore
from app.services.sessions import SessionService
from tests.fixtures.records import user_record


def session_doc(max_seats=2, current=0, attendees=None, requirements=None):
    doc = {
        "title": "Moderation Training",
        "department": "moderation",
        "capacity": {"min": 1, "max": max_seats, "current": current},
        "attendees": attendees or [],
    }
    if requirements is not None:
        doc["requirements"] = requirements
    return doc


@pytest.fixture
def session_store():
    return MemoryStore({
        "users/u1": user_record(level=3),
        "users/u2": user_record(level=3),
        "users/u3": user_record(level=1),
        "sessions/sessions/training": session_doc(),
        "sessions/sessions/last-seat": session_doc(max_seats=3, current=2),
        "sessions/sessions/senior": session_doc(requirements={"minLevel": 3, "minDaysActive": 7}),
    })


@pytest.fixture
def sessions(session_store):
    return SessionService(session_store)


def host(level=3, department=Department.MODERATION):
    return PermissionProfile(level=level, role=Role.BASE_RANK, department=department, user_id="host")


class TestRegister:
    """Test registrations."""

    @pytest.mark.asyncio
    async def test_register_adds_attendee_and_counts(self, session_store, sessions):
        """A registration appends the attendee and bumps the seat count together."""
        # Act
        result = await sessions.register("training", "u1")

        # Assert
        assert result == EligibilityResult.allow()
        session = await sessions.get_session("training")
        assert session.attendee_ids() == ["u1"]
        assert session.attendees[0].status == "confirmed"
        assert session.capacity.current == 1

    @pytest.mark.asyncio
    async def test_register_twice_denied(self, sessions):
        await sessions.register("training", "u1")

        result = await sessions.register("training", "u1")

        assert result.reason == "Already registered for this session"
        assert (await sessions.get_session("training")).capacity.current == 1

    @pytest.mark.asyncio
    async def test_full_session_denied(self, sessions):
        await sessions.register("training", "u1")
        await sessions.register("training", "u2")

        result = await sessions.register("training", "u3")

        assert result.reason == "Session is full"
        assert (await sessions.get_session("training")).capacity.current == 2
        assert "u3" not in (await sessions.get_session("training")).attendee_ids()

    @pytest.mark.asyncio
    async def test_race_for_last_seat(self, sessions):
        """Only one of two concurrent registrations gets the last seat."""
        # Act
        results = await asyncio.gather(
            sessions.register("last-seat", "u1"),
            sessions.register("last-seat", "u2"),
        )

        # Assert
        assert sorted(r.eligible for r in results) == [False, True]
        assert [r.reason for r in results if not r.eligible] == ["Session is full"]
        session = await sessions.get_session("last-seat")
        assert session.capacity.current == 3
        assert len(session.attendees) == 1

    @pytest.mark.asyncio
    async def test_requirements_enforced(self, sessions):
        result = await sessions.register("senior", "u3")

        assert result.reason == "Minimum level 3 required"

    @pytest.mark.asyncio
    async def test_missing_session_and_user(self, sessions):
        assert (await sessions.register("nope", "u1")).reason == "Session not found"
        assert (await sessions.register("training", "ghost")).reason == "User not found"

    @pytest.mark.asyncio
    async def test_attendee_map_form(self, session_store, sessions):
        """Attendees stored as an id map are read as a list."""
        await session_store.set(
            "sessions/sessions/mapped",
            session_doc(attendees={"a1": {"userId": "u1", "status": "confirmed"}}, current=1),
        )

        assert (await sessions.check_eligibility("mapped", "u1")).reason == "Already registered for this session"
        assert (await sessions.register("mapped", "u2")).eligible is True
        assert (await sessions.get_session("mapped")).attendee_ids() == ["u1", "u2"]


class TestCreateSession:
    """Test scheduling."""

    @pytest.mark.asyncio
    async def test_create_with_defaults(self, session_store, sessions):
        # Act
        session = await sessions.create_session(SessionCreate(title="Onboarding", department="moderation"), "host", host())

        # Assert
        assert isinstance(session, SessionResource)
        assert (session.capacity.min, session.capacity.max, session.capacity.current) == (1, 10, 0)
        assert session.created_by == "host"
        stored = await session_store.get(f"sessions/sessions/{session.id}")
        assert stored["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_low_level_host_denied(self, sessions):
        result = await sessions.create_session(SessionCreate(title="Onboarding"), "host", host(level=2))

        assert result.reason == "Minimum level 3 required"

    @pytest.mark.asyncio
    async def test_other_department_needs_head(self, sessions):
        data = SessionCreate(title="Interviews", department="hr")

        denied = await sessions.create_session(data, "host", host(level=6))
        allowed = await sessions.create_session(data, "host", host(level=7))

        assert denied.reason == "You can only create sessions for your department"
        assert isinstance(allowed, SessionResource)

    @pytest.mark.asyncio
    async def test_inverted_capacity_rejected(self, sessions):
        data = SessionCreate(title="Onboarding", capacity={"min": 5, "max": 2})

        with pytest.raises(ValidationError):
            await sessions.create_session(data, "host", host())

    @pytest.mark.asyncio
    async def test_malformed_requirements_rejected(self, sessions):
        data = SessionCreate(title="Onboarding", requirements={"minLevel": 42})

        with pytest.raises(ValidationError):
            await sessions.create_session(data, "host", host())
