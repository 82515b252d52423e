"""
Tests for SessionService title rules and per-user access.

Run:
  pytest -q tests/test_session_service.py
"""
import asyncio

import pytest

from core.exceptions import InvalidArgumentError, NotFoundError
from services.session_service import SessionService
from tests.fakes import InMemorySessionRepository


@pytest.fixture
def repo():
    return InMemorySessionRepository()


@pytest.fixture
def service(repo):
    return SessionService(repo)


def test_default_and_trimmed_titles(service):
    default = asyncio.run(service.create_session("alice"))
    named = asyncio.run(service.create_session("alice", "  Trip plans  "))

    assert default.title == "New Session"
    assert named.title == "Trip plans"
    assert named.user_id == "alice"
    assert named.favorite is False


@pytest.mark.parametrize("title", ["", "   ", "x" * 101, 42])
def test_invalid_titles(service, title):
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.create_session("alice", title))


def test_title_at_max_length_is_accepted(service):
    assert asyncio.run(service.create_session("alice", "x" * 100)).title == "x" * 100


def test_blank_user_is_rejected(service):
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.create_session(" "))
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.get_recent_sessions(""))


def test_rename_requires_ownership(service):
    session = asyncio.run(service.create_session("alice", "Old"))

    renamed = asyncio.run(service.rename_session("alice", session.id, " New "))
    assert renamed.title == "New"

    with pytest.raises(NotFoundError):
        asyncio.run(service.rename_session("bob", session.id, "Hijack"))
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.rename_session("alice", session.id, None))


def test_toggle_favorite_flips(service):
    session = asyncio.run(service.create_session("alice"))

    assert asyncio.run(service.toggle_favorite("alice", session.id)).favorite is True
    assert asyncio.run(service.toggle_favorite("alice", session.id)).favorite is False


def test_delete_session(service, repo):
    session = asyncio.run(service.create_session("alice"))

    with pytest.raises(NotFoundError):
        asyncio.run(service.delete_session("bob", session.id))
    with pytest.raises(InvalidArgumentError):
        asyncio.run(service.delete_session("alice", ""))

    asyncio.run(service.delete_session("alice", session.id))
    assert repo.sessions == {}

    with pytest.raises(NotFoundError):
        asyncio.run(service.delete_session("alice", session.id))


def test_recent_sessions_newest_first(service):
    first = asyncio.run(service.create_session("alice", "first"))
    second = asyncio.run(service.create_session("alice", "second"))
    asyncio.run(service.create_session("bob", "other"))

    sessions = asyncio.run(service.get_recent_sessions("alice"))

    assert [s.id for s in sessions] == [second.id, first.id]
