from __future__ import annotations

from datetime import date

import pytest

from dayplanner.domain.entities import ChatMessage
from dayplanner.domain.enums import ChatRole, NotificationLevel
from dayplanner.domain.errors import AuthenticationError
from dayplanner.services.auth import AuthSession
from dayplanner.services.session import SessionState


def test_notifications_reach_listeners() -> None:
    session = SessionState()
    received = []
    session.subscribe(received.append)

    session.info("Task created successfully")
    session.error("Failed to save changes. Reverting...")
    session.unsubscribe(received.append)
    session.info("unheard")

    assert [n.level for n in received] == [NotificationLevel.SUCCESS, NotificationLevel.ERROR]
    assert len(session.notifications) == 3


def test_reset_clears_transient_state() -> None:
    session = SessionState(user_id="u1", center_date=date(2024, 3, 5))
    session.dragged_task_id = 4
    session.is_applying_ai = True
    session.add_message(ChatMessage(role=ChatRole.USER, content="hello"))

    session.reset()

    assert session.dragged_task_id is None
    assert not session.is_applying_ai
    assert session.chat_messages == []
    assert session.center_date == date(2024, 3, 5)
    assert session.user_id == "u1"


def test_sign_in_and_out() -> None:
    session = SessionState()
    auth = AuthSession(session)

    with pytest.raises(AuthenticationError):
        auth.require_user()
    with pytest.raises(AuthenticationError):
        auth.sign_in("   ")

    assert auth.sign_in(" ada@example.com ") == "ada@example.com"
    assert auth.require_user() == "ada@example.com"

    session.add_message(ChatMessage(role=ChatRole.USER, content="hi"))
    auth.sign_out()

    assert auth.user_id is None
    assert session.chat_messages == []


def test_preconfigured_user_is_signed_in() -> None:
    session = SessionState()

    AuthSession(session, "u42")

    assert session.user_id == "u42"
