from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from dayplanner.domain.entities import ChatMessage, Notification
from dayplanner.domain.enums import NotificationLevel

logger = logging.getLogger(__name__)

NotificationListener = Callable[[Notification], None]


class SessionState:
    """UI flags, chat history and notifications for one signed-in session.

    One instance is created per application session and passed to the
    services that need it, so tests can build a fresh one each time.
    """

    def __init__(self, user_id: str | None = None, center_date: date | None = None) -> None:
        self.user_id = user_id
        self._initial_center = center_date
        self._listeners: list[NotificationListener] = []
        self.reset()

    def reset(self) -> None:
        self.dragged_task_id: int | None = None
        self.drag_over_id: str | None = None
        self.selected_project_id: int | None = None
        self.center_date: date = self._initial_center or date.today()
        self.is_applying_ai = False
        self.ai_suggestions = None
        self.chat_messages: list[ChatMessage] = []
        self.notifications: list[Notification] = []

    def subscribe(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: NotificationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)
        log = logger.error if level == NotificationLevel.ERROR else logger.info
        log("%s", message)
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, message)

    def add_message(self, message: ChatMessage) -> None:
        self.chat_messages.append(message)

    def close(self) -> None:
        self._listeners.clear()
        self.reset()
        self.user_id = None
