from __future__ import annotations

from enum import StrEnum


class MutationState(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class ChatRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class NotificationLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
