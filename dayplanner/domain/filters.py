from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TaskFilters:
    user_id: str | None = None
