from __future__ import annotations

import json
import logging
from datetime import date
from typing import Iterable, Protocol

import openai

from dayplanner.config import SETTINGS
from dayplanner.domain.dates import date_key
from dayplanner.domain.entities import TaskEntity
from dayplanner.domain.errors import SuggestionServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an AI task planning assistant for people with ADHD.
Your goal is to help the user plan and organize their day effectively.

The user's tasks are organized by date. Here's their current task data:
{tasks}

The user is currently planning for date: {target_date}
{pending}
When suggesting changes, use the following JSON structure:
{{
  "explanation": "Human-readable explanation of your suggestions",
  "changes": {{
    "create": [
      {{
        "title": "New task name",
        "description": "Description",
        "estimatedTime": 30,
        "date": "YYYY-MM-DD",
        "projects": ["Project 1", "Project 2"]
      }}
    ],
    "update": [
      {{
        "id": 123,
        "title": "Updated task name",
        "description": "Updated description",
        "estimatedTime": 45,
        "date": "YYYY-MM-DD",
        "projects": ["Project 1", "Project 2"]
      }}
    ],
    "delete": [123, 456]
  }}
}}

Date handling:
1. You can suggest tasks for any date, not just {target_date}
2. ALL dates MUST use the format "YYYY-MM-DD" (e.g. "{target_date}")
3. When updating a task, ALWAYS include its date, even if it does not change

Update rules:
1. When updating a task, include the id and only the fields you want to change
2. A property left out of an update keeps its current value

For people with ADHD:
1. Suggest breaking large tasks into smaller ones
2. Prioritize tasks based on importance and urgency
3. Suggest realistic time estimates
4. Group similar tasks together when possible
5. Limit the number of tasks per day to avoid overwhelm

Always respond with ONLY the structured JSON, placed inside a ```json code block.
"""

PENDING_PROMPT = """
The user already has pending suggestions that have not been applied yet:
{pending}

They are asking you to modify these pending suggestions. Your response should
INCLUDE these suggestions with any modifications the user requested. Do not
lose any pending suggestions unless explicitly asked to.
"""


class SuggestionClient(Protocol):
    def request(
        self,
        message: str,
        target_date: date,
        tasks: Iterable[TaskEntity],
        pending: dict | None = None,
    ) -> str: ...


def tasks_for_prompt(tasks: Iterable[TaskEntity]) -> dict[str, list[dict]]:
    by_date: dict[str, list[dict]] = {}
    for task in tasks:
        by_date.setdefault(task.key, []).append(
            {
                "id": task.id,
                "title": task.title,
                "description": task.notes or task.description or "",
                "estimatedTimeMinutes": task.estimated_time,
                "completed": task.completed,
                "projects": [project.name for project in task.projects],
            }
        )
    return by_date


def build_system_prompt(
    tasks: Iterable[TaskEntity],
    target_date: date,
    pending: dict | None = None,
) -> str:
    pending_block = ""
    if pending:
        pending_block = PENDING_PROMPT.format(pending=json.dumps(pending, indent=2))
    return SYSTEM_PROMPT.format(
        tasks=json.dumps(tasks_for_prompt(tasks), indent=2),
        target_date=date_key(target_date),
        pending=pending_block,
    )


class PlanningCopilot:
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        client=None,
    ) -> None:
        self._api_key = api_key if api_key is not None else SETTINGS.openai_api_key
        self._model = model or SETTINGS.openai_model
        self._max_tokens = max_tokens or SETTINGS.ai_max_tokens
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise SuggestionServiceError("API configuration error: OPENAI_API_KEY is not set")
            self._client = openai.OpenAI(api_key=self._api_key)
        return self._client

    def request(
        self,
        message: str,
        target_date: date,
        tasks: Iterable[TaskEntity],
        pending: dict | None = None,
    ) -> str:
        client = self._get_client()
        system_prompt = build_system_prompt(tasks, target_date, pending)
        try:
            completion = client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": message},
                ],
            )
        except openai.APIConnectionError as exc:
            raise SuggestionServiceError(
                "Connection error: could not reach the AI service. "
                "Check your network connection or try again later."
            ) from exc
        except openai.OpenAIError as exc:
            logger.error("AI planning request failed: %s", exc)
            raise SuggestionServiceError(str(exc)) from exc

        content = completion.choices[0].message.content or ""
        logger.debug("AI response received (%d chars)", len(content))
        return content
