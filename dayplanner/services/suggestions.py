"""Parsing and normalization of the assistant's suggestion payload.

The assistant answers with free text that embeds a JSON object of the form::

    {"explanation": "...",
     "changes": {"create": [...], "update": [...], "delete": [...]}}

``extract_suggestions`` pulls that object out of the text and
``SuggestionSet.from_payload`` turns it into domain objects. Project
references arrive either as bare names or as ``{"id", "name"}`` objects and
are normalized to ``ProjectRef`` here, so nothing downstream branches on the
shape.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from dayplanner.domain.dates import date_key, to_date
from dayplanner.domain.entities import ProjectRef, TaskDraft, TaskEntity, TaskPatch

logger = logging.getLogger(__name__)

DEFAULT_EXPLANATION = "AI suggestions ready to apply"

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_JSON_OBJECT_RE = re.compile(r"(\{[\s\S]*\})")


def normalize_project_ref(item: Any) -> ProjectRef:
    if isinstance(item, ProjectRef):
        return item
    if isinstance(item, str) and item.strip():
        return ProjectRef(name=item.strip())
    if isinstance(item, dict) and str(item.get("name") or "").strip():
        raw_id = item.get("id")
        project_id = raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else None
        return ProjectRef(name=str(item["name"]).strip(), id=project_id)
    raise ValueError(f"Invalid project reference: {item!r}")


def normalize_projects(items: Any) -> tuple[ProjectRef, ...]:
    if items is None:
        return ()
    if not isinstance(items, (list, tuple)):
        items = [items]
    refs: list[ProjectRef] = []
    for item in items:
        ref = normalize_project_ref(item)
        if not any(ref.matches(existing) for existing in refs):
            refs.append(ref)
    return tuple(refs)


def _int_field(data: dict, *names: str) -> int | None:
    for name in names:
        value = data.get(name)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer for {name}: {value!r}")
        return int(value)
    return None


def _date_field(data: dict) -> date | None:
    value = data.get("date")
    if not value:
        return None
    return to_date(value)


def _task_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid task id: {value!r}")
    return int(value)


def _draft_from(data: Any, default_date: date, default_estimate: int) -> TaskDraft:
    if not isinstance(data, dict):
        raise ValueError(f"Suggested task must be an object: {data!r}")
    title = str(data.get("title") or "").strip()
    if not title:
        raise ValueError("Suggested task is missing a title")
    estimate = _int_field(data, "estimatedTime", "estimated_time", "estimatedTimeMinutes")
    return TaskDraft(
        id=None,
        title=title,
        description=str(data.get("description") or ""),
        notes=data.get("notes"),
        date=_date_field(data) or default_date,
        completed=bool(data.get("completed", False)),
        estimated_time=default_estimate if estimate is None else estimate,
        order=_int_field(data, "order") or 0,
        projects=normalize_projects(data.get("projects")),
    )


def _patch_from(data: Any) -> TaskPatch:
    if not isinstance(data, dict):
        raise ValueError(f"Suggested update must be an object: {data!r}")
    if "id" not in data:
        raise ValueError("Suggested update is missing a task id")
    completed = data.get("completed")
    return TaskPatch(
        id=_task_id(data["id"]),
        title=data.get("title"),
        description=data.get("description"),
        notes=data.get("notes"),
        date=_date_field(data),
        completed=None if completed is None else bool(completed),
        estimated_time=_int_field(data, "estimatedTime", "estimated_time", "estimatedTimeMinutes"),
        order=_int_field(data, "order"),
        projects=normalize_projects(data["projects"]) if data.get("projects") is not None else None,
    )


def _section(changes: dict, name: str) -> list:
    items = changes.get(name)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValueError(f"Suggestion {name!r} must be a list")
    return items


@dataclass(frozen=True)
class SuggestionSet:
    create: tuple[TaskDraft, ...] = ()
    update: tuple[TaskPatch, ...] = ()
    delete: tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.create or self.update or self.delete)

    @classmethod
    def from_payload(
        cls,
        changes: dict,
        default_date: date | None = None,
        default_estimate: int = 30,
    ) -> SuggestionSet:
        if not isinstance(changes, dict):
            raise ValueError("Suggestion changes must be an object")
        default_date = default_date or date.today()
        return cls(
            create=tuple(
                _draft_from(item, default_date, default_estimate)
                for item in _section(changes, "create")
            ),
            update=tuple(_patch_from(item) for item in _section(changes, "update")),
            delete=tuple(_task_id(item) for item in _section(changes, "delete")),
        )

    def to_payload(self) -> dict:
        return {
            "create": [
                {
                    "title": draft.title,
                    "description": draft.description,
                    "estimatedTime": draft.estimated_time,
                    "date": draft.key,
                    "projects": [project.name for project in draft.projects],
                }
                for draft in self.create
            ],
            "update": [_patch_payload(patch) for patch in self.update],
            "delete": list(self.delete),
        }


def _patch_payload(patch: TaskPatch) -> dict:
    payload: dict[str, Any] = {"id": patch.id}
    if patch.title is not None:
        payload["title"] = patch.title
    if patch.description is not None:
        payload["description"] = patch.description
    if patch.estimated_time is not None:
        payload["estimatedTime"] = patch.estimated_time
    if patch.date is not None:
        payload["date"] = date_key(patch.date)
    if patch.completed is not None:
        payload["completed"] = patch.completed
    if patch.projects is not None:
        payload["projects"] = [project.name for project in patch.projects]
    return payload


@dataclass(frozen=True)
class ParsedSuggestions:
    changes: dict
    explanation: str
    suggestions: SuggestionSet


def _parsed_from(candidate: str, default_date: date | None) -> ParsedSuggestions | None:
    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    if not isinstance(data, dict) or "changes" not in data:
        return None
    try:
        suggestions = SuggestionSet.from_payload(data["changes"], default_date)
    except (TypeError, ValueError, OverflowError) as exc:
        logger.warning("Discarding malformed suggestion payload: %s", exc)
        return None
    explanation = str(data.get("explanation") or "").strip() or DEFAULT_EXPLANATION
    return ParsedSuggestions(changes=data["changes"], explanation=explanation, suggestions=suggestions)


def _json_candidates(text: str) -> Iterable[str]:
    yield from _JSON_OBJECT_RE.findall(text)
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", text):
        try:
            _, end = decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        yield text[match.start():end]


def extract_suggestions(text: str | None, default_date: date | None = None) -> ParsedSuggestions | None:
    """Find the suggestion payload in an assistant reply.

    A fenced ```json block wins. Otherwise JSON-shaped substrings are tried in
    order. Returns ``None`` when nothing usable is found; never raises.
    """
    if not text:
        logger.error("Received empty response from AI")
        return None

    for block in _FENCED_JSON_RE.findall(text):
        parsed = _parsed_from(block.strip(), default_date)
        if parsed:
            return parsed

    for candidate in _json_candidates(text):
        parsed = _parsed_from(candidate, default_date)
        if parsed:
            return parsed

    logger.error("Failed to find valid JSON in AI response")
    return None


@dataclass(frozen=True)
class PreviewUpdate:
    original: TaskEntity
    updated: TaskEntity


@dataclass(frozen=True)
class PreviewData:
    creates: tuple[TaskDraft, ...] = ()
    updates: tuple[PreviewUpdate, ...] = ()
    deletes: tuple[TaskEntity, ...] = ()
    known_projects: tuple[ProjectRef, ...] = field(default=(), repr=False)

    def is_new_project(self, project: ProjectRef) -> bool:
        return not any(project.name.casefold() == known.name.casefold() for known in self.known_projects)

    def new_project_names(self) -> list[str]:
        names: dict[str, str] = {}
        tasks = list(self.creates) + [item.updated for item in self.updates]
        for task in tasks:
            for project in task.projects:
                if self.is_new_project(project):
                    names.setdefault(project.name.casefold(), project.name)
        return sorted(names.values())


def build_preview(
    suggestions: SuggestionSet | None,
    tasks: Iterable[TaskEntity],
    known_projects: Iterable[ProjectRef] = (),
) -> PreviewData:
    if suggestions is None:
        return PreviewData(known_projects=tuple(known_projects))
    by_id = {task.id: task for task in tasks}
    today = date.today()

    updates: list[PreviewUpdate] = []
    for patch in suggestions.update:
        original = by_id.get(patch.id)
        if original is None:
            original = patch.apply_to(TaskEntity(id=patch.id, title=patch.title or "", date=patch.date or today))
        updates.append(PreviewUpdate(original=original, updated=patch.apply_to(original)))

    deletes = tuple(
        by_id.get(task_id) or TaskEntity(id=task_id, title="", date=today)
        for task_id in suggestions.delete
    )
    return PreviewData(
        creates=suggestions.create,
        updates=tuple(updates),
        deletes=deletes,
        known_projects=tuple(known_projects),
    )
