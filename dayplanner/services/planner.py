from __future__ import annotations

import logging
from datetime import date

from dayplanner.domain.entities import ChatMessage
from dayplanner.domain.enums import ChatRole
from dayplanner.domain.errors import PersistenceError, PlannerError, SuggestionServiceError
from dayplanner.infra.copilot import SuggestionClient

from .session import SessionState
from .suggestions import PreviewData, SuggestionSet, build_preview, extract_suggestions
from .task_service import TaskService

logger = logging.getLogger(__name__)

COULD_NOT_PROCESS = (
    "I couldn't process that request properly. Please try again. "
    "The AI response did not contain valid suggestions."
)


class AIPlanner:
    def __init__(self, copilot: SuggestionClient, tasks: TaskService, session: SessionState) -> None:
        self._copilot = copilot
        self._tasks = tasks
        self._session = session
        self.is_loading = False

    @property
    def pending(self) -> SuggestionSet | None:
        return self._session.ai_suggestions

    @property
    def messages(self) -> list[ChatMessage]:
        return self._session.chat_messages

    @property
    def is_applying(self) -> bool:
        return self._session.is_applying_ai

    def send_message(self, text: str, center_date: date | None = None) -> ChatMessage | None:
        text = (text or "").strip()
        if not text or self.is_loading:
            return None
        center_date = center_date or self._session.center_date
        self._session.add_message(ChatMessage(role=ChatRole.USER, content=text))
        self.is_loading = True
        try:
            reply = self._ask(text, center_date)
        finally:
            self.is_loading = False
        self._session.add_message(reply)
        return reply

    def _ask(self, text: str, center_date: date) -> ChatMessage:
        pending = self.pending.to_payload() if self.pending else None
        try:
            response = self._copilot.request(text, center_date, self._tasks.tasks, pending)
            if not response:
                raise SuggestionServiceError("Received empty response from AI")
        except PlannerError as exc:
            logger.error("AI error: %s", exc)
            return ChatMessage(role=ChatRole.ASSISTANT, content=f"Sorry, I encountered an error: {exc}")

        parsed = extract_suggestions(response, default_date=center_date)
        if parsed is None:
            return ChatMessage(role=ChatRole.ASSISTANT, content=COULD_NOT_PROCESS)

        self._session.ai_suggestions = parsed.suggestions
        return ChatMessage(
            role=ChatRole.ASSISTANT,
            content=parsed.explanation,
            suggestions=parsed.suggestions,
        )

    def preview(self) -> PreviewData:
        return build_preview(self.pending, self._tasks.tasks, self._tasks.list_projects())

    def cancel_pending(self) -> None:
        self._session.ai_suggestions = None

    def apply_pending(self) -> bool:
        """Apply the pending suggestions: creates, then updates, then deletes.

        Projects named by a suggestion are created before the task that
        references them. The pending set is cleared whatever the outcome,
        and the cache is refetched so it shows what actually got stored.
        """
        suggestions = self.pending
        if suggestions is None or suggestions.is_empty:
            self.cancel_pending()
            return False

        self._session.is_applying_ai = True
        try:
            self._apply(suggestions)
        except PlannerError as exc:
            logger.error("Error applying AI suggestions: %s", exc)
            self._session.error(f"Failed to apply AI suggestions: {exc}")
            self._resync()
            return False
        finally:
            self._session.is_applying_ai = False
            self._session.ai_suggestions = None

        self._tasks.refresh()
        self._session.info(
            f"Applied {len(suggestions.create)} new, {len(suggestions.update)} updated "
            f"and {len(suggestions.delete)} deleted task(s)"
        )
        return True

    def _resync(self) -> None:
        try:
            self._tasks.refresh()
        except PersistenceError as exc:
            logger.error("Error refreshing tasks after a failed apply: %s", exc)

    def _apply(self, suggestions: SuggestionSet) -> None:
        for draft in suggestions.create:
            order = draft.order or self._tasks.next_order(draft.date)
            self._tasks.create_task(draft.with_changes(order=order), notify=False)

        for patch in suggestions.update:
            original = self._tasks.get_task(patch.id)
            if original is None:
                self._session.error(f"Task {patch.id} no longer exists, skipping update")
                continue
            self._tasks.update_task(patch.apply_to(original), notify=False)

        for task_id in suggestions.delete:
            self._tasks.delete_task(task_id, notify=False)
