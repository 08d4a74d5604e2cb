from __future__ import annotations

from html import escape

from PySide6.QtCore import QMimeData, QSize, Qt
from PySide6.QtGui import QDrag
from PySide6.QtWidgets import (
    QAbstractItemView,
    QCheckBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QSizePolicy,
    QVBoxLayout,
    QWidget,
)

from dayplanner.domain.entities import ChatMessage, TaskEntity
from dayplanner.domain.enums import ChatRole
from dayplanner.services.board import TASK_PREFIX, parse_task_ref, task_ref

PROJECT_COLORS = [
    "#7CC4A1",
    "#E0B25B",
    "#E57B63",
    "#6BA3E8",
    "#B48EDB",
    "#5CC2C7",
]


def project_color(project_id: int | None) -> str:
    if project_id is None:
        return "#9CA3AF"
    return PROJECT_COLORS[project_id % len(PROJECT_COLORS)]


def format_minutes(minutes: int) -> str:
    if minutes <= 0:
        return ""
    hours, rest = divmod(minutes, 60)
    if hours and rest:
        return f"{hours}h {rest}m"
    if hours:
        return f"{hours}h"
    return f"{rest}m"


def _task_ref_from_mime(mime: QMimeData) -> str | None:
    if not mime.hasText():
        return None
    text = mime.text()
    if not text.startswith(TASK_PREFIX) or parse_task_ref(text) is None:
        return None
    return text


class TaskCardWidget(QWidget):
    def __init__(self, task: TaskEntity, on_toggle=None, parent=None):
        super().__init__(parent)
        self.task = task
        self._on_toggle = on_toggle

        self.setObjectName("TaskCard")
        self.setAttribute(Qt.WA_StyledBackground, True)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        self.setMinimumHeight(56)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 8, 12, 8)
        layout.setSpacing(4)

        self.done_check = QCheckBox()
        self.done_check.setChecked(task.completed)
        self.done_check.toggled.connect(self._handle_toggle)

        title_text = task.title.strip() if task.title else "Untitled"
        title = QLabel(title_text)
        title.setProperty("class", "task-title")
        title.setProperty("completed", task.completed)
        title.setWordWrap(True)
        title.setMinimumWidth(0)
        title.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Preferred)
        if task.completed:
            font = title.font()
            font.setStrikeOut(True)
            title.setFont(font)

        estimate = QLabel(format_minutes(task.estimated_time))
        estimate.setProperty("class", "task-meta")

        header = QHBoxLayout()
        header.setSpacing(8)
        header.addWidget(self.done_check, 0, Qt.AlignTop)
        header.addWidget(title, 1)
        header.addWidget(estimate, 0, Qt.AlignTop)
        layout.addLayout(header)

        if task.projects:
            badges = QHBoxLayout()
            badges.setSpacing(6)
            for project in task.projects:
                badge = QLabel(project.name)
                badge.setProperty("class", "project-badge")
                badge.setStyleSheet(
                    f"background-color: {project_color(project.id)}; border-radius: 6px; padding: 1px 6px;"
                )
                badges.addWidget(badge)
            badges.addStretch()
            layout.addLayout(badges)

        if task.notes:
            notes = QLabel(task.notes)
            notes.setProperty("class", "task-meta")
            notes.setWordWrap(True)
            layout.addWidget(notes)

    def _handle_toggle(self, _checked: bool) -> None:
        if self._on_toggle and self.task.id is not None:
            self._on_toggle(self.task.id)


class TaskItemContainer(QWidget):
    def __init__(self, task_widget: TaskCardWidget, h_margin: int = 6, parent=None):
        super().__init__(parent)
        self.task_widget = task_widget
        layout = QHBoxLayout(self)
        layout.setContentsMargins(h_margin, 0, h_margin, 0)
        layout.setSpacing(0)
        layout.addWidget(task_widget)

    @property
    def task(self) -> TaskEntity:
        return self.task_widget.task


class DayListWidget(QListWidget):
    """One date bucket. Drag source and drop target for task cards.

    Hover positions are reported as task references (``task:<id>``) or, over
    empty space, as the bucket's own date key.
    """

    def __init__(
        self,
        bucket_key: str,
        on_drag_start,
        on_drag_over,
        on_drop,
        on_drag_cancel,
        parent=None,
    ):
        super().__init__(parent)
        self.bucket_key = bucket_key
        self._on_drag_start = on_drag_start
        self._on_drag_over = on_drag_over
        self._on_drop = on_drop
        self._on_drag_cancel = on_drag_cancel
        self._last_over: str | None = None
        self._h_margin = 6
        self._v_margin = 8
        self.setAcceptDrops(True)
        self.setDragEnabled(True)
        self.setDropIndicatorShown(False)
        self.setDragDropMode(QAbstractItemView.DragDrop)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self._update_viewport_margins()

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self.sync_item_sizes()

    def _update_viewport_margins(self) -> None:
        scrollbar_width = self.verticalScrollBar().width() or self.verticalScrollBar().sizeHint().width()
        right_margin = self._h_margin + (scrollbar_width if self.verticalScrollBar().isVisible() else 0)
        self.setViewportMargins(self._h_margin, self._v_margin, right_margin, self._v_margin)

    def sync_item_sizes(self) -> None:
        self._update_viewport_margins()
        viewport_width = self.viewport().width()
        for index in range(self.count()):
            item = self.item(index)
            widget = self.itemWidget(item)
            if widget:
                widget.setMinimumWidth(viewport_width)
                widget.setMaximumWidth(viewport_width)
                widget.adjustSize()
                hint = widget.sizeHint()
                item.setSizeHint(QSize(viewport_width, hint.height()))
                widget.resize(viewport_width, hint.height())

    def set_tasks(self, tasks: tuple[TaskEntity, ...], on_toggle) -> None:
        self.clear()
        for task in tasks:
            item = QListWidgetItem()
            item.setData(Qt.UserRole, task.id)
            widget = TaskItemContainer(TaskCardWidget(task, on_toggle))
            self.addItem(item)
            self.setItemWidget(item, widget)
            item.setSizeHint(widget.sizeHint())
        self.sync_item_sizes()

    def task_at_row(self, row: int) -> TaskEntity | None:
        item = self.item(row)
        if not item:
            return None
        widget = self.itemWidget(item)
        return widget.task if isinstance(widget, TaskItemContainer) else None

    def startDrag(self, supportedActions: Qt.DropActions) -> None:  # type: ignore[name-defined]
        item = self.currentItem()
        if not item:
            return
        task_id = item.data(Qt.UserRole)
        if not task_id:
            return
        active_ref = task_ref(task_id)
        mime = QMimeData()
        mime.setText(active_ref)
        drag = QDrag(self)
        drag.setMimeData(mime)
        self._on_drag_start(active_ref)
        if drag.exec(Qt.MoveAction) == Qt.IgnoreAction:
            self._on_drag_cancel()

    def dragEnterEvent(self, event) -> None:  # type: ignore[override]
        if _task_ref_from_mime(event.mimeData()) is not None:
            self._last_over = None
            event.acceptProposedAction()

    def dragMoveEvent(self, event) -> None:  # type: ignore[override]
        if _task_ref_from_mime(event.mimeData()) is None:
            return
        event.acceptProposedAction()
        over_id = self._over_id(event)
        if over_id != self._last_over:
            self._last_over = over_id
            self._on_drag_over(over_id)

    def dropEvent(self, event) -> None:  # type: ignore[override]
        if _task_ref_from_mime(event.mimeData()) is None:
            return
        over_id = self._over_id(event)
        self._last_over = None
        event.acceptProposedAction()
        self._on_drop(over_id)

    def _over_id(self, event) -> str:
        pos = event.position().toPoint() if hasattr(event, "position") else event.pos()
        item = self.itemAt(pos)
        if item and item.data(Qt.UserRole):
            return task_ref(item.data(Qt.UserRole))
        return self.bucket_key


class ChatMessageWidget(QLabel):
    def __init__(self, message: ChatMessage, parent=None):
        super().__init__(parent)
        speaker = "You" if message.role == ChatRole.USER else "Assistant"
        stamp = message.timestamp.strftime("%H:%M")
        self.setText(f"<b>{speaker}</b> <span>{stamp}</span><br>{escape(message.content)}")
        self.setTextFormat(Qt.RichText)
        self.setWordWrap(True)
        self.setProperty("role", message.role.value)
        self.setObjectName("ChatMessage")
