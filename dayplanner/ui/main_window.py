from __future__ import annotations

import logging
from datetime import date

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from dayplanner.config import SETTINGS
from dayplanner.domain.dates import display_dates, shift
from dayplanner.domain.entities import Notification, TaskEntity
from dayplanner.domain.enums import NotificationLevel
from dayplanner.domain.errors import AuthenticationError, PlannerError
from dayplanner.services.auth import AuthSession
from dayplanner.services.board import BoardState
from dayplanner.services.planner import AIPlanner
from dayplanner.services.session import SessionState
from dayplanner.services.task_service import TaskService

from .dialogs import LoginDialog, SuggestionPreviewDialog, TaskEditDialog
from .widgets import ChatMessageWidget, DayListWidget, format_minutes

logger = logging.getLogger(__name__)

ALL_PROJECTS = None


class DayColumn(QFrame):
    def __init__(self, window: MainWindow, day: date, parent=None):
        super().__init__(parent)
        self.setObjectName("DayColumn")
        self.day = day

        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(6)

        self.title = QLabel()
        self.title.setProperty("class", "column-title")
        self.summary = QLabel()
        self.summary.setProperty("class", "stats")

        add_button = QPushButton("+")
        add_button.setProperty("variant", "ghost")
        add_button.setFixedWidth(32)
        add_button.clicked.connect(lambda: window.new_task(self.day))

        header = QHBoxLayout()
        header.addWidget(self.title)
        header.addStretch()
        header.addWidget(self.summary)
        header.addWidget(add_button)

        self.list = DayListWidget(
            "",
            on_drag_start=window.on_drag_start,
            on_drag_over=window.on_drag_over,
            on_drop=window.on_drop,
            on_drag_cancel=window.on_drag_cancel,
        )
        self.list.setObjectName("DayList")
        self.list.setSpacing(6)
        self.list.itemDoubleClicked.connect(window.on_task_double_clicked)

        layout.addLayout(header)
        layout.addWidget(self.list)
        self.set_day(day)

    def set_day(self, day: date) -> None:
        self.day = day
        self.list.bucket_key = day.isoformat()
        label = "Today" if day == date.today() else day.strftime("%A")
        self.title.setText(f"{label}, {day.strftime('%d %b')}")

    def render(self, tasks: tuple[TaskEntity, ...], on_toggle) -> None:
        self.list.set_tasks(tasks, on_toggle)
        total = sum(task.estimated_time for task in tasks)
        self.summary.setText(format_minutes(total))


class MainWindow(QWidget):
    def __init__(
        self,
        service: TaskService,
        planner: AIPlanner,
        session: SessionState,
        auth: AuthSession,
    ):
        super().__init__()
        self.setWindowTitle("Day Planner")
        self.resize(1320, 780)

        self.service = service
        self.planner = planner
        self.session = session
        self.auth = auth
        self.board = BoardState(session)
        self.columns: list[DayColumn] = []

        main_layout = QHBoxLayout(self)
        main_layout.setContentsMargins(12, 12, 12, 12)

        splitter = QSplitter(Qt.Horizontal)
        main_layout.addWidget(splitter)

        self.sidebar = self._build_sidebar()
        self.center = self._build_center()
        self.chat = self._build_chat_panel()

        splitter.addWidget(self.sidebar)
        splitter.addWidget(self.center)
        splitter.addWidget(self.chat)
        splitter.setStretchFactor(0, 0)
        splitter.setStretchFactor(1, 3)
        splitter.setStretchFactor(2, 1)
        splitter.setSizes([220, 780, 320])

        self.session.subscribe(self.on_notification)
        self.refresh_tasks()

        QShortcut(QKeySequence("Ctrl+N"), self, lambda: self.new_task(self.session.center_date))
        QShortcut(QKeySequence("Ctrl+Left"), self, self.previous_day)
        QShortcut(QKeySequence("Ctrl+Right"), self, self.next_day)

    def _build_sidebar(self) -> QWidget:
        frame = QFrame()
        frame.setObjectName("Sidebar")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)

        title = QLabel("Projects")
        title.setProperty("class", "sidebar-title")
        layout.addWidget(title)

        self.project_list = QListWidget()
        self.project_list.setObjectName("FilterList")
        self.project_list.setSpacing(4)
        self.project_list.currentItemChanged.connect(self.on_project_change)
        layout.addWidget(self.project_list, 1)

        new_project = QPushButton("New project")
        new_project.setProperty("variant", "secondary")
        new_project.clicked.connect(self.new_project)
        layout.addWidget(new_project)

        self.user_label = QLabel("")
        self.user_label.setProperty("class", "stats")
        layout.addWidget(self.user_label)

        sign_out = QPushButton("Sign out")
        sign_out.setProperty("variant", "ghost")
        sign_out.clicked.connect(self.sign_out)
        layout.addWidget(sign_out)
        return frame

    def _build_center(self) -> QWidget:
        frame = QFrame()
        frame.setObjectName("CenterPanel")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(12)

        header = QHBoxLayout()
        prev_button = QPushButton("‹")
        prev_button.setProperty("variant", "secondary")
        prev_button.setFixedWidth(36)
        prev_button.clicked.connect(self.previous_day)

        today_button = QPushButton("Today")
        today_button.setProperty("variant", "secondary")
        today_button.clicked.connect(self.go_today)

        next_button = QPushButton("›")
        next_button.setProperty("variant", "secondary")
        next_button.setFixedWidth(36)
        next_button.clicked.connect(self.next_day)

        self.range_label = QLabel("")
        self.range_label.setProperty("class", "panel-title")

        self.week_label = QLabel("")
        self.week_label.setProperty("class", "stats")

        self.status_label = QLabel("")
        self.status_label.setProperty("class", "stats-badge")

        header.addWidget(prev_button)
        header.addWidget(today_button)
        header.addWidget(next_button)
        header.addSpacing(12)
        header.addWidget(self.range_label)
        header.addStretch()
        header.addWidget(self.week_label)
        header.addWidget(self.status_label)

        self.columns_layout = QHBoxLayout()
        self.columns_layout.setSpacing(10)
        for day in display_dates(self.session.center_date, SETTINGS.visible_days):
            column = DayColumn(self, day)
            self.columns.append(column)
            self.columns_layout.addWidget(column, 1)

        layout.addLayout(header)
        layout.addLayout(self.columns_layout, 1)
        return frame

    def _build_chat_panel(self) -> QWidget:
        frame = QFrame()
        frame.setObjectName("ChatPanel")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)

        title = QLabel("AI Planning Assistant")
        title.setProperty("class", "panel-title")
        layout.addWidget(title)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QFrame.NoFrame)
        scroll.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.chat_scroll = scroll

        self.messages_container = QWidget()
        self.messages_layout = QVBoxLayout(self.messages_container)
        self.messages_layout.setContentsMargins(0, 0, 0, 0)
        self.messages_layout.setSpacing(8)
        self.messages_layout.addStretch()
        scroll.setWidget(self.messages_container)
        layout.addWidget(scroll, 1)

        self.suggestion_bar = QFrame()
        self.suggestion_bar.setObjectName("SuggestionBar")
        bar_layout = QHBoxLayout(self.suggestion_bar)
        bar_layout.setContentsMargins(8, 6, 8, 6)
        self.suggestion_label = QLabel("")
        review_button = QPushButton("Review")
        review_button.clicked.connect(self.review_suggestions)
        discard_button = QPushButton("Discard")
        discard_button.setProperty("variant", "ghost")
        discard_button.clicked.connect(self.discard_suggestions)
        bar_layout.addWidget(self.suggestion_label, 1)
        bar_layout.addWidget(review_button)
        bar_layout.addWidget(discard_button)
        self.suggestion_bar.setVisible(False)
        layout.addWidget(self.suggestion_bar)

        input_row = QHBoxLayout()
        self.chat_input = QLineEdit()
        self.chat_input.setPlaceholderText("Ask the assistant to plan your day")
        self.chat_input.returnPressed.connect(self.send_chat)
        self.send_button = QPushButton("Send")
        self.send_button.clicked.connect(self.send_chat)
        input_row.addWidget(self.chat_input, 1)
        input_row.addWidget(self.send_button)
        layout.addLayout(input_row)
        return frame

    def refresh_tasks(self) -> None:
        try:
            self.service.refresh()
        except AuthenticationError as exc:
            self.handle_auth_error(exc)
            return
        except PlannerError as exc:
            QMessageBox.warning(self, "Error", f"Failed to load tasks.\n{exc}")
        self.refresh_projects()
        self.reload_board()

    def refresh_projects(self) -> None:
        selected = self.session.selected_project_id
        self.project_list.blockSignals(True)
        self.project_list.clear()
        all_item = QListWidgetItem("All projects")
        all_item.setData(Qt.UserRole, ALL_PROJECTS)
        self.project_list.addItem(all_item)
        current = all_item
        for project in self.service.list_projects():
            item = QListWidgetItem(project.name)
            item.setData(Qt.UserRole, project.id)
            self.project_list.addItem(item)
            if project.id == selected:
                current = item
        self.project_list.setCurrentItem(current)
        self.project_list.blockSignals(False)
        self.user_label.setText(f"Signed in as {self.auth.user_id or '-'}")

    def reload_board(self) -> None:
        dates = display_dates(self.session.center_date, SETTINGS.visible_days)
        for column, day in zip(self.columns, dates):
            column.set_day(day)
        self.range_label.setText(f"{dates[0].strftime('%d %b')} - {dates[-1].strftime('%d %b %Y')}")
        self.board.load(self.service.tasks, dates, self.session.selected_project_id)
        self.render_board()
        self.render_week_summary()

    def render_board(self) -> None:
        for column in self.columns:
            tasks = self.board.buckets.get(column.list.bucket_key, ())
            column.render(tasks, self.on_toggle_completed)

    def render_week_summary(self) -> None:
        week = self.service.tasks_for_week(self.session.center_date)
        done = sum(1 for task in week if task.completed)
        minutes = sum(task.estimated_time for task in week)
        self.week_label.setText(f"Week: {done}/{len(week)} done, {format_minutes(minutes) or '0m'}")

    def on_project_change(self, current: QListWidgetItem | None) -> None:
        if not current:
            return
        self.session.selected_project_id = current.data(Qt.UserRole)
        self.reload_board()

    def previous_day(self) -> None:
        self._move_center(shift(self.session.center_date, -1))

    def next_day(self) -> None:
        self._move_center(shift(self.session.center_date, 1))

    def go_today(self) -> None:
        self._move_center(date.today())

    def _move_center(self, center: date) -> None:
        if self.board.is_dragging:
            return
        self.session.center_date = center
        self.reload_board()

    def on_drag_start(self, active_id: str) -> None:
        self.board.start_drag(active_id)

    def on_drag_over(self, over_id: str) -> None:
        if self.board.drag_over(over_id):
            self.render_board()

    def on_drop(self, over_id: str) -> None:
        if self.board.commit(self.service, over_id):
            self.refresh_tasks()
        else:
            self.render_board()

    def on_drag_cancel(self) -> None:
        if not self.board.is_dragging:
            return
        self.board.cancel_drag()
        self.render_board()

    def on_task_double_clicked(self, item: QListWidgetItem) -> None:
        task_id = item.data(Qt.UserRole)
        task = self.service.get_task(task_id) if task_id else None
        if task is None:
            return
        self._open_task_dialog(task, task.date)

    def new_task(self, day: date) -> None:
        self._open_task_dialog(None, day)

    def _open_task_dialog(self, task: TaskEntity | None, day: date) -> None:
        dialog = TaskEditDialog(
            task,
            day,
            self.service.list_projects(),
            on_save=self._save_task,
            on_delete=self._delete_task,
            on_create_project=self.service.create_project,
            parent=self,
        )
        dialog.exec()
        self.refresh_tasks()

    def _save_task(self, task: TaskEntity) -> None:
        if task.id is None and not task.order:
            task = task.with_changes(order=self.service.next_order(task.date))
        self.service.save_task(task)

    def _delete_task(self, task_id: int) -> None:
        self.service.delete_task(task_id)

    def on_toggle_completed(self, task_id: int) -> None:
        try:
            self.service.toggle_completed(task_id)
        except PlannerError:
            logger.exception("Failed to toggle task %s", task_id)
        QTimer.singleShot(0, self.reload_board)

    def new_project(self) -> None:
        name, ok = QInputDialog.getText(self, "New project", "Project name")
        if not ok or not name.strip():
            return
        try:
            self.service.create_project(name)
        except PlannerError as exc:
            QMessageBox.warning(self, "Error", str(exc))
            return
        self.refresh_projects()

    def send_chat(self) -> None:
        text = self.chat_input.text().strip()
        if not text or self.planner.is_loading:
            return
        self.chat_input.clear()
        self.send_button.setEnabled(False)
        try:
            self.planner.send_message(text, self.session.center_date)
        finally:
            self.send_button.setEnabled(True)
        self.render_chat()

    def render_chat(self) -> None:
        while self.messages_layout.count() > 1:
            item = self.messages_layout.takeAt(0)
            widget = item.widget()
            if widget:
                widget.deleteLater()
        for message in self.planner.messages:
            self.messages_layout.insertWidget(self.messages_layout.count() - 1, ChatMessageWidget(message))
        bar = self.chat_scroll.verticalScrollBar()
        bar.setValue(bar.maximum())

        pending = self.planner.pending
        if pending is None or pending.is_empty:
            self.suggestion_bar.setVisible(False)
            return
        self.suggestion_label.setText(
            f"{len(pending.create)} new, {len(pending.update)} updated, {len(pending.delete)} deleted"
        )
        self.suggestion_bar.setVisible(True)

    def review_suggestions(self) -> None:
        if self.planner.pending is None or self.board.is_dragging:
            return
        dialog = SuggestionPreviewDialog(self.planner.preview(), self)
        if dialog.exec():
            self.planner.apply_pending()
            self.refresh_tasks()
        self.render_chat()

    def discard_suggestions(self) -> None:
        self.planner.cancel_pending()
        self.render_chat()

    def on_notification(self, notification: Notification) -> None:
        if notification.level == NotificationLevel.ERROR:
            QMessageBox.warning(self, "Error", notification.message)
            return
        self.status_label.setText(notification.message)

    def sign_out(self) -> None:
        self.auth.sign_out()
        self.handle_auth_error(AuthenticationError("Signed out"))

    def handle_auth_error(self, exc: AuthenticationError) -> None:
        logger.warning("Authentication required: %s", exc)
        dialog = LoginDialog(str(exc), self)
        if not dialog.exec():
            self.close()
            return
        try:
            self.auth.sign_in(dialog.user_id())
        except AuthenticationError as retry:
            self.handle_auth_error(retry)
            return
        self.session.unsubscribe(self.on_notification)
        self.session.subscribe(self.on_notification)
        self.render_chat()
        self.refresh_tasks()

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self.session.unsubscribe(self.on_notification)
        super().closeEvent(event)
