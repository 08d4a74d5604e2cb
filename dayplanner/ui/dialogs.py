from __future__ import annotations

from datetime import date

from PySide6.QtCore import QDate, Qt
from PySide6.QtWidgets import (
    QAbstractSpinBox,
    QDateEdit,
    QDialog,
    QFrame,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QTextEdit,
    QVBoxLayout,
)

from dayplanner.config import SETTINGS
from dayplanner.domain.entities import ProjectRef, TaskEntity
from dayplanner.domain.errors import PlannerError, TaskValidationError
from dayplanner.services.suggestions import PreviewData

from .widgets import format_minutes


class TaskEditDialog(QDialog):
    """Create or edit a single task.

    ``on_save`` receives the edited entity and may raise; validation errors
    are shown inline and keep the dialog open.
    """

    def __init__(
        self,
        task: TaskEntity | None,
        default_date: date,
        projects: list[ProjectRef],
        on_save,
        on_delete=None,
        on_create_project=None,
        parent=None,
    ):
        super().__init__(parent)
        self.task = task
        self._on_save = on_save
        self._on_delete = on_delete
        self._on_create_project = on_create_project

        self.setWindowTitle("Edit Task" if task and task.id is not None else "New Task")
        self.setObjectName("TaskEditDialog")
        self.resize(440, 560)

        self.title_input = QLineEdit(task.title if task else "")
        self.title_input.setPlaceholderText("Task title")

        self.description_input = QTextEdit()
        self.description_input.setPlaceholderText("Description")
        self.description_input.setMaximumHeight(100)
        self.description_input.setPlainText(task.description if task else "")

        self.notes_input = QTextEdit()
        self.notes_input.setPlaceholderText("Notes")
        self.notes_input.setMaximumHeight(80)
        self.notes_input.setPlainText((task.notes or "") if task else "")

        current = task.date if task else default_date
        self.date_input = QDateEdit()
        self.date_input.setCalendarPopup(True)
        self.date_input.setDate(QDate(current.year, current.month, current.day))

        self.estimate_input = QSpinBox()
        self.estimate_input.setRange(0, 24 * 60)
        self.estimate_input.setSingleStep(15)
        self.estimate_input.setSuffix(" min")
        self.estimate_input.setButtonSymbols(QAbstractSpinBox.UpDownArrows)
        self.estimate_input.setValue(task.estimated_time if task else SETTINGS.default_estimate_min)

        self.project_list = QListWidget()
        self.project_list.setObjectName("ProjectPicker")
        self.project_list.setMaximumHeight(140)
        selected = task.projects if task else ()
        for project in projects:
            self._add_project_item(project, any(project.matches(ref) for ref in selected))

        new_project_button = QPushButton("New project")
        new_project_button.setProperty("variant", "ghost")
        new_project_button.clicked.connect(self.add_project)

        self.error_label = QLabel("")
        self.error_label.setObjectName("FormError")
        self.error_label.setWordWrap(True)
        self.error_label.setVisible(False)

        save_button = QPushButton("Save")
        save_button.clicked.connect(self.save)

        cancel_button = QPushButton("Cancel")
        cancel_button.setProperty("variant", "secondary")
        cancel_button.clicked.connect(self.reject)

        buttons = QHBoxLayout()
        buttons.setSpacing(8)
        if task and task.id is not None and on_delete:
            delete_button = QPushButton("Delete")
            delete_button.setProperty("variant", "danger")
            delete_button.clicked.connect(self.delete)
            buttons.addWidget(delete_button)
        buttons.addStretch()
        buttons.addWidget(cancel_button)
        buttons.addWidget(save_button)

        projects_header = QHBoxLayout()
        projects_label = QLabel("Projects")
        projects_label.setProperty("class", "section-title")
        projects_header.addWidget(projects_label)
        projects_header.addStretch()
        projects_header.addWidget(new_project_button)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(8)
        layout.addWidget(QLabel("Title"))
        layout.addWidget(self.title_input)
        layout.addWidget(QLabel("Description"))
        layout.addWidget(self.description_input)
        layout.addWidget(QLabel("Notes"))
        layout.addWidget(self.notes_input)

        row = QHBoxLayout()
        date_col = QVBoxLayout()
        date_col.addWidget(QLabel("Date"))
        date_col.addWidget(self.date_input)
        estimate_col = QVBoxLayout()
        estimate_col.addWidget(QLabel("Estimated time"))
        estimate_col.addWidget(self.estimate_input)
        row.addLayout(date_col)
        row.addLayout(estimate_col)
        layout.addLayout(row)

        layout.addLayout(projects_header)
        layout.addWidget(self.project_list)
        layout.addWidget(self.error_label)
        layout.addLayout(buttons)

    def _add_project_item(self, project: ProjectRef, checked: bool) -> None:
        item = QListWidgetItem(project.name)
        item.setData(Qt.UserRole, project)
        item.setFlags(item.flags() | Qt.ItemIsUserCheckable)
        item.setCheckState(Qt.Checked if checked else Qt.Unchecked)
        self.project_list.addItem(item)

    def selected_projects(self) -> tuple[ProjectRef, ...]:
        refs = []
        for index in range(self.project_list.count()):
            item = self.project_list.item(index)
            if item.checkState() == Qt.Checked:
                refs.append(item.data(Qt.UserRole))
        return tuple(refs)

    def add_project(self) -> None:
        name, ok = QInputDialog.getText(self, "New project", "Project name")
        if not ok or not name.strip():
            return
        if self._on_create_project is None:
            project = ProjectRef(name=name.strip())
        else:
            try:
                project = self._on_create_project(name)
            except PlannerError as exc:
                self.show_error(str(exc))
                return
        for index in range(self.project_list.count()):
            item = self.project_list.item(index)
            if item.data(Qt.UserRole).matches(project):
                item.setCheckState(Qt.Checked)
                return
        self._add_project_item(project, True)

    def build_task(self) -> TaskEntity:
        notes = self.notes_input.toPlainText().strip()
        values = {
            "title": self.title_input.text().strip(),
            "description": self.description_input.toPlainText().strip(),
            "notes": notes or None,
            "date": self.date_input.date().toPython(),
            "estimated_time": self.estimate_input.value(),
            "projects": self.selected_projects(),
        }
        if self.task is None:
            return TaskEntity(id=None, **values)
        return self.task.with_changes(**values)

    def show_error(self, message: str) -> None:
        self.error_label.setText(message)
        self.error_label.setVisible(True)

    def save(self) -> None:
        try:
            self._on_save(self.build_task())
        except TaskValidationError as exc:
            self.show_error(str(exc))
            if exc.field == "title":
                self.title_input.setFocus()
            return
        except PlannerError as exc:
            self.show_error(str(exc))
            return
        self.accept()

    def delete(self) -> None:
        if not self.task or self.task.id is None or not self._on_delete:
            return
        confirm = QMessageBox.question(self, "Delete task", "Delete this task?")
        if confirm != QMessageBox.Yes:
            return
        try:
            self._on_delete(self.task.id)
        except PlannerError as exc:
            self.show_error(str(exc))
            return
        self.accept()


class LoginDialog(QDialog):
    def __init__(self, message: str | None = None, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Sign in")
        self.setObjectName("LoginDialog")
        self.setFixedWidth(340)

        title = QLabel("Day Planner")
        title.setProperty("class", "panel-title")

        self.user_input = QLineEdit()
        self.user_input.setPlaceholderText("User id or email")
        self.user_input.returnPressed.connect(self.accept)

        self.message_label = QLabel(message or "")
        self.message_label.setWordWrap(True)
        self.message_label.setVisible(bool(message))

        sign_in = QPushButton("Sign in")
        sign_in.clicked.connect(self.accept)

        cancel = QPushButton("Quit")
        cancel.setProperty("variant", "ghost")
        cancel.clicked.connect(self.reject)

        buttons = QHBoxLayout()
        buttons.addStretch()
        buttons.addWidget(cancel)
        buttons.addWidget(sign_in)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(8)
        layout.addWidget(title)
        layout.addWidget(self.message_label)
        layout.addWidget(self.user_input)
        layout.addLayout(buttons)

    def user_id(self) -> str:
        return self.user_input.text().strip()


class SuggestionPreviewDialog(QDialog):
    """Read-only overview of what applying the pending suggestions will do."""

    def __init__(self, preview: PreviewData, parent=None):
        super().__init__(parent)
        self.setWindowTitle("AI suggestions")
        self.resize(460, 420)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(8)

        new_projects = preview.new_project_names()
        if new_projects:
            note = QLabel("New projects: " + ", ".join(new_projects))
            note.setWordWrap(True)
            layout.addWidget(note)

        self._add_section(
            layout,
            f"Create ({len(preview.creates)})",
            [_describe(task) for task in preview.creates],
        )
        self._add_section(
            layout,
            f"Update ({len(preview.updates)})",
            [f"{item.original.title} → {_describe(item.updated)}" for item in preview.updates],
        )
        self._add_section(
            layout,
            f"Delete ({len(preview.deletes)})",
            [task.title or f"Task {task.id}" for task in preview.deletes],
        )
        layout.addStretch()

        apply_button = QPushButton("Apply")
        apply_button.clicked.connect(self.accept)
        cancel_button = QPushButton("Cancel")
        cancel_button.setProperty("variant", "secondary")
        cancel_button.clicked.connect(self.reject)

        buttons = QHBoxLayout()
        buttons.addStretch()
        buttons.addWidget(cancel_button)
        buttons.addWidget(apply_button)
        layout.addLayout(buttons)

    def _add_section(self, layout: QVBoxLayout, title: str, lines: list[str]) -> None:
        if not lines:
            return
        header = QLabel(title)
        header.setProperty("class", "section-title")
        layout.addWidget(header)
        card = QFrame()
        card.setObjectName("PreviewCard")
        card_layout = QVBoxLayout(card)
        card_layout.setContentsMargins(10, 8, 10, 8)
        for line in lines:
            label = QLabel(line)
            label.setWordWrap(True)
            card_layout.addWidget(label)
        layout.addWidget(card)


def _describe(task: TaskEntity) -> str:
    parts = [task.title, task.date.strftime("%d.%m.%Y")]
    estimate = format_minutes(task.estimated_time)
    if estimate:
        parts.append(estimate)
    if task.projects:
        parts.append(", ".join(project.name for project in task.projects))
    return " • ".join(parts)
