from __future__ import annotations

import logging
import sys
from pathlib import Path

from PySide6.QtGui import QColor, QFont, QPalette
from PySide6.QtWidgets import QApplication, QMessageBox, QStyleFactory

from dayplanner.config import PROJECT_ROOT, SETTINGS
from dayplanner.domain.errors import AuthenticationError
from dayplanner.infra.copilot import PlanningCopilot
from dayplanner.infra.db import init_db
from dayplanner.infra.logging import setup_logging
from dayplanner.infra.repository import ProjectRepository, TaskRepository
from dayplanner.services.auth import AuthSession
from dayplanner.services.planner import AIPlanner
from dayplanner.services.session import SessionState
from dayplanner.services.task_service import TaskService
from dayplanner.ui.dialogs import LoginDialog
from dayplanner.ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def _apply_dark_palette(app: QApplication) -> None:
    palette = QPalette()
    palette.setColor(QPalette.Window, QColor("#0F172A"))
    palette.setColor(QPalette.WindowText, QColor("#E6EDF3"))
    palette.setColor(QPalette.Base, QColor("#111827"))
    palette.setColor(QPalette.AlternateBase, QColor("#1B2230"))
    palette.setColor(QPalette.Text, QColor("#E6EDF3"))
    palette.setColor(QPalette.Button, QColor("#202A3B"))
    palette.setColor(QPalette.ButtonText, QColor("#E6EDF3"))
    palette.setColor(QPalette.ToolTipBase, QColor("#1B2230"))
    palette.setColor(QPalette.ToolTipText, QColor("#E6EDF3"))
    palette.setColor(QPalette.Highlight, QColor("#2563EB"))
    palette.setColor(QPalette.HighlightedText, QColor("#FFFFFF"))
    app.setPalette(palette)


def _find_qss_path() -> Path | None:
    candidates = [
        Path(__file__).resolve().parent / "ui" / "styles.qss",
        PROJECT_ROOT / "dayplanner" / "ui" / "styles.qss",
    ]
    meipass = getattr(sys, "_MEIPASS", None)
    if meipass:
        candidates.append(Path(meipass) / "dayplanner" / "ui" / "styles.qss")

    for path in candidates:
        if path.exists():
            return path
    return None


def load_styles(app: QApplication) -> None:
    qss_path = _find_qss_path()
    if not qss_path:
        return
    app.setStyleSheet(qss_path.read_text(encoding="utf-8"))


def _sign_in(auth: AuthSession) -> bool:
    message = None
    while True:
        try:
            auth.require_user()
            return True
        except AuthenticationError as exc:
            dialog = LoginDialog(message or str(exc))
            if not dialog.exec():
                return False
            try:
                auth.sign_in(dialog.user_id())
            except AuthenticationError as retry:
                message = str(retry)


def main() -> None:
    setup_logging()
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        app = QApplication(sys.argv)
        QMessageBox.critical(None, "DB error", str(exc))
        return

    app = QApplication(sys.argv)
    app.setStyle(QStyleFactory.create("Fusion"))
    _apply_dark_palette(app)
    app.setFont(QFont("Segoe UI", 10))
    load_styles(app)

    session = SessionState()
    auth = AuthSession(session, SETTINGS.user_id)
    if not _sign_in(auth):
        logger.info("Sign in cancelled")
        return

    service = TaskService(TaskRepository(), ProjectRepository(), session)
    planner = AIPlanner(PlanningCopilot(), service, session)

    window = MainWindow(service, planner, session, auth)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
