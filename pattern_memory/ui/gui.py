"""
PyQt5 GUI Interface for Pattern Memory

This module implements the desktop drawing surface including:
- 3x3 pattern grid with pointer drawing and outcome colouring
- Tested / invalid / remaining statistics
- Yes / no judgment prompt for a finished pattern
- Export and reset controls
"""

import sys
from typing import Callable, Optional, Set

from PyQt5.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGridLayout,
    QLabel, QPushButton, QFrame, QMessageBox, QFileDialog, QSizePolicy
)
from PyQt5.QtCore import Qt, QTimer, QPointF, QSize, QObject, QCoreApplication
from PyQt5.QtGui import QFont, QColor, QPainter, QPen, QBrush

from ..interfaces import (
    IScheduler, ScheduledTask, SessionState, Outcome, PatternMemoryException
)
from ..engine.geometry import DotLocator
from ..models.session import SessionSnapshot
from ..services.session_controller import SessionController
from ..services.exporter import PatternExporter
from ..logging_system import setup_logging, ActivityLog
from ..config import ConfigManager, InputSettings, config_manager


OUTCOME_COLORS = {
    None: QColor("#1f2937"),
    Outcome.INVALID: QColor("#ef4444"),
    Outcome.VALID: QColor("#22c55e"),
    Outcome.DUPLICATE: QColor("#f59e0b"),
}
IDLE_DOT_BORDER = QColor("#9ca3af")
DOT_RADIUS = 6
ACTIVE_DOT_RADIUS = 9
LINE_WIDTH = 4


class QtTask(ScheduledTask):
    """
    Single-shot QTimer wrapped as a scheduled task

    The timer is owned by a parent QObject and released with deleteLater
    once the task has fired or been cancelled, so its deletion waits for
    the event loop even when requested from its own timeout slot.
    """

    def __init__(self,
                 delay: float,
                 callback: Callable[[], None],
                 parent: Optional[QObject] = None,
                 on_finished: Optional[Callable[['QtTask'], None]] = None):
        self._callback = callback
        self._on_finished = on_finished
        self._active = True
        self._timer = QTimer(parent)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._fire)
        self._timer.start(int(delay * 1000))

    def _fire(self):
        if not self._active:
            return
        self._active = False
        try:
            self._callback()
        finally:
            self._finish()

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._timer.stop()
        self._finish()

    def _finish(self):
        self._timer.deleteLater()
        if self._on_finished is not None:
            self._on_finished(self)

    @property
    def active(self) -> bool:
        return self._active


class QtScheduler(IScheduler):
    """Runs delayed callbacks on the Qt event loop"""

    def __init__(self, parent: Optional[QObject] = None):
        self.parent = parent or QCoreApplication.instance()
        self._pending: Set[QtTask] = set()

    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = QtTask(delay, callback, self.parent, on_finished=self._pending.discard)
        self._pending.add(task)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)


class PatternGridWidget(QWidget):
    """Drawing surface for the 3x3 grid; renders controller snapshots"""

    def __init__(self, controller: SessionController, input_settings: InputSettings, parent=None):
        super().__init__(parent)
        self.controller = controller
        self.input_settings = input_settings
        self.snapshot = controller.snapshot()
        self.pointer_pos: Optional[QPointF] = None
        self.locator = self._build_locator()

        self.setMouseTracking(False)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        controller.subscribe(self.on_snapshot)

    def sizeHint(self) -> QSize:
        side = int(2 * self.input_settings.dot_spacing + 2 * self.input_settings.grid_margin)
        return QSize(side, side)

    def minimumSizeHint(self) -> QSize:
        return self.sizeHint()

    def _build_locator(self) -> DotLocator:
        spacing = self.input_settings.dot_spacing
        origin = (self.width() / 2 - spacing, self.height() / 2 - spacing)
        return DotLocator.from_grid(origin, spacing, self.input_settings.hit_tolerance)

    def resizeEvent(self, event):
        self.locator = self._build_locator()
        super().resizeEvent(event)

    def on_snapshot(self, snapshot: SessionSnapshot):
        self.snapshot = snapshot
        if snapshot.state != SessionState.DRAWING:
            self.pointer_pos = None
        self.update()

    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton:
            return super().mousePressEvent(event)

        dot = self.locator.locate(event.x(), event.y())
        if dot is not None:
            self.pointer_pos = QPointF(event.pos())
            self.controller.pointer_down(dot)
        event.accept()

    def mouseMoveEvent(self, event):
        if self.controller.state != SessionState.DRAWING:
            return

        self.pointer_pos = QPointF(event.pos())
        dot = self.locator.locate(event.x(), event.y())
        if not self.controller.pointer_move(dot):
            self.update()

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.LeftButton:
            self.pointer_pos = None
            self.controller.pointer_up()
        event.accept()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)

        sequence = self.snapshot.sequence
        color = OUTCOME_COLORS.get(self.snapshot.outcome, OUTCOME_COLORS[None])

        if sequence:
            pen = QPen(color, LINE_WIDTH)
            pen.setCapStyle(Qt.RoundCap)
            pen.setJoinStyle(Qt.RoundJoin)
            painter.setPen(pen)

            points = [QPointF(x, y) for x, y in self.locator.path_points(list(sequence))]
            if self.pointer_pos is not None and self.snapshot.state == SessionState.DRAWING:
                points.append(self.pointer_pos)
            for start, end in zip(points, points[1:]):
                painter.drawLine(start, end)

        for dot in range(9):
            x, y = self.locator.center_of(dot)
            if dot in sequence:
                painter.setPen(QPen(color, 2))
                painter.setBrush(QBrush(color))
                radius = ACTIVE_DOT_RADIUS
            else:
                painter.setPen(QPen(IDLE_DOT_BORDER, 2))
                painter.setBrush(QBrush(Qt.white))
                radius = DOT_RADIUS
            painter.drawEllipse(QPointF(x, y), radius, radius)

        painter.end()


class StatBox(QFrame):
    """Number with a caption"""

    def __init__(self, caption: str, parent=None):
        super().__init__(parent)
        self.setFrameShape(QFrame.StyledPanel)
        layout = QVBoxLayout()

        self.value_label = QLabel("0")
        self.value_label.setAlignment(Qt.AlignCenter)
        self.value_label.setFont(QFont("Arial", 16, QFont.Bold))
        layout.addWidget(self.value_label)

        caption_label = QLabel(caption)
        caption_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(caption_label)
        self.setLayout(layout)

    def set_value(self, value: int):
        self.value_label.setText(f"{value:,}")


class PatternMemoryWindow(QMainWindow):
    """Main window: statistics, drawing grid, judgment prompt and controls"""

    STATUS_MESSAGES = {
        Outcome.DUPLICATE: ("Already Tested", "You've marked this pattern as incorrect before", "#f59e0b"),
        Outcome.VALID: ("Pattern Found!", "This is your correct pattern", "#22c55e"),
        Outcome.INVALID: ("Pattern Marked Invalid", "This pattern won't be suggested again", "#ef4444"),
    }

    def __init__(self, controller: SessionController, config: ConfigManager):
        super().__init__()
        self.controller = controller
        self.config = config
        self.exporter = PatternExporter(config.storage_settings.export_directory)
        self.setup_ui()
        controller.subscribe(self.on_snapshot)
        self.on_snapshot(controller.snapshot())

    def setup_ui(self):
        """Setup main window UI"""
        self.setWindowTitle("Pattern Memory Test")

        central = QWidget()
        layout = QVBoxLayout()

        title = QLabel("Pattern Memory Test")
        title.setAlignment(Qt.AlignCenter)
        title.setFont(QFont("Arial", 18, QFont.Bold))
        layout.addWidget(title)

        subtitle = QLabel("Test patterns systematically to find your forgotten lock")
        subtitle.setAlignment(Qt.AlignCenter)
        layout.addWidget(subtitle)

        stats_layout = QGridLayout()
        self.tested_box = StatBox("Tested")
        self.invalid_box = StatBox("Invalid")
        self.remaining_box = StatBox("Remaining")
        stats_layout.addWidget(self.tested_box, 0, 0)
        stats_layout.addWidget(self.invalid_box, 0, 1)
        stats_layout.addWidget(self.remaining_box, 0, 2)
        layout.addLayout(stats_layout)

        self.grid_widget = PatternGridWidget(self.controller, self.config.input_settings)
        layout.addWidget(self.grid_widget, stretch=1)

        self.status_label = QLabel("")
        self.status_label.setAlignment(Qt.AlignCenter)
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)

        # Judgment prompt
        self.judgment_frame = QFrame()
        self.judgment_frame.setFrameShape(QFrame.StyledPanel)
        judgment_layout = QVBoxLayout()
        question = QLabel("Is this your correct pattern?")
        question.setAlignment(Qt.AlignCenter)
        question.setFont(QFont("Arial", 11, QFont.Bold))
        judgment_layout.addWidget(question)
        hint = QLabel("Hold any dot to draw again")
        hint.setAlignment(Qt.AlignCenter)
        judgment_layout.addWidget(hint)

        buttons = QHBoxLayout()
        self.no_button = QPushButton("No")
        self.no_button.setStyleSheet("background-color: #dc2626; color: white; padding: 8px;")
        self.no_button.clicked.connect(self.controller.mark_invalid)
        buttons.addWidget(self.no_button)
        self.yes_button = QPushButton("Yes")
        self.yes_button.setStyleSheet("background-color: #16a34a; color: white; padding: 8px;")
        self.yes_button.clicked.connect(self.controller.mark_valid)
        buttons.addWidget(self.yes_button)
        judgment_layout.addLayout(buttons)
        self.judgment_frame.setLayout(judgment_layout)
        layout.addWidget(self.judgment_frame)

        self.instructions_label = QLabel("Draw a pattern by connecting at least 4 dots. Release to test.")
        self.instructions_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(self.instructions_label)

        controls = QHBoxLayout()
        self.export_button = QPushButton("Export")
        self.export_button.clicked.connect(self.export_patterns)
        controls.addWidget(self.export_button)
        self.reset_button = QPushButton("Reset")
        self.reset_button.clicked.connect(self.reset_patterns)
        controls.addWidget(self.reset_button)
        layout.addLayout(controls)

        privacy = QLabel("All patterns are stored locally on your device only.\n"
                         "No data is ever uploaded or shared.")
        privacy.setAlignment(Qt.AlignCenter)
        privacy.setStyleSheet("color: #6b7280; font-size: 10px;")
        layout.addWidget(privacy)

        central.setLayout(layout)
        self.setCentralWidget(central)

    def on_snapshot(self, snapshot: SessionSnapshot):
        self.tested_box.set_value(snapshot.tested_count)
        self.invalid_box.set_value(snapshot.invalid_count)
        self.remaining_box.set_value(snapshot.remaining)

        message = self.STATUS_MESSAGES.get(snapshot.outcome)
        if message and snapshot.state == SessionState.RESOLVED:
            heading, detail, color = message
            self.status_label.setText(f"<b>{heading}</b><br>{detail}")
            self.status_label.setStyleSheet(f"border: 1px solid {color}; padding: 8px;")
            self.status_label.show()
        else:
            self.status_label.hide()

        self.judgment_frame.setVisible(snapshot.awaiting_validation)
        self.instructions_label.setVisible(not snapshot.awaiting_validation and not snapshot.sequence)

        has_history = snapshot.rejected_count > 0
        self.export_button.setEnabled(has_history)
        self.reset_button.setEnabled(has_history)

    def mousePressEvent(self, event):
        # Presses that no child widget handled land on the background
        self.controller.dismiss()
        super().mousePressEvent(event)

    def export_patterns(self):
        """Export rejected patterns to a JSON file"""
        default_path = str(self.exporter.export_directory / "pattern-memory.json")
        filename, _ = QFileDialog.getSaveFileName(
            self, "Export Patterns", default_path, "JSON Files (*.json)")
        if not filename:
            return

        try:
            path = self.exporter.export(self.controller, filename)
            QMessageBox.information(self, "Export Complete", f"Patterns exported to:\n{path}")
        except PatternMemoryException as e:
            QMessageBox.critical(self, "Export Error", e.message)

    def reset_patterns(self):
        """Delete all saved patterns after confirmation"""
        reply = QMessageBox.question(
            self, "Reset",
            "Delete all saved patterns? This cannot be undone.",
            QMessageBox.Yes | QMessageBox.No,
            QMessageBox.No
        )
        self.controller.reset(confirmed=reply == QMessageBox.Yes)


def main(config: Optional[ConfigManager] = None) -> int:
    """Main entry point for GUI"""
    config = config or config_manager
    logging_settings = config.logging_settings
    setup_logging(logging_settings.level, logging_settings.log_directory)

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName("Pattern Memory")

    controller = SessionController.from_config(config, scheduler=QtScheduler(app))
    if logging_settings.activity_log:
        activity_log = ActivityLog(logging_settings.log_directory,
                                   encrypt_logs=logging_settings.encrypt_activity_log)
        activity_log.attach(controller)

    window = PatternMemoryWindow(controller, config)
    window.show()
    return app.exec_()


if __name__ == '__main__':
    sys.exit(main())
