"""
Legendary Injector - GUI (PySide6)

Stand-alone host for the injector: lists legendary's installed games, exposes
the plugin's commands as a menu, and runs dumps/installs on a worker thread.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject, Qt, QThread, Signal, QSettings
from PySide6.QtGui import QAction, QColor, QFont
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMenu,
    QMessageBox,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QSplitter,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from injector import SERVICE_NAME, VERSION, Command, LegendaryInjector, legendary_config_dir
from installed_record import InstalledRecord

# ── Default Paths ─────────────────────────────────────────────────────

DEFAULT_GAME_DIR = str(Path.home() / "Games")


# ── Worker Thread ─────────────────────────────────────────────────────

class WorkerThread(QThread):
    """Run a blocking operation off the main thread."""

    finished_signal = Signal(bool, str)  # success, message

    def __init__(self, func, *args, **kwargs):
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs

    def run(self):
        try:
            result = self.func(*self.args, **self.kwargs)
            if isinstance(result, tuple) and len(result) == 2:
                self.finished_signal.emit(result[0], result[1])
            else:
                self.finished_signal.emit(True, "Done")
        except Exception as e:
            self.finished_signal.emit(False, str(e))


# ── Host Bridge ───────────────────────────────────────────────────────

class QtHost(QObject):
    """HostBridge backed by Qt dialogs.

    Prompts may be raised from the worker thread, so they are forwarded as
    signals; Qt queues cross-thread emissions onto the main thread.  Pickers
    are only ever called from menu actions, i.e. on the main thread.
    """

    prompt_signal = Signal(str)
    dismissible_signal = Signal(str)
    reload_signal = Signal()

    def __init__(self, window: QWidget, game_dir: str):
        super().__init__(window)
        self._window = window
        self.game_dir = game_dir

    def show_text_prompt(self, message: str) -> None:
        self.prompt_signal.emit(message)

    def show_dismissible_text_prompt(self, message: str) -> None:
        self.dismissible_signal.emit(message)

    def pick_folder(self, title: str, label: str, action_label: str) -> Optional[str]:
        d = QFileDialog.getExistingDirectory(self._window, title)
        return d or None

    def pick_file(self, title: str, label: str, action_label: str) -> Optional[str]:
        path, _ = QFileDialog.getOpenFileName(
            self._window, title, "", f"{label} (*.zip);;All files (*)"
        )
        return path or None

    def reload_games(self) -> None:
        self.reload_signal.emit()


# ── Settings Dialog ───────────────────────────────────────────────────

class SettingsDialog(QDialog):
    def __init__(self, legendary_dir: str, game_dir: str, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setMinimumWidth(500)

        layout = QVBoxLayout(self)

        # legendary config directory
        group1 = QGroupBox("Legendary Directory (holds installed.json and metadata/)")
        g1_layout = QHBoxLayout(group1)
        self.legendary_dir_label = QLabel(legendary_dir or "(not set)")
        self.legendary_dir_label.setWordWrap(True)
        g1_layout.addWidget(self.legendary_dir_label, 1)
        btn1 = QPushButton("Browse...")
        btn1.clicked.connect(self._browse_legendary)
        g1_layout.addWidget(btn1)
        layout.addWidget(group1)

        # Game directory
        group2 = QGroupBox("Game Directory (installed zips are extracted here)")
        g2_layout = QHBoxLayout(group2)
        self.game_dir_label = QLabel(game_dir or "(not set)")
        self.game_dir_label.setWordWrap(True)
        g2_layout.addWidget(self.game_dir_label, 1)
        btn2 = QPushButton("Browse...")
        btn2.clicked.connect(self._browse_game)
        g2_layout.addWidget(btn2)
        layout.addWidget(group2)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

        self._legendary_dir = legendary_dir
        self._game_dir = game_dir

    def _browse_legendary(self):
        d = QFileDialog.getExistingDirectory(self, "Select legendary Config Directory")
        if d:
            self._legendary_dir = d
            self.legendary_dir_label.setText(d)

    def _browse_game(self):
        d = QFileDialog.getExistingDirectory(self, "Select Game Directory")
        if d:
            self._game_dir = d
            self.game_dir_label.setText(d)

    def get_values(self) -> tuple[str, str]:
        return self._legendary_dir, self._game_dir


# ── Main Window ───────────────────────────────────────────────────────

class MainWindow(QMainWindow):
    # Signal used to safely append log messages from background threads.
    _log_message = Signal(str)

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        legendary_dir_override: str | None = None,
        game_dir_override: str | None = None,
        settings_org: str = "LegendaryInjector",
        settings_app: str = "LegendaryInjector",
        persist_settings: bool = True,
    ):
        super().__init__()
        self._logger = logger or logging.getLogger("linjector")
        self.setWindowTitle(f"{SERVICE_NAME} {VERSION}")
        self.setMinimumSize(800, 500)

        self._persist_settings = persist_settings
        self.settings = QSettings(settings_org, settings_app)
        stored_legendary_dir = self.settings.value(
            "legendary_dir", str(legendary_config_dir()), type=str
        )
        stored_game_dir = self.settings.value("game_dir", DEFAULT_GAME_DIR, type=str)
        self.legendary_dir = (
            legendary_dir_override if legendary_dir_override is not None else stored_legendary_dir
        )
        self.game_dir = game_dir_override if game_dir_override is not None else stored_game_dir

        self.host = QtHost(self, self.game_dir)
        self.host.prompt_signal.connect(self._on_prompt)
        self.host.dismissible_signal.connect(self._on_dismissible)
        self.host.reload_signal.connect(self._refresh)

        self.injector: Optional[LegendaryInjector] = None
        self.worker: Optional[WorkerThread] = None

        self._build_ui()
        self._log_message.connect(self.log_text.appendPlainText)
        self._init_injector()

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)

        self.commands_menu = QMenu(SERVICE_NAME, self)
        self.menuBar().addMenu(self.commands_menu)

        # ── Toolbar row ───────────────────────────────────────────────
        toolbar = QHBoxLayout()

        self.settings_btn = QPushButton("⚙ Settings")
        self.settings_btn.clicked.connect(self._open_settings)
        toolbar.addWidget(self.settings_btn)

        self.refresh_btn = QPushButton("🔄 Refresh")
        self.refresh_btn.clicked.connect(self._refresh)
        toolbar.addWidget(self.refresh_btn)

        toolbar.addStretch()

        self.status_label = QLabel()
        toolbar.addWidget(self.status_label)

        main_layout.addLayout(toolbar)

        # ── Splitter: game list | log ─────────────────────────────────
        splitter = QSplitter(Qt.Vertical)

        top_widget = QWidget()
        top_layout = QVBoxLayout(top_widget)
        top_layout.setContentsMargins(0, 0, 0, 0)
        top_layout.addWidget(QLabel("<b>Installed Games</b>"))

        self.tree = QTreeWidget()
        self.tree.setHeaderLabels(["Title", "App Name", "Version", "Size", "Install Path"])
        self.tree.setColumnWidth(0, 240)
        self.tree.setColumnWidth(1, 160)
        self.tree.setColumnWidth(2, 100)
        self.tree.setColumnWidth(3, 80)
        self.tree.setRootIsDecorated(False)
        self.tree.setSelectionMode(QTreeWidget.SingleSelection)
        top_layout.addWidget(self.tree, 1)

        action_row = QHBoxLayout()
        self.dump_btn = QPushButton("📦 Dump Selected")
        self.dump_btn.clicked.connect(self._dump_selected)
        action_row.addWidget(self.dump_btn)

        self.install_btn = QPushButton("📥 Install game via zip")
        self.install_btn.clicked.connect(self._install_from_zip)
        action_row.addWidget(self.install_btn)

        action_row.addStretch()
        top_layout.addLayout(action_row)

        splitter.addWidget(top_widget)

        bottom_widget = QWidget()
        bottom_layout = QVBoxLayout(bottom_widget)
        bottom_layout.setContentsMargins(0, 0, 0, 0)
        bottom_layout.addWidget(QLabel("<b>Log</b>"))

        self.log_text = QPlainTextEdit()
        self.log_text.setReadOnly(True)
        self.log_text.setFont(QFont("Consolas", 9))
        self.log_text.setMaximumBlockCount(5000)
        bottom_layout.addWidget(self.log_text, 1)

        splitter.addWidget(bottom_widget)
        splitter.setChildrenCollapsible(False)
        splitter.setStretchFactor(0, 5)
        splitter.setStretchFactor(1, 2)

        main_layout.addWidget(splitter)

        # ── Progress bar ──────────────────────────────────────────────
        self.progress = QProgressBar()
        self.progress.setVisible(False)
        self.progress.setRange(0, 0)  # indeterminate
        main_layout.addWidget(self.progress)

    # ── Injector Init ─────────────────────────────────────────────────

    def _init_injector(self):
        self.host.game_dir = self.game_dir
        self.injector = LegendaryInjector(
            self.host,
            legendary_dir=self.legendary_dir or None,
            log_callback=self._append_log,
            task_runner=self._run_in_worker,
        )
        self._append_log(f"Using legendary directory: {self.injector.legendary_dir}")
        if not Path(self.game_dir).exists():
            self._append_log(f"Warning: Game directory does not exist yet: {self.game_dir}")
        self.status_label.setText("Ready")
        self._refresh()

    # ── Logging / Prompts ─────────────────────────────────────────────

    def _append_log(self, msg: str):
        self._logger.info(msg)
        self._log_message.emit(msg)

    def _on_prompt(self, message: str):
        self.status_label.setText(message)

    def _on_dismissible(self, message: str):
        QMessageBox.information(self, SERVICE_NAME, message)

    # ── Game List / Menu ──────────────────────────────────────────────

    def _refresh(self):
        if not self.injector:
            return
        commands = self.injector.get_global_commands()
        self._populate_tree(self.injector.installed)
        self._populate_menu(commands)

    def _populate_tree(self, installed: dict[str, InstalledRecord]):
        self.tree.clear()
        for rec in sorted(installed.values(), key=lambda r: (r.title or r.app_name).lower()):
            item = QTreeWidgetItem()
            item.setText(0, rec.title or rec.app_name)
            item.setText(1, rec.app_name)
            item.setText(2, rec.version)
            item.setText(3, f"{rec.install_size / (1024 ** 3):.1f} GB")
            item.setText(4, rec.install_path)
            if not Path(rec.install_path).is_dir():
                item.setForeground(4, QColor("#c62828"))
            item.setData(0, Qt.UserRole, rec)
            self.tree.addTopLevelItem(item)

    def _populate_menu(self, commands: list[Command]):
        self.commands_menu.clear()
        self._add_commands(self.commands_menu, commands)

    def _add_commands(self, menu: QMenu, commands: list[Command]):
        for cmd in commands:
            if cmd.children or cmd.action is None:
                sub = menu.addMenu(cmd.name)
                sub.setEnabled(bool(cmd.children))
                self._add_commands(sub, cmd.children)
            else:
                action = QAction(cmd.name, self)
                action.triggered.connect(lambda _checked=False, cmd=cmd: cmd.action())
                menu.addAction(action)

    # ── Actions ───────────────────────────────────────────────────────

    def _dump_selected(self):
        items = self.tree.selectedItems()
        if not items or not self.injector:
            QMessageBox.information(self, "Nothing Selected", "Select a game to dump first.")
            return
        self.injector.dump_game_menu(items[0].data(0, Qt.UserRole))

    def _install_from_zip(self):
        if self.injector:
            self.injector.extract_game_menu()

    # ── Worker Thread Management ──────────────────────────────────────

    def _run_in_worker(self, func, *args, **kwargs):
        self._set_busy(True)

        self.worker = WorkerThread(func, *args, **kwargs)
        self.worker.finished_signal.connect(self._on_worker_finished)
        self.worker.start()

    def _on_worker_finished(self, success: bool, message: str):
        # The injector already reported the outcome through the host
        self._set_busy(False)
        self._append_log(f"✅ {message}" if success else f"❌ {message}")
        self._refresh()

    def _set_busy(self, busy: bool):
        self.progress.setVisible(busy)
        self.status_label.setText("Working..." if busy else "Ready")
        for w in (self.dump_btn, self.install_btn, self.refresh_btn, self.settings_btn):
            w.setEnabled(not busy)
        self.commands_menu.setEnabled(not busy)

    # ── Settings ──────────────────────────────────────────────────────

    def _open_settings(self):
        dlg = SettingsDialog(self.legendary_dir, self.game_dir, self)

        if dlg.exec() == QDialog.Accepted:
            legendary_dir, game_dir = dlg.get_values()

            self.legendary_dir = legendary_dir
            self.game_dir = game_dir

            if self._persist_settings:
                self.settings.setValue("legendary_dir", legendary_dir)
                self.settings.setValue("game_dir", game_dir)

            self._append_log("Settings updated, reinitializing...")
            self._init_injector()

    # ── Close ─────────────────────────────────────────────────────────

    def closeEvent(self, event):
        if self.worker and self.worker.isRunning():
            reply = QMessageBox.question(
                self,
                "Operation in Progress",
                "A dump or install is still running. Quit anyway?",
                QMessageBox.Yes | QMessageBox.No,
            )
            if reply != QMessageBox.Yes:
                event.ignore()
                return
        event.accept()


# ── Entry Point ───────────────────────────────────────────────────────

def main(
    logger: logging.Logger | None = None,
    *,
    legendary_dir_override: str | None = None,
    game_dir_override: str | None = None,
    settings_org: str = "LegendaryInjector",
    settings_app: str = "LegendaryInjector",
    persist_settings: bool = True,
):
    app = QApplication(sys.argv)
    app.setStyle("Fusion")

    window = MainWindow(
        logger=logger,
        legendary_dir_override=legendary_dir_override,
        game_dir_override=game_dir_override,
        settings_org=settings_org,
        settings_app=settings_app,
        persist_settings=persist_settings,
    )
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
