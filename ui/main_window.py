from __future__ import annotations

import argparse
import importlib
import logging
from typing import List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor, QFont, QFontDatabase, QImage, QKeySequence, QPalette, QPixmap, QShortcut
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QListWidget,
    QMainWindow,
    QPlainTextEdit,
    QPushButton,
    QSplitter,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from core.config import ConfigError, load_config
from core.cpu import REGISTER_ORDER
from core.parser import InputError
from core.session import DebugSession, DisplayState
from core.tiles import Color, PixelBuffer

SWATCH_COLUMNS = 16
SWATCH_SCALE = 12
TILE_SCALE = 2


class LogPanelHandler(logging.Handler):
    def __init__(self, output: QPlainTextEdit) -> None:
        super().__init__()
        self.output = output
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.output.appendPlainText(self.format(record))


def swatch_image(colors: List[Color]) -> QImage:
    rows = (len(colors) + SWATCH_COLUMNS - 1) // SWATCH_COLUMNS
    image = QImage(SWATCH_COLUMNS, rows, QImage.Format.Format_RGB32)
    image.fill(QColor("#000000"))
    for index, color in enumerate(colors):
        row, col = divmod(index, SWATCH_COLUMNS)
        image.setPixelColor(col, row, QColor(color.red, color.green, color.blue))
    return image


def tile_image(buffer: PixelBuffer) -> QImage:
    image = QImage(bytes(buffer.data), buffer.width, buffer.height, buffer.width * 4, QImage.Format.Format_RGBA8888)
    # QImage does not own the bytes it was built from.
    return image.copy()


class MainWindow(QMainWindow):
    def __init__(self, session: DebugSession) -> None:
        super().__init__()
        self.setWindowTitle("GBA Debugger")
        self.resize(1200, 760)

        self.session = session
        self.run_state = "Ready"
        self.prev_registers: list[str] = []

        self._build_ui()
        self._setup_shortcuts()
        self._apply_dracula_theme()

        self.log_handler = LogPanelHandler(self.log_output)
        logging.getLogger().addHandler(self.log_handler)
        self._update_views(self.session.refresh())

    def _setup_shortcuts(self) -> None:
        self.shortcuts: list[QShortcut] = []
        shortcut_map = [
            ("F10", self.step_once),
            ("F6", self.run_frame),
            ("F5", self.run_to_breakpoint),
        ]
        for key, handler in shortcut_map:
            shortcut = QShortcut(QKeySequence(key), self)
            shortcut.activated.connect(handler)
            self.shortcuts.append(shortcut)

    def _default_font(self) -> QFont:
        font = QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)
        font.setPointSize(10)
        return font

    def _build_ui(self) -> None:
        central = QWidget()
        layout = QVBoxLayout(central)

        controls = QHBoxLayout()
        self.bios_button = QPushButton("Load BIOS…")
        self.bios_button.clicked.connect(self.open_bios)
        self.rom_button = QPushButton("Load ROM…")
        self.rom_button.clicked.connect(self.open_rom)
        self.step_button = QPushButton("Step")
        self.step_button.clicked.connect(self.step_once)
        self.frame_button = QPushButton("Frame")
        self.frame_button.clicked.connect(self.run_frame)
        self.breakpoint_input = QLineEdit()
        self.breakpoint_input.setPlaceholderText("Breakpoint (hex)")
        self.breakpoint_input.returnPressed.connect(self.run_to_breakpoint)
        self.run_button = QPushButton("Run")
        self.run_button.clicked.connect(self.run_to_breakpoint)
        self.trace_input = QLineEdit()
        self.trace_input.setPlaceholderText("Trace count")
        self.trace_input.returnPressed.connect(self.run_trace)
        self.trace_button = QPushButton("Trace")
        self.trace_button.clicked.connect(self.run_trace)
        for widget in (
            self.bios_button,
            self.rom_button,
            self.step_button,
            self.frame_button,
            self.breakpoint_input,
            self.run_button,
            self.trace_input,
            self.trace_button,
        ):
            controls.addWidget(widget)
        layout.addLayout(controls)

        splitter = QSplitter(Qt.Orientation.Horizontal)

        left = QWidget()
        left_layout = QVBoxLayout(left)
        left_layout.setContentsMargins(0, 0, 0, 0)
        self.register_table = QTableWidget(len(REGISTER_ORDER), 2)
        self.register_table.setHorizontalHeaderLabels(["Reg", "Value"])
        self.register_table.verticalHeader().setVisible(False)
        self.register_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.register_table.setFont(self._default_font())
        self.flag_label = QLabel("------")
        self.flag_label.setFont(self._default_font())
        self.count_label = QLabel("Instructions: 0")
        self.state_label = QLabel(self.run_state)
        left_layout.addWidget(self.register_table)
        left_layout.addWidget(self.flag_label)
        left_layout.addWidget(self.count_label)
        left_layout.addWidget(self.state_label)
        splitter.addWidget(left)

        middle = QWidget()
        middle_layout = QVBoxLayout(middle)
        middle_layout.setContentsMargins(0, 0, 0, 0)
        middle_layout.addWidget(QLabel("Pipeline"))
        self.disassembly_list = QListWidget()
        self.disassembly_list.setFont(self._default_font())
        middle_layout.addWidget(self.disassembly_list)
        middle_layout.addWidget(QLabel("Log"))
        self.log_output = QPlainTextEdit()
        self.log_output.setReadOnly(True)
        self.log_output.setFont(self._default_font())
        middle_layout.addWidget(self.log_output)
        splitter.addWidget(middle)

        right = QWidget()
        right_layout = QVBoxLayout(right)
        right_layout.setContentsMargins(0, 0, 0, 0)
        right_layout.addWidget(QLabel("Background palette"))
        self.bg_palette_view = QLabel()
        right_layout.addWidget(self.bg_palette_view)
        right_layout.addWidget(QLabel("Sprite palette"))
        self.sprite_palette_view = QLabel()
        right_layout.addWidget(self.sprite_palette_view)
        right_layout.addWidget(QLabel("Tiles"))
        self.tile_view = QLabel()
        right_layout.addWidget(self.tile_view)
        right_layout.addStretch(1)
        splitter.addWidget(right)

        splitter.setSizes([260, 480, 540])
        layout.addWidget(splitter)
        self.setCentralWidget(central)

    def _apply_dracula_theme(self) -> None:
        palette = QPalette()
        palette.setColor(QPalette.ColorRole.Window, QColor("#282a36"))
        palette.setColor(QPalette.ColorRole.WindowText, QColor("#f8f8f2"))
        palette.setColor(QPalette.ColorRole.Base, QColor("#1e1f29"))
        palette.setColor(QPalette.ColorRole.AlternateBase, QColor("#44475a"))
        palette.setColor(QPalette.ColorRole.Text, QColor("#f8f8f2"))
        palette.setColor(QPalette.ColorRole.Button, QColor("#44475a"))
        palette.setColor(QPalette.ColorRole.ButtonText, QColor("#f8f8f2"))
        palette.setColor(QPalette.ColorRole.Highlight, QColor("#bd93f9"))
        palette.setColor(QPalette.ColorRole.HighlightedText, QColor("#282a36"))
        self.setPalette(palette)

    def _read_file(self, title: str) -> Optional[bytes]:
        path, _ = QFileDialog.getOpenFileName(self, title, "", "Binary Files (*.bin *.gba);;All Files (*)")
        if not path:
            return None
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as exc:
            self.log(f"Failed to open file: {exc}")
            return None

    def open_bios(self) -> None:
        data = self._read_file("Load BIOS")
        if data is None:
            return
        self.prev_registers = []
        self.set_state("Ready")
        self._update_views(self.session.load_bios(data))

    def open_rom(self) -> None:
        data = self._read_file("Load ROM")
        if data is None:
            return
        self._update_views(self.session.load_rom(data))

    def step_once(self) -> None:
        self.set_state("Paused")
        self._update_views(self.session.step())

    def run_frame(self) -> None:
        self.set_state("Paused")
        self._update_views(self.session.frame())

    def run_to_breakpoint(self) -> None:
        try:
            state = self.session.run_until_break(self.breakpoint_input.text())
        except InputError as exc:
            self.log(exc.message)
            return
        if state.last_run is not None:
            self.set_state("Breakpoint" if state.last_run.hit else "Limit reached")
        self._update_views(state)

    def run_trace(self) -> None:
        try:
            state = self.session.trace(self.trace_input.text())
        except InputError as exc:
            self.log(exc.message)
            return
        self.set_state("Paused")
        self._update_views(state)

    def _update_views(self, state: DisplayState) -> None:
        self._update_register_view(state)
        self.flag_label.setText(state.flags)
        self.count_label.setText(f"Instructions: {state.instruction_count}")
        if state.disassembly_error is None:
            self.disassembly_list.clear()
            for line in state.disassembly:
                self.disassembly_list.addItem(line.text())
        self.bg_palette_view.setPixmap(self._scaled(swatch_image(state.bg_palette), SWATCH_SCALE))
        self.sprite_palette_view.setPixmap(self._scaled(swatch_image(state.sprite_palette), SWATCH_SCALE))
        self.tile_view.setPixmap(self._scaled(tile_image(state.tiles), TILE_SCALE))

    def _scaled(self, image: QImage, scale: int) -> QPixmap:
        return QPixmap.fromImage(image).scaled(
            image.width() * scale,
            image.height() * scale,
            Qt.AspectRatioMode.IgnoreAspectRatio,
            Qt.TransformationMode.FastTransformation,
        )

    def _update_register_view(self, state: DisplayState) -> None:
        for row, reg in enumerate(REGISTER_ORDER):
            name_item = QTableWidgetItem(reg)
            name_item.setFlags(Qt.ItemFlag.ItemIsEnabled)
            self.register_table.setItem(row, 0, name_item)
            value = state.registers[row]
            value_item = QTableWidgetItem(value)
            value_item.setFlags(Qt.ItemFlag.ItemIsEnabled)
            value_item.setToolTip(str(int(value, 16)))
            if self.prev_registers and self.prev_registers[row] != value:
                value_item.setBackground(QColor("#ffb86c"))
                value_item.setForeground(QColor("#1a1b26"))
            self.register_table.setItem(row, 1, value_item)
        self.prev_registers = list(state.registers)

    def set_state(self, state: str) -> None:
        self.run_state = state
        self.state_label.setText(state)

    def log(self, message: str) -> None:
        self.log_output.appendPlainText(message)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        logging.getLogger().removeHandler(self.log_handler)
        super().closeEvent(event)


def load_engine(target: str):
    """Import an engine object from ``module:attribute``; callables are invoked."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Engine must be given as module:attribute, got {target!r}")
    engine = getattr(importlib.import_module(module_name), attr)
    return engine() if callable(engine) else engine


def run_app(session: DebugSession) -> None:
    app = QApplication([])
    window = MainWindow(session)
    window.show()
    app.exec()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="GBA emulator debugger")
    parser.add_argument("engine", help="engine object as module:attribute")
    parser.add_argument("--config", help="path to a JSON config file")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.error(exc.message)
    logging.basicConfig(level=config.log_level)
    run_app(DebugSession(load_engine(args.engine), config))
