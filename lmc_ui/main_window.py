from __future__ import annotations

import sys
from typing import List, Optional

from PyQt6.QtCore import QRect, QSize, Qt, QTimer
from PyQt6.QtGui import (
    QAction,
    QColor,
    QFont,
    QFontDatabase,
    QKeySequence,
    QPainter,
    QShortcut,
    QSyntaxHighlighter,
    QTextCharFormat,
    QTextCursor,
)
from PyQt6.QtWidgets import (
    QApplication,
    QComboBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSpinBox,
    QSplitter,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from lmc.assembler import assemble
from lmc.disassembler import render_listing
from lmc.emulator import Emulator, MachineEvent, MachineStatus, StepOutcome
from lmc.lexer import TokenKind, lex
from lmc.model import AssemblyResult
from lmc.opcodes import DEFAULT_TABLE
from lmc.policy import ExecutionPolicy, PolicyError, list_presets, load_preset
from lmc.ports import parse_input_values

SAMPLE_PROGRAM = """\
        INP         // read a number
        STA first
        INP
        ADD first
        OUT         // print the sum
        HLT
first   DAT
"""


class LmcHighlighter(QSyntaxHighlighter):
    def __init__(self, parent) -> None:
        super().__init__(parent)
        self.label_format = QTextCharFormat()
        self.label_format.setForeground(QColor("#50fa7b"))

        self.mnemonic_format = QTextCharFormat()
        self.mnemonic_format.setForeground(QColor("#ff79c6"))
        self.mnemonic_format.setFontWeight(QFont.Weight.Bold)

        self.number_format = QTextCharFormat()
        self.number_format.setForeground(QColor("#ffb86c"))

        self.argument_format = QTextCharFormat()
        self.argument_format.setForeground(QColor("#bd93f9"))

        self.comment_format = QTextCharFormat()
        self.comment_format.setForeground(QColor("#6272a4"))

    def highlightBlock(self, text: str) -> None:
        formats = {
            TokenKind.LABEL: self.label_format,
            TokenKind.MNEMONIC: self.mnemonic_format,
            TokenKind.LITERAL: self.number_format,
            TokenKind.COMMENT: self.comment_format,
        }
        for token in lex(text, DEFAULT_TABLE):
            fmt = formats.get(token.kind)
            if token.kind is TokenKind.ARGUMENT:
                fmt = self.number_format if token.text.isdigit() else self.argument_format
            self.setFormat(token.column, len(token.text), fmt)


class LineNumberArea(QWidget):
    def __init__(self, editor: "CodeEditor") -> None:
        super().__init__(editor)
        self.editor = editor

    def sizeHint(self) -> QSize:
        return QSize(self.editor.line_number_area_width(), 0)

    def paintEvent(self, event) -> None:
        self.editor.line_number_area_paint_event(event)


class CodeEditor(QPlainTextEdit):
    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._line_number_bg = QColor("#1e1f29")
        self._line_number_fg = QColor("#6272a4")
        self.line_number_area = LineNumberArea(self)

        self.blockCountChanged.connect(self.update_line_number_area_width)
        self.updateRequest.connect(self.update_line_number_area)
        self.update_line_number_area_width(0)

    def line_number_area_width(self) -> int:
        digits = max(1, len(str(self.blockCount())))
        return 10 + self.fontMetrics().horizontalAdvance("9") * digits

    def update_line_number_area_width(self, _block_count: int) -> None:
        self.setViewportMargins(self.line_number_area_width(), 0, 0, 0)

    def update_line_number_area(self, rect: QRect, dy: int) -> None:
        if dy:
            self.line_number_area.scroll(0, dy)
        else:
            self.line_number_area.update(0, rect.y(), self.line_number_area.width(), rect.height())
        if rect.contains(self.viewport().rect()):
            self.update_line_number_area_width(0)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        contents = self.contentsRect()
        self.line_number_area.setGeometry(
            QRect(contents.left(), contents.top(), self.line_number_area_width(), contents.height())
        )

    def line_number_area_paint_event(self, event) -> None:
        painter = QPainter(self.line_number_area)
        painter.fillRect(event.rect(), self._line_number_bg)

        block = self.firstVisibleBlock()
        block_number = block.blockNumber()
        top = self.blockBoundingGeometry(block).translated(self.contentOffset()).top()
        bottom = top + self.blockBoundingRect(block).height()

        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                painter.setPen(self._line_number_fg)
                painter.drawText(
                    0,
                    int(top),
                    self.line_number_area.width() - 6,
                    int(self.fontMetrics().height()),
                    Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter,
                    str(block_number + 1),
                )
            block = block.next()
            top = bottom
            bottom = top + self.blockBoundingRect(block).height()
            block_number += 1

    def highlight_line(self, line_no: Optional[int], color: str) -> None:
        selections = []
        if line_no is not None:
            block = self.document().findBlockByNumber(line_no - 1)
            if block.isValid():
                cursor = QTextCursor(block)
                cursor.select(QTextCursor.SelectionType.LineUnderCursor)
                selection = QTextEdit.ExtraSelection()
                selection.cursor = cursor
                selection.format.setBackground(QColor(color))
                selection.format.setForeground(QColor("#1e1f29"))
                selections.append(selection)
        self.setExtraSelections(selections)


class MainWindow(QMainWindow):
    def __init__(self, source: str = SAMPLE_PROGRAM) -> None:
        super().__init__()
        self.setWindowTitle("LMC Debugger")
        self.resize(1100, 650)

        self.source_dirty = True
        self.assembly: AssemblyResult = assemble("")
        self.emulator = Emulator(input_port=self._grab_input, output_port=self._append_output)
        self.emulator.on_change(self._on_machine_event)

        self.timer = QTimer(self)
        self.timer.timeout.connect(self.on_timer_step)

        self._build_ui()
        self._setup_shortcuts()
        self.editor.setPlainText(source)
        self.reload_program()

    # -----------------------------------------------------------------------
    # Layout
    # -----------------------------------------------------------------------
    def _default_font(self) -> QFont:
        return QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)

    def _build_ui(self) -> None:
        file_menu = self.menuBar().addMenu("File")
        open_action = QAction("Open", self)
        open_action.triggered.connect(self.open_file)
        file_menu.addAction(open_action)
        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        self.editor = CodeEditor()
        self.editor.setFont(self._default_font())
        self.editor.textChanged.connect(self.on_text_changed)
        self.highlighter = LmcHighlighter(self.editor.document())

        self.listing = CodeEditor()
        self.listing.setReadOnly(True)
        self.listing.setFont(self._default_font())
        self.listing.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)

        controls = QWidget()
        form = QFormLayout(controls)
        self.acc_field = self._readout()
        self.flag_field = self._readout()
        self.pc_field = self._readout()
        self.reliable_field = self._readout()
        self.input_field = QLineEdit()
        self.input_field.setPlaceholderText("e.g. 7 12 300")
        self.output_field = self._readout()
        form.addRow("Acc:", self.acc_field)
        form.addRow("Neg:", self.flag_field)
        form.addRow("PC:", self.pc_field)
        form.addRow("Reliable:", self.reliable_field)
        form.addRow("Input:", self.input_field)
        form.addRow("Output:", self.output_field)

        self.policy_select = QComboBox()
        self.policy_select.addItems(list_presets())
        self.policy_select.setCurrentText("default")
        self.policy_select.currentTextChanged.connect(self.on_policy_changed)
        form.addRow("Policy:", self.policy_select)

        self.rate_spin = QSpinBox()
        self.rate_spin.setRange(1, 100)
        self.rate_spin.setValue(10)
        self.rate_spin.setSuffix(" steps/s")
        self.rate_spin.valueChanged.connect(self._update_timer_interval)
        form.addRow("Rate:", self.rate_spin)

        buttons = QHBoxLayout()
        self.run_button = QPushButton("Run")
        self.run_button.clicked.connect(self.play)
        self.step_button = QPushButton("Step")
        self.step_button.clicked.connect(self.step_once)
        self.reset_button = QPushButton("Reset")
        self.reset_button.clicked.connect(self.reset_state)
        self.reload_button = QPushButton("Reload")
        self.reload_button.clicked.connect(self.reload_program)
        for button in (self.run_button, self.step_button, self.reset_button, self.reload_button):
            buttons.addWidget(button)
        form.addRow(buttons)

        self.state_label = QLabel()
        self.error_label = QLabel()
        self.error_label.setStyleSheet("color: #ff5555")
        self.error_label.setWordWrap(True)
        form.addRow(self.state_label)
        form.addRow(self.error_label)

        self.log_output = QPlainTextEdit()
        self.log_output.setReadOnly(True)
        self.log_output.setFont(self._default_font())

        right = QSplitter(Qt.Orientation.Vertical)
        right.addWidget(controls)
        right.addWidget(self.log_output)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self._titled("Source", self.editor))
        splitter.addWidget(self._titled("Mailboxes", self.listing))
        splitter.addWidget(right)
        splitter.setSizes([350, 350, 300])
        self.setCentralWidget(splitter)

    def _titled(self, title: str, widget: QWidget) -> QWidget:
        panel = QWidget()
        layout = QVBoxLayout(panel)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.addWidget(QLabel(title))
        layout.addWidget(widget)
        return panel

    def _readout(self) -> QLineEdit:
        field = QLineEdit()
        field.setReadOnly(True)
        field.setFont(self._default_font())
        return field

    def _setup_shortcuts(self) -> None:
        self.shortcuts: List[QShortcut] = []
        shortcut_map = [
            ("F5", self.play),
            ("Shift+F5", self.pause),
            ("F10", self.step_once),
            ("Ctrl+Shift+F5", self.reset_state),
            ("Ctrl+R", self.reload_program),
        ]
        for sequence, handler in shortcut_map:
            shortcut = QShortcut(QKeySequence(sequence), self)
            shortcut.activated.connect(handler)
            self.shortcuts.append(shortcut)

    # -----------------------------------------------------------------------
    # Ports
    # -----------------------------------------------------------------------
    def _grab_input(self) -> Optional[int]:
        try:
            values = parse_input_values(self.input_field.text())
        except ValueError as exc:
            self.log(str(exc))
            return None
        if not values:
            return None
        self.input_field.setText(" ".join(str(value) for value in values[1:]))
        return values[0]

    def _append_output(self, item) -> None:
        current = self.output_field.text()
        if isinstance(item, str):
            self.output_field.setText(current + item)
        else:
            self.output_field.setText(f"{current} {item}".strip())

    def _on_machine_event(self, event: MachineEvent) -> None:
        if event.kind == "mailbox" and event.address is not None:
            self.log(f"Mailbox {event.address:02d} <- {event.value:03d}")
        elif event.kind == "status":
            self.state_label.setText(f"State: {event.value.value}")

    # -----------------------------------------------------------------------
    # Actions
    # -----------------------------------------------------------------------
    def open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open LMC program", "", "LMC Files (*.lmc *.asm *.txt);;All Files (*)")
        if not path:
            return
        try:
            with open(path, "r", encoding="utf-8") as file:
                source = file.read()
        except OSError as exc:
            QMessageBox.warning(self, "Open Failed", str(exc))
            return
        self.setWindowTitle(f"LMC Debugger - {path}")
        self.editor.setPlainText(source)
        self.reload_program()
        self.log(f"Opened {path}")

    def on_text_changed(self) -> None:
        self.source_dirty = True

    def on_policy_changed(self, name: str) -> None:
        try:
            self.emulator.policy = load_preset(name) if name else ExecutionPolicy()
        except PolicyError as exc:
            self.log(exc.message)
            return
        self.log(f"Policy: {name}")

    def ensure_program(self) -> bool:
        if self.source_dirty:
            self.reload_program()
        return self.assembly.ok

    def reload_program(self) -> None:
        self.timer.stop()
        self.assembly = self.emulator.load_source(self.editor.toPlainText())
        self.source_dirty = False
        self.output_field.clear()
        if self.assembly.diagnostic is not None:
            self.log(f"Assembly error: {self.assembly.diagnostic}")
        else:
            self.log("Program loaded.")
        self._update_views()

    def reset_state(self) -> None:
        self.timer.stop()
        if not self.ensure_program():
            return
        self.emulator.rewind()
        self.log("Program counter reset.")
        self._update_views()

    def play(self) -> None:
        if not self.ensure_program():
            return
        if self.emulator.status is MachineStatus.HALTED:
            self.log("Execution halted. Reset to run again.")
            return
        self._update_timer_interval()
        self.timer.start()

    def pause(self) -> None:
        self.timer.stop()

    def step_once(self) -> None:
        self.timer.stop()
        if not self.ensure_program():
            return
        self.handle_step_outcome(self.emulator.step())

    def on_timer_step(self) -> None:
        outcome = self.emulator.step()
        self.handle_step_outcome(outcome)
        if not self.emulator.can_continue:
            self.timer.stop()

    def handle_step_outcome(self, outcome: StepOutcome) -> None:
        if outcome.error:
            self.log(f"HALT due to error: {outcome.error}")
        elif outcome.stalled:
            self.log("Waiting for input. Enter values and step again.")
        elif outcome.halted:
            self.log("Program halted.")
        self._update_views()

    def _update_timer_interval(self) -> None:
        self.timer.setInterval(max(1, int(1000 / self.rate_spin.value())))

    # -----------------------------------------------------------------------
    # Views
    # -----------------------------------------------------------------------
    def _update_views(self) -> None:
        state = self.emulator.state
        self.acc_field.setText(f"{state.accumulator:03d}")
        self.flag_field.setText("YES" if state.flag else "NO")
        self.pc_field.setText(f"{state.pc:02d}")
        self.reliable_field.setText("YES" if state.reliable else "NO")
        self.state_label.setText(f"State: {self.emulator.status.value}")

        diagnostic = self.emulator.diagnostic
        self.error_label.setText(str(diagnostic) if diagnostic else "")
        lines = render_listing(self.assembly, state.memory, state.pc)
        self.listing.setPlainText("\n".join(lines))

        if self.assembly.program is None:
            line_no = diagnostic.line_no if diagnostic else None
            self.listing.highlight_line(line_no, "#ff5555")
            self.editor.highlight_line(line_no, "#ff5555")
        elif diagnostic is not None and diagnostic.address is not None:
            self.listing.highlight_line(diagnostic.address + 1, "#ff5555")
            self.editor.highlight_line(self.assembly.program.line_for_address(diagnostic.address), "#ff5555")
        else:
            self.listing.highlight_line(state.pc + 1, "#fff2cc")
            self.editor.highlight_line(self.assembly.program.line_for_address(state.pc), "#fff2cc")

        can_step = self.emulator.status in (
            MachineStatus.LOADED,
            MachineStatus.RUNNING,
            MachineStatus.STALLED,
        )
        self.step_button.setEnabled(can_step)
        self.run_button.setEnabled(can_step and not self.timer.isActive())

    def log(self, message: str) -> None:
        self.log_output.appendPlainText(message)


def run_app(argv: Optional[List[str]] = None) -> None:
    argv = list(sys.argv if argv is None else argv)
    app = QApplication(argv)
    window = MainWindow()
    if len(argv) > 1:
        try:
            with open(argv[1], "r", encoding="utf-8") as file:
                window.editor.setPlainText(file.read())
            window.reload_program()
        except OSError as exc:
            window.log(f"Could not open {argv[1]}: {exc}")
    window.show()
    app.exec()
