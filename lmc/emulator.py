from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from lmc.assembler import assemble
from lmc.cpu import MachineState
from lmc.instructions import (
    EmulationError,
    ExecResult,
    exec_add,
    exec_bra,
    exec_brp,
    exec_brz,
    exec_hlt,
    exec_inp,
    exec_lda,
    exec_otc,
    exec_out,
    exec_sta,
    exec_sub,
)
from lmc.model import AssemblyResult, Diagnostic, Program
from lmc.opcodes import DEFAULT_TABLE, MAILBOXES, InstructionTable, Opcode
from lmc.policy import ExecutionPolicy
from lmc.ports import InputPort, OutputItem, OutputPort, discard_output, no_input

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10_000


class MachineStatus(Enum):
    EMPTY = "Empty"
    LOADED = "Loaded"
    RUNNING = "Running"
    STALLED = "Waiting for input"
    HALTED = "Halted"
    ERRORED = "Error"


RUNNABLE = {MachineStatus.LOADED, MachineStatus.RUNNING}


@dataclass
class StepOutcome:
    status: MachineStatus
    address: int | None = None
    output: OutputItem | None = None
    diagnostic: Diagnostic | None = None

    @property
    def halted(self) -> bool:
        return self.status is MachineStatus.HALTED

    @property
    def stalled(self) -> bool:
        return self.status is MachineStatus.STALLED

    @property
    def error(self) -> Optional[Diagnostic]:
        return self.diagnostic if self.status is MachineStatus.ERRORED else None


@dataclass
class RunResult:
    status: MachineStatus
    steps: int = 0
    outputs: List[OutputItem] = field(default_factory=list)
    diagnostic: Diagnostic | None = None
    limit_reached: bool = False


@dataclass(frozen=True)
class MachineEvent:
    kind: str  # accumulator, flag, mailbox, status
    value: int | bool | MachineStatus
    address: int | None = None


class Emulator:
    def __init__(
        self,
        program: Optional[Program] = None,
        policy: Optional[ExecutionPolicy] = None,
        table: InstructionTable = DEFAULT_TABLE,
        input_port: Optional[InputPort] = None,
        output_port: Optional[OutputPort] = None,
    ) -> None:
        self.policy = policy or ExecutionPolicy()
        self.table = table
        self.input_port: InputPort = input_port or no_input
        self.output_port: OutputPort = output_port or discard_output
        self.state = MachineState()
        self.program: Optional[Program] = None
        self.status = MachineStatus.EMPTY
        self.diagnostic: Optional[Diagnostic] = None
        self.steps = 0
        self._callbacks: List[Callable[[MachineEvent], None]] = []
        if program is not None:
            self.load(program)

    def on_change(self, callback: Callable[[MachineEvent], None]) -> None:
        self._callbacks.append(callback)

    def _emit(self, kind: str, value, address: Optional[int] = None) -> None:
        event = MachineEvent(kind, value, address)
        for callback in list(self._callbacks):
            callback(event)

    def _set_status(self, status: MachineStatus) -> None:
        if status is not self.status:
            self.status = status
            self._emit("status", status)

    @property
    def can_continue(self) -> bool:
        return self.status in RUNNABLE

    def load(self, program: Program) -> None:
        self.program = program
        self.state.memory.load(program.image)
        self.state.reset()
        self.diagnostic = None
        self.steps = 0
        logger.info("Loaded program with %d mailbox(es)", program.size)
        self._set_status(MachineStatus.LOADED)

    def load_source(self, source: str) -> AssemblyResult:
        result = assemble(source, self.table)
        if result.program is not None:
            self.load(result.program)
            return result
        self.program = None
        self.state.memory.clear()
        self.state.reset()
        self.steps = 0
        self.diagnostic = result.diagnostic
        logger.warning("Assembly failed: %s", result.diagnostic)
        self._set_status(MachineStatus.ERRORED)
        return result

    def reload(self) -> None:
        if self.program is not None:
            self.load(self.program)

    def rewind(self) -> None:
        if self.status in (MachineStatus.EMPTY, MachineStatus.ERRORED):
            logger.debug("Rewind ignored while %s", self.status.value)
            return
        self.state.set_pc(0)
        self._set_status(MachineStatus.LOADED)

    def _read_input(self) -> Optional[int]:
        value = self.input_port()
        if value is None:
            return None
        return int(value)

    def _execute(self, value: int) -> ExecResult:
        decoded = self.table.decode(value)
        if decoded is None:
            return self._execute_undefined(value)
        defn, operand = decoded
        opcode = defn.opcode
        state = self.state
        policy = self.policy
        if opcode is Opcode.HLT:
            return exec_hlt(state)
        elif opcode is Opcode.ADD:
            return exec_add(state, operand, policy)
        elif opcode is Opcode.SUB:
            return exec_sub(state, operand)
        elif opcode is Opcode.STA:
            return exec_sta(state, operand, policy)
        elif opcode is Opcode.LDA:
            return exec_lda(state, operand)
        elif opcode is Opcode.BRA:
            return exec_bra(state, operand)
        elif opcode is Opcode.BRZ:
            return exec_brz(state, operand, policy)
        elif opcode is Opcode.BRP:
            return exec_brp(state, operand)
        elif opcode is Opcode.INP:
            return exec_inp(state, self._read_input())
        elif opcode is Opcode.OUT:
            return exec_out(state, policy)
        elif opcode is Opcode.OTC:
            return exec_otc(state, policy)
        return self._execute_undefined(value)

    def _execute_undefined(self, value: int) -> ExecResult:
        if value < MAILBOXES:
            # 001-099 hold no instruction: the program has run out.
            return exec_hlt(self.state)
        if self.policy.strict_opcodes:
            raise EmulationError(f"Invalid instruction code {value:03d}")
        logger.debug("Ignoring undefined instruction code %03d", value)
        return ExecResult()

    def _fail(self, message: str, address: int) -> StepOutcome:
        self.diagnostic = Diagnostic(message, address=address)
        logger.warning("Runtime error at mailbox %02d: %s", address, message)
        self._set_status(MachineStatus.ERRORED)
        return StepOutcome(self.status, address=address, diagnostic=self.diagnostic)

    def step(self) -> StepOutcome:
        if self.status in (MachineStatus.EMPTY, MachineStatus.ERRORED):
            return StepOutcome(self.status, diagnostic=self.diagnostic)

        state = self.state
        address = state.pc
        value = state.memory.get(address)
        accumulator, flag = state.accumulator, state.flag
        state.set_pc(address + 1)
        self.steps += 1

        try:
            result = self._execute(value)
        except EmulationError as exc:
            return self._fail(exc.message, address if exc.address is None else exc.address)

        if state.accumulator != accumulator:
            self._emit("accumulator", state.accumulator)
        if state.flag != flag:
            self._emit("flag", state.flag)
        if result.stored_address is not None:
            self._emit("mailbox", state.memory.get(result.stored_address), result.stored_address)
        if result.output is not None:
            self.output_port(result.output)

        logger.debug(
            "%02d: %03d -> ACC=%03d FLAG=%d PC=%02d", address, value, state.accumulator, state.flag, state.pc
        )

        if result.halt:
            logger.info("Halted at mailbox %02d after %d step(s)", address, self.steps)
            self._set_status(MachineStatus.HALTED)
        elif result.stall:
            logger.warning("Waiting for input at mailbox %02d", address)
            self._set_status(MachineStatus.STALLED)
        elif address == MAILBOXES - 1 and state.pc == 0 and not result.jumped and self.policy.forbid_pc_wraparound:
            return self._fail(f"Program counter ran past mailbox {MAILBOXES - 1}", address)
        else:
            self._set_status(MachineStatus.RUNNING)
        return StepOutcome(self.status, address=address, output=result.output)

    def run(self, max_steps: Optional[int] = DEFAULT_MAX_STEPS) -> RunResult:
        result = RunResult(status=self.status, diagnostic=self.diagnostic)
        if self.status in (MachineStatus.EMPTY, MachineStatus.ERRORED, MachineStatus.HALTED):
            return result
        while max_steps is None or result.steps < max_steps:
            outcome = self.step()
            result.steps += 1
            if outcome.output is not None:
                result.outputs.append(outcome.output)
            if outcome.status not in RUNNABLE:
                break
        if self.can_continue:
            result.limit_reached = True
            logger.warning("Stopped after %d step(s) without halting", result.steps)
        result.status = self.status
        result.diagnostic = self.diagnostic
        return result
