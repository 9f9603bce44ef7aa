from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from lmc.cpu import MachineState
from lmc.opcodes import WORD_LIMIT
from lmc.policy import ExecutionPolicy


@dataclass
class ExecResult:
    jumped: bool = False
    halt: bool = False
    stall: bool = False
    output: int | str | None = None
    stored_address: int | None = None


class EmulationError(Exception):
    def __init__(self, message: str, address: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.address = address


def _require_reliable(state: MachineState, policy: ExecutionPolicy, mnemonic: str) -> None:
    if policy.forbid_unreliable_accumulator and not state.reliable:
        raise EmulationError(
            f"{mnemonic} used the accumulator after an overflow or underflow"
        )


def _undo_advance(state: MachineState) -> None:
    state.set_pc(state.pc - 1)


def exec_hlt(state: MachineState) -> ExecResult:
    _undo_advance(state)
    return ExecResult(jumped=True, halt=True)


def exec_add(state: MachineState, address: int, policy: ExecutionPolicy) -> ExecResult:
    result = state.accumulator + state.memory.get(address)
    if result >= WORD_LIMIT:
        state.reliable = False
        if policy.set_flag_on_add_overflow:
            state.flag = True
    state.set_accumulator(result)
    return ExecResult()


def exec_sub(state: MachineState, address: int) -> ExecResult:
    result = state.accumulator - state.memory.get(address)
    if result < 0:
        state.reliable = False
        state.flag = True
    state.set_accumulator(result)
    return ExecResult()


def exec_sta(state: MachineState, address: int, policy: ExecutionPolicy) -> ExecResult:
    _require_reliable(state, policy, "STA")
    state.memory.set(address, state.accumulator)
    return ExecResult(stored_address=address)


def exec_lda(state: MachineState, address: int) -> ExecResult:
    state.load_accumulator(state.memory.get(address))
    return ExecResult()


def exec_bra(state: MachineState, address: int) -> ExecResult:
    state.set_pc(address)
    return ExecResult(jumped=True)


def exec_brz(state: MachineState, address: int, policy: ExecutionPolicy) -> ExecResult:
    _require_reliable(state, policy, "BRZ")
    if state.accumulator != 0:
        return ExecResult()
    if policy.zero_branch_requires_clear_flag and state.flag:
        return ExecResult()
    return exec_bra(state, address)


def exec_brp(state: MachineState, address: int) -> ExecResult:
    # Depends on the flag only; the accumulator value is never consulted.
    if state.flag:
        return ExecResult()
    return exec_bra(state, address)


def exec_inp(state: MachineState, value: Optional[int]) -> ExecResult:
    if value is None:
        _undo_advance(state)
        return ExecResult(jumped=True, stall=True)
    state.load_accumulator(value)
    return ExecResult()


def exec_out(state: MachineState, policy: ExecutionPolicy) -> ExecResult:
    _require_reliable(state, policy, "OUT")
    return ExecResult(output=state.accumulator)


def exec_otc(state: MachineState, policy: ExecutionPolicy) -> ExecResult:
    _require_reliable(state, policy, "OTC")
    return ExecResult(output=chr(state.accumulator))
