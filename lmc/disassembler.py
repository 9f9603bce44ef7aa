from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from lmc.model import AssemblyResult, Program
from lmc.opcodes import DEFAULT_TABLE, Arity, InstructionTable


@dataclass(frozen=True)
class ListingLine:
    address: int
    value: int
    label: Optional[str]
    mnemonic: str
    operand: str | None = None
    is_code: bool = False

    @property
    def statement(self) -> str:
        return f"{self.mnemonic} {self.operand}" if self.operand is not None else self.mnemonic

    def render(self, label_width: int = 0) -> str:
        label = (self.label or "").ljust(label_width)
        return f"{self.address:02d}: {self.value:03d} {label} {self.statement}"


def _cells(program: Program, memory: Optional[Iterable[int]]) -> List[int]:
    return list(memory) if memory is not None else list(program.image)


def _describe(
    address: int,
    value: int,
    program: Program,
    table: InstructionTable,
    as_code: bool,
) -> ListingLine:
    label = program.symbols.name_at(address)
    decoded = table.decode(value) if as_code else None
    if decoded is None:
        return ListingLine(address, value, label, "DAT", str(value) if value else None)
    defn, operand = decoded
    if defn.arity is not Arity.REQUIRED:
        return ListingLine(address, value, label, defn.mnemonic, is_code=True)
    target = program.symbols.name_at(operand) or f"{operand:02d}"
    return ListingLine(address, value, label, defn.mnemonic, target, is_code=True)


def listing(
    program: Program,
    memory: Optional[Iterable[int]] = None,
    pc: Optional[int] = None,
    table: InstructionTable = DEFAULT_TABLE,
) -> List[ListingLine]:
    cells = _cells(program, memory)
    count = program.size
    if pc is not None:
        count = max(count, pc + 1)
    return [
        _describe(address, cells[address], program, table, program.is_code(address) or address == pc)
        for address in range(count)
    ]


def render_listing(
    assembly: AssemblyResult,
    memory: Optional[Iterable[int]] = None,
    pc: Optional[int] = None,
    table: InstructionTable = DEFAULT_TABLE,
) -> List[str]:
    if assembly.program is None:
        return list(assembly.source_lines)
    program = assembly.program
    width = program.symbols.label_width
    return [line.render(width) for line in listing(program, memory, pc, table)]


def to_source(
    program: Program,
    memory: Optional[Iterable[int]] = None,
    table: InstructionTable = DEFAULT_TABLE,
) -> str:
    cells = _cells(program, memory)
    used = [address for address, value in enumerate(cells) if value]
    count = max([program.size] + [address + 1 for address in used])
    width = program.symbols.label_width
    rows = []
    for address in range(count):
        line = _describe(address, cells[address], program, table, program.is_code(address))
        label = (line.label or "").ljust(width)
        rows.append(f"{label} {line.statement}".rstrip() if width else line.statement)
    return "\n".join(rows) + ("\n" if rows else "")
