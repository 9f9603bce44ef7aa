from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple


MAILBOXES = 100
WORD_LIMIT = 1000


class Opcode(IntEnum):
    HLT = 0
    ADD = 100
    SUB = 200
    STA = 300
    LDA = 500
    BRA = 600
    BRZ = 700
    BRP = 800
    INP = 901
    OUT = 902
    OTC = 922


class Arity(Enum):
    NONE = 0
    REQUIRED = 1
    OPTIONAL = "optional"


@dataclass(frozen=True)
class InstructionDef:
    mnemonic: str
    opcode: Optional[Opcode]
    arity: Arity
    summary: str
    aliases: Tuple[str, ...] = ()

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.mnemonic,) + self.aliases

    @property
    def addresses_memory(self) -> bool:
        return self.opcode is not None and self.arity is Arity.REQUIRED


INSTRUCTION_DEFS: Tuple[InstructionDef, ...] = (
    InstructionDef("HLT", Opcode.HLT, Arity.NONE, "Stop execution", aliases=("COB",)),
    InstructionDef("ADD", Opcode.ADD, Arity.REQUIRED, "Add mailbox to accumulator"),
    InstructionDef("SUB", Opcode.SUB, Arity.REQUIRED, "Subtract mailbox from accumulator"),
    InstructionDef("STA", Opcode.STA, Arity.REQUIRED, "Store accumulator in mailbox", aliases=("STO",)),
    InstructionDef("LDA", Opcode.LDA, Arity.REQUIRED, "Load mailbox into accumulator"),
    InstructionDef("BRA", Opcode.BRA, Arity.REQUIRED, "Branch always", aliases=("BR",)),
    InstructionDef("BRZ", Opcode.BRZ, Arity.REQUIRED, "Branch if accumulator is zero"),
    InstructionDef("BRP", Opcode.BRP, Arity.REQUIRED, "Branch if negative flag is clear"),
    InstructionDef("INP", Opcode.INP, Arity.NONE, "Read input into accumulator", aliases=("IN",)),
    InstructionDef("OUT", Opcode.OUT, Arity.NONE, "Output accumulator as a number"),
    InstructionDef("OTC", Opcode.OTC, Arity.NONE, "Output accumulator as a character"),
    InstructionDef("DAT", None, Arity.OPTIONAL, "Literal data"),
)


class InstructionTable:
    def __init__(self, defs: Iterable[InstructionDef]) -> None:
        by_name: Dict[str, InstructionDef] = {}
        by_opcode: Dict[Opcode, InstructionDef] = {}
        canonical = []
        for defn in defs:
            for name in defn.names:
                key = name.upper()
                if key in by_name:
                    raise ValueError(f"Duplicate mnemonic: {key}")
                by_name[key] = defn
            if defn.opcode is not None:
                if defn.opcode in by_opcode:
                    raise ValueError(f"Duplicate opcode: {int(defn.opcode)}")
                by_opcode[defn.opcode] = defn
            canonical.append(defn)
        self._by_name: Mapping[str, InstructionDef] = MappingProxyType(by_name)
        self._by_opcode: Mapping[Opcode, InstructionDef] = MappingProxyType(by_opcode)
        self._defs: Tuple[InstructionDef, ...] = tuple(canonical)

    def __iter__(self) -> Iterator[InstructionDef]:
        return iter(self._defs)

    def __len__(self) -> int:
        return len(self._defs)

    def lookup(self, token: str) -> Optional[InstructionDef]:
        return self._by_name.get(token.upper())

    def is_mnemonic(self, token: str) -> bool:
        return token.upper() in self._by_name

    def by_opcode(self, opcode: int) -> Optional[InstructionDef]:
        try:
            return self._by_opcode.get(Opcode(opcode))
        except ValueError:
            return None

    def mnemonics(self) -> Tuple[str, ...]:
        return tuple(self._by_name)

    def decode(self, value: int) -> Optional[Tuple[InstructionDef, int]]:
        # Hundreds group first for instructions taking a mailbox, then the exact value.
        operand = value % MAILBOXES
        group = self.by_opcode(value - operand)
        if group is not None and group.arity is Arity.REQUIRED:
            return group, operand
        exact = self.by_opcode(value)
        if exact is not None and exact.arity is Arity.NONE:
            return exact, 0
        return None


DEFAULT_TABLE = InstructionTable(INSTRUCTION_DEFS)
