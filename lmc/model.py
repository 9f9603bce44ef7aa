from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Diagnostic:
    message: str
    line_no: int | None = None
    address: int | None = None
    text: str = ""

    def __str__(self) -> str:
        if self.line_no is not None:
            return f"Line {self.line_no}: {self.message}"
        if self.address is not None:
            return f"Mailbox {self.address:02d}: {self.message}"
        return self.message


class AssemblyError(Exception):
    def __init__(self, message: str, line_no: int, text: str) -> None:
        super().__init__(message)
        self.message = message
        self.line_no = line_no
        self.text = text

    def diagnostic(self) -> Diagnostic:
        return Diagnostic(self.message, line_no=self.line_no, text=self.text)


@dataclass(frozen=True)
class SourceLine:
    line_no: int
    text: str
    label: str | None = None
    mnemonic: str | None = None
    argument: str | None = None
    extra: Tuple[str, ...] = ()
    comment: str | None = None
    address: int | None = None

    @property
    def is_blank(self) -> bool:
        return self.label is None and self.mnemonic is None


class SymbolTable:
    def __init__(self, entries: Iterable[Tuple[str, int]] = ()) -> None:
        self._by_name: Dict[str, Tuple[str, int]] = {}
        self._by_address: Dict[int, str] = {}
        for name, address in entries:
            key = name.upper()
            if key in self._by_name:
                raise ValueError(f"Duplicate label: {name}")
            self._by_name[key] = (name, address)
            self._by_address.setdefault(address, name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._by_name.values())

    def resolve(self, name: str) -> Optional[int]:
        entry = self._by_name.get(name.upper())
        return entry[1] if entry else None

    def name_at(self, address: int) -> Optional[str]:
        return self._by_address.get(address)

    def items(self) -> List[Tuple[str, int]]:
        return sorted(self._by_name.values(), key=lambda item: item[1])

    @property
    def label_width(self) -> int:
        return max((len(name) for name, _ in self._by_name.values()), default=0)


@dataclass(frozen=True)
class Program:
    image: Tuple[int, ...]
    symbols: SymbolTable
    code_cells: FrozenSet[int]
    size: int = 0
    address_lines: Dict[int, int] = field(default_factory=dict)

    def is_code(self, address: int) -> bool:
        return address in self.code_cells

    def line_for_address(self, address: int) -> Optional[int]:
        return self.address_lines.get(address)


@dataclass(frozen=True)
class AssemblyResult:
    source_lines: Tuple[str, ...]
    program: Program | None = None
    diagnostic: Diagnostic | None = None

    @property
    def ok(self) -> bool:
        return self.program is not None

    def unwrap(self) -> Program:
        if self.program is None:
            diag = self.diagnostic or Diagnostic("Nothing assembled")
            raise AssemblyError(diag.message, diag.line_no or 0, diag.text)
        return self.program
