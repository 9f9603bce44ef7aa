from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List

from lmc.opcodes import MAILBOXES, WORD_LIMIT


def wrap(value: int, modulus: int) -> int:
    return value % modulus


def wrap_word(value: int) -> int:
    return wrap(value, WORD_LIMIT)


def wrap_address(address: int) -> int:
    return wrap(address, MAILBOXES)


class Memory:
    def __init__(self, image: Iterable[int] = ()) -> None:
        self._cells: List[int] = [0] * MAILBOXES
        self.load(image)

    def __len__(self) -> int:
        return MAILBOXES

    def __iter__(self) -> Iterator[int]:
        return iter(self._cells)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Memory):
            return self._cells == other._cells
        return NotImplemented

    def get(self, address: int) -> int:
        return self._cells[wrap_address(address)]

    def set(self, address: int, value: int) -> None:
        self._cells[wrap_address(address)] = wrap_word(value)

    def load(self, image: Iterable[int]) -> None:
        self._cells = [0] * MAILBOXES
        for address, value in enumerate(image):
            if address >= MAILBOXES:
                break
            self.set(address, value)

    def clear(self) -> None:
        self._cells = [0] * MAILBOXES

    def snapshot(self) -> tuple:
        return tuple(self._cells)


@dataclass
class MachineState:
    accumulator: int = 0
    reliable: bool = True
    flag: bool = False
    pc: int = 0
    memory: Memory = field(default_factory=Memory)

    def reset(self) -> None:
        self.accumulator = 0
        self.reliable = True
        self.flag = False
        self.pc = 0

    def set_accumulator(self, value: int) -> None:
        self.accumulator = wrap_word(value)

    def set_pc(self, address: int) -> None:
        self.pc = wrap_address(address)

    def load_accumulator(self, value: int) -> None:
        self.set_accumulator(value)
        self.reliable = True
        self.flag = False
