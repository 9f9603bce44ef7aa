from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Union

from lmc.opcodes import WORD_LIMIT


OutputItem = Union[int, str]
InputPort = Callable[[], Optional[int]]
OutputPort = Callable[[OutputItem], None]


def parse_input_values(text: str) -> List[int]:
    """Parse an input queue such as ``"7 12, 300"``."""
    values: List[int] = []
    for token in text.replace(",", " ").split():
        if not token.isdigit() or not token.isascii() or len(token) > 3:
            raise ValueError(f"Input values must be numbers from 0 to {WORD_LIMIT - 1}: {token!r}")
        values.append(int(token))
    return values


class QueuedInput:
    def __init__(self, values: Iterable[int] = ()) -> None:
        self._queue: Deque[int] = deque()
        self.feed(values)

    @classmethod
    def from_text(cls, text: str) -> "QueuedInput":
        return cls(parse_input_values(text))

    def feed(self, values: Iterable[int]) -> None:
        for value in values:
            if not 0 <= value < WORD_LIMIT:
                raise ValueError(f"Input value out of range: {value}")
            self._queue.append(value)

    @property
    def pending(self) -> List[int]:
        return list(self._queue)

    def clear(self) -> None:
        self._queue.clear()

    def __len__(self) -> int:
        return len(self._queue)

    def __call__(self) -> Optional[int]:
        if not self._queue:
            return None
        return self._queue.popleft()


class CollectedOutput:
    def __init__(self) -> None:
        self.items: List[OutputItem] = []

    def __call__(self, item: OutputItem) -> None:
        self.items.append(item)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def values(self) -> List[int]:
        return [item for item in self.items if isinstance(item, int)]

    def clear(self) -> None:
        self.items.clear()

    def render(self) -> str:
        parts: List[str] = []
        previous_was_number = False
        for item in self.items:
            if isinstance(item, str):
                parts.append(item)
                previous_was_number = False
                continue
            if previous_was_number:
                parts.append(" ")
            parts.append(str(item))
            previous_was_number = True
        return "".join(parts)


def no_input() -> Optional[int]:
    return None


def discard_output(item: OutputItem) -> None:
    return None
