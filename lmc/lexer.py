from __future__ import annotations

import string
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from lmc.model import SourceLine
from lmc.opcodes import DEFAULT_TABLE, InstructionTable


WORD_CHARS = frozenset(string.ascii_letters + string.digits + "_")
DIGITS = frozenset(string.digits)


class TokenKind(Enum):
    LABEL = "label"
    MNEMONIC = "mnemonic"
    LITERAL = "literal"
    ARGUMENT = "argument"
    COMMENT = "comment"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    column: int


def is_number(text: str) -> bool:
    return bool(text) and all(ch in DIGITS for ch in text)


def is_literal_code(text: str) -> bool:
    return 1 <= len(text) <= 3 and is_number(text)


def split_comment(text: str) -> Tuple[str, Optional[str]]:
    # A comment starts at the first character that is neither a word character nor whitespace.
    for index, ch in enumerate(text):
        if ch in WORD_CHARS or ch.isspace():
            continue
        return text[:index], text[index:]
    return text, None


def _words(code: str) -> List[Tuple[str, int]]:
    words: List[Tuple[str, int]] = []
    start: Optional[int] = None
    for index, ch in enumerate(code):
        if ch.isspace():
            if start is not None:
                words.append((code[start:index], start))
                start = None
        elif start is None:
            start = index
    if start is not None:
        words.append((code[start:], start))
    return words


def lex(text: str, table: InstructionTable = DEFAULT_TABLE) -> List[Token]:
    code, comment = split_comment(text)
    words = _words(code)
    tokens: List[Token] = []
    if words:
        first, column = words[0]
        if not (table.is_mnemonic(first) or is_literal_code(first)):
            tokens.append(Token(TokenKind.LABEL, first, column))
            words = words[1:]
    if words:
        head, column = words[0]
        kind = TokenKind.LITERAL if is_literal_code(head) else TokenKind.MNEMONIC
        tokens.append(Token(kind, head, column))
        tokens.extend(Token(TokenKind.ARGUMENT, word, col) for word, col in words[1:])
    if comment is not None:
        tokens.append(Token(TokenKind.COMMENT, comment, len(code)))
    return tokens


def lex_line(line_no: int, text: str, table: InstructionTable = DEFAULT_TABLE) -> SourceLine:
    label = mnemonic = argument = comment = None
    arguments: List[str] = []
    for token in lex(text, table):
        if token.kind is TokenKind.LABEL:
            label = token.text
        elif token.kind in (TokenKind.MNEMONIC, TokenKind.LITERAL):
            mnemonic = token.text
        elif token.kind is TokenKind.ARGUMENT:
            arguments.append(token.text)
        else:
            comment = token.text
    if arguments:
        argument = arguments[0]
    return SourceLine(
        line_no=line_no,
        text=text,
        label=label,
        mnemonic=mnemonic,
        argument=argument,
        extra=tuple(arguments[1:]),
        comment=comment,
    )
