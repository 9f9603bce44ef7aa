from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Set, Tuple

from lmc.lexer import is_literal_code, is_number, lex_line
from lmc.model import AssemblyError, AssemblyResult, Program, SourceLine, SymbolTable
from lmc.opcodes import DEFAULT_TABLE, MAILBOXES, WORD_LIMIT, Arity, InstructionTable

logger = logging.getLogger(__name__)


def _assign_labels(lines: List[SourceLine]) -> Tuple[List[SourceLine], SymbolTable]:
    placed: List[SourceLine] = []
    labels: Dict[str, Tuple[str, int]] = {}
    address = 0
    for line in lines:
        if line.is_blank:
            placed.append(line)
            continue
        if address >= MAILBOXES:
            raise AssemblyError(f"Program does not fit in {MAILBOXES} mailboxes", line.line_no, line.text)
        if line.label is not None:
            label = line.label
            if label[0].isdigit():
                if is_number(label):
                    raise AssemblyError(
                        f"Literal code '{label}' must have 1 to 3 digits", line.line_no, line.text
                    )
                raise AssemblyError("Label cannot start with a digit", line.line_no, line.text)
            key = label.upper()
            if key in labels:
                raise AssemblyError(f"Label '{label}' cannot be defined twice", line.line_no, line.text)
            labels[key] = (label, address)
        placed.append(replace(line, address=address))
        address += 1
    return placed, SymbolTable(labels.values())


def _resolve_argument(line: SourceLine, symbols: SymbolTable) -> int:
    argument = line.argument or ""
    if is_number(argument):
        return int(argument)
    if argument[0].isdigit():
        raise AssemblyError(f"Invalid argument '{argument}'", line.line_no, line.text)
    address = symbols.resolve(argument)
    if address is None:
        raise AssemblyError(f"Undefined label '{argument}'", line.line_no, line.text)
    return address


def _encode(line: SourceLine, symbols: SymbolTable, table: InstructionTable) -> Tuple[int, bool]:
    if line.extra:
        raise AssemblyError(f"Unexpected token '{line.extra[0]}'", line.line_no, line.text)
    token = line.mnemonic
    if token is None:
        raise AssemblyError(f"Missing mnemonic after label '{line.label}'", line.line_no, line.text)

    if is_literal_code(token):
        if line.argument is not None:
            raise AssemblyError(
                f"Literal code {token} cannot take an argument", line.line_no, line.text
            )
        value = int(token)
        return value, table.decode(value) is not None

    defn = table.lookup(token)
    if defn is None:
        raise AssemblyError(f"Unknown mnemonic '{token}'", line.line_no, line.text)
    name = token.upper()
    if defn.arity is Arity.NONE and line.argument is not None:
        raise AssemblyError(f"{name} does not take an argument", line.line_no, line.text)
    if defn.arity is Arity.REQUIRED and line.argument is None:
        raise AssemblyError(f"{name} needs an argument", line.line_no, line.text)

    operand = _resolve_argument(line, symbols) if line.argument is not None else 0
    if defn.opcode is not None and not 0 <= operand < MAILBOXES:
        raise AssemblyError(
            f"Mailbox must be in the range 0..{MAILBOXES - 1}", line.line_no, line.text
        )
    value = (int(defn.opcode) if defn.opcode is not None else 0) + operand
    if not 0 <= value < WORD_LIMIT:
        raise AssemblyError("Out of range value", line.line_no, line.text)
    return value, defn.opcode is not None


def _build(source: str, table: InstructionTable) -> Program:
    lexed = [lex_line(idx, raw, table) for idx, raw in enumerate(source.splitlines(), start=1)]
    lines, symbols = _assign_labels(lexed)
    logger.debug("Pass 1 bound %d label(s)", len(symbols))

    image = [0] * MAILBOXES
    code_cells: Set[int] = set()
    address_lines: Dict[int, int] = {}
    size = 0
    for line in lines:
        if line.address is None:
            continue
        value, is_code = _encode(line, symbols, table)
        image[line.address] = value
        if is_code:
            code_cells.add(line.address)
        address_lines[line.address] = line.line_no
        size = line.address + 1
    return Program(
        image=tuple(image),
        symbols=symbols,
        code_cells=frozenset(code_cells),
        size=size,
        address_lines=address_lines,
    )


def assemble(source: str, table: InstructionTable = DEFAULT_TABLE) -> AssemblyResult:
    source_lines = tuple(source.splitlines())
    try:
        program = _build(source, table)
    except AssemblyError as exc:
        logger.debug("Assembly failed at line %d: %s", exc.line_no, exc.message)
        return AssemblyResult(source_lines, diagnostic=exc.diagnostic())
    logger.debug("Assembled %d mailbox(es)", program.size)
    return AssemblyResult(source_lines, program=program)
