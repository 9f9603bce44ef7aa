# cli.py: command-line front end for assembling and running LMC programs.

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from lmc.assembler import assemble
from lmc.disassembler import render_listing, to_source
from lmc.emulator import DEFAULT_MAX_STEPS, Emulator, MachineStatus
from lmc.model import AssemblyError, AssemblyResult
from lmc.policy import ExecutionPolicy, PolicyError, list_presets, load_policy, load_preset
from lmc.ports import CollectedOutput, QueuedInput, parse_input_values

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_STALLED = 2
EXIT_STEP_LIMIT = 3


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _assemble_file(path: str) -> AssemblyResult:
    result = assemble(read_text(Path(path)))
    if result.diagnostic is not None:
        diag = result.diagnostic
        print(f"{path}:{diag.line_no}: {diag.message}", file=sys.stderr)
        if diag.text:
            print(f"  {diag.text}", file=sys.stderr)
    return result


def _policy_from_args(args: argparse.Namespace) -> ExecutionPolicy:
    if args.policy_file:
        return load_policy(args.policy_file)
    if args.policy:
        return load_preset(args.policy)
    return ExecutionPolicy()


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def cmd_assemble(args: argparse.Namespace) -> int:
    result = _assemble_file(args.source)
    if not result.ok:
        return EXIT_ERROR
    program = result.unwrap()
    if args.format == "source":
        sys.stdout.write(to_source(program))
    elif args.format == "image":
        print(" ".join(f"{value:03d}" for value in program.image[: max(program.size, 1)]))
    else:
        print("\n".join(render_listing(result)))
    return EXIT_OK


def cmd_run(args: argparse.Namespace) -> int:
    result = _assemble_file(args.source)
    if not result.ok:
        return EXIT_ERROR

    inbox = QueuedInput(args.input)
    outbox = CollectedOutput()
    emulator = Emulator(
        result.unwrap(),
        policy=_policy_from_args(args),
        input_port=inbox,
        output_port=outbox,
    )
    run = emulator.run(max_steps=args.max_steps)

    if outbox.items:
        print(outbox.render())
    if args.listing:
        print("\n".join(render_listing(result, emulator.state.memory, emulator.state.pc)))

    state = emulator.state
    logger.info("ACC=%03d FLAG=%d PC=%02d steps=%d", state.accumulator, state.flag, state.pc, run.steps)
    if run.status is MachineStatus.ERRORED:
        print(f"error: {run.diagnostic}", file=sys.stderr)
        return EXIT_ERROR
    if run.status is MachineStatus.STALLED:
        print(f"stalled: waiting for input at mailbox {state.pc:02d}", file=sys.stderr)
        return EXIT_STALLED
    if run.limit_reached:
        print(f"stopped: no halt after {run.steps} steps", file=sys.stderr)
        return EXIT_STEP_LIMIT
    return EXIT_OK


def _input_values(text: str) -> List[int]:
    try:
        return parse_input_values(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _step_count(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError("must be 0 or more")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lmc", description="Little Man Computer assembler and emulator")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every step")
    sub = parser.add_subparsers(dest="command", required=True)

    p_asm = sub.add_parser("assemble", help="assemble a program and print it")
    p_asm.add_argument("source", help="LMC source file")
    p_asm.add_argument(
        "--format",
        choices=("listing", "source", "image"),
        default="listing",
        help="listing (default), reassemblable source, or raw memory image",
    )
    p_asm.set_defaults(func=cmd_assemble)

    p_run = sub.add_parser("run", help="assemble and run a program")
    p_run.add_argument("source", help="LMC source file")
    p_run.add_argument("--input", type=_input_values, default=[], help='input queue, e.g. "7 12 300"')
    policy_group = p_run.add_mutually_exclusive_group()
    policy_group.add_argument("--policy", choices=list_presets() or None, help="bundled policy preset")
    policy_group.add_argument("--policy-file", help="policy JSON file")
    p_run.add_argument("--max-steps", type=_step_count, default=DEFAULT_MAX_STEPS, help="maximum number of steps to run")
    p_run.add_argument("--listing", action="store_true", help="print the final listing")
    p_run.set_defaults(func=cmd_run)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except (OSError, UnicodeDecodeError, PolicyError, AssemblyError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
