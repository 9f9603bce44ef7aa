from pathlib import Path

import pytest

from lmc.cli import EXIT_ERROR, EXIT_OK, EXIT_STALLED, EXIT_STEP_LIMIT, main

ADDER = """
        INP
        STA first
        INP
        ADD first
        OUT
        HLT
first   DAT
"""


def _write(tmp_path: Path, source: str, name: str = "prog.lmc") -> str:
    path = tmp_path / name
    path.write_text(source, encoding="utf-8")
    return str(path)


def test_run_prints_output(tmp_path: Path, capsys):
    path = _write(tmp_path, ADDER)
    assert main(["run", path, "--input", "3, 4"]) == EXIT_OK
    assert capsys.readouterr().out == "7\n"


def test_run_prints_characters_without_spaces(tmp_path: Path, capsys):
    path = _write(tmp_path, "LDA h\nOTC\nLDA i\nOTC\nHLT\nh DAT 72\ni DAT 105\n")
    assert main(["run", path]) == EXIT_OK
    assert capsys.readouterr().out == "Hi\n"


def test_run_reports_stall(tmp_path: Path, capsys):
    path = _write(tmp_path, ADDER)
    assert main(["run", path, "--input", "3"]) == EXIT_STALLED
    assert "stalled: waiting for input at mailbox 02" in capsys.readouterr().err


def test_run_reports_step_limit(tmp_path: Path, capsys):
    path = _write(tmp_path, "loop BRA loop\n")
    assert main(["run", path, "--max-steps", "10"]) == EXIT_STEP_LIMIT
    assert "no halt after 10 steps" in capsys.readouterr().err


def test_run_reports_runtime_error(tmp_path: Path, capsys):
    path = _write(tmp_path, "DAT 400\n")
    assert main(["run", path]) == EXIT_ERROR
    assert "Mailbox 00: Invalid instruction code 400" in capsys.readouterr().err


def test_run_with_lenient_preset(tmp_path: Path):
    path = _write(tmp_path, "DAT 400\nHLT\n")
    assert main(["run", path, "--policy", "lenient"]) == EXIT_OK


def test_run_with_policy_file(tmp_path: Path):
    path = _write(tmp_path, "DAT 400\nHLT\n")
    policy = _write(
        tmp_path,
        '{"schema_version": 1, "name": "Loose", "policy": {"strict_opcodes": false}}',
        name="loose.json",
    )
    assert main(["run", path, "--policy-file", policy]) == EXIT_OK


def test_bad_policy_file_is_an_error(tmp_path: Path, capsys):
    path = _write(tmp_path, "HLT\n")
    assert main(["run", path, "--policy-file", str(tmp_path / "absent.json")]) == EXIT_ERROR
    assert "Policy file not found" in capsys.readouterr().err


def test_run_listing_shows_final_memory(tmp_path: Path, capsys):
    path = _write(tmp_path, ADDER)
    assert main(["run", path, "--input", "3 4", "--listing"]) == EXIT_OK
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "7"
    assert out[-1] == "06: 003 first DAT 3"


def test_assembly_error_names_file_and_line(tmp_path: Path, capsys):
    path = _write(tmp_path, "INP\nADD\n")
    assert main(["assemble", path]) == EXIT_ERROR
    err = capsys.readouterr().err
    assert f"{path}:2: ADD needs an argument" in err


def test_assemble_image(tmp_path: Path, capsys):
    path = _write(tmp_path, "INP\nOUT\nHLT\n")
    assert main(["assemble", path, "--format", "image"]) == EXIT_OK
    assert capsys.readouterr().out == "901 902 000\n"


def test_assemble_source(tmp_path: Path, capsys):
    path = _write(tmp_path, "in\nsto 9\ncob\n")
    assert main(["assemble", path, "--format", "source"]) == EXIT_OK
    assert capsys.readouterr().out == "INP\nSTA 09\nHLT\n"


def test_missing_source_file(tmp_path: Path, capsys):
    assert main(["run", str(tmp_path / "absent.lmc")]) == EXIT_ERROR
    assert "error:" in capsys.readouterr().err


def test_bad_input_is_rejected_by_argument_parser(tmp_path: Path):
    path = _write(tmp_path, ADDER)
    with pytest.raises(SystemExit):
        main(["run", path, "--input", "1000"])


def test_zero_step_budget_runs_nothing(tmp_path: Path, capsys):
    path = _write(tmp_path, "LDA v\nOUT\nHLT\nv DAT 8\n")
    assert main(["run", path, "--max-steps", "0"]) == EXIT_STEP_LIMIT
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "no halt after 0 steps" in captured.err


@pytest.mark.parametrize("value", ["-1", "ten"])
def test_bad_step_budget_is_rejected_by_argument_parser(tmp_path: Path, value):
    path = _write(tmp_path, ADDER)
    with pytest.raises(SystemExit):
        main(["run", path, "--max-steps", value])


def test_source_that_is_not_utf8_is_an_error(tmp_path: Path, capsys):
    path = tmp_path / "binary.lmc"
    path.write_bytes(b"\xff\xfe\x00INP\n")
    assert main(["assemble", str(path)]) == EXIT_ERROR
    assert "error:" in capsys.readouterr().err


def test_program_running_into_data_halts(tmp_path: Path, capsys):
    path = _write(tmp_path, "LDA v\nOUT\nv DAT 8\n")
    assert main(["run", path]) == EXIT_OK
    assert capsys.readouterr().out == "8\n"
