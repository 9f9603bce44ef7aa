import json
from pathlib import Path

import pytest

from lmc.policy import (
    ExecutionPolicy,
    PolicyError,
    list_presets,
    load_policy,
    load_policy_document,
    load_preset,
)


def _write_policy(path: Path, data) -> Path:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def test_bundled_presets():
    assert {"default", "lenient"} <= set(list_presets())
    assert load_preset("default") == ExecutionPolicy()
    lenient = load_preset("lenient")
    assert not any(lenient.to_mapping().values())


def test_unknown_preset_lists_available_ones():
    with pytest.raises(PolicyError, match="available: .*default"):
        load_preset("nope")


def test_policy_document_round_trip(tmp_path: Path):
    policy = ExecutionPolicy(strict_opcodes=False, forbid_pc_wraparound=False)
    path = _write_policy(
        tmp_path / "classroom.json",
        {
            "schema_version": 1,
            "name": " Classroom ",
            "description": "Undefined codes and wraparound are allowed.",
            "policy": policy.to_mapping(),
        },
    )

    preset = load_policy_document(path)

    assert preset.name == "Classroom"
    assert preset.description == "Undefined codes and wraparound are allowed."
    assert preset.policy == policy
    assert preset.path == path.resolve()


def test_missing_switches_keep_defaults(tmp_path: Path):
    path = _write_policy(
        tmp_path / "partial.json",
        {"schema_version": 1, "name": "Partial", "policy": {"strict_opcodes": False}},
    )
    policy = load_policy(path)
    assert policy.strict_opcodes is False
    assert policy.forbid_pc_wraparound is True


@pytest.mark.parametrize(
    "data, message",
    [
        ([], "must be a JSON object"),
        ({"name": "x"}, "schema_version must be an integer"),
        ({"schema_version": True, "name": "x"}, "schema_version must be an integer"),
        ({"schema_version": 2, "name": "x"}, "Unsupported schema_version: 2"),
        ({"schema_version": 1}, "name is required"),
        ({"schema_version": 1, "name": "x", "description": 5}, "description must be a string"),
        ({"schema_version": 1, "name": "x", "policy": []}, "policy must be an object"),
        ({"schema_version": 1, "name": "x", "policy": {"turbo": True}}, "Unknown policy switch: turbo"),
        (
            {"schema_version": 1, "name": "x", "policy": {"strict_opcodes": 1}},
            "strict_opcodes must be true or false",
        ),
    ],
)
def test_invalid_documents_are_rejected(tmp_path: Path, data, message):
    path = _write_policy(tmp_path / "bad.json", data)
    with pytest.raises(PolicyError, match=message):
        load_policy(path)


def test_missing_file(tmp_path: Path):
    with pytest.raises(PolicyError, match="not found"):
        load_policy(tmp_path / "absent.json")


def test_invalid_json(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{ nope", encoding="utf-8")
    with pytest.raises(PolicyError, match="Invalid JSON"):
        load_policy(path)


def test_switch_names_match_fields():
    assert ExecutionPolicy.switch_names() == list(ExecutionPolicy().to_mapping())
