from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Dict, List, Mapping


SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ExecutionPolicy:
    """Behavioral switches for the points where LMC variants disagree."""

    set_flag_on_add_overflow: bool = True
    zero_branch_requires_clear_flag: bool = True
    forbid_unreliable_accumulator: bool = True
    forbid_pc_wraparound: bool = True
    strict_opcodes: bool = True

    @classmethod
    def switch_names(cls) -> List[str]:
        return [item.name for item in fields(cls)]

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "ExecutionPolicy":
        if not isinstance(data, Mapping):
            raise PolicyError("policy must be an object.")
        known = set(cls.switch_names())
        values: Dict[str, bool] = {}
        for key, value in data.items():
            if key not in known:
                raise PolicyError(f"Unknown policy switch: {key}")
            if not isinstance(value, bool):
                raise PolicyError(f"Policy switch {key} must be true or false.")
            values[key] = value
        return cls(**values)

    def to_mapping(self) -> Dict[str, bool]:
        return asdict(self)


class PolicyError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class PolicyPreset:
    name: str
    description: str
    policy: ExecutionPolicy
    path: Path | None = None


def presets_dir() -> Path:
    return Path(__file__).resolve().parent / "assets" / "policies"


def list_presets() -> List[str]:
    directory = presets_dir()
    if not directory.exists():
        return []
    return sorted(path.stem for path in directory.glob("*.json"))


def _load_json(path: Path) -> dict:
    if not path.exists():
        raise PolicyError(f"Policy file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise PolicyError(f"Invalid JSON in {path}: {exc}") from exc
    except OSError as exc:
        raise PolicyError(f"Failed to read policy file: {exc}") from exc


def _validate_document(data: object, path: Path) -> PolicyPreset:
    if not isinstance(data, dict):
        raise PolicyError("Policy file must be a JSON object.")
    schema_version = data.get("schema_version")
    if not isinstance(schema_version, int) or isinstance(schema_version, bool):
        raise PolicyError("schema_version must be an integer.")
    if schema_version != SCHEMA_VERSION:
        raise PolicyError(f"Unsupported schema_version: {schema_version}")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise PolicyError("name is required and must be a string.")
    description = data.get("description") or ""
    if not isinstance(description, str):
        raise PolicyError("description must be a string if provided.")
    switches = data.get("policy")
    if switches is None:
        switches = {}
    policy = ExecutionPolicy.from_mapping(switches)
    return PolicyPreset(name=name.strip(), description=description.strip(), policy=policy, path=path)


def load_policy_document(path: Path | str) -> PolicyPreset:
    resolved = Path(path).expanduser().resolve()
    return _validate_document(_load_json(resolved), resolved)


def load_policy(path: Path | str) -> ExecutionPolicy:
    return load_policy_document(path).policy


def load_preset(name: str) -> ExecutionPolicy:
    path = presets_dir() / f"{name}.json"
    if not path.exists():
        available = ", ".join(list_presets()) or "none"
        raise PolicyError(f"Unknown policy preset '{name}' (available: {available})")
    return load_policy(path)
