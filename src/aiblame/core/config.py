"""Configuration — TOML-based, global + per-repo merge."""

from __future__ import annotations

import copy
import json
import tomllib
from pathlib import Path
from typing import Any

_GLOBAL_CONFIG_PATH = Path.home() / ".ai-blame" / "config.toml"
_LOCAL_CONFIG_NAME = Path(".ai-blame") / "config.toml"

DEFAULT_CONFIG: dict[str, Any] = {
    "notes": {
        "ref": "refs/notes/ai-blame",
        "write_retries": 3,
    },
    "staging": {
        "lock_timeout_seconds": 5.0,
    },
    "capture": {
        "enabled": True,
        "agent": "claude-code",
        "tools": ["Write", "Edit", "MultiEdit"],
    },
    "display": {
        "max_prompt_chars": 2000,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_config(repo_path: str | Path | None = None) -> dict[str, Any]:
    """Load merged config: defaults <- global <- per-repo."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    if _GLOBAL_CONFIG_PATH.exists():
        config = _deep_merge(config, _read_toml(_GLOBAL_CONFIG_PATH))

    if repo_path:
        local_path = Path(repo_path) / _LOCAL_CONFIG_NAME
        if local_path.exists():
            config = _deep_merge(config, _read_toml(local_path))

    return config


def save_config(repo_path: str | Path | None, key: str, value: str) -> Path:
    """Save a config value. Uses per-repo config if repo_path given, else global."""
    config_path = Path(repo_path) / _LOCAL_CONFIG_NAME if repo_path else _GLOBAL_CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, Any] = _read_toml(config_path) if config_path.exists() else {}

    parts = key.split(".")
    target = existing
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = _parse_value(value)

    _write_toml(config_path, existing)
    return config_path


def get_config_value(config: dict, key: str) -> Any:
    """Get a nested config value by dotted key."""
    current: Any = config
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


def _parse_value(value: str) -> Any:
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            pass
    if value.startswith("[") and value.endswith("]"):
        return [item.strip().strip("\"'") for item in value[1:-1].split(",") if item.strip()]
    return value


def _write_toml(path: Path, data: dict) -> None:
    lines: list[str] = []
    _write_toml_section(lines, data, [])
    path.write_text("\n".join(lines).lstrip("\n") + "\n", encoding="utf-8")


def _write_toml_section(lines: list[str], data: dict, prefix: list[str]) -> None:
    scalars = {k: v for k, v in data.items() if not isinstance(v, dict)}
    tables = {k: v for k, v in data.items() if isinstance(v, dict)}
    for key, value in scalars.items():
        lines.append(f"{key} = {_toml_value(value)}")
    for key, value in tables.items():
        lines.append(f"\n[{'.'.join(prefix + [key])}]")
        _write_toml_section(lines, value, prefix + [key])


def _toml_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, list):
        return "[" + ", ".join(_toml_value(item) for item in v) + "]"
    # JSON string escaping is valid TOML basic-string escaping
    return json.dumps(str(v))
