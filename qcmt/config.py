"""Configuration management for qcmt."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigError

CONFIG_DIR_NAME = ".qcmt"
CONFIG_FILE_NAME = "config.json"

_TRUTHY = {"1", "true", "yes", "on"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class Config:
    """Runtime configuration for qcmt."""

    git_repo_path: str = "."
    # None means: the branch's configured upstream remote, else "origin".
    remote: Optional[str] = None
    auto_push: bool = True
    # None means: qcmt-push.log inside the repository's git directory.
    push_log_file: Optional[str] = None
    log_level: str = "WARNING"


_CONFIG_STATE: Dict[str, Optional[Config]] = {"active": None}


def _ensure_path(path_like: Optional[Path]) -> Path:
    if path_like is None:
        return Path.cwd().resolve(strict=False)
    return Path(path_like).expanduser().resolve(strict=False)


def _config_dir(repo_root: Optional[Path] = None) -> Path:
    return _ensure_path(repo_root) / CONFIG_DIR_NAME


def config_file_path(repo_root: Optional[Path] = None) -> Path:
    return _config_dir(repo_root) / CONFIG_FILE_NAME


def _as_bool(value: Any) -> bool:
    return str(value).strip().lower() in _TRUTHY


def _resolve_repo_path(raw: str, base: Path) -> str:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = base / candidate
    return str(candidate.resolve(strict=False))


def load_persisted_config(
    repo_root: Optional[Path] = None,
) -> Optional[Config]:
    cfg_path = config_file_path(repo_root)
    if not cfg_path.exists():
        return None
    try:
        data = json.loads(cfg_path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid configuration file {cfg_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration file {cfg_path}: expected an object")

    # Ignore keys written by newer or older versions.
    known = {f.name for f in fields(Config)}
    data = {k: v for k, v in data.items() if k in known}
    data["git_repo_path"] = _resolve_repo_path(
        data.get("git_repo_path") or ".", cfg_path.parent.parent
    )
    return Config(**data)


def load_config(
    *,
    repo_root: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Config:
    """Build configuration from config file, environment and overrides."""

    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    repo_root = _ensure_path(repo_root)
    persisted = load_persisted_config(repo_root) or Config(git_repo_path=str(repo_root))

    git_repo_path = _resolve_repo_path(
        overrides.get("repo_path")
        or os.environ.get("QCMT_REPO_PATH")
        or persisted.git_repo_path,
        repo_root,
    )

    remote = (
        overrides.get("remote")
        or os.environ.get("QCMT_REMOTE")
        or persisted.remote
    )

    auto_push_env = os.environ.get("QCMT_AUTO_PUSH")
    if "auto_push" in overrides:
        auto_push = _as_bool(overrides["auto_push"])
    elif auto_push_env:
        auto_push = _as_bool(auto_push_env)
    else:
        auto_push = bool(persisted.auto_push)

    push_log_file = (
        overrides.get("push_log_file")
        or os.environ.get("QCMT_PUSH_LOG")
        or persisted.push_log_file
    )

    log_level = str(
        overrides.get("log_level")
        or os.environ.get("QCMT_LOG_LEVEL")
        or persisted.log_level
    ).upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(f"Unknown log level: {log_level}")

    config = Config(
        git_repo_path=git_repo_path,
        remote=remote,
        auto_push=auto_push,
        push_log_file=push_log_file,
        log_level=log_level,
    )

    set_active_config(config)
    return config


def set_active_config(config: Config) -> None:
    _CONFIG_STATE["active"] = config


def get_active_config() -> Config:
    active = _CONFIG_STATE.get("active")
    if active is None:
        return load_config()
    return active


def clear_active_config() -> None:
    _CONFIG_STATE["active"] = None
