from __future__ import annotations

import contextlib
import json
import os
import warnings
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path("~/.config/custdocs/config.json").expanduser()
DEFAULT_API_BASE = "https://api.github.com/repos"
DEFAULT_BRANCH = "main"
DEFAULT_DB_PATH = "db.json"
MAX_ATTACHMENT_BYTES = 100 * 1024 * 1024

CONFIG_ENV_OVERRIDES = {
    "token": "CUSTDOCS_TOKEN",
    "owner": "CUSTDOCS_OWNER",
    "repo": "CUSTDOCS_REPO",
    "branch": "CUSTDOCS_BRANCH",
    "api_base": "CUSTDOCS_API_BASE",
    "db_path": "CUSTDOCS_DB_PATH",
    "timeout_s": "CUSTDOCS_TIMEOUT_S",
    "max_attachment_bytes": "CUSTDOCS_MAX_ATTACHMENT_BYTES",
    "image_max_dimension": "CUSTDOCS_IMAGE_MAX_DIMENSION",
}

CREDENTIAL_KEYS = ("token", "owner", "repo")


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("CUSTDOCS_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text(encoding="utf-8")
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    # holds the access token
    with contextlib.suppress(OSError):
        config_path.chmod(0o600)
    return config_path


def clear_credentials(path: Path | None = None) -> Path:
    data = read_config_file(path)
    for key in CREDENTIAL_KEYS:
        data.pop(key, None)
    return write_config_file(data, path)


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class CustdocsConfig:
    token: str | None = None
    owner: str | None = None
    repo: str | None = None
    branch: str = DEFAULT_BRANCH
    api_base: str = DEFAULT_API_BASE
    db_path: str = DEFAULT_DB_PATH
    commit_message: str = "Update data via custdocs"
    timeout_s: float = 15.0
    max_attachment_bytes: int = MAX_ATTACHMENT_BYTES
    image_max_dimension: int = 1920
    image_target_bytes: int = 1024 * 1024

    def is_configured(self) -> bool:
        return bool(self.token and self.owner and self.repo)

    def require_connection(self) -> None:
        missing = [key for key in CREDENTIAL_KEYS if not getattr(self, key)]
        if missing:
            raise ConfigError(f"missing connection settings: {', '.join(missing)}")


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed <= 0:
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed <= 0:
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


_INT_KEYS = {"max_attachment_bytes", "image_max_dimension", "image_target_bytes"}
_FLOAT_KEYS = {"timeout_s"}
_FIELD_NAMES = {f.name for f in fields(CustdocsConfig)}


def load_config(path: Path | None = None) -> CustdocsConfig:
    cfg = CustdocsConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: CustdocsConfig, data: dict[str, Any]) -> CustdocsConfig:
    for key, value in data.items():
        if key not in _FIELD_NAMES or value is None:
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key in _FLOAT_KEYS:
            setattr(cfg, key, _parse_float(value, getattr(cfg, key), key=key))
            continue
        text = str(value).strip()
        if key == "api_base":
            text = text.rstrip("/")
        if text:
            setattr(cfg, key, text)
    return cfg
