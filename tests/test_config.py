from __future__ import annotations

import json
from pathlib import Path

import pytest

from custdocs.config import (
    DEFAULT_API_BASE,
    MAX_ATTACHMENT_BYTES,
    clear_credentials,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
    write_config_file,
)
from custdocs.errors import ConfigError
from custdocs.remote import ContentStoreClient


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_config_path_follows_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CUSTDOCS_CONFIG", str(tmp_path / "other.json"))
    assert get_config_path() == tmp_path / "other.json"


def test_load_config_defaults_when_missing() -> None:
    cfg = load_config()

    assert cfg.token is None
    assert cfg.branch == "main"
    assert cfg.api_base == DEFAULT_API_BASE
    assert cfg.db_path == "db.json"
    assert cfg.max_attachment_bytes == MAX_ATTACHMENT_BYTES
    assert cfg.is_configured() is False


def test_env_overrides_file_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.json"
    write_config_file({"token": "file-token", "owner": "acme", "repo": "crm"}, config_path)
    monkeypatch.setenv("CUSTDOCS_TOKEN", "env-token")
    monkeypatch.setenv("CUSTDOCS_API_BASE", "http://localhost:9000/repos/")

    cfg = load_config(config_path)

    assert cfg.token == "env-token"
    assert cfg.owner == "acme"
    assert cfg.api_base == "http://localhost:9000/repos"
    assert get_env_overrides()["token"] == "env-token"


def test_invalid_numbers_warn_and_keep_default(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CUSTDOCS_TIMEOUT_S", "soon")
    monkeypatch.setenv("CUSTDOCS_MAX_ATTACHMENT_BYTES", "-5")

    with pytest.warns(RuntimeWarning):
        cfg = load_config(tmp_path / "missing.json")

    assert cfg.timeout_s == 15.0
    assert cfg.max_attachment_bytes == MAX_ATTACHMENT_BYTES


def test_unknown_and_method_keys_are_ignored(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"is_configured": "x", "theme": "dark", "repo": "crm"}))

    cfg = load_config(config_path)

    assert cfg.repo == "crm"
    assert callable(cfg.is_configured)


def test_clear_credentials_keeps_other_settings(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    write_config_file(
        {"token": "t", "owner": "o", "repo": "r", "branch": "data"}, config_path
    )

    clear_credentials(config_path)

    assert read_config_file(config_path) == {"branch": "data"}


def test_client_requires_full_connection() -> None:
    cfg = load_config()
    cfg.token = "t"

    with pytest.raises(ConfigError, match="owner, repo"):
        ContentStoreClient.from_config(cfg)
