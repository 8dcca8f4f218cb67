from __future__ import annotations

import typer
from rich import print
from rich.markup import escape

from ..config import clear_credentials, get_config_path, get_env_overrides, load_config
from ..utils import mask_secret
from .common import read_config_or_exit, write_config_or_exit


def config_set_cmd(
    *,
    token: str | None,
    owner: str | None,
    repo: str | None,
    branch: str | None,
    api_base: str | None,
) -> None:
    """Store connection settings in the local config file."""

    data = read_config_or_exit()
    updates = {
        "token": token,
        "owner": owner,
        "repo": repo,
        "branch": branch,
        "api_base": api_base,
    }
    for key, value in updates.items():
        if value is not None and value.strip():
            data[key] = value.strip()
    missing = [key for key in ("token", "owner", "repo") if not data.get(key)]
    if missing:
        print(f"[red]Missing required settings: {', '.join(missing)}[/red]")
        raise typer.Exit(code=1)
    write_config_or_exit(data)
    print(f"[green]Saved config to {get_config_path()}[/green]")


def config_show_cmd() -> None:
    """Print the effective settings with the token masked."""

    read_config_or_exit()
    cfg = load_config()
    overrides = get_env_overrides()
    print(f"config: {get_config_path()}")
    rows = {
        "token": mask_secret(cfg.token),
        "owner": cfg.owner or "",
        "repo": cfg.repo or "",
        "branch": cfg.branch,
        "api_base": cfg.api_base,
        "db_path": cfg.db_path,
        "timeout_s": str(cfg.timeout_s),
        "max_attachment_bytes": str(cfg.max_attachment_bytes),
    }
    for key, value in rows.items():
        source = " [dim](env)[/dim]" if key in overrides else ""
        print(f"  {key}: {escape(value)}{source}")
    if not cfg.is_configured():
        print("[yellow]Not configured: run `custdocs config set`[/yellow]")


def config_clear_cmd() -> None:
    """Forget the stored token, owner and repo."""

    read_config_or_exit()
    try:
        path = clear_credentials()
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"[green]Cleared credentials in {path}[/green]")
