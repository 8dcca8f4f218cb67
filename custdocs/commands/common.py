from __future__ import annotations

import logging
from typing import Any, NoReturn

import typer
from rich import print
from rich.markup import escape

from ..config import read_config_file, write_config_file
from ..db import Attachment, Customer
from ..errors import Conflict, CustdocsError, Unauthorized
from ..tracker import Tracker
from ..utils import format_size


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def tracker_from_config() -> Tracker:
    try:
        return Tracker.from_config()
    except CustdocsError as exc:
        fail(exc)


def fail(exc: Exception) -> NoReturn:
    if isinstance(exc, Unauthorized):
        print(f"[red]Unauthorized: {escape(str(exc))}[/red] (run `custdocs config set`)")
    elif isinstance(exc, Conflict):
        print(f"[red]{escape(str(exc))}[/red]\n[yellow]Remote data changed; nothing was saved.[/yellow]")
    else:
        print(f"[red]{escape(str(exc))}[/red]")
    raise typer.Exit(code=1) from exc


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def short_id(value: str) -> str:
    return value[:8]


def customer_line(customer: Customer) -> str:
    contact = escape(customer.contact) if customer.contact else "[dim]no contact info[/dim]"
    return (
        f"[bold]{escape(customer.name)}[/bold]  {short_id(customer.id)}  {contact}  "
        f"docs={len(customer.documents)} files={len(customer.files)}"
    )


def attachment_line(attachment: Attachment) -> str:
    sizes = format_size(attachment.original_size)
    if attachment.compressed_size != attachment.original_size:
        sizes = f"{sizes} -> {format_size(attachment.compressed_size)}"
    return f"{short_id(attachment.id)}  {escape(attachment.name)}  {sizes}  {attachment.upload_date}"
