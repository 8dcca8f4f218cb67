from __future__ import annotations

from pathlib import Path

import typer
from rich import print

from . import __version__
from .commands.common import configure_logging, tracker_from_config
from .commands.config_cmds import config_clear_cmd, config_set_cmd, config_show_cmd
from .commands.customer_cmds import (
    add_customer_cmd,
    delete_customer_cmd,
    init_cmd,
    list_customers_cmd,
    set_contact_cmd,
    show_customer_cmd,
)
from .commands.document_cmds import add_document_cmd, delete_document_cmd
from .commands.file_cmds import delete_file_cmd, download_file_cmd, upload_files_cmd
from .db import DocumentStatus

app = typer.Typer(help="custdocs: customer documents stored in a GitHub repository")
config_app = typer.Typer(help="Connection settings")
customers_app = typer.Typer(help="Manage customers")
documents_app = typer.Typer(help="Manage customer documents")
files_app = typer.Typer(help="Manage customer file attachments")
app.add_typer(config_app, name="config")
app.add_typer(customers_app, name="customers")
app.add_typer(documents_app, name="documents")
app.add_typer(files_app, name="files")

_STATUS_CHOICES = ", ".join(status.value for status in DocumentStatus)


def _version_callback(value: bool) -> None:
    if value:
        print(f"custdocs {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    configure_logging(verbose)


@app.command("init")
def init() -> None:
    """Create the database file in the repository if it does not exist."""

    init_cmd(tracker_factory=tracker_from_config)


@config_app.command("set")
def config_set(
    token: str = typer.Option(None, help="GitHub personal access token"),
    owner: str = typer.Option(None, help="Repository owner"),
    repo: str = typer.Option(None, help="Repository name"),
    branch: str = typer.Option(None, help="Branch holding the data (default: main)"),
    api_base: str = typer.Option(None, help="API base URL (default: GitHub)"),
) -> None:
    """Save connection settings."""

    config_set_cmd(token=token, owner=owner, repo=repo, branch=branch, api_base=api_base)


@config_app.command("show")
def config_show() -> None:
    """Show effective settings."""

    config_show_cmd()


@config_app.command("clear")
def config_clear() -> None:
    """Remove stored credentials."""

    config_clear_cmd()


@customers_app.command("list")
def customers_list(
    search: str = typer.Option(None, "--search", "-s", help="Filter by name"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List customers."""

    list_customers_cmd(tracker_factory=tracker_from_config, search=search, as_json=as_json)


@customers_app.command("add")
def customers_add(
    name: str = typer.Argument(..., help="Customer name"),
    contact: str = typer.Option("", help="Contact details"),
) -> None:
    """Add a customer."""

    add_customer_cmd(tracker_factory=tracker_from_config, name=name, contact=contact)


@customers_app.command("show")
def customers_show(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Show a customer."""

    show_customer_cmd(tracker_factory=tracker_from_config, customer_id=customer_id, as_json=as_json)


@customers_app.command("contact")
def customers_contact(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    contact: str = typer.Argument(..., help="New contact details"),
) -> None:
    """Set a customer's contact details."""

    set_contact_cmd(tracker_factory=tracker_from_config, customer_id=customer_id, contact=contact)


@customers_app.command("delete")
def customers_delete(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a customer with its documents and files."""

    delete_customer_cmd(tracker_factory=tracker_from_config, customer_id=customer_id, yes=yes)


@documents_app.command("add")
def documents_add(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    title: str = typer.Argument(..., help="Document title"),
    status: str = typer.Option(DocumentStatus.DRAFT.value, help=f"One of: {_STATUS_CHOICES}"),
) -> None:
    """Add a document to a customer."""

    add_document_cmd(
        tracker_factory=tracker_from_config, customer_id=customer_id, title=title, status=status
    )


@documents_app.command("delete")
def documents_delete(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    document_id: str = typer.Argument(..., help="Document id or unique prefix"),
) -> None:
    """Delete a document."""

    delete_document_cmd(
        tracker_factory=tracker_from_config, customer_id=customer_id, document_id=document_id
    )


@files_app.command("upload")
def files_upload(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    paths: list[Path] = typer.Argument(..., help="Files to upload"),
) -> None:
    """Compress and upload files."""

    upload_files_cmd(tracker_factory=tracker_from_config, customer_id=customer_id, paths=paths)


@files_app.command("download")
def files_download(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    file_id: str = typer.Argument(..., help="Attachment id or unique prefix"),
    output: Path = typer.Option(None, "--output", "-o", help="Output file or directory"),
) -> None:
    """Download an attachment."""

    download_file_cmd(
        tracker_factory=tracker_from_config, customer_id=customer_id, file_id=file_id, output=output
    )


@files_app.command("delete")
def files_delete(
    customer_id: str = typer.Argument(..., help="Customer id or unique prefix"),
    file_id: str = typer.Argument(..., help="Attachment id or unique prefix"),
) -> None:
    """Delete an attachment."""

    delete_file_cmd(tracker_factory=tracker_from_config, customer_id=customer_id, file_id=file_id)


if __name__ == "__main__":
    app()
