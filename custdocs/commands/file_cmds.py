from __future__ import annotations

from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from ..attachments import Upload
from ..attachments.compress import safe_name
from ..errors import CustdocsError
from ..utils import format_size
from .common import attachment_line, fail


def upload_files_cmd(*, tracker_factory, customer_id: str, paths: list[Path]) -> None:
    """Compress and upload files for a customer, one at a time."""

    uploads: list[Upload] = []
    for path in paths:
        try:
            uploads.append(Upload.from_path(path))
        except OSError as exc:
            print(f"[red]Cannot read {escape(str(path))}: {escape(str(exc))}[/red]")
            raise typer.Exit(code=1) from exc
    tracker = tracker_factory()
    try:
        result = tracker.upload_files(customer_id, uploads)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    for attachment in result.stored:
        print(f"[green]Uploaded[/green] {attachment_line(attachment)}")
    for failure in result.failed:
        print(f"[yellow]Skipped {escape(failure.name)}: {escape(str(failure.error))}[/yellow]")
    if result.failed:
        raise typer.Exit(code=1)


def download_file_cmd(
    *, tracker_factory, customer_id: str, file_id: str, output: Path | None
) -> None:
    """Download an attachment, unwrapping any archive added on upload."""

    tracker = tracker_factory()
    try:
        attachment, data = tracker.download_file(customer_id, file_id)
        # The name comes from the shared database; never let it pick a directory.
        name = safe_name(attachment.name)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    target = output or Path(name)
    if target.is_dir():
        target = target / name
    try:
        target.write_bytes(data)
    except OSError as exc:
        print(f"[red]Failed to write {escape(str(target))}: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"[green]Saved[/green] {escape(str(target))} ({format_size(len(data))})")


def delete_file_cmd(*, tracker_factory, customer_id: str, file_id: str) -> None:
    """Delete an attachment record and its stored payload."""

    tracker = tracker_factory()
    try:
        attachment = tracker.delete_file(customer_id, file_id)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    print(f"[green]Deleted[/green] {escape(attachment.name)}")
