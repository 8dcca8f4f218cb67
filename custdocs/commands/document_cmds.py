from __future__ import annotations

from rich import print
from rich.markup import escape

from ..errors import CustdocsError
from .common import fail


def add_document_cmd(*, tracker_factory, customer_id: str, title: str, status: str) -> None:
    """Append a document record to a customer."""

    tracker = tracker_factory()
    try:
        document = tracker.add_document(customer_id, title, status=status)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    print(f"[green]Added document[/green] {escape(document.title)} ({document.id})")


def delete_document_cmd(*, tracker_factory, customer_id: str, document_id: str) -> None:
    """Remove a document record from a customer."""

    tracker = tracker_factory()
    try:
        document = tracker.delete_document(customer_id, document_id)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    print(f"[green]Deleted document[/green] {escape(document.title)}")
