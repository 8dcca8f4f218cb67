from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from ..errors import CustdocsError
from .common import attachment_line, customer_line, fail, short_id


def init_cmd(*, tracker_factory) -> None:
    """Create the database file if the repository has none."""

    tracker = tracker_factory()
    try:
        db = tracker.init()
    except CustdocsError as exc:
        fail(exc)
    print(
        f"[green]Database ready[/green] ({len(db.customers)} customers, "
        f"version {tracker.engine.version})"
    )


def list_customers_cmd(*, tracker_factory, search: str | None, as_json: bool) -> None:
    """List customers, newest first."""

    tracker = tracker_factory()
    try:
        customers = tracker.customers(search)
    except CustdocsError as exc:
        fail(exc)
    if as_json:
        typer.echo(json.dumps([c.to_dict() for c in customers], ensure_ascii=False, indent=2))
        return
    if not customers:
        print("[yellow]No customers found[/yellow]")
        return
    print(f"{len(customers)} customer(s)")
    for customer in customers:
        print(customer_line(customer))


def add_customer_cmd(*, tracker_factory, name: str, contact: str) -> None:
    """Create a customer."""

    tracker = tracker_factory()
    try:
        customer = tracker.add_customer(name, contact)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    print(f"[green]Added[/green] {escape(customer.name)} ({customer.id})")


def show_customer_cmd(*, tracker_factory, customer_id: str, as_json: bool) -> None:
    """Show one customer with documents and files."""

    tracker = tracker_factory()
    try:
        customer = tracker.customer(customer_id)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    if as_json:
        typer.echo(json.dumps(customer.to_dict(), ensure_ascii=False, indent=2))
        return
    print(customer_line(customer))
    print(f"id: {customer.id}  created: {customer.created_at}")
    print("[bold]Documents[/bold]")
    if not customer.documents:
        print("  [dim]none[/dim]")
    for doc in customer.documents:
        print(f"  {short_id(doc.id)}  {escape(doc.title)}  {doc.date}  {escape(doc.status)}")
    print("[bold]Files[/bold]")
    if not customer.files:
        print("  [dim]none[/dim]")
    for attachment in customer.files:
        print(f"  {attachment_line(attachment)}")


def set_contact_cmd(*, tracker_factory, customer_id: str, contact: str) -> None:
    """Update a customer's contact details."""

    tracker = tracker_factory()
    try:
        customer = tracker.set_contact(customer_id, contact)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    print(f"[green]Saved contact for[/green] {escape(customer.name)}")


def delete_customer_cmd(*, tracker_factory, customer_id: str, yes: bool) -> None:
    """Delete a customer with all documents and files."""

    tracker = tracker_factory()
    try:
        customer = tracker.customer(customer_id)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    if not yes:
        typer.confirm(
            f"Delete {customer.name} and {len(customer.documents)} document(s), "
            f"{len(customer.files)} file(s)?",
            abort=True,
        )
    try:
        tracker.delete_customer(customer.id)
    except (CustdocsError, ValueError) as exc:
        fail(exc)
    print(f"[green]Deleted[/green] {escape(customer.name)}")
