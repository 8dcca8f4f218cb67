from __future__ import annotations

from typing import TypeVar
from uuid import uuid4

from ..utils import now_iso, today
from .types import Attachment, Customer, DatabaseObject, Document, DocumentStatus


def new_id() -> str:
    return str(uuid4())


def add_customer(db: DatabaseObject, name: str, contact: str = "") -> Customer:
    name = name.strip()
    if not name:
        raise ValueError("customer name is required")
    customer = Customer(id=new_id(), name=name, contact=contact.strip(), created_at=now_iso())
    # Newest first.
    db.customers.insert(0, customer)
    return customer


def find_customer(db: DatabaseObject, customer_id: str) -> Customer | None:
    for customer in db.customers:
        if customer.id == customer_id:
            return customer
    return None


def require_customer(db: DatabaseObject, customer_id: str) -> Customer:
    customer = find_customer(db, customer_id)
    if customer is None:
        raise ValueError(f"unknown customer: {customer_id}")
    return customer


_T = TypeVar("_T", Customer, Document, Attachment)


def _resolve_prefix(items: list[_T], id_or_prefix: str, kind: str) -> _T:
    """Match a full id, or a unique id prefix as shown in listings."""

    needle = id_or_prefix.strip().lower()
    if not needle:
        raise ValueError(f"{kind} id is required")
    for item in items:
        if item.id.lower() == needle:
            return item
    matches = [item for item in items if item.id.lower().startswith(needle)]
    if not matches:
        raise ValueError(f"unknown {kind}: {id_or_prefix}")
    if len(matches) > 1:
        raise ValueError(f"ambiguous {kind} id prefix: {id_or_prefix}")
    return matches[0]


def resolve_customer(db: DatabaseObject, id_or_prefix: str) -> Customer:
    return _resolve_prefix(db.customers, id_or_prefix, "customer")


def resolve_document(customer: Customer, id_or_prefix: str) -> Document:
    return _resolve_prefix(customer.documents, id_or_prefix, "document")


def resolve_attachment(customer: Customer, id_or_prefix: str) -> Attachment:
    return _resolve_prefix(customer.files, id_or_prefix, "attachment")


def search_customers(db: DatabaseObject, query: str | None = None) -> list[Customer]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(db.customers)
    return [c for c in db.customers if needle in c.name.lower()]


def set_contact(customer: Customer, contact: str) -> None:
    customer.contact = contact.strip()


def delete_customer(db: DatabaseObject, customer_id: str) -> Customer:
    """Remove a customer together with its documents and attachment records."""

    customer = require_customer(db, customer_id)
    db.customers = [c for c in db.customers if c.id != customer.id]
    return customer


def add_document(
    customer: Customer,
    title: str,
    *,
    status: str = DocumentStatus.DRAFT.value,
    date: str | None = None,
) -> Document:
    title = title.strip()
    if not title:
        raise ValueError("document title is required")
    document = Document(id=new_id(), title=title, date=date or today(), status=status)
    customer.documents.append(document)
    return document


def delete_document(customer: Customer, document_id: str) -> Document:
    for index, document in enumerate(customer.documents):
        if document.id == document_id:
            return customer.documents.pop(index)
    raise ValueError(f"unknown document: {document_id}")


def find_attachment(customer: Customer, attachment_id: str) -> Attachment | None:
    for attachment in customer.files:
        if attachment.id == attachment_id:
            return attachment
    return None


def attach_file(customer: Customer, attachment: Attachment) -> None:
    # Same path means the upload overwrote the remote blob; keep one record.
    customer.files = [item for item in customer.files if item.path != attachment.path]
    customer.files.append(attachment)


def detach_file(customer: Customer, attachment_id: str) -> Attachment:
    attachment = find_attachment(customer, attachment_id)
    if attachment is None:
        raise ValueError(f"unknown attachment: {attachment_id}")
    customer.files = [item for item in customer.files if item.id != attachment_id]
    return attachment


def referenced_paths(db: DatabaseObject) -> set[str]:
    return {item.path for customer in db.customers for item in customer.files}
