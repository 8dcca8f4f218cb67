from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DocumentStatus(str, Enum):
    DRAFT = "Draft"
    IN_PROGRESS = "InProgress"
    DONE = "Done"
    CANCELLED = "Cancelled"


class Compression(str, Enum):
    NONE = "none"
    IMAGE = "image"
    ZIP = "zip"


def _str(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return int(value)


def _require_id(data: dict[str, Any], kind: str) -> str:
    value = data.get("id")
    if not isinstance(value, str) or not value:
        raise ValueError(f"{kind} without id")
    return value


def _list_of_dicts(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ValueError(f"{key} must be a list of objects")
    return value


@dataclass
class Document:
    id: str
    title: str
    date: str
    # Older data carries free-form statuses; keep them verbatim.
    status: str = DocumentStatus.DRAFT.value

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "date": self.date, "status": self.status}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        return cls(
            id=_require_id(data, "document"),
            title=_str(data, "title"),
            date=_str(data, "date"),
            status=_str(data, "status", DocumentStatus.DRAFT.value) or DocumentStatus.DRAFT.value,
        )


@dataclass
class Attachment:
    id: str
    name: str
    original_size: int
    compressed_size: int
    path: str
    upload_date: str
    type: str
    compression: str = Compression.NONE.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "originalSize": self.original_size,
            "compressedSize": self.compressed_size,
            "path": self.path,
            "uploadDate": self.upload_date,
            "type": self.type,
            "compression": self.compression,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        path = _str(data, "path")
        if not path:
            raise ValueError("attachment without path")
        return cls(
            id=_require_id(data, "attachment"),
            name=_str(data, "name"),
            original_size=_int(data, "originalSize"),
            compressed_size=_int(data, "compressedSize"),
            path=path,
            upload_date=_str(data, "uploadDate"),
            type=_str(data, "type", "application/octet-stream"),
            compression=_str(data, "compression", Compression.NONE.value),
        )


@dataclass
class Customer:
    id: str
    name: str
    contact: str = ""
    documents: list[Document] = field(default_factory=list)
    files: list[Attachment] = field(default_factory=list)
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "documents": [doc.to_dict() for doc in self.documents],
            "files": [item.to_dict() for item in self.files],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Customer:
        return cls(
            id=_require_id(data, "customer"),
            name=_str(data, "name"),
            contact=_str(data, "contact"),
            documents=[Document.from_dict(item) for item in _list_of_dicts(data, "documents")],
            files=[Attachment.from_dict(item) for item in _list_of_dicts(data, "files")],
            created_at=_str(data, "createdAt"),
        )


@dataclass
class DatabaseObject:
    customers: list[Customer] = field(default_factory=list)
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "customers": [customer.to_dict() for customer in self.customers],
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DatabaseObject:
        last_updated = data.get("lastUpdated")
        return cls(
            customers=[Customer.from_dict(item) for item in _list_of_dicts(data, "customers")],
            last_updated=str(last_updated) if last_updated is not None else None,
        )
