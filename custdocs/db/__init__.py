from __future__ import annotations

from .codec import decode_database, encode_database
from .types import Attachment, Compression, Customer, DatabaseObject, Document, DocumentStatus

__all__ = [
    "Attachment",
    "Compression",
    "Customer",
    "DatabaseObject",
    "Document",
    "DocumentStatus",
    "decode_database",
    "encode_database",
]
