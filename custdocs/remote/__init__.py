from __future__ import annotations

from .contents import (
    ContentStoreClient,
    RemoteFile,
    decode_content,
    decode_text,
    encode_content,
    encode_text,
)

__all__ = [
    "ContentStoreClient",
    "RemoteFile",
    "decode_content",
    "decode_text",
    "encode_content",
    "encode_text",
]
