from __future__ import annotations

import json

from ..errors import CorruptData
from .types import DatabaseObject


def encode_database(document: DatabaseObject) -> bytes:
    text = json.dumps(document.to_dict(), ensure_ascii=False, indent=2)
    return text.encode("utf-8")


def decode_database(raw: bytes) -> DatabaseObject:
    """Parse the stored database file.

    Anything that is not a UTF-8 JSON object of the expected shape raises
    ``CorruptData``; an unreadable file is never treated as an empty database.
    """

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptData(f"database file is not valid json: {exc}") from exc
    if not isinstance(data, dict):
        raise CorruptData("database file must hold a json object")
    try:
        return DatabaseObject.from_dict(data)
    except ValueError as exc:
        raise CorruptData(f"database file has an invalid shape: {exc}") from exc
