"""Blocking JSON transport for the repository contents API.

One connection per call, always closed. Bodies that are not a JSON object are
folded into ``{"message": ...}`` so callers only ever look at one error key.
"""

from __future__ import annotations

import json
import logging
from http.client import HTTPConnection, HTTPSConnection
from typing import Any
from urllib.parse import urlsplit

from .. import __version__

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"
_SNIPPET_BYTES = 240


def api_headers(token: str | None) -> dict[str, str]:
    headers = {
        "Accept": GITHUB_ACCEPT,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": f"custdocs/{__version__}",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def error_message(payload: dict[str, Any] | None) -> str | None:
    """Return the host's error text, with the first validation detail appended."""

    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    text = message.strip() if isinstance(message, str) else ""
    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        detail = first.get("message") if isinstance(first, dict) else first
        if isinstance(detail, str) and detail.strip():
            text = f"{text}: {detail.strip()}" if text else detail.strip()
    return text or None


def _open(url: str, timeout_s: float) -> tuple[HTTPConnection, str]:
    parts = urlsplit(url)
    if not parts.hostname:
        raise ValueError("missing hostname")
    conn_cls = HTTPSConnection if parts.scheme == "https" else HTTPConnection
    conn = conn_cls(parts.hostname, parts.port, timeout=timeout_s)
    target = parts.path or "/"
    if parts.query:
        target = f"{target}?{parts.query}"
    return conn, target


def _decode(raw: bytes) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        snippet = raw[:_SNIPPET_BYTES].decode("utf-8", errors="replace").strip()
        return {"message": f"non_json_response: {snippet}" if snippet else "non_json_response"}
    if isinstance(data, dict):
        return data
    return {"message": f"unexpected_json_type: {type(data).__name__}"}


def request_json(
    method: str,
    url: str,
    *,
    token: str | None = None,
    body: dict[str, Any] | None = None,
    timeout_s: float = 15.0,
) -> tuple[int, dict[str, Any] | None]:
    conn, target = _open(url, timeout_s)
    headers = api_headers(token)
    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False).encode("utf-8")
        headers["Content-Type"] = "application/json; charset=utf-8"
    try:
        conn.request(method, target, body=data, headers=headers)
        resp = conn.getresponse()
        status = int(resp.status)
        raw = resp.read()
    finally:
        conn.close()
    logger.debug("%s %s -> %s (%d bytes)", method, target.split("?", 1)[0], status, len(raw))
    return status, _decode(raw)
