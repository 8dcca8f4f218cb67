"""Client for the GitHub repository contents API.

Every object is addressed by a repository path and versioned by its git blob
sha. Writes and deletes are conditional on that sha, which is what the sync
engine relies on for optimistic concurrency.
"""

from __future__ import annotations

import base64
import binascii
import http.client
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from ..config import DEFAULT_API_BASE, DEFAULT_BRANCH, CustdocsConfig
from ..errors import Conflict, CorruptData, NotFound, TransientError, Unauthorized
from . import http_client
from .http_client import error_message

logger = logging.getLogger(__name__)


def encode_content(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_content(text: str) -> bytes:
    # The API wraps base64 at 60 columns.
    compact = "".join(text.split())
    return base64.b64decode(compact, validate=True)


def encode_text(text: str) -> str:
    return encode_content(text.encode("utf-8"))


def decode_text(text: str) -> str:
    return decode_content(text).decode("utf-8")


@dataclass(frozen=True)
class RemoteFile:
    path: str
    content: bytes
    version: str


class ContentStoreClient:
    def __init__(
        self,
        *,
        token: str,
        owner: str,
        repo: str,
        branch: str = DEFAULT_BRANCH,
        api_base: str = DEFAULT_API_BASE,
        timeout_s: float = 15.0,
    ) -> None:
        self.token = token
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.api_base = api_base.rstrip("/")
        self.timeout_s = timeout_s

    @classmethod
    def from_config(cls, cfg: CustdocsConfig) -> ContentStoreClient:
        cfg.require_connection()
        return cls(
            token=str(cfg.token),
            owner=str(cfg.owner),
            repo=str(cfg.repo),
            branch=cfg.branch,
            api_base=cfg.api_base,
            timeout_s=cfg.timeout_s,
        )

    @property
    def repo_url(self) -> str:
        return f"{self.api_base}/{quote(self.owner, safe='')}/{quote(self.repo, safe='')}"

    def contents_url(self, path: str) -> str:
        return f"{self.repo_url}/contents/{quote(path.lstrip('/'), safe='/')}"

    def _request(
        self, method: str, url: str, body: dict[str, Any] | None = None
    ) -> tuple[int, dict[str, Any] | None]:
        try:
            status, payload = http_client.request_json(
                method,
                url,
                token=self.token,
                body=body,
                timeout_s=self.timeout_s,
            )
        except (OSError, http.client.HTTPException) as exc:
            raise TransientError(f"{method} {url} failed: {exc}") from exc
        if status == 401:
            raise Unauthorized(error_message(payload) or "token invalid or expired")
        return status, payload

    def _raise_for_status(self, status: int, payload: dict[str, Any] | None, action: str) -> None:
        if 200 <= status < 300:
            return
        detail = error_message(payload) or "unknown error"
        raise TransientError(f"{action} failed ({status}: {detail})", status=status)

    def _get_entry(self, path: str) -> dict[str, Any] | None:
        url = f"{self.contents_url(path)}?ref={quote(self.branch, safe='')}"
        status, payload = self._request("GET", url)
        if status == 404:
            return None
        self._raise_for_status(status, payload, f"read {path}")
        if not payload or not isinstance(payload.get("sha"), str):
            raise TransientError(f"read {path} failed: not a file", status=status)
        return payload

    def _fetch_blob(self, path: str, sha: str) -> str:
        url = f"{self.repo_url}/git/blobs/{quote(sha, safe='')}"
        status, payload = self._request("GET", url)
        if status == 404:
            raise NotFound(path)
        self._raise_for_status(status, payload, f"read blob for {path}")
        content = payload.get("content") if payload else None
        if not isinstance(content, str):
            raise TransientError(f"read blob for {path} failed: no content", status=status)
        return content

    def stat(self, path: str) -> str | None:
        entry = self._get_entry(path)
        return str(entry["sha"]) if entry else None

    def read_file(self, path: str) -> RemoteFile | None:
        entry = self._get_entry(path)
        if entry is None:
            return None
        sha = str(entry["sha"])
        content = entry.get("content")
        # Files above the inline limit come back with encoding "none".
        if entry.get("encoding") == "none" or (not content and int(entry.get("size") or 0) > 0):
            content = self._fetch_blob(path, sha)
        try:
            data = decode_content(content or "")
        except (binascii.Error, ValueError) as exc:
            raise CorruptData(f"{path}: invalid base64 content") from exc
        return RemoteFile(path=path, content=data, version=sha)

    def write_file(
        self,
        path: str,
        content: bytes,
        version: str | None,
        message: str,
    ) -> str | None:
        """Create (``version=None``) or update ``path``; returns the new sha."""

        body: dict[str, Any] = {
            "message": message,
            "content": encode_content(content),
            "branch": self.branch,
        }
        if version:
            body["sha"] = version
        status, payload = self._request("PUT", self.contents_url(path), body)
        detail = error_message(payload)
        if status == 409:
            raise Conflict(path, detail)
        if status == 422 and version is None and detail and "sha" in detail:
            raise Conflict(path, "object already exists")
        self._raise_for_status(status, payload, f"write {path}")
        content_meta = payload.get("content") if payload else None
        if isinstance(content_meta, dict) and isinstance(content_meta.get("sha"), str):
            return str(content_meta["sha"])
        logger.debug("write %s: response carried no sha", path)
        return None

    def delete_file(self, path: str, message: str) -> None:
        version = self.stat(path)
        if version is None:
            raise NotFound(path)
        body = {"message": message, "sha": version, "branch": self.branch}
        status, payload = self._request("DELETE", self.contents_url(path), body)
        if status == 404:
            raise NotFound(path)
        if status == 409:
            raise Conflict(path, error_message(payload))
        self._raise_for_status(status, payload, f"delete {path}")
