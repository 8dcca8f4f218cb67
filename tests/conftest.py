from __future__ import annotations

import base64
import hashlib
import json
import threading
from collections.abc import Callable, Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import pytest

from custdocs.attachments import AttachmentPipeline
from custdocs.remote import ContentStoreClient
from custdocs.sync import SyncEngine
from custdocs.tracker import Tracker

OWNER = "acme"
REPO = "customers"
TOKEN = "ghp_test_token"


def blob_sha(data: bytes) -> str:
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


def _wrap_base64(data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60)) + "\n"


class FakeGitHub:
    """In-memory stand-in for the repository contents API."""

    def __init__(self, *, inline_limit: int | None = None) -> None:
        self.files: dict[str, bytes] = {}
        self.requests: list[tuple[str, str]] = []
        self.inline_limit = inline_limit
        self.omit_write_sha = False
        self.after_write: Callable[[str], None] | None = None
        self.fail_next: dict[str, tuple[int, str]] = {}
        self._lock = threading.Lock()
        self._server: ThreadingHTTPServer | None = None

    @property
    def api_base(self) -> str:
        assert self._server is not None
        return f"http://127.0.0.1:{self._server.server_address[1]}/repos"

    def seed(self, path: str, data: bytes) -> str:
        with self._lock:
            self.files[path] = data
        return blob_sha(data)

    def start(self) -> None:
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), _build_handler(self))
        thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        thread.start()

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()

    def handle(self, method: str, raw_path: str, headers: Any, body: bytes) -> tuple[int, Any]:
        parsed = urlparse(raw_path)
        self.requests.append((method, unquote(parsed.path)))
        injected = self.fail_next.pop(method, None)
        if injected is not None:
            return injected[0], {"message": injected[1]}
        if headers.get("Authorization") != f"Bearer {TOKEN}":
            return 401, {"message": "Bad credentials"}
        prefix = f"/repos/{OWNER}/{REPO}/"
        if not parsed.path.startswith(prefix):
            return 404, {"message": "Not Found"}
        rest = parsed.path[len(prefix) :]
        if rest.startswith("git/blobs/") and method == "GET":
            return self._get_blob(rest[len("git/blobs/") :])
        if not rest.startswith("contents/"):
            return 404, {"message": "Not Found"}
        path = unquote(rest[len("contents/") :])
        payload = json.loads(body.decode("utf-8")) if body else {}
        if method == "GET":
            return self._get(path)
        if method == "PUT":
            return self._put(path, payload)
        if method == "DELETE":
            return self._delete(path, payload)
        return 405, {"message": "Method Not Allowed"}

    def _get(self, path: str) -> tuple[int, Any]:
        with self._lock:
            data = self.files.get(path)
        if data is None:
            return 404, {"message": "Not Found"}
        entry = {"path": path, "sha": blob_sha(data), "size": len(data), "type": "file"}
        if self.inline_limit is not None and len(data) > self.inline_limit:
            entry.update({"content": "", "encoding": "none"})
        else:
            entry.update({"content": _wrap_base64(data), "encoding": "base64"})
        return 200, entry

    def _get_blob(self, sha: str) -> tuple[int, Any]:
        with self._lock:
            for data in self.files.values():
                if blob_sha(data) == sha:
                    return 200, {
                        "sha": sha,
                        "size": len(data),
                        "content": _wrap_base64(data),
                        "encoding": "base64",
                    }
        return 404, {"message": "Not Found"}

    def _put(self, path: str, payload: dict[str, Any]) -> tuple[int, Any]:
        sha = payload.get("sha")
        data = base64.b64decode(payload.get("content", ""))
        with self._lock:
            current = self.files.get(path)
            if current is not None and not sha:
                return 422, {"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'}
            if sha and (current is None or blob_sha(current) != sha):
                return 409, {"message": f"{path} does not match {sha}"}
            self.files[path] = data
        if self.after_write is not None:
            hook, self.after_write = self.after_write, None
            hook(path)
        status = 200 if current is not None else 201
        if self.omit_write_sha:
            return status, {"content": None, "commit": {"sha": "c0ffee"}}
        return status, {"content": {"path": path, "sha": blob_sha(data)}, "commit": {"sha": "c0ffee"}}

    def _delete(self, path: str, payload: dict[str, Any]) -> tuple[int, Any]:
        with self._lock:
            current = self.files.get(path)
            if current is None:
                return 404, {"message": "Not Found"}
            if payload.get("sha") != blob_sha(current):
                return 409, {"message": f"{path} does not match {payload.get('sha')}"}
            del self.files[path]
        return 200, {"content": None, "commit": {"sha": "c0ffee"}}


def _build_handler(fake: FakeGitHub) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def _dispatch(self) -> None:
            length = int(self.headers.get("Content-Length", "0") or 0)
            body = self.rfile.read(length) if length > 0 else b""
            status, payload = fake.handle(self.command, self.path, self.headers, body)
            raw = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(raw)))
            self.end_headers()
            self.wfile.write(raw)

        do_GET = _dispatch
        do_PUT = _dispatch
        do_DELETE = _dispatch

        def log_message(self, format: str, *args: Any) -> None:
            return

    return Handler


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CUSTDOCS_CONFIG", str(tmp_path / "config" / "config.json"))
    for name in (
        "CUSTDOCS_TOKEN",
        "CUSTDOCS_OWNER",
        "CUSTDOCS_REPO",
        "CUSTDOCS_BRANCH",
        "CUSTDOCS_API_BASE",
        "CUSTDOCS_DB_PATH",
        "CUSTDOCS_TIMEOUT_S",
        "CUSTDOCS_MAX_ATTACHMENT_BYTES",
        "CUSTDOCS_IMAGE_MAX_DIMENSION",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def github() -> Iterator[FakeGitHub]:
    fake = FakeGitHub()
    fake.start()
    try:
        yield fake
    finally:
        fake.stop()


@pytest.fixture
def make_client(github: FakeGitHub) -> Callable[..., ContentStoreClient]:
    def _make(token: str = TOKEN) -> ContentStoreClient:
        return ContentStoreClient(
            token=token,
            owner=OWNER,
            repo=REPO,
            api_base=github.api_base,
            timeout_s=5.0,
        )

    return _make


@pytest.fixture
def client(make_client: Callable[..., ContentStoreClient]) -> ContentStoreClient:
    return make_client()


@pytest.fixture
def engine(client: ContentStoreClient) -> SyncEngine:
    return SyncEngine(client)


@pytest.fixture
def tracker(client: ContentStoreClient) -> Tracker:
    return Tracker(SyncEngine(client), AttachmentPipeline(client))


@pytest.fixture
def env_connection(monkeypatch: pytest.MonkeyPatch, github: FakeGitHub) -> FakeGitHub:
    monkeypatch.setenv("CUSTDOCS_TOKEN", TOKEN)
    monkeypatch.setenv("CUSTDOCS_OWNER", OWNER)
    monkeypatch.setenv("CUSTDOCS_REPO", REPO)
    monkeypatch.setenv("CUSTDOCS_API_BASE", github.api_base)
    monkeypatch.setenv("CUSTDOCS_TIMEOUT_S", "5")
    return github
