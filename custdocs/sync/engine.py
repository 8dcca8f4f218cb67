"""Optimistic-concurrency sync of the single database file.

The engine holds the last loaded ``DatabaseObject`` together with the version
token it was read at. Saves are conditional on that token; a rejected save
moves the engine into ``CONFLICT`` and every later save fails until the caller
reloads, which discards unsaved local state. Conflicting edits are never
merged.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import TypeVar

from ..config import DEFAULT_DB_PATH, CustdocsConfig
from ..db import DatabaseObject, decode_database, encode_database
from ..errors import Conflict, CorruptData, CustdocsError, SaveInProgress, TransientError
from ..remote import ContentStoreClient
from ..utils import now_iso

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    SAVING = "saving"
    CONFLICT = "conflict"


class SyncEngine:
    def __init__(
        self,
        client: ContentStoreClient,
        *,
        path: str = DEFAULT_DB_PATH,
        message: str = "Update data via custdocs",
    ) -> None:
        self.client = client
        self.path = path
        self.message = message
        self.document: DatabaseObject | None = None
        self.version: str | None = None
        self.state = SyncState.UNLOADED
        self._lock = threading.Lock()
        self._in_flight: str | None = None

    @classmethod
    def from_config(cls, client: ContentStoreClient, cfg: CustdocsConfig) -> SyncEngine:
        return cls(client, path=cfg.db_path, message=cfg.commit_message)

    def _begin(self, operation: str) -> SyncState:
        with self._lock:
            if self._in_flight is not None:
                raise SaveInProgress(f"cannot {operation} while {self._in_flight} is in flight")
            if operation == "save":
                if self.state is SyncState.CONFLICT:
                    raise Conflict(self.path, "reload required before saving")
                if self.state is SyncState.UNLOADED:
                    raise CustdocsError("database not loaded")
            self._in_flight = operation
            previous = self.state
            self.state = SyncState.LOADING if operation == "load" else SyncState.SAVING
            return previous

    def _end(self, state: SyncState) -> None:
        with self._lock:
            self.state = state
            self._in_flight = None

    def load(self) -> DatabaseObject:
        previous = self._begin("load")
        final_state = previous
        try:
            remote = self.client.read_file(self.path)
            if remote is None:
                document, version = DatabaseObject(), None
            else:
                document, version = decode_database(remote.content), remote.version
            self.document = document
            self.version = version
            final_state = SyncState.LOADED
            logger.debug("loaded %s at %s", self.path, version)
            return document
        finally:
            self._end(final_state)

    def save(self, document: DatabaseObject | None = None) -> str | None:
        """Write ``document`` (default: the held one) conditional on the held token."""

        target = document if document is not None else self.document
        if target is None:
            raise CustdocsError("database not loaded")
        previous = self._begin("save")
        final_state = previous
        try:
            stamp = now_iso()
            written = encode_database(dataclasses.replace(target, last_updated=stamp))
            try:
                written_version = self.client.write_file(
                    self.path, written, self.version, self.message
                )
            except Conflict:
                logger.warning("save of %s rejected: remote changed since %s", self.path, self.version)
                final_state = SyncState.CONFLICT
                raise
            target.last_updated = stamp
            self.document = target
            self.version = written_version
            # The write landed; until the re-read settles the token, force a reload.
            final_state = SyncState.CONFLICT
            final_state = self._refresh_after_save(written, written_version)
            return self.version
        finally:
            self._end(final_state)

    def _refresh_after_save(self, written: bytes, written_version: str | None) -> SyncState:
        # Re-reading is advisory: it only refreshes the token when the remote
        # still holds exactly what was written.
        try:
            remote = self.client.read_file(self.path)
        except (TransientError, CorruptData) as exc:
            if written_version is None:
                raise
            logger.warning("post-save read of %s failed", self.path, exc_info=exc)
            return SyncState.LOADED
        if remote is not None and remote.content == written:
            self.version = remote.version
            return SyncState.LOADED
        logger.warning(
            "%s changed between save and re-read; local copy is stale",
            self.path,
        )
        return SyncState.CONFLICT

    def init_db(self) -> DatabaseObject:
        """Load the database, creating an empty file when the repository has none."""

        document = self.load()
        if self.version is None:
            self.save(document)
        return self.document or document

    def mutate(self, fn: Callable[[DatabaseObject], T]) -> T:
        """Apply ``fn`` to a copy of the held database and save it.

        The held document is only replaced once the save is accepted.
        """

        if self.state is SyncState.UNLOADED or self.document is None:
            self.load()
        assert self.document is not None
        working = copy.deepcopy(self.document)
        result = fn(working)
        self.save(working)
        return result
