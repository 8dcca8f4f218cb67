from __future__ import annotations

import json
import threading

import pytest

from custdocs.db import DatabaseObject, decode_database, records
from custdocs.errors import Conflict, CorruptData, CustdocsError, SaveInProgress, Unauthorized
from custdocs.remote import ContentStoreClient
from custdocs.sync import SyncEngine, SyncState


def test_empty_repository_scenario(github, client: ContentStoreClient) -> None:
    engine = SyncEngine(client)

    db = engine.load()
    assert db.customers == []
    assert engine.version is None
    assert engine.state is SyncState.LOADED

    records.add_customer(db, "First")
    first_token = engine.save(db)
    assert first_token is not None
    assert "db.json" in github.files

    records.add_customer(db, "Second")
    second_token = engine.save(db)
    assert second_token is not None and second_token != first_token

    stale = SyncEngine(client)
    stale.load()
    stale.version = first_token
    with pytest.raises(Conflict):
        stale.save(DatabaseObject())
    assert stale.state is SyncState.CONFLICT
    remote = decode_database(github.files["db.json"])
    assert [c.name for c in remote.customers] == ["Second", "First"]


def test_second_writer_with_stale_token_conflicts(github, client: ContentStoreClient) -> None:
    SyncEngine(client).init_db()
    a = SyncEngine(client)
    b = SyncEngine(client)
    a.load()
    b.load()
    assert a.version == b.version

    records.add_customer(a.document, "From A")
    a.save()
    before = github.files["db.json"]

    records.add_customer(b.document, "From B")
    with pytest.raises(Conflict):
        b.save()

    assert github.files["db.json"] == before
    assert [c.name for c in decode_database(before).customers] == ["From A"]


def test_conflict_blocks_saves_until_reload(github, client: ContentStoreClient) -> None:
    SyncEngine(client).init_db()
    a = SyncEngine(client)
    b = SyncEngine(client)
    a.load()
    b.load()
    a.mutate(lambda db: records.add_customer(db, "A"))

    with pytest.raises(Conflict):
        b.mutate(lambda db: records.add_customer(db, "B"))
    with pytest.raises(Conflict, match="reload required"):
        b.save()

    b.load()
    assert b.state is SyncState.LOADED
    b.mutate(lambda db: records.add_customer(db, "B"))
    names = [c.name for c in decode_database(github.files["db.json"]).customers]
    assert names == ["B", "A"]


def test_mutate_keeps_held_document_when_save_fails(github, engine: SyncEngine) -> None:
    engine.init_db()
    github.seed("db.json", json.dumps({"customers": []}).encode())

    with pytest.raises(Conflict):
        engine.mutate(lambda db: records.add_customer(db, "Lost"))

    assert engine.document is not None
    assert engine.document.customers == []


def test_save_refreshes_token_when_write_response_omits_it(github, engine: SyncEngine) -> None:
    github.omit_write_sha = True
    engine.load()

    token = engine.save(DatabaseObject())

    remote = engine.client.read_file("db.json")
    assert remote is not None
    assert token == remote.version
    assert engine.state is SyncState.LOADED


def test_interleaved_write_after_save_is_not_adopted(github, engine: SyncEngine) -> None:
    engine.load()
    github.after_write = lambda path: github.seed(path, b'{"customers": [], "lastUpdated": "x"}')

    written_token = engine.save(DatabaseObject())

    assert engine.version == written_token
    assert engine.state is SyncState.CONFLICT
    with pytest.raises(Conflict):
        engine.save()


def test_corrupt_remote_database_is_surfaced(github, engine: SyncEngine) -> None:
    github.seed("db.json", b"{oops")

    with pytest.raises(CorruptData):
        engine.load()

    assert engine.document is None
    assert engine.state is SyncState.UNLOADED


def test_unauthorized_load_propagates(make_client) -> None:
    engine = SyncEngine(make_client(token="expired"))

    with pytest.raises(Unauthorized):
        engine.load()


def test_save_requires_load(engine: SyncEngine) -> None:
    with pytest.raises(CustdocsError, match="not loaded"):
        engine.save(DatabaseObject())


def test_init_db_creates_file_once(github, engine: SyncEngine) -> None:
    engine.init_db()
    first = github.files["db.json"]

    SyncEngine(engine.client).init_db()

    assert github.files["db.json"] == first
    assert decode_database(first).last_updated is not None


def test_second_save_while_one_is_in_flight_is_rejected(github, engine: SyncEngine) -> None:
    engine.load()
    entered = threading.Event()
    release = threading.Event()
    original_write = engine.client.write_file

    def _slow_write(*args, **kwargs):
        entered.set()
        release.wait(5)
        return original_write(*args, **kwargs)

    engine.client.write_file = _slow_write  # type: ignore[method-assign]
    errors: list[BaseException] = []

    def _run() -> None:
        try:
            engine.save(DatabaseObject())
        except BaseException as exc:  # pragma: no cover - surfaced via assert below
            errors.append(exc)

    worker = threading.Thread(target=_run)
    worker.start()
    assert entered.wait(5)
    assert engine.state is SyncState.SAVING
    with pytest.raises(SaveInProgress):
        engine.save(DatabaseObject())
    with pytest.raises(SaveInProgress):
        engine.load()
    release.set()
    worker.join(5)

    assert errors == []
    assert engine.state is SyncState.LOADED
    assert "db.json" in github.files


def test_rejected_save_leaves_caller_document_untouched(github, engine: SyncEngine) -> None:
    engine.init_db()
    github.seed("db.json", json.dumps({"customers": []}).encode())
    document = DatabaseObject(last_updated="2024-01-01T00:00:00.000Z")

    with pytest.raises(Conflict):
        engine.save(document)

    assert document.last_updated == "2024-01-01T00:00:00.000Z"


def test_accepted_save_stamps_the_saved_document(github, engine: SyncEngine) -> None:
    engine.load()
    document = DatabaseObject()

    engine.save(document)

    assert document.last_updated is not None
    assert decode_database(github.files["db.json"]).last_updated == document.last_updated
