from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from .attachments import AttachmentPipeline, BatchResult, Upload
from .attachments.pipeline import ATTACHMENT_PREFIX
from .config import CustdocsConfig, load_config
from .db import Attachment, Customer, DatabaseObject, Document, DocumentStatus, records
from .errors import AttachmentRemovalError, CustdocsError, NotFound
from .remote import ContentStoreClient
from .sync import SyncEngine, SyncState

logger = logging.getLogger(__name__)


class Tracker:
    """Customer and document operations over one synced database.

    Every mutation is a load -> mutate -> conditional save cycle through the
    sync engine; attachment payloads go through the pipeline.
    """

    def __init__(self, engine: SyncEngine, pipeline: AttachmentPipeline) -> None:
        self.engine = engine
        self.pipeline = pipeline

    @classmethod
    def from_config(cls, cfg: CustdocsConfig | None = None) -> Tracker:
        cfg = cfg or load_config()
        client = ContentStoreClient.from_config(cfg)
        return cls(SyncEngine.from_config(client, cfg), AttachmentPipeline.from_config(client, cfg))

    @property
    def db(self) -> DatabaseObject:
        if self.engine.document is None or self.engine.state is SyncState.UNLOADED:
            return self.engine.load()
        return self.engine.document

    def reload(self) -> DatabaseObject:
        return self.engine.load()

    def init(self) -> DatabaseObject:
        return self.engine.init_db()

    def customers(self, query: str | None = None) -> list[Customer]:
        return records.search_customers(self.db, query)

    def customer(self, id_or_prefix: str) -> Customer:
        return records.resolve_customer(self.db, id_or_prefix)

    def add_customer(self, name: str, contact: str = "") -> Customer:
        return self.engine.mutate(lambda db: records.add_customer(db, name, contact))

    def set_contact(self, id_or_prefix: str, contact: str) -> Customer:
        customer_id = self.customer(id_or_prefix).id

        def _apply(db: DatabaseObject) -> Customer:
            customer = records.require_customer(db, customer_id)
            records.set_contact(customer, contact)
            return customer

        return self.engine.mutate(_apply)

    def delete_customer(self, id_or_prefix: str) -> Customer:
        """Delete a customer, its documents and its attachments.

        The database is saved first; blob deletes are then attempted for every
        attachment and failures are reported together.
        """

        customer_id = self.customer(id_or_prefix).id
        removed = self.engine.mutate(lambda db: records.delete_customer(db, customer_id))
        failures: list[tuple[str, Exception]] = []
        for attachment in removed.files:
            try:
                self._remove_blob(attachment.path)
            except CustdocsError as exc:
                failures.append((attachment.path, exc))
        if failures:
            for path, exc in failures:
                logger.warning("orphaned attachment %s: %s", path, exc)
            detail = CustdocsError(" || ".join(f"{path}: {exc}" for path, exc in failures))
            raise AttachmentRemovalError(f"{ATTACHMENT_PREFIX}/{customer_id}", blob_error=detail)
        return removed

    def add_document(
        self,
        id_or_prefix: str,
        title: str,
        *,
        status: str = DocumentStatus.DRAFT.value,
    ) -> Document:
        customer_id = self.customer(id_or_prefix).id
        return self.engine.mutate(
            lambda db: records.add_document(
                records.require_customer(db, customer_id), title, status=status
            )
        )

    def delete_document(self, id_or_prefix: str, document_id: str) -> Document:
        customer = self.customer(id_or_prefix)
        customer_id = customer.id
        document_id = records.resolve_document(customer, document_id).id
        return self.engine.mutate(
            lambda db: records.delete_document(records.require_customer(db, customer_id), document_id)
        )

    def upload_files(
        self,
        id_or_prefix: str,
        uploads: Iterable[Upload],
        *,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        customer_id = self.customer(id_or_prefix).id

        def _append(attachment: Attachment, replaced: str | None) -> None:
            try:
                self.engine.mutate(
                    lambda db: records.attach_file(
                        records.require_customer(db, customer_id), attachment
                    )
                )
            except (CustdocsError, ValueError) as exc:
                error: CustdocsError = (
                    exc if isinstance(exc, CustdocsError) else NotFound(f"customer {customer_id}")
                )
                # A replaced blob is still referenced by the existing record; keep it.
                if replaced is None:
                    try:
                        self._remove_blob(attachment.path)
                    except CustdocsError as blob_exc:
                        raise AttachmentRemovalError(
                            attachment.path, metadata_error=error, blob_error=blob_exc
                        ) from exc
                if error is exc:
                    raise
                raise error from exc

        return self.pipeline.store_batch(customer_id, uploads, cancel=cancel, on_stored=_append)

    def attachment(self, id_or_prefix: str, attachment_id: str) -> Attachment:
        return records.resolve_attachment(self.customer(id_or_prefix), attachment_id)

    def download_file(self, id_or_prefix: str, attachment_id: str) -> tuple[Attachment, bytes]:
        attachment = self.attachment(id_or_prefix, attachment_id)
        return attachment, self.pipeline.download(attachment)

    def delete_file(self, id_or_prefix: str, attachment_id: str) -> Attachment:
        """Remove the metadata record, then the blob; both are always attempted."""

        customer_id = self.customer(id_or_prefix).id
        attachment = self.attachment(customer_id, attachment_id)
        attachment_id = attachment.id
        metadata_error: Exception | None = None
        blob_error: Exception | None = None
        try:
            self.engine.mutate(
                lambda db: records.detach_file(records.require_customer(db, customer_id), attachment_id)
            )
        except CustdocsError as exc:
            metadata_error = exc
        try:
            self._remove_blob(attachment.path)
        except CustdocsError as exc:
            blob_error = exc
        if metadata_error is not None or blob_error is not None:
            raise AttachmentRemovalError(
                attachment.path, metadata_error=metadata_error, blob_error=blob_error
            )
        return attachment

    def _remove_blob(self, path: str) -> None:
        try:
            self.pipeline.remove(path)
        except NotFound:
            logger.debug("attachment %s already absent", path)
