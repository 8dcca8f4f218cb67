from __future__ import annotations

import logging
import threading
import zipfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ..config import MAX_ATTACHMENT_BYTES, CustdocsConfig
from ..db import Attachment, Compression
from ..db.records import new_id
from ..errors import CorruptData, CustdocsError, NotFound, TooLarge, TransientError
from ..remote import ContentStoreClient
from ..utils import now_iso
from .compress import (
    DEFAULT_MAX_DIMENSION,
    DEFAULT_TARGET_BYTES,
    CompressedPayload,
    Upload,
    compress,
    decide_strategy,
    enforce_size_limit,
    extract_archive,
)

logger = logging.getLogger(__name__)

ATTACHMENT_PREFIX = "attachments"


def attachment_path(customer_id: str, stored_name: str) -> str:
    return f"{ATTACHMENT_PREFIX}/{customer_id}/{stored_name}"


@dataclass
class BatchFailure:
    name: str
    error: CustdocsError


@dataclass
class BatchResult:
    stored: list[Attachment] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)
    cancelled: bool = False


class AttachmentPipeline:
    def __init__(
        self,
        client: ContentStoreClient,
        *,
        max_bytes: int = MAX_ATTACHMENT_BYTES,
        max_dimension: int = DEFAULT_MAX_DIMENSION,
        target_bytes: int = DEFAULT_TARGET_BYTES,
    ) -> None:
        self.client = client
        self.max_bytes = max_bytes
        self.max_dimension = max_dimension
        self.target_bytes = target_bytes

    @classmethod
    def from_config(cls, client: ContentStoreClient, cfg: CustdocsConfig) -> AttachmentPipeline:
        return cls(
            client,
            max_bytes=cfg.max_attachment_bytes,
            max_dimension=cfg.image_max_dimension,
            target_bytes=cfg.image_target_bytes,
        )

    def prepare(self, upload: Upload) -> CompressedPayload:
        strategy = decide_strategy(upload)
        prepared = compress(
            upload,
            strategy,
            max_dimension=self.max_dimension,
            target_bytes=self.target_bytes,
        )
        logger.debug(
            "%s: %s %d -> %d bytes",
            upload.name,
            strategy.value,
            prepared.original_size,
            prepared.compressed_size,
        )
        enforce_size_limit(prepared.stored_name, prepared.compressed_size, self.max_bytes)
        return prepared

    def store(self, customer_id: str, upload: Upload) -> Attachment:
        """Upload one file and return its metadata record.

        The caller appends the record to the customer and saves the database.
        """

        attachment, _ = self._put(customer_id, upload)
        return attachment

    def _put(self, customer_id: str, upload: Upload) -> tuple[Attachment, str | None]:
        # Also returns the version of the blob this upload replaced, if any.
        prepared = self.prepare(upload)
        path = attachment_path(customer_id, prepared.stored_name)
        # Same-name uploads replace the existing blob.
        existing = self.client.stat(path)
        if existing is not None:
            logger.info("replacing existing attachment %s", path)
        self.client.write_file(path, prepared.payload, existing, f"Upload {prepared.stored_name}")
        attachment = Attachment(
            id=new_id(),
            name=upload.name,
            original_size=prepared.original_size,
            compressed_size=prepared.compressed_size,
            path=path,
            upload_date=now_iso(),
            type=prepared.mime_type,
            compression=prepared.compression,
        )
        return attachment, existing

    def store_batch(
        self,
        customer_id: str,
        uploads: Iterable[Upload],
        *,
        cancel: threading.Event | None = None,
        on_stored: Callable[[Attachment, str | None], None] | None = None,
    ) -> BatchResult:
        """Store uploads one after another.

        ``on_stored`` runs for each file before the next one starts and gets the
        version of the blob the upload replaced (``None`` for a new path). Oversized
        files and transient host errors are recorded in ``failed`` and the batch
        continues; any other error aborts the batch.
        """

        result = BatchResult()
        for upload in uploads:
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break
            try:
                attachment, replaced = self._put(customer_id, upload)
                if on_stored is not None:
                    on_stored(attachment, replaced)
            except (TooLarge, TransientError) as exc:
                logger.warning("upload of %s skipped: %s", upload.name, exc)
                result.failed.append(BatchFailure(name=upload.name, error=exc))
                continue
            result.stored.append(attachment)
        return result

    def retrieve(self, path: str) -> bytes:
        remote = self.client.read_file(path)
        if remote is None:
            raise NotFound(path)
        return remote.content

    def download(self, attachment: Attachment) -> bytes:
        payload = self.retrieve(attachment.path)
        if attachment.compression == Compression.ZIP.value:
            try:
                return extract_archive(payload)
            except (zipfile.BadZipFile, ValueError) as exc:
                raise CorruptData(f"{attachment.path}: unreadable archive") from exc
        return payload

    def remove(self, path: str) -> None:
        self.client.delete_file(path, f"Delete {path}")
