from __future__ import annotations


class CustdocsError(RuntimeError):
    """Base class for failures surfaced by the sync and attachment core."""


class ConfigError(CustdocsError):
    pass


class Unauthorized(CustdocsError):
    pass


class NotFound(CustdocsError):
    def __init__(self, path: str) -> None:
        super().__init__(f"not found: {path}")
        self.path = path


class Conflict(CustdocsError):
    """The store's version of a path no longer matches the caller's token."""

    def __init__(self, path: str, detail: str | None = None) -> None:
        suffix = f" ({detail})" if detail else ""
        super().__init__(f"version conflict on {path}{suffix}")
        self.path = path
        self.detail = detail


class TransientError(CustdocsError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class CorruptData(CustdocsError):
    pass


class TooLarge(CustdocsError):
    def __init__(self, name: str, size: int, limit: int) -> None:
        super().__init__(f"{name} is {size} bytes after compression (limit {limit})")
        self.name = name
        self.size = size
        self.limit = limit


class SaveInProgress(CustdocsError):
    pass


class AttachmentRemovalError(CustdocsError):
    """One or both halves of an attachment delete failed.

    ``metadata_error`` is the failure saving the database without the record,
    ``blob_error`` the failure deleting the remote payload.
    """

    def __init__(
        self,
        path: str,
        *,
        metadata_error: Exception | None = None,
        blob_error: Exception | None = None,
    ) -> None:
        parts = []
        if metadata_error is not None:
            parts.append(f"metadata: {metadata_error}")
        if blob_error is not None:
            parts.append(f"blob: {blob_error}")
        super().__init__(f"failed to remove attachment {path} | " + " || ".join(parts))
        self.path = path
        self.metadata_error = metadata_error
        self.blob_error = blob_error
