from __future__ import annotations

from .compress import (
    CompressedPayload,
    Strategy,
    Upload,
    compress,
    decide_strategy,
    enforce_size_limit,
)
from .pipeline import AttachmentPipeline, BatchFailure, BatchResult, attachment_path

__all__ = [
    "AttachmentPipeline",
    "BatchFailure",
    "BatchResult",
    "CompressedPayload",
    "Strategy",
    "Upload",
    "attachment_path",
    "compress",
    "decide_strategy",
    "enforce_size_limit",
]
