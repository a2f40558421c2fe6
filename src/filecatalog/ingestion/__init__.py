"""Record models, extraction and batching for crawl sessions."""

from .errors import ExtractionError
from .models import DIRECTORY_MIME_TYPE, FileRecord, RecordBatch, SessionResult

__all__ = [
    "DIRECTORY_MIME_TYPE",
    "ExtractionError",
    "FileRecord",
    "RecordBatch",
    "SessionResult",
]
