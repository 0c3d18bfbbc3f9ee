"""Data models for the knowledge base."""

from dataclasses import dataclass
from typing import Optional

STATUS_INDEXING = "indexing"
STATUS_READY = "ready"
STATUS_ERROR = "error"
STATUSES = (STATUS_INDEXING, STATUS_READY, STATUS_ERROR)

TYPE_PDF = "pdf"
TYPE_URL = "url"
TYPES = (TYPE_PDF, TYPE_URL)


class EmptyDocumentError(ValueError):
    """Raised when a document would be stored without any text."""


@dataclass
class Document:
    filename: str
    content: str
    status: str = STATUS_READY
    type: str = TYPE_PDF
    url: Optional[str] = None
    # Filled by the store on insert
    id: Optional[int] = None
    created_at: Optional[str] = None

    def summary(self) -> dict:
        """Listing view: everything except the content."""
        return {
            "id": self.id,
            "filename": self.filename,
            "status": self.status,
            "created_at": self.created_at,
            "type": self.type,
            "url": self.url,
        }
