"""Uploaded PDF → one ready knowledge-base document."""

import logging
from typing import Optional

from .db import Database
from .extractor import TextExtractor
from .models import Document, EmptyDocumentError, STATUS_READY, TYPE_PDF

logger = logging.getLogger("kb_ingest")

FALLBACK_FILENAME = "unknown.pdf"


class PdfIngestor:
    def __init__(self, db: Database, extractor: TextExtractor):
        self.db = db
        self.extractor = extractor

    def ingest(self, filename: Optional[str], data: bytes) -> Document:
        name = filename or FALLBACK_FILENAME
        page_count, text, ocr_pages, method = self.extractor.extract(data)
        if not text.strip():
            raise EmptyDocumentError(f"No readable text found in {name}")

        doc = self.db.insert_document(Document(
            filename=name,
            content=text,
            status=STATUS_READY,
            type=TYPE_PDF,
        ))
        logger.info(
            f"Indexed PDF {name}: {page_count} pages, {len(text):,} chars, "
            f"{ocr_pages} OCR pages ({method})"
        )
        return doc
