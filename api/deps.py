"""Request-scoped dependencies shared by the API routes."""

import os
from functools import lru_cache
from typing import Iterator

from fastapi import Depends

from kb_ingest.config import AppConfig, load_config
from kb_ingest.crawler import Crawler
from kb_ingest.db import Database
from kb_ingest.extractor import TextExtractor
from kb_ingest.pdf_ingest import PdfIngestor


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return load_config(os.environ.get("KB_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_text_extractor() -> TextExtractor:
    ext = get_config().extraction
    return TextExtractor(
        min_chars_per_page=ext.min_chars_per_page,
        ocr_dpi=ext.ocr_dpi,
        tesseract_lang=ext.tesseract_lang,
        ocr_enabled=ext.ocr_enabled,
    )


def get_db(config: AppConfig = Depends(get_config)) -> Iterator[Database]:
    db = Database(config.db_path)
    try:
        yield db
    finally:
        db.close()


def get_crawler(config: AppConfig = Depends(get_config)) -> Iterator[Crawler]:
    crawler = Crawler.from_config(config.crawl)
    try:
        yield crawler
    finally:
        crawler.fetcher.close()


def get_pdf_ingestor(
    db: Database = Depends(get_db),
    extractor: TextExtractor = Depends(get_text_extractor),
) -> PdfIngestor:
    return PdfIngestor(db, extractor)
