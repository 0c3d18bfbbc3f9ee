"""CLI entry point for operating the knowledge base without the web UI."""

import argparse
import os
import sys

from dotenv import load_dotenv

from .config import load_config
from .crawler import Crawler, ingest_url
from .db import API_KEY_CONFIG, Database
from .extractor import TextExtractor
from .logger import setup_logger
from .pdf_ingest import PdfIngestor


def run_scrape(config, db, url, crawl=False):
    crawler = Crawler.from_config(config.crawl)
    try:
        saved = ingest_url(db, crawler, url, crawl)
    finally:
        crawler.fetcher.close()

    print(f"Indexed {len(saved)} page(s):")
    for doc in saved:
        print(f"  [{doc.id}] {doc.filename}")


def run_upload(config, db, path):
    extractor = TextExtractor(
        min_chars_per_page=config.extraction.min_chars_per_page,
        ocr_dpi=config.extraction.ocr_dpi,
        tesseract_lang=config.extraction.tesseract_lang,
        ocr_enabled=config.extraction.ocr_enabled,
    )
    with open(path, "rb") as f:
        data = f.read()

    doc = PdfIngestor(db, extractor).ingest(os.path.basename(path), data)
    print(f"Indexed [{doc.id}] {doc.filename}: {len(doc.content):,} chars")


def show_documents(db):
    docs = db.list_documents()
    print(f"{'ID':>5}  {'Type':<5} {'Status':<9} {'Created':<20} Filename")
    print("-" * 90)
    for doc in docs:
        print(f"{doc.id:>5}  {doc.type:<5} {doc.status:<9} {str(doc.created_at):<20} {doc.filename}")
    print(f"\n{len(docs)} document(s)")


def show_stats(db):
    """Display knowledge-base statistics."""
    stats = db.get_stats()
    print("\n" + "=" * 50)
    print("  KNOWLEDGE BASE STATISTICS")
    print("=" * 50)
    print(f"{'Type':<20} {'Count':>8}")
    print("-" * 50)
    for doc_type, count in stats["by_type"].items():
        print(f"{doc_type:<20} {count:>8}")
    print("-" * 50)
    for status, count in stats["by_status"].items():
        print(f"{status:<20} {count:>8}")
    print("-" * 50)
    print(f"{'TOTAL':<20} {stats['total_documents']:>8}")
    print(f"{'Characters':<20} {stats['total_chars']:>8,}")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Helpdesk knowledge base")
    parser.add_argument("--config", type=str, default="config.yaml",
                        help="Path to config file")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--scrape", type=str, metavar="URL",
                        help="Index a web page")
    action.add_argument("--upload", type=str, metavar="PDF",
                        help="Index a local PDF file")
    action.add_argument("--list", action="store_true",
                        help="List indexed documents")
    action.add_argument("--delete", type=int, metavar="ID",
                        help="Delete a document by id")
    action.add_argument("--set-key", type=str, metavar="KEY",
                        help="Store the LLM API key used by the chat")
    action.add_argument("--stats", action="store_true",
                        help="Show knowledge-base statistics")
    parser.add_argument("--crawl", action="store_true",
                        help="With --scrape, follow same-site links")
    args = parser.parse_args(argv)

    load_dotenv()
    config = load_config(args.config)
    setup_logger(config.log_dir, config.log_level)
    db = Database(config.db_path)

    try:
        if args.scrape:
            run_scrape(config, db, args.scrape, args.crawl)
        elif args.upload:
            run_upload(config, db, args.upload)
        elif args.list:
            show_documents(db)
        elif args.delete is not None:
            if not db.delete_document(args.delete):
                print(f"Document {args.delete} not found")
                return 1
            print(f"Deleted document {args.delete}")
        elif args.set_key:
            db.set_config_value(API_KEY_CONFIG, args.set_key)
            print("API key stored.")
        elif args.stats:
            show_stats(db)
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
