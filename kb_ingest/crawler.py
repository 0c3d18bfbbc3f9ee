"""Bounded breadth-first site crawler feeding the knowledge base.

One invocation starts from a seed URL. Without ``crawl`` only the seed is
fetched; with ``crawl`` same-host links are followed until the page budget
is used up or the frontier runs dry. Pages are fetched one at a time, once
each; failures are logged and skipped.
"""

import logging
from collections import deque
from typing import List, Optional
from urllib.parse import urlparse

import httpx

from .config import CrawlConfig
from .content import extract_content, extract_links
from .db import Database
from .fetcher import Fetcher
from .models import Document, STATUS_READY, TYPE_URL

logger = logging.getLogger("kb_ingest")

SKIP_EXTENSIONS = (
    # images
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".ico", ".bmp", ".tif", ".tiff",
    # archives
    ".zip", ".tar", ".gz", ".tgz", ".rar", ".7z", ".bz2",
    # stylesheets / scripts
    ".css", ".js", ".mjs", ".map",
    # other binaries
    ".pdf", ".mp3", ".mp4", ".avi", ".mov", ".woff", ".woff2", ".ttf", ".eot",
    ".exe", ".dmg", ".iso", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
)


class NoReadableContentError(ValueError):
    """Raised when a crawl produced no documents."""

    def __init__(self, message: str = "No readable text found on page(s)"):
        super().__init__(message)


def hostname(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def has_skipped_extension(url: str) -> bool:
    return urlparse(url).path.lower().endswith(SKIP_EXTENSIONS)


class Frontier:
    """FIFO of candidate URLs plus the set of URLs already dequeued."""

    def __init__(self, seed_url: str):
        self.queue = deque([seed_url])
        self.visited = set()

    def __bool__(self) -> bool:
        return bool(self.queue)

    def next_url(self) -> Optional[str]:
        """Pop URLs until an unvisited one turns up; mark it visited."""
        while self.queue:
            url = self.queue.popleft()
            if url in self.visited:
                continue
            self.visited.add(url)
            return url
        return None

    def add(self, url: str):
        if url not in self.visited:
            self.queue.append(url)


class Crawler:
    def __init__(self, fetcher: Fetcher, max_pages: int = 10,
                 single_page_budget: int = 1, min_page_chars: int = 50):
        self.fetcher = fetcher
        self.max_pages = max_pages
        self.single_page_budget = single_page_budget
        self.min_page_chars = min_page_chars

    @classmethod
    def from_config(cls, config: CrawlConfig, client: Optional[httpx.Client] = None) -> "Crawler":
        return cls(
            Fetcher(config, client),
            max_pages=config.max_pages,
            single_page_budget=config.single_page_budget,
            min_page_chars=config.min_page_chars,
        )

    def budget(self, crawl: bool) -> int:
        return self.max_pages if crawl else self.single_page_budget

    def crawl(self, seed_url: str, crawl: bool = False) -> List[Document]:
        """Collect one unsaved Document per qualifying page."""
        seed_host = hostname(seed_url)
        budget = self.budget(crawl)
        frontier = Frontier(seed_url)
        results: List[Document] = []

        logger.info(f"Crawling {seed_url} (crawl={crawl}, budget={budget})")

        while frontier and len(results) < budget:
            url = frontier.next_url()
            if url is None:
                break

            try:
                page = self.fetcher.fetch_page(url)
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                logger.warning(f"Skipping {url}: {e}")
                continue

            if not page.is_html:
                logger.info(f"Skipping {url}: content-type {page.content_type or 'unknown'}")
                continue

            content = extract_content(page.text, url)
            if len(content.text) > self.min_page_chars:
                results.append(Document(
                    filename=f"{content.title} [{url}]",
                    content=f"URL: {url}\nTITLE: {content.title}\n\n{content.text}",
                    status=STATUS_READY,
                    type=TYPE_URL,
                    url=url,
                ))
                logger.info(f"Extracted {url}: {len(content.text):,} chars")
            else:
                logger.info(f"Skipping {url}: only {len(content.text)} chars of text")

            if crawl:
                for link in extract_links(page.text, url):
                    if hostname(link) != seed_host or has_skipped_extension(link):
                        continue
                    frontier.add(link)

        logger.info(
            f"Crawl of {seed_url} done: {len(results)} pages, "
            f"{len(frontier.visited)} visited"
        )
        return results


def ingest_url(db: Database, crawler: Crawler, seed_url: str,
               crawl: bool = False) -> List[Document]:
    """Crawl and store. Inserts are independent; a failed insert keeps earlier ones."""
    results = crawler.crawl(seed_url, crawl)
    if not results:
        raise NoReadableContentError()

    saved = []
    for doc in results:
        saved.append(db.insert_document(doc))
    return saved
