"""HTTP page fetcher for the crawler: one attempt per URL, browser user agent."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import CrawlConfig

logger = logging.getLogger("kb_ingest")


@dataclass
class FetchedPage:
    url: str
    status_code: int
    content_type: str
    text: str

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()


class Fetcher:
    def __init__(self, config: CrawlConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._client = client
        if client is not None:
            client.headers["User-Agent"] = config.user_agent

    @property
    def client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    def close(self):
        if self._client and not self._client.is_closed:
            self._client.close()

    def fetch_page(self, url: str) -> FetchedPage:
        """GET a page. Raises on transport errors, non-2xx and oversized bodies."""
        limit = self.config.max_page_size
        body = bytearray()

        with self.client.stream("GET", url) as resp:
            resp.raise_for_status()

            content_length = resp.headers.get("content-length")
            if content_length and int(content_length) > limit:
                raise ValueError(f"Page too large: {content_length} bytes")

            for chunk in resp.iter_bytes(chunk_size=65536):
                body.extend(chunk)
                if len(body) > limit:
                    raise ValueError(f"Page too large: over {limit} bytes during download")

            encoding = resp.charset_encoding or "utf-8"

        try:
            text = body.decode(encoding, errors="replace")
        except LookupError:
            # unknown charset label in the header
            text = body.decode("utf-8", errors="replace")

        return FetchedPage(
            url=url,
            status_code=resp.status_code,
            content_type=resp.headers.get("content-type", ""),
            text=text,
        )
