"""HTML → plain text for the knowledge base.

Heuristic boilerplate removal: drop chrome (scripts, navigation, cookie
banners...), then prefer the first content container that holds a
substantial amount of text, falling back to the whole body.
"""

import re
from dataclasses import dataclass
from typing import List
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup

SUBSTANTIAL_CONTENT_CHARS = 500
MIN_CONTAINER_CHARS = 200

NOISE_TAGS = ["script", "style", "nav", "footer", "iframe", "noscript", "aside"]

# Class/id markers match whole tokens; wrappers holding page content are kept
NOISE_SELECTORS = [
    ".ad", ".ads", ".advert", ".advertisement", ".ad-banner", "[id^='ad-']",
    ".cookie", ".cookies", ".cookie-banner", ".cookie-notice", ".cookie-consent",
    "#cookie-banner", "#cookie-notice", "#cookie-consent",
    ".menu", "#menu", "[role='navigation']",
    ".sidebar", "#sidebar",
]

# Checked in order; the first one with substantial text wins
CONTENT_SELECTORS = [
    "main",
    "article",
    "[role='main']",
    "#content",
    ".content",
    "#main-content",
    ".main-content",
    ".post-content",
    ".entry-content",
    ".article-body",
    ".markdown-body",
    ".theme-doc-markdown",
    ".rst-content",
    ".documentation",
    ".docs-content",
    "#main",
]
_CONTENT_ANY = ", ".join(CONTENT_SELECTORS)

_WS = re.compile(r"\s+")


@dataclass(frozen=True)
class PageContent:
    title: str
    text: str


def clean_text(text: str) -> str:
    return _WS.sub(" ", text).strip()


def _is_wrapper(el) -> bool:
    return el.name in ("html", "body") or el.select_one(_CONTENT_ANY) is not None


def _strip_noise(soup: BeautifulSoup):
    for el in soup.find_all(NOISE_TAGS):
        # nested matches are already gone with their parent
        if not el.decomposed:
            el.decompose()

    for selector in NOISE_SELECTORS:
        for el in soup.select(selector):
            if not el.decomposed and not _is_wrapper(el):
                el.decompose()


def _main_text(soup: BeautifulSoup) -> str:
    chosen = ""
    for selector in CONTENT_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = clean_text(el.get_text(" "))
        if len(text) > SUBSTANTIAL_CONTENT_CHARS:
            chosen = text
            break

    if len(chosen) < MIN_CONTAINER_CHARS:
        body = soup.body or soup
        chosen = clean_text(body.get_text(" "))
    return chosen


def extract_content(html: str, url: str) -> PageContent:
    """Extract the title and cleaned body text of an HTML page.

    Pure function: the same input always yields the same output.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = ""
    if soup.title is not None:
        title = soup.title.get_text().strip()

    _strip_noise(soup)
    # <title> text would otherwise leak into the body fallback
    if soup.title is not None:
        soup.title.decompose()

    return PageContent(title=title or url, text=_main_text(soup))


def extract_links(html: str, base_url: str) -> List[str]:
    """Absolute, fragment-free http(s) links of all anchors, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    links = []
    seen = set()
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href:
            continue
        try:
            url, _ = urldefrag(urljoin(base_url, href))
        except ValueError:
            # malformed href, e.g. an unclosed IPv6 bracket
            continue
        if not url.startswith(("http://", "https://")):
            continue
        if url in seen:
            continue
        seen.add(url)
        links.append(url)
    return links
