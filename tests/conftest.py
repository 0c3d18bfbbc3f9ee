"""Shared pytest fixtures: temp store, a fake website, tokens and an API client."""

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from api import server
from api.deps import get_config, get_crawler, get_text_extractor
from kb_ingest.config import AppConfig
from kb_ingest.crawler import Crawler
from kb_ingest.db import Database
from kb_ingest.extractor import TextExtractor

JWT_SECRET = "test-jwt-secret-for-pytest-32chars!"

LONG_TEXT = "Hello world. " * 50


def html_page(title: str, body: str) -> str:
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


def make_pdf(*pages: str) -> bytes:
    """Build a PDF in memory, one page per argument."""
    import fitz

    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


class FakeSite:
    """httpx transport serving canned pages and recording every request."""

    def __init__(self, pages=None):
        # url -> (status, content-type, body)
        self.pages = pages or {}
        self.requests = []

    def add(self, url, body, status=200, content_type="text/html; charset=utf-8"):
        self.pages[url] = (status, content_type, body)

    @property
    def fetched(self):
        return [str(r.url) for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if key not in self.pages:
            return httpx.Response(404, text="not found")
        status, content_type, body = self.pages[key]
        return httpx.Response(status, text=body, headers={"content-type": content_type})


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
def app_config(tmp_path):
    config = AppConfig(db_path=str(tmp_path / "test.db"), log_dir=str(tmp_path / "logs"))
    config.auth.jwt_secret = JWT_SECRET
    config.extraction.ocr_enabled = False
    return config


@pytest.fixture
def db(app_config):
    database = Database(app_config.db_path)
    yield database
    database.close()


@pytest.fixture
def crawler(app_config, site):
    client = httpx.Client(transport=httpx.MockTransport(site.handler))
    c = Crawler.from_config(app_config.crawl, client=client)
    yield c
    c.fetcher.close()


@pytest.fixture
def extractor():
    return TextExtractor(ocr_enabled=False)


@pytest.fixture
def client(app_config, crawler, extractor):
    server.app.dependency_overrides[get_config] = lambda: app_config
    server.app.dependency_overrides[get_crawler] = lambda: crawler
    server.app.dependency_overrides[get_text_extractor] = lambda: extractor
    server.limiter.enabled = False
    yield TestClient(server.app)
    server.app.dependency_overrides.clear()
    server.limiter.enabled = True


def make_token(role: str, secret: str = JWT_SECRET) -> str:
    return jwt.encode({"sub": "1", "role": role}, secret, algorithm="HS256")


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin')}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {make_token('user')}"}
