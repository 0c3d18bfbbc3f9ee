import pytest
from conftest import LONG_TEXT, html_page, make_pdf, make_token

from api import rag
from kb_ingest.db import API_KEY_CONFIG
from kb_ingest.models import Document


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# --- auth ---

@pytest.mark.parametrize("method,path", [
    ("post", "/knowledge/scrape"),
    ("post", "/knowledge/upload"),
    ("get", "/knowledge"),
    ("delete", "/knowledge?id=1"),
    ("get", "/knowledge/config"),
    ("post", "/knowledge/config"),
    ("get", "/knowledge/stats"),
])
def test_knowledge_endpoints_require_token(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_bad_token_is_rejected(client):
    headers = {"Authorization": f"Bearer {make_token('admin', secret='wrong-secret-wrong-secret-wrong!!')}"}
    response = client.get("/knowledge", headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid Token"}


def test_non_admin_is_forbidden(client, user_headers):
    response = client.get("/knowledge", headers=user_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden"}


# --- scrape ---

def test_scrape_single_page(client, site, admin_headers):
    site.add("https://example.com/", html_page("Example", f"<main>{LONG_TEXT}</main>"))

    response = client.post("/knowledge/scrape", json={"url": "https://example.com"},
                           headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 1
    assert body["pages"][0].startswith("Example [")
    assert len(site.requests) == 1

    listed = client.get("/knowledge", headers=admin_headers).json()
    assert len(listed) == 1
    assert listed[0]["filename"].startswith("Example [")
    assert listed[0]["status"] == "ready"
    assert listed[0]["type"] == "url"
    assert listed[0]["url"] == "https://example.com"


def test_scrape_crawl_stays_on_site(client, site, admin_headers):
    site.add("https://example.com/", html_page(
        "Home",
        f"<main>{LONG_TEXT}</main><a href='/a'>a</a><a href='https://elsewhere.com/'>x</a>",
    ))
    site.add("https://example.com/a", html_page("A", f"<main>{LONG_TEXT}</main>"))

    response = client.post("/knowledge/scrape",
                           json={"url": "https://example.com/", "crawl": True},
                           headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert all(r.url.host == "example.com" for r in site.requests)


def test_scrape_requires_url(client, admin_headers):
    response = client.post("/knowledge/scrape", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "URL is required"}


def test_scrape_unreachable_url(client, admin_headers):
    response = client.post("/knowledge/scrape",
                           json={"url": "https://unreachable.example.com/", "crawl": False},
                           headers=admin_headers)
    assert response.status_code == 500
    assert response.json() == {"error": "No readable text found on page(s)"}


# --- upload ---

def test_upload_pdf(client, db, admin_headers):
    files = {"file": ("guide.pdf", make_pdf("Printer setup guide"), "application/pdf")}
    response = client.post("/knowledge/upload", files=files, headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "filename": "guide.pdf"}
    doc = db.list_documents()[0]
    assert doc.type == "pdf"
    assert doc.url is None


def test_upload_without_file(client, admin_headers):
    response = client.post("/knowledge/upload", headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "No file uploaded"}


def test_upload_garbage_is_server_error(client, admin_headers):
    files = {"file": ("broken.pdf", b"not a pdf at all", "application/pdf")}
    response = client.post("/knowledge/upload", files=files, headers=admin_headers)
    assert response.status_code == 500
    assert "error" in response.json()


# --- list / delete / stats ---

def test_delete_document(client, db, admin_headers):
    doc = db.insert_document(Document(filename="a.pdf", content="A"))

    response = client.delete(f"/knowledge?id={doc.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get("/knowledge", headers=admin_headers).json() == []

    response = client.delete(f"/knowledge?id={doc.id}", headers=admin_headers)
    assert response.status_code == 404


def test_delete_requires_id(client, admin_headers):
    response = client.delete("/knowledge", headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "ID required"}


def test_stats(client, db, admin_headers):
    db.insert_document(Document(filename="a.pdf", content="abc"))
    response = client.get("/knowledge/stats", headers=admin_headers)
    assert response.json()["total_documents"] == 1


# --- api key config ---

def test_config_roundtrip_is_masked(client, db, admin_headers):
    assert client.get("/knowledge/config", headers=admin_headers).json() == {"isConfigured": False}

    response = client.post("/knowledge/config", json={"apiKey": "sk-ant-1234567890wxyz"},
                           headers=admin_headers)
    assert response.json() == {"success": True}
    assert db.get_config_value(API_KEY_CONFIG) == "sk-ant-1234567890wxyz"

    response = client.get("/knowledge/config", headers=admin_headers)
    assert response.json() == {"isConfigured": True, "maskedKey": "sk-a...wxyz"}


def test_config_requires_key(client, admin_headers):
    response = client.post("/knowledge/config", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "API Key required"}


# --- chat ---

@pytest.fixture
def fake_llm(monkeypatch):
    calls = []

    async def fake_anthropic(messages, api_key, config):
        calls.append({"messages": messages, "api_key": api_key})
        return "Try restarting."

    monkeypatch.setattr(rag, "complete_anthropic", fake_anthropic)
    return calls


def test_chat_without_documents_sends_raw_message(client, fake_llm):
    response = client.post("/chat", json={
        "message": "My printer is offline",
        "history": [
            {"role": "user", "parts": "Hello"},
            {"role": "model", "parts": "Hi, what is wrong?"},
        ],
        "apiKey": "request-key",
    })

    assert response.status_code == 200
    assert response.json() == {"text": "Try restarting."}
    call = fake_llm[0]
    assert call["api_key"] == "request-key"
    assert call["messages"] == [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "Hi, what is wrong?"},
        {"role": "user", "content": "My printer is offline"},
    ]


def test_chat_uses_stored_key_and_knowledge(client, db, fake_llm):
    db.set_config_value(API_KEY_CONFIG, "stored-key")
    db.insert_document(Document(filename="printers.pdf", content="Power-cycle the printer"))

    response = client.post("/chat", json={"message": "Printer offline?"})

    assert response.status_code == 200
    call = fake_llm[0]
    assert call["api_key"] == "stored-key"
    content = call["messages"][-1]["content"]
    assert "--- Source: printers.pdf ---\nPower-cycle the printer" in content
    assert content.endswith("Printer offline?")


def test_chat_without_key_fails(client, fake_llm, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    response = client.post("/chat", json={"message": "hi"})
    assert response.status_code == 500
    assert response.json() == {"error": "LLM API key not configured"}
    assert fake_llm == []


def test_chat_upstream_error(client, monkeypatch):
    async def broken(messages, api_key, config):
        raise RuntimeError("upstream exploded")

    monkeypatch.setattr(rag, "complete_anthropic", broken)
    response = client.post("/chat", json={"message": "hi", "apiKey": "k"})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to generate response"}
