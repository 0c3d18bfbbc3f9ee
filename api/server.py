"""FastAPI server for the helpdesk knowledge base and support chat."""

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from kb_ingest.config import AppConfig
from kb_ingest.crawler import Crawler, NoReadableContentError, ingest_url
from kb_ingest.db import API_KEY_CONFIG, Database
from kb_ingest.logger import setup_logger
from kb_ingest.pdf_ingest import PdfIngestor

from api.auth import require_admin
from api.deps import get_config, get_crawler, get_db, get_pdf_ingestor
from api.rag import ApiKeyMissingError, generate

load_dotenv()

logger = logging.getLogger("kb_ingest")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    setup_logger(config.log_dir, config.log_level)
    yield


app = FastAPI(
    title="Helpdesk Knowledge Base API",
    version="0.1.0",
    description=(
        "Knowledge-base management (web pages and PDFs) and the "
        "retrieval-augmented support chat of the helpdesk."
    ),
    lifespan=lifespan,
)

# --- Rate limiting ---
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {"error": "Rate limit exceeded. Please slow down."},
        status_code=429,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


# --- CORS ---
default_origins = "http://localhost:3000,http://127.0.0.1:3000"
cors_origins = os.environ.get("CORS_ORIGINS", default_origins).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def mask_key(key: str) -> str:
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


# --- Models ---

class ScrapeRequest(BaseModel):
    url: Optional[str] = None
    crawl: bool = False


class ApiKeyRequest(BaseModel):
    api_key: Optional[str] = Field(None, alias="apiKey")


class ChatTurn(BaseModel):
    role: str
    parts: str


class ChatRequest(BaseModel):
    message: str
    history: List[ChatTurn] = []
    api_key: Optional[str] = Field(None, alias="apiKey")
    provider: Optional[str] = None


# --- Routes ---

@app.get("/health")
async def health():
    return {"status": "ok", "service": "helpdesk-kb"}


@app.post("/knowledge/scrape")
def scrape(
    req: ScrapeRequest,
    _admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
    crawler: Crawler = Depends(get_crawler),
):
    """Index one page, or up to the crawl budget of same-site pages."""
    if not req.url or not req.url.strip():
        raise HTTPException(status_code=400, detail="URL is required")

    try:
        saved = ingest_url(db, crawler, req.url.strip(), req.crawl)
    except NoReadableContentError as e:
        logger.warning(f"Scrape of {req.url} found nothing to index")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Scrape error for {req.url}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"success": True, "count": len(saved), "pages": [d.filename for d in saved]}


@app.post("/knowledge/upload")
def upload(
    file: Optional[UploadFile] = File(None),
    _admin: dict = Depends(require_admin),
    ingestor: PdfIngestor = Depends(get_pdf_ingestor),
):
    """Extract a PDF's text and add it to the knowledge base."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        doc = ingestor.ingest(file.filename, file.file.read())
    except Exception as e:
        logger.error(f"Upload error for {file.filename}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"success": True, "filename": doc.filename}


@app.get("/knowledge")
def list_documents(
    _admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return [doc.summary() for doc in db.list_documents()]


@app.delete("/knowledge")
def delete_document(
    id: Optional[int] = Query(None),
    _admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if id is None:
        raise HTTPException(status_code=400, detail="ID required")
    if not db.delete_document(id):
        raise HTTPException(status_code=404, detail="Document not found")
    logger.info(f"Deleted document {id}")
    return {"success": True}


@app.get("/knowledge/stats")
def stats(
    _admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return db.get_stats()


@app.get("/knowledge/config")
def get_api_key_config(
    _admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    key = db.get_config_value(API_KEY_CONFIG)
    if not key:
        return {"isConfigured": False}
    return {"isConfigured": True, "maskedKey": mask_key(key)}


@app.post("/knowledge/config")
def set_api_key_config(
    req: ApiKeyRequest,
    _admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if not req.api_key or not req.api_key.strip():
        raise HTTPException(status_code=400, detail="API Key required")
    db.set_config_value(API_KEY_CONFIG, req.api_key.strip())
    return {"success": True}


@app.post("/chat")
@limiter.limit("10/minute")
async def chat(
    request: Request,
    req: ChatRequest,
    db: Database = Depends(get_db),
    config: AppConfig = Depends(get_config),
):
    """Answer a support question with the knowledge base as context."""
    try:
        text = await generate(
            db,
            message=req.message,
            history=[turn.model_dump() for turn in req.history],
            config=config.chat,
            api_key=req.api_key,
            provider=req.provider,
        )
    except ApiKeyMissingError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Chat error: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate response")

    return {"text": text}
