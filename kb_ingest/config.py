"""YAML config loader."""

import os
from dataclasses import dataclass, field

import yaml

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass
class CrawlConfig:
    max_pages: int = 10
    single_page_budget: int = 1
    min_page_chars: int = 50
    timeout: float = 30.0
    max_page_size: int = 10485760
    user_agent: str = BROWSER_USER_AGENT


@dataclass
class ExtractionConfig:
    min_chars_per_page: int = 50
    ocr_enabled: bool = True
    ocr_dpi: int = 300
    tesseract_lang: str = "eng"


@dataclass
class ChatConfig:
    provider: str = "anthropic"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_model: str = "gpt-4o"
    max_tokens: int = 500


@dataclass
class AuthConfig:
    jwt_secret: str = "dev_secret_key_change_me_in_prod"
    jwt_algorithm: str = "HS256"


@dataclass
class AppConfig:
    db_path: str = "knowledge.db"
    log_dir: str = "logs"
    log_level: str = "INFO"
    crawl: CrawlConfig = field(default_factory=CrawlConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)


def _section(cls, raw: dict):
    return cls(**{k: v for k, v in (raw or {}).items() if k in cls.__dataclass_fields__})


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load config from YAML, then apply environment overrides.

    A missing file is not an error; defaults are used.
    """
    raw = {}
    if config_path and os.path.exists(config_path):
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

    config = AppConfig(
        db_path=raw.get("db_path", "knowledge.db"),
        log_dir=raw.get("log_dir", "logs"),
        log_level=raw.get("log_level", "INFO"),
        crawl=_section(CrawlConfig, raw.get("crawl")),
        extraction=_section(ExtractionConfig, raw.get("extraction")),
        chat=_section(ChatConfig, raw.get("chat")),
        auth=_section(AuthConfig, raw.get("auth")),
    )

    # Environment wins over the file
    config.db_path = os.environ.get("SQLITE_DB_PATH", config.db_path)
    config.log_dir = os.environ.get("LOG_DIR", config.log_dir)
    config.log_level = os.environ.get("LOG_LEVEL", config.log_level)
    config.auth.jwt_secret = os.environ.get("JWT_SECRET", config.auth.jwt_secret)
    config.chat.provider = os.environ.get("LLM_PROVIDER", config.chat.provider)

    return config
