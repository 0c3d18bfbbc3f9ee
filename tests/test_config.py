from kb_ingest.config import load_config


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    for var in ("SQLITE_DB_PATH", "LOG_DIR", "LOG_LEVEL", "JWT_SECRET", "LLM_PROVIDER"):
        monkeypatch.delenv(var, raising=False)

    config = load_config(str(tmp_path / "nope.yaml"))

    assert config.db_path == "knowledge.db"
    assert config.log_level == "INFO"
    assert config.crawl.max_pages == 10
    assert config.crawl.single_page_budget == 1
    assert config.crawl.user_agent.startswith("Mozilla/5.0")
    assert config.chat.max_tokens == 500
    assert config.chat.provider == "anthropic"


def test_yaml_sections_and_unknown_keys(tmp_path, monkeypatch):
    monkeypatch.delenv("SQLITE_DB_PATH", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        "db_path: kb.db\n"
        "crawl:\n"
        "  max_pages: 3\n"
        "  not_a_setting: true\n"
        "chat:\n"
        "  provider: openai\n"
    )
    monkeypatch.delenv("LLM_PROVIDER", raising=False)

    config = load_config(str(path))

    assert config.db_path == "kb.db"
    assert config.crawl.max_pages == 3
    assert config.crawl.min_page_chars == 50
    assert config.chat.provider == "openai"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("JWT_SECRET", "s3cret")

    config = load_config(str(tmp_path / "nope.yaml"))

    assert config.db_path == "/tmp/other.db"
    assert config.auth.jwt_secret == "s3cret"


def test_log_level_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    assert load_config(str(tmp_path / "nope.yaml")).log_level == "DEBUG"
