from __future__ import annotations

import os
from pathlib import Path

import pytest

from kdbx_mcp.exceptions import ConfigError
from kdbx_mcp.services.config_service import (
    DEFAULT_EMBEDDING_CSV_PATH,
    ConfigService,
    DatabaseConfig,
    ServerConfig,
    parse_bool,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(("KDBX_DB_", "KDBX_MCP_")):
            monkeypatch.delenv(name)


def test_defaults() -> None:
    db = ConfigService.load_database_config()
    mcp = ConfigService.load_server_config()

    assert db == DatabaseConfig()
    assert db.address == "127.0.0.1:5000"
    assert db.timeout == 1.0
    assert db.retry == 2
    assert db.k == 5
    assert db.metric == "CS"
    assert db.embedding_csv_path == DEFAULT_EMBEDDING_CSV_PATH
    assert Path(DEFAULT_EMBEDDING_CSV_PATH).is_file()
    assert mcp == ServerConfig()
    assert mcp.transport == "streamable-http"
    assert mcp.server_name == "KDBX_MCP_Server"


def test_environment_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KDBX_DB_HOST", "kdb.internal")
    monkeypatch.setenv("KDBX_DB_PORT", "5050")
    monkeypatch.setenv("KDBX_DB_TLS", "yes")
    monkeypatch.setenv("KDBX_DB_RETRY", "0")
    monkeypatch.setenv("KDBX_DB_QUERY_TIMEOUT", "2.5")
    monkeypatch.setenv("KDBX_MCP_LOG_LEVEL", "debug")
    monkeypatch.setenv("KDBX_MCP_TRANSPORT", "stdio")

    db = ConfigService.load_database_config()
    mcp = ConfigService.load_server_config()

    assert db.address == "kdb.internal:5050"
    assert db.tls is True
    assert db.retry == 0
    assert db.query_timeout == 2.5
    assert mcp.log_level == "DEBUG"
    assert mcp.transport == "stdio"


def test_cli_overrides_beat_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KDBX_DB_PORT", "5050")
    monkeypatch.setenv("KDBX_MCP_PORT", "9000")

    db = ConfigService.load_database_config({"port": 6000, "host": None})
    mcp = ConfigService.load_server_config({"port": 7000})

    assert db.port == 6000
    assert db.host == "127.0.0.1"
    assert mcp.port == 7000


def test_dotenv_does_not_override_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    (tmp_path / ".env").write_text("KDBX_DB_HOST=from-dotenv\nKDBX_DB_K=9\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("KDBX_DB_HOST", "from-env")

    try:
        settings = ConfigService.load_settings()
    finally:
        os.environ.pop("KDBX_DB_K", None)

    assert settings.db.host == "from-env"
    assert settings.db.k == 9


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("KDBX_DB_PORT", "abc", "KDBX_DB_PORT must be an integer"),
        ("KDBX_DB_PORT", "70000", "KDBX_DB_PORT must be >= 1 and <= 65535"),
        ("KDBX_DB_RETRY", "-1", "KDBX_DB_RETRY must be >= 0"),
        ("KDBX_DB_K", "0", "KDBX_DB_K must be >= 1"),
        ("KDBX_DB_TIMEOUT", "soon", "KDBX_DB_TIMEOUT must be a number"),
        ("KDBX_DB_QUERY_TIMEOUT", "0", "KDBX_DB_QUERY_TIMEOUT must be > 0"),
        ("KDBX_DB_TLS", "maybe", "KDBX_DB_TLS must be a boolean"),
    ],
)
def test_invalid_database_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError, match=message):
        ConfigService.load_database_config()


def test_invalid_server_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KDBX_MCP_TRANSPORT", "sse")
    with pytest.raises(ConfigError, match="KDBX_MCP_TRANSPORT must be one of"):
        ConfigService.load_server_config()

    with pytest.raises(ConfigError, match="KDBX_MCP_LOG_LEVEL"):
        ConfigService.load_server_config({"transport": "stdio", "log_level": "loud"})


def test_parse_bool() -> None:
    assert parse_bool("TRUE", name="x") is True
    assert parse_bool("1", name="x") is True
    assert parse_bool("no", name="x") is False


def test_redacted_masks_password() -> None:
    data = DatabaseConfig(username="alice", password="s3cret").redacted()
    assert data["password"] == "********"
    assert data["username"] == "alice"
    assert DatabaseConfig().redacted()["password"] == ""
