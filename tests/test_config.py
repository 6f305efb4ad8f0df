from pathlib import Path

import pytest

from config import Config, DEFAULT_USER_AGENT

ENV_VARS = [
    "HOST", "PORT", "YT_DLP_PATH", "USER_AGENT", "COOKIES_FILE", "PROXY",
    "EXTRACT_TIMEOUT", "STREAM_TIMEOUT", "STREAM_CHUNK_SIZE", "STREAM_DOWNLOADS",
    "CORS_ORIGINS", "LOG_LEVEL", "LOG_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so values loaded from .env files are rolled back too
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults(tmp_path):
    config = Config.from_env(dotenv_path=tmp_path / "missing.env")

    assert config.host == "0.0.0.0"
    assert config.port == 8000
    assert config.yt_dlp_path == "yt-dlp"
    assert config.user_agent == DEFAULT_USER_AGENT
    assert config.cookies_file is None
    assert config.stream_downloads is True
    assert config.cors_origins == ["*"]
    assert config.log_file is None


def test_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("COOKIES_FILE", "cookies.txt")
    monkeypatch.setenv("STREAM_DOWNLOADS", "false")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = Config.from_env(dotenv_path=tmp_path / "missing.env")

    assert config.port == 9000
    assert config.cookies_file == Path("cookies.txt")
    assert config.stream_downloads is False
    assert config.cors_origins == ["https://a.example", "https://b.example"]
    assert config.log_level == "DEBUG"


def test_reads_dotenv_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("YT_DLP_PATH=/opt/bin/yt-dlp\nSTREAM_TIMEOUT=15\n")

    config = Config.from_env(dotenv_path=env_file)

    assert config.yt_dlp_path == "/opt/bin/yt-dlp"
    assert config.stream_timeout == 15


def test_rejects_non_integer_port(monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ValueError):
        Config.from_env(dotenv_path=tmp_path / "missing.env")
