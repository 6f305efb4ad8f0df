import os
import logging
from typing import Optional, List
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class Config:
    host: str = "0.0.0.0"
    port: int = 8000
    yt_dlp_path: str = "yt-dlp"
    user_agent: str = DEFAULT_USER_AGENT
    cookies_file: Optional[Path] = None
    proxy: Optional[str] = None
    extract_timeout: int = 120
    stream_timeout: int = 60
    stream_chunk_size: int = 64 * 1024
    stream_downloads: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Config":
        """Build a Config from environment variables (and a .env file if present)"""
        load_dotenv(dotenv_path)

        cookies = os.getenv("COOKIES_FILE")
        log_file = os.getenv("LOG_FILE")
        origins = os.getenv("CORS_ORIGINS", "*")

        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
            yt_dlp_path=os.getenv("YT_DLP_PATH", "yt-dlp"),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            cookies_file=Path(cookies) if cookies else None,
            proxy=os.getenv("PROXY") or None,
            extract_timeout=_env_int("EXTRACT_TIMEOUT", 120),
            stream_timeout=_env_int("STREAM_TIMEOUT", 60),
            stream_chunk_size=_env_int("STREAM_CHUNK_SIZE", 64 * 1024),
            stream_downloads=_env_bool("STREAM_DOWNLOADS", True),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
        )


def configure_logging(config: Config) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
