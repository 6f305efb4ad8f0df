import re
import sys
import json
import logging
import argparse
import subprocess
from typing import Optional, List, Dict, Any, Tuple
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum
from concurrent.futures import ThreadPoolExecutor, as_completed
from urllib.parse import urlparse

import yt_dlp

from config import Config, configure_logging

logger = logging.getLogger(__name__)

# Single progressive file first so extractors report one playable url
DEFAULT_FORMAT = "best[ext=mp4][acodec!=none][vcodec!=none]/best[acodec!=none][vcodec!=none]/best"

ACCEPT_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
}

YOUTUBE_EXTRACTION_FAILED = (
    "YouTube video extraction failed. This video may be region-locked, private, "
    "or YouTube has updated their system. Please try a different video."
)
NO_VIDEO_FOUND = "No downloadable video found"
FETCH_INFO_FAILED = "Failed to fetch video info"
UNSUPPORTED_URL = "Unsupported or invalid URL"


class Platform(Enum):
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    UNKNOWN = "unknown"


class ExtractionError(Exception):
    """Raised when an extractor cannot produce video info"""


@dataclass
class DownloadResult:
    status: str
    platform: Platform
    download_url: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None
    http_headers: Dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def ok(self) -> bool:
        return self.status == "success" and bool(self.download_url)

    @classmethod
    def success(cls, platform: Platform, download_url: str, title: Optional[str] = None,
                http_headers: Optional[Dict[str, str]] = None) -> "DownloadResult":
        return cls("success", platform, download_url=download_url, title=title,
                   http_headers=http_headers or {})

    @classmethod
    def failure(cls, platform: Platform, error: str, title: Optional[str] = None) -> "DownloadResult":
        return cls("error", platform, title=title, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "status": self.status,
            "platform": self.platform.value,
            "downloadUrl": self.download_url,
            "title": self.title,
            "error": self.error,
        }
        return {key: value for key, value in data.items() if value is not None}


PLATFORM_PATTERNS = [
    (re.compile(r"(^|\.)(youtube\.com|youtu\.be)$"), Platform.YOUTUBE),
    (re.compile(r"(^|\.)instagram\.com$"), Platform.INSTAGRAM),
    (re.compile(r"(^|\.)(twitter\.com|x\.com)$"), Platform.TWITTER),
    (re.compile(r"(^|\.)(facebook\.com|fb\.watch)$"), Platform.FACEBOOK),
]


def _host(url: str) -> str:
    try:
        return (urlparse(url.strip()).hostname or "").lower()
    except (AttributeError, ValueError):
        return ""


def detect_platform(url: str) -> Platform:
    """Detect platform from the URL host"""
    host = _host(url) if isinstance(url, str) else ""
    for pattern, platform in PLATFORM_PATTERNS:
        if pattern.search(host):
            return platform
    return Platform.UNKNOWN


def is_valid_url(url: Any) -> bool:
    """True for an absolute http(s) URL with a host"""
    if not isinstance(url, str) or not url.strip() or any(c.isspace() for c in url.strip()):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def pick_media_url(info: Optional[Dict[str, Any]], min_height: Optional[int] = None,
                   require_video: bool = False) -> Tuple[Optional[str], Dict[str, str]]:
    """Pick a direct media URL (and the headers it needs) from extractor output"""
    if not info:
        return None, {}

    entries = [entry for entry in info.get("entries") or [] if entry]
    if entries:
        info = entries[0]

    if info.get("url"):
        return info["url"], dict(info.get("http_headers") or {})

    formats = [f for f in info.get("formats") or [] if f.get("url")]
    if require_video:
        formats = [f for f in formats if f.get("vcodec") != "none"]
    if not formats:
        return None, {}

    progressive = [f for f in formats if f.get("vcodec") != "none" and f.get("acodec") != "none"]
    candidates = progressive or formats

    # yt-dlp lists formats worst to best
    chosen = candidates[-1]
    if min_height:
        chosen = next((f for f in candidates if (f.get("height") or 0) >= min_height), chosen)

    headers = chosen.get("http_headers") or info.get("http_headers") or {}
    return chosen["url"], dict(headers)


class YtDlpLibraryExtractor:
    """In-process extraction through the yt_dlp library"""

    name = "yt-dlp library"

    def __init__(self, config: Config):
        self.config = config

    def build_options(self) -> Dict[str, Any]:
        opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "noplaylist": True,
            "nocheckcertificate": True,
            "prefer_free_formats": True,
            "format": DEFAULT_FORMAT,
            "socket_timeout": self.config.extract_timeout,
            "http_headers": {"User-Agent": self.config.user_agent, **ACCEPT_HEADERS},
        }
        if self.config.cookies_file and self.config.cookies_file.exists():
            opts["cookiefile"] = str(self.config.cookies_file)
        if self.config.proxy:
            opts["proxy"] = self.config.proxy
        return opts

    def extract(self, url: str) -> Dict[str, Any]:
        try:
            with yt_dlp.YoutubeDL(self.build_options()) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.YoutubeDLError as e:
            raise ExtractionError(str(e)) from e

        if not isinstance(info, dict) or not info:
            raise ExtractionError(f"No info returned for {url}")
        return info


class YtDlpCommandExtractor:
    """Extraction through the yt-dlp command line tool"""

    name = "yt-dlp command"

    def __init__(self, config: Config, user_agent: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None):
        self.config = config
        self.user_agent = user_agent
        self.headers = headers or {}

    def build_command(self, url: str) -> List[str]:
        cmd = [self.config.yt_dlp_path]

        cmd.extend([
            "--dump-single-json",
            "--no-playlist",
            "--no-warnings",
            "--no-check-certificate",
            "--prefer-free-formats",
            "-f", DEFAULT_FORMAT,
        ])

        if self.user_agent:
            cmd.extend(["--user-agent", self.user_agent])
        for name, value in self.headers.items():
            cmd.extend(["--add-header", f"{name}:{value}"])

        if self.config.cookies_file and self.config.cookies_file.exists():
            cmd.extend(["--cookies", str(self.config.cookies_file)])

        if self.config.proxy:
            cmd.extend(["--proxy", self.config.proxy])

        # "--" keeps URLs that start with a dash from being read as options
        cmd.extend(["--", url])
        return cmd

    def extract(self, url: str) -> Dict[str, Any]:
        cmd = self.build_command(url)
        logger.debug(f"Executing command: {' '.join(cmd)}")

        try:
            process = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                timeout=self.config.extract_timeout,
            )
        except FileNotFoundError as e:
            raise ExtractionError(f"yt-dlp executable not found: {self.config.yt_dlp_path}") from e
        except subprocess.TimeoutExpired as e:
            raise ExtractionError(f"yt-dlp timed out after {self.config.extract_timeout}s") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionError(f"yt-dlp could not be run: {e}") from e

        if process.returncode != 0:
            raise ExtractionError(process.stderr.strip() or f"yt-dlp exited with {process.returncode}")

        try:
            info = json.loads(process.stdout)
        except ValueError as e:
            raise ExtractionError("yt-dlp returned invalid JSON") from e

        if not isinstance(info, dict):
            raise ExtractionError(f"yt-dlp returned {type(info).__name__} instead of an object")
        return info


class VideoDownloadStrategy:
    """Resolve a page URL into a DownloadResult for one platform"""

    platform = Platform.UNKNOWN

    def download(self, url: str) -> DownloadResult:
        raise NotImplementedError


class YoutubeDownloadStrategy(VideoDownloadStrategy):
    platform = Platform.YOUTUBE
    MIN_HEIGHT = 720

    def __init__(self, config: Config, extractors=None):
        self.extractors = extractors if extractors is not None else [
            YtDlpLibraryExtractor(config),
            YtDlpCommandExtractor(config, user_agent=config.user_agent, headers=ACCEPT_HEADERS),
        ]

    @staticmethod
    def is_youtube_video_url(url: str) -> bool:
        parsed = urlparse(url.strip())
        host = (parsed.hostname or "").lower()
        if host == "youtu.be":
            return len(parsed.path) > 1
        return parsed.path == "/watch" or parsed.path.startswith("/shorts/")

    def download(self, url: str) -> DownloadResult:
        if not self.is_youtube_video_url(url):
            return DownloadResult.failure(self.platform, "Invalid YouTube URL", title="video")

        for extractor in self.extractors:
            logger.info(f"[YouTube] Trying {extractor.name}...")
            try:
                info = extractor.extract(url)
            except ExtractionError as e:
                logger.warning(f"[YouTube] {extractor.name} failed: {e}")
                continue

            media_url, headers = pick_media_url(info, min_height=self.MIN_HEIGHT, require_video=True)
            if media_url:
                logger.info(f"[YouTube] Successfully extracted using {extractor.name}")
                return DownloadResult.success(
                    self.platform,
                    media_url,
                    title=info.get("title") or "youtube_video",
                    http_headers=headers,
                )
            logger.warning(f"[YouTube] {extractor.name} returned no playable format")

        return DownloadResult.failure(self.platform, YOUTUBE_EXTRACTION_FAILED, title="video")


class GenericDownloadStrategy(VideoDownloadStrategy):
    """Single yt-dlp subprocess call for sites without special handling"""

    def __init__(self, config: Config, extractor=None):
        self.extractor = extractor or YtDlpCommandExtractor(config)

    def download(self, url: str) -> DownloadResult:
        label = self.platform.value
        try:
            info = self.extractor.extract(url)
        except ExtractionError as e:
            logger.warning(f"[{label}] extraction failed: {e}")
            return DownloadResult.failure(self.platform, FETCH_INFO_FAILED)

        media_url, headers = pick_media_url(info)
        if not media_url:
            return DownloadResult.failure(self.platform, NO_VIDEO_FOUND)

        return DownloadResult.success(self.platform, media_url, title=info.get("title"), http_headers=headers)


class InstagramDownloadStrategy(GenericDownloadStrategy):
    platform = Platform.INSTAGRAM


class TwitterDownloadStrategy(GenericDownloadStrategy):
    platform = Platform.TWITTER


class FacebookDownloadStrategy(GenericDownloadStrategy):
    platform = Platform.FACEBOOK


class VideoDownloader:
    """Detect the platform of a URL and delegate to its strategy"""

    def __init__(self, config: Optional[Config] = None,
                 strategies: Optional[Dict[Platform, VideoDownloadStrategy]] = None):
        self.config = config or Config()
        self.strategies = strategies if strategies is not None else {
            Platform.YOUTUBE: YoutubeDownloadStrategy(self.config),
            Platform.INSTAGRAM: InstagramDownloadStrategy(self.config),
            Platform.TWITTER: TwitterDownloadStrategy(self.config),
            Platform.FACEBOOK: FacebookDownloadStrategy(self.config),
        }

    def download(self, url: str) -> DownloadResult:
        platform = detect_platform(url)
        strategy = self.strategies.get(platform)
        if strategy is None:
            return DownloadResult.failure(Platform.UNKNOWN, UNSUPPORTED_URL)

        result = strategy.download(url)
        if platform == Platform.YOUTUBE and not result.title:
            result.title = "video"
        return result


class BatchDownloader:
    """Resolve several URLs concurrently"""

    def __init__(self, downloader: VideoDownloader):
        self.downloader = downloader

    def download_batch(self, urls: List[str], max_workers: int = 4) -> Dict[str, DownloadResult]:
        results = {}

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.downloader.download, url): url for url in urls}

            for future in as_completed(futures):
                url = futures[future]
                try:
                    results[url] = future.result()
                except Exception as e:
                    logger.error(f"Error resolving {url}: {str(e)}")
                    results[url] = DownloadResult.failure(detect_platform(url), str(e))

        return results


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Resolve social media video URLs to direct media URLs",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "urls",
        nargs="*",
        help="URL(s) to resolve"
    )
    parser.add_argument(
        "--input-file",
        type=Path,
        help="File containing URLs to resolve (one per line)"
    )
    parser.add_argument(
        "--cookies",
        type=Path,
        help="Path to cookies file for authentication"
    )
    parser.add_argument(
        "--proxy",
        type=str,
        help="Proxy to use for extraction"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Number of URLs resolved concurrently"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = Config.from_env()
    configure_logging(config)

    if args.cookies:
        config.cookies_file = args.cookies
    if args.proxy:
        config.proxy = args.proxy

    urls = list(args.urls)
    if args.input_file:
        try:
            with open(args.input_file, 'r') as f:
                urls.extend(line.strip() for line in f if line.strip() and not line.startswith('#'))
        except OSError as e:
            logger.error(f"Error reading input file: {str(e)}")
            return 1

    if not urls:
        logger.error("No URLs provided")
        return 1

    results = BatchDownloader(VideoDownloader(config)).download_batch(urls, max_workers=args.workers)
    for url in urls:
        print(json.dumps({"url": url, **results[url].to_dict()}))

    failed = [url for url, result in results.items() if not result.ok]
    logger.info(f"Resolved {len(results) - len(failed)}/{len(results)} URLs")
    return 1 if failed else 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
