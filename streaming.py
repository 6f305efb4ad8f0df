import re
import logging
from typing import Dict, Iterator

import requests
from flask import Response, stream_with_context

from config import Config
from downloader import DownloadResult, Platform

logger = logging.getLogger(__name__)

STREAM_PLATFORMS = {Platform.YOUTUBE, Platform.INSTAGRAM, Platform.TWITTER, Platform.FACEBOOK}


def sanitize_title(title: str) -> str:
    return re.sub(r"[^a-zA-Z0-9\s\-_]", "", title or "").strip()


def attachment_filename(result: DownloadResult) -> str:
    """Filename offered to the client for a streamed video"""
    if result.platform == Platform.YOUTUBE:
        return f"{sanitize_title(result.title) or 'video'}.mp4"
    return f"{result.platform.value}_video.mp4"


def upstream_headers(result: DownloadResult, config: Config) -> Dict[str, str]:
    headers = {"User-Agent": config.user_agent}
    headers.update(result.http_headers)
    return headers


def open_upstream(result: DownloadResult, config: Config) -> requests.Response:
    """Start fetching the extracted media URL; raises requests.RequestException on failure"""
    proxies = {"http": config.proxy, "https": config.proxy} if config.proxy else None
    upstream = requests.get(
        result.download_url,
        headers=upstream_headers(result, config),
        stream=True,
        timeout=config.stream_timeout,
        proxies=proxies,
    )
    try:
        upstream.raise_for_status()
    except requests.HTTPError:
        upstream.close()
        raise
    return upstream


def iter_upstream(upstream: requests.Response, chunk_size: int) -> Iterator[bytes]:
    try:
        for chunk in upstream.iter_content(chunk_size=chunk_size):
            if chunk:
                yield chunk
    except requests.RequestException as e:
        # headers are already sent, the client sees a truncated body
        logger.error(f"Upstream stream interrupted: {str(e)}")
    finally:
        upstream.close()


def stream_response(result: DownloadResult, config: Config) -> Response:
    """Pipe the extracted media URL to the client as an mp4 attachment"""
    upstream = open_upstream(result, config)

    response = Response(
        stream_with_context(iter_upstream(upstream, config.stream_chunk_size)),
        mimetype="video/mp4",
        headers={"Content-Disposition": f'attachment; filename="{attachment_filename(result)}"'},
    )
    # iter_content decodes gzip/deflate, so an encoded length would not match
    if upstream.headers.get("Content-Length") and not upstream.headers.get("Content-Encoding"):
        response.headers["Content-Length"] = upstream.headers["Content-Length"]
    response.call_on_close(upstream.close)
    return response
