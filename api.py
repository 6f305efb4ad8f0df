import logging

import requests
from flask import Blueprint, current_app, request, jsonify

from downloader import DownloadResult, Platform, detect_platform, is_valid_url
from streaming import STREAM_PLATFORMS, attachment_filename, stream_response

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def get_downloader():
    return current_app.extensions['video_downloader']


def get_config():
    return current_app.config['DOWNLOADER']


def request_url():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    url = data.get('url')
    return url.strip() if isinstance(url, str) else url


def validate_url(url):
    """Return a failed DownloadResult for unusable input, None otherwise"""
    if not url:
        return DownloadResult.failure(Platform.UNKNOWN, 'Missing URL')
    if not is_valid_url(url):
        return DownloadResult.failure(Platform.UNKNOWN, 'Unsupported or invalid URL')
    return None


def telegram_payload(result: DownloadResult) -> dict:
    if result.ok:
        title = result.title or f"{result.platform.value}_video"
        return {
            'video': result.download_url,
            'caption': title,
            'filename': attachment_filename(result),
            'title': title,
            'platform': result.platform.value,
            'status': 'success',
        }
    return {
        'video': None,
        'caption': None,
        'filename': None,
        'title': None,
        'platform': result.platform.value,
        'status': 'error',
        'error': result.error,
    }


@api.route('/download', methods=['POST'])
def download_video():
    url = request_url()
    invalid = validate_url(url)
    if invalid:
        return jsonify(invalid.to_dict()), 400

    result = get_downloader().download(url)
    if not result.ok:
        return jsonify(result.to_dict()), 400

    config = get_config()
    if config.stream_downloads and result.platform in STREAM_PLATFORMS:
        try:
            return stream_response(result, config)
        except requests.RequestException as e:
            logger.error(f"Download error for {url}: {str(e)}")
            failed = DownloadResult.failure(result.platform, 'Failed to download video')
            return jsonify(failed.to_dict()), 500

    return jsonify(result.to_dict()), 200


@api.route('/download/telegram', methods=['POST'])
def download_for_telegram():
    url = request_url()
    result = validate_url(url)
    if result is None:
        try:
            result = get_downloader().download(url)
        except Exception as e:
            logger.exception(f"Unexpected error resolving {url}")
            result = DownloadResult.failure(detect_platform(url), str(e))

    return jsonify(telegram_payload(result)), 200
