import logging
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from api import api
from config import Config, configure_logging
from downloader import Platform, VideoDownloader

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None, downloader: Optional[VideoDownloader] = None) -> Flask:
    config = config or Config.from_env()

    app = Flask(__name__)
    app.config['DOWNLOADER'] = config
    CORS(app, origins=config.cors_origins)

    app.extensions['video_downloader'] = downloader or VideoDownloader(config)
    app.register_blueprint(api)

    @app.route('/')
    def index():
        return jsonify({
            'message': 'Video download API running ✅',
            'platforms': [p.value for p in Platform if p != Platform.UNKNOWN],
        })

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'status': 'error', 'error': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception("Unhandled error")
        return jsonify({'status': 'error', 'error': 'Internal server error'}), 500

    return app


def main():
    config = Config.from_env()
    configure_logging(config)
    app = create_app(config)
    logger.info(f"Starting server on {config.host}:{config.port}")
    app.run(host=config.host, port=config.port, threaded=True)


if __name__ == '__main__':
    main()
