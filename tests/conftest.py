import pytest

from app import create_app
from config import Config
from downloader import DownloadResult, Platform, VideoDownloader


class FakeStrategy:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    def download(self, url):
        self.calls.append(url)
        if self.exc:
            raise self.exc
        return self.result


class FakeExtractor:
    def __init__(self, name, info=None, exc=None):
        self.name = name
        self.info = info
        self.exc = exc
        self.calls = []

    def extract(self, url):
        self.calls.append(url)
        if self.exc:
            raise self.exc
        return self.info


class FakeUpstream:
    def __init__(self, chunks=(b"abc", b"def"), headers=None, error=None):
        self.chunks = list(chunks)
        self.headers = headers or {}
        self.error = error
        self.closed = False

    def raise_for_status(self):
        if self.error:
            raise self.error

    def iter_content(self, chunk_size=1):
        yield from self.chunks

    def close(self):
        self.closed = True


@pytest.fixture
def config():
    return Config(stream_timeout=5, stream_chunk_size=1024)


@pytest.fixture
def make_client(config):
    def factory(strategies=None, **overrides):
        for key, value in overrides.items():
            setattr(config, key, value)
        downloader = VideoDownloader(config, strategies=strategies or {})
        app = create_app(config, downloader=downloader)
        app.testing = True
        return app.test_client()
    return factory


@pytest.fixture
def youtube_ok():
    return DownloadResult.success(Platform.YOUTUBE, "https://media.example/yt.mp4",
                                  title="My Video! (2024)", http_headers={"Referer": "https://youtube.com"})
