import threading

import pytest

from app import create_app
from config import Settings
from services.extractor import AudioExtractor

AUDIO_BYTES = b"ID3" + bytes(range(256)) * 800  # a bit over 200 KB, several chunks

VALID_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class FakeRunner:
    """
    Stands in for run_yt_dlp. Writes payload to the path yt-dlp would
    produce, or raises error. With block=True it waits for release first.
    """

    def __init__(self, payload=AUDIO_BYTES, error=None, block=False):
        self.payload = payload
        self.error = error
        self.block = block
        self.release = threading.Event()
        self.calls = []

    def __call__(self, url, options):
        self.calls.append(url)
        if self.block:
            self.release.wait(timeout=10)
        if self.error is not None:
            raise self.error
        path = options["outtmpl"] % {"ext": "mp3"}
        with open(path, "wb") as f:
            f.write(self.payload)


@pytest.fixture
def settings(tmp_path):
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    public = tmp_path / "public"
    public.mkdir()
    (public / "index.html").write_text("<html><body>downloader</body></html>")
    (public / "404.html").write_text("<html><body>missing page</body></html>")
    return Settings(
        downloads_dir=str(downloads),
        public_dir=str(public),
        extraction_timeout=5,
    )


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def extractor(settings, runner):
    extractor = AudioExtractor(timeout=settings.extraction_timeout, runner=runner, max_workers=2)
    yield extractor
    runner.release.set()
    extractor.shutdown()


@pytest.fixture
def app(settings, extractor):
    app = create_app(settings, extractor=extractor)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def downloads(settings):
    return settings.downloads_dir
