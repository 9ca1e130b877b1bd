import io

import httpx
import pytest
from PIL import Image


class FakeClock:
    """Manually advanced clock for time-dependent cache behavior."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_image_bytes(width: int = 8, height: int = 8, fmt: str = "PNG", color=(255, 0, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def sample_image_bytes():
    """Minimal valid PNG for testing (1x1 white pixel)."""
    import base64
    return base64.b64decode(
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR4"
        "nGP4z8BQDwAEgAF/pooBPQAAAABJRU5ErkJggg=="
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def image_server():
    """httpx MockTransport serving a PNG per path and counting requests.

    Paths under /missing return 404, /garbage returns non-image bytes.
    """

    class Server:
        def __init__(self) -> None:
            self.calls: list[str] = []
            self.size = (800, 600)

        def handler(self, request: httpx.Request) -> httpx.Response:
            self.calls.append(str(request.url))
            if request.url.path.startswith("/missing"):
                return httpx.Response(404)
            if request.url.path.startswith("/garbage"):
                return httpx.Response(200, content=b"definitely not an image")
            return httpx.Response(
                200,
                content=make_image_bytes(*self.size),
                headers={"content-type": "image/png"},
            )

        @property
        def transport(self) -> httpx.MockTransport:
            return httpx.MockTransport(self.handler)

    return Server()


@pytest.fixture
def make_png():
    """Factory for encoded test images."""
    return make_image_bytes


@pytest.fixture
def make_entry():
    """Factory for memory-tier entries with a controllable decoded cost."""
    from imgcache.cache.stats import CacheEntry

    def _make(key: str, width: int = 10, height: int = 10, **kwargs) -> CacheEntry:
        # RGB -> cost is width * height * 3 bytes
        return CacheEntry(key=key, image=Image.new("RGB", (width, height)), **kwargs)

    return _make
