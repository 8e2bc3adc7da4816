"""
Shared pytest fixtures for Sub-Image Studio tests.
"""
import asyncio
from io import BytesIO
from typing import List, Optional

import pytest
from google.genai import types
from PIL import Image

from subimage_studio.client import ModelClient
from subimage_studio.config import StudioConfig
from subimage_studio.credentials import StaticCredentials
from subimage_studio.encoding import ImageAsset
from subimage_studio.events import EventBus
from subimage_studio.orchestrator import Studio


def image_response(data: bytes, mime_type: str = "image/png") -> types.GenerateContentResponse:
    return types.GenerateContentResponse(candidates=[
        types.Candidate(content=types.Content(
            role="model",
            parts=[types.Part(inline_data=types.Blob(data=data, mime_type=mime_type))],
        ))
    ])


def text_response(text: str) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(candidates=[
        types.Candidate(content=types.Content(role="model", parts=[types.Part(text=text)]))
    ])


class FakeBackend:
    """
    Stands in for GeminiBackend. Replays queued responses/errors in order and
    records every call; once the queue is empty it answers with a fresh image
    (b"image-1", b"image-2", ...).
    """

    def __init__(self) -> None:
        self.script: list = []
        self.calls: List[dict] = []
        self.entered: Optional[asyncio.Event] = None
        self._gate: Optional[asyncio.Event] = None
        self._served = 0

    def queue_image(self, data: bytes, mime_type: str = "image/png") -> None:
        self.script.append(image_response(data, mime_type))

    def queue_text(self, text: str) -> None:
        self.script.append(text_response(text))

    def queue_response(self, response) -> None:
        self.script.append(response)

    def queue_error(self, exc: BaseException) -> None:
        self.script.append(exc)

    def hold(self) -> None:
        """Block calls until release(); must be called inside the running loop."""
        self.entered = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def generate_content(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.entered is not None:
            self.entered.set()
        if self._gate is not None:
            await self._gate.wait()

        if self.script:
            item = self.script.pop(0)
        else:
            self._served += 1
            item = image_response(f"image-{self._served}".encode())
        if isinstance(item, BaseException):
            raise item
        return item


class FakeSleep:
    """Controllable clock: records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.delays)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def config():
    return StudioConfig()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def model_client(backend, config, fake_sleep, events):
    return ModelClient(backend, config, events=events, sleep=fake_sleep)


@pytest.fixture
def make_studio(backend, fake_sleep):
    """Build a Studio wired to the fake backend. `key=""` simulates no credential."""

    def factory(key: str = "test-key", **overrides) -> Studio:
        config = StudioConfig(**overrides)
        bus = EventBus()
        return Studio(
            StaticCredentials(key),
            config,
            events=bus,
            client_factory=lambda api_key: ModelClient(backend, config, events=bus, sleep=fake_sleep),
        )

    return factory


@pytest.fixture
def studio(make_studio):
    return make_studio()


@pytest.fixture
def png_bytes():
    """Create a small sample PNG."""
    img = Image.new("RGB", (64, 96), color="blue")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes():
    img = Image.new("RGB", (64, 64), color="red")
    buf = BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def product_asset(png_bytes):
    return ImageAsset.from_bytes(png_bytes, name="bottle.png")


@pytest.fixture
def sample_image_file(tmp_path, png_bytes):
    path = tmp_path / "product.png"
    path.write_bytes(png_bytes)
    return path
