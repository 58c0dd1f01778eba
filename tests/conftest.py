"""Shared pytest fixtures for message relay tests."""

import socket
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from wled_message_relay.config import (
    DeviceConfig,
    HTTPConfig,
    LinkConfig,
    RotationConfig,
    Settings,
)
from wled_message_relay.device import MockDevice
from wled_message_relay.scheduler import RotationScheduler

EFFECTS = ["Solid", "Blink", "Breathe", "Text Fade", "Scrolling Text", "Noise"]
PALETTES = ["Default", "* Random Cycle", "* Color 1", "* Colors 1&2", "* Color Gradient"]


def free_port() -> int:
    """Return a currently unused local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWLED:
    """Minimal WLED JSON API for httpx.MockTransport.

    Records every request; ``failing`` paths raise a connect error.
    """

    def __init__(self, effects: list | None = None, palettes: list | None = None) -> None:
        self.effects = EFFECTS if effects is None else effects
        self.palettes = PALETTES if palettes is None else palettes
        self.requests: list[httpx.Request] = []
        self.failing: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.failing or "*" in self.failing:
            raise httpx.ConnectError("connection refused", request=request)
        if path == "/json/effects":
            return httpx.Response(200, json=self.effects)
        if path == "/json/palettes":
            return httpx.Response(200, json=self.palettes)
        if path == "/json/state":
            return httpx.Response(200, json={"success": True})
        return httpx.Response(200, text="ok")

    def paths(self, method: str | None = None) -> list[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def mock_device() -> MockDevice:
    """Create a mock device for testing."""
    return MockDevice()


@pytest.fixture
def rotation_config() -> RotationConfig:
    """Rotation settings with the standard 60s dwell."""
    return RotationConfig(dwell_seconds=60.0, tick_interval_seconds=0.9, max_text_length=128)


@pytest.fixture
def scheduler(mock_device: MockDevice, rotation_config: RotationConfig, clock: FakeClock) -> RotationScheduler:
    """Create a scheduler driven by the fake clock."""
    return RotationScheduler(device=mock_device, config=rotation_config, clock=clock)


@pytest.fixture
def fake_wled() -> FakeWLED:
    """Create a fake WLED API."""
    return FakeWLED()


@pytest.fixture
async def wled_client(fake_wled: FakeWLED):
    """HTTP client routed to the fake WLED API."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_wled)) as client:
        yield client


@pytest.fixture
def mock_link() -> MagicMock:
    """Create a mock link supervisor."""
    link = MagicMock()
    link.base_url = "http://127.0.0.1:18080"
    link.ensure = AsyncMock()
    return link


@pytest.fixture
def link_config() -> LinkConfig:
    """Link settings with no settle delay."""
    return LinkConfig(
        ssh_host="pi.example.net",
        ssh_user="pi",
        device_host="192.168.1.50",
        device_port=80,
        local_port=18080,
        settle_seconds=0.0,
    )


@pytest.fixture
def test_settings(link_config: LinkConfig, rotation_config: RotationConfig) -> Settings:
    """Create test settings."""
    return Settings(
        link=link_config,
        device=DeviceConfig(mock=True),
        rotation=rotation_config,
        http=HTTPConfig(enabled=False),
    )


@pytest.fixture
def make_settings(link_config: LinkConfig) -> Callable[..., Settings]:
    """Build settings with a custom device section."""

    def _make(**device: object) -> Settings:
        return Settings(
            link=link_config,
            device=DeviceConfig(**device),
            rotation=RotationConfig(),
            http=HTTPConfig(enabled=False),
        )

    return _make
