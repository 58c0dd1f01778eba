"""Device abstraction layer for WLED LED displays."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx

from wled_message_relay.config import DeviceConfig, Settings
from wled_message_relay.exceptions import DeviceCallFailedError, LinkUnavailableError
from wled_message_relay.link import LinkSupervisor

logger = logging.getLogger(__name__)

RGB = tuple[int, int, int]

DEFAULT_COLOR: RGB = (255, 215, 0)

_HEX_COLOR = re.compile(r"#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})")

PALETTE_KEYWORDS = ("primary", "color 1", "single", "solid")


def parse_hex_color(value: str | None) -> RGB | None:
    """Parse ``#rrggbb`` or ``rrggbb`` into an RGB triple.

    Args:
        value: Colour string, case-insensitive.

    Returns:
        (r, g, b) or None if the value is not exactly six hex digits after
        an optional ``#``.
    """
    if not value:
        return None
    match = _HEX_COLOR.fullmatch(value)
    if match is None:
        return None
    r, g, b = (int(part, 16) for part in match.groups())
    return r, g, b


def find_text_effect(effects: list[Any]) -> int | None:
    """Pick the scrolling text effect from a WLED effect list.

    Prefers a name containing both "scroll" and "text", otherwise the first
    name containing "text".
    """
    candidate: int | None = None
    for index, name in enumerate(effects):
        if not isinstance(name, str):
            continue
        lowered = name.lower()
        if "scroll" in lowered and "text" in lowered:
            return index
        if candidate is None and "text" in lowered:
            candidate = index
    return candidate


def find_color1_palette(palettes: list[Any]) -> int | None:
    """Pick a palette that renders Color 1 instead of a gradient."""
    for index, name in enumerate(palettes):
        if isinstance(name, str) and any(keyword in name.lower() for keyword in PALETTE_KEYWORDS):
            return index
    return None


class DeviceInterface(ABC):
    """Abstract interface for device implementations."""

    @abstractmethod
    async def apply(self, text: str, color: str | None = None) -> None:
        """Show a message on the device.

        Implementations are best-effort and must not raise on device failures.

        Args:
            text: Message text.
            color: Optional ``#rrggbb`` colour.
        """


class WLEDDevice(DeviceInterface):
    """WLED display reached through the SSH forward.

    Effect and palette indices are discovered from the device catalog on
    first use and cached for the process lifetime, since they differ
    between firmware versions but not at runtime.
    """

    def __init__(
        self,
        link: LinkSupervisor,
        client: httpx.AsyncClient,
        config: DeviceConfig,
    ) -> None:
        """Initialize the WLED device wrapper.

        Args:
            link: Supervisor for the forward the device is reached through.
            client: Shared HTTP client.
            config: Device settings.
        """
        self._link = link
        self._client = client
        self._config = config
        self._effect_index: int | None = None
        self._palette_index: int | None = None

    @property
    def effect_index(self) -> int | None:
        """Cached scrolling text effect index, if discovered."""
        return self._effect_index

    @property
    def palette_index(self) -> int | None:
        """Cached Color 1 palette index, if discovered."""
        return self._palette_index

    async def apply(self, text: str, color: str | None = None) -> None:
        """Push the message as scrolling text in the requested colour.

        Args:
            text: Message text, used as the segment name.
            color: Optional ``#rrggbb`` colour; gold if absent or invalid.
        """
        try:
            await self._link.ensure()
        except LinkUnavailableError:
            logger.exception("Tunnel ensure failed")

        # A preset is assumed to select scrolling text; otherwise set fx directly
        effect_index: int | None = None
        if self._config.text_preset_id is not None:
            await self._call_best_effort("POST", "/json/state", json={"ps": self._config.text_preset_id})
        else:
            effect_index = await self.resolve_effect_index()

        r, g, b = parse_hex_color(color) or DEFAULT_COLOR
        # o1 = color mode (0 uses Color 1), c2 = font size; o/c1 kept for older firmware
        segment: dict[str, Any] = {
            "id": 0,
            "n": text,
            "col": [[r, g, b]],
            "o": [0, 255],
            "o1": 0,
            "c1": 0,
            "c2": 255,
        }
        palette_index = await self.resolve_palette_index()
        if palette_index is not None:
            segment["pal"] = palette_index
        if effect_index is not None:
            segment["fx"] = effect_index

        payload = {"on": True, "bri": self._config.brightness, "seg": [segment]}
        await self._call_best_effort("POST", "/json/state", json=payload)

        if self._config.text_param_key:
            await self._call_best_effort("GET", "/win", params={self._config.text_param_key: text})

        logger.debug("Applied message to device: %r (%d, %d, %d)", text, r, g, b)

    async def resolve_effect_index(self) -> int | None:
        """Return the scrolling text effect index, discovering it once."""
        if self._effect_index is not None:
            return self._effect_index
        effects = await self._fetch_catalog("/json/effects")
        if effects is None:
            return None
        index = find_text_effect(effects)
        if index is not None:
            logger.info("Discovered text effect at index %d: %s", index, effects[index])
            self._effect_index = index
        return index

    async def resolve_palette_index(self) -> int | None:
        """Return the Color 1 palette index, discovering it once."""
        if self._palette_index is not None:
            return self._palette_index
        palettes = await self._fetch_catalog("/json/palettes")
        if palettes is None:
            return None
        index = find_color1_palette(palettes)
        if index is not None:
            logger.info("Discovered Color 1 palette at index %d: %s", index, palettes[index])
            self._palette_index = index
        return index

    async def _fetch_catalog(self, path: str) -> list[Any] | None:
        """Fetch a name list from the device, or None if unavailable."""
        response = await self._call_best_effort("GET", path)
        if response is None:
            return None
        try:
            body = response.json()
        except ValueError:
            logger.warning("Device returned invalid JSON for %s", path)
            return None
        if not isinstance(body, list):
            logger.warning("Device returned unexpected body for %s: %s", path, type(body).__name__)
            return None
        return body

    async def _call(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Make a device request.

        Raises:
            DeviceCallFailedError: On transport errors or non-2xx responses.
        """
        url = f"{self._link.base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeviceCallFailedError(f"{method} {path} failed: {e}") from e
        return response

    async def _call_best_effort(self, method: str, path: str, **kwargs: Any) -> httpx.Response | None:
        """Make a device request, logging and discarding any failure.

        Failures are never retried here; the next applied state supersedes
        whatever did not get through.

        Returns:
            The response, or None if the call failed.
        """
        try:
            return await self._call(method, path, **kwargs)
        except DeviceCallFailedError as e:
            logger.warning("Device call ignored: %s", e)
            return None


class MockDevice(DeviceInterface):
    """Mock device for testing without hardware.

    Records every applied message for inspection in tests.
    """

    def __init__(self, delay: float = 0.0) -> None:
        """Initialize the mock device.

        Args:
            delay: Simulated network latency per apply.
        """
        self._delay = delay
        self._applied: list[tuple[str, str | None]] = []

    @property
    def applied(self) -> list[tuple[str, str | None]]:
        """All applied (text, color) pairs in order."""
        return list(self._applied)

    @property
    def last_applied(self) -> tuple[str, str | None] | None:
        """The most recently applied (text, color) pair."""
        return self._applied[-1] if self._applied else None

    @property
    def apply_count(self) -> int:
        """Number of times apply was called."""
        return len(self._applied)

    async def apply(self, text: str, color: str | None = None) -> None:
        """Record the message."""
        self._applied.append((text, color))
        logger.debug("Mock device: applied %r", text)
        if self._delay:
            await asyncio.sleep(self._delay)


def create_device(
    settings: Settings,
    link: LinkSupervisor,
    client: httpx.AsyncClient,
) -> DeviceInterface:
    """Factory function to create the appropriate device implementation.

    Args:
        settings: Application settings.
        link: Link supervisor for the real device.
        client: Shared HTTP client for the real device.

    Returns:
        DeviceInterface implementation.
    """
    if settings.device.mock:
        logger.info("Creating mock device")
        return MockDevice()

    logger.info("Creating WLED device behind %s", link.base_url)
    return WLEDDevice(link=link, client=client, config=settings.device)
