"""Main controller orchestrating all message relay components."""

import asyncio
import logging

import httpx
import uvicorn

from wled_message_relay.api import create_app
from wled_message_relay.config import Settings
from wled_message_relay.device import DeviceInterface, create_device
from wled_message_relay.link import LinkSupervisor
from wled_message_relay.models import QueueSnapshot, SubmitResult
from wled_message_relay.scheduler import RotationScheduler

logger = logging.getLogger(__name__)


class MessageRelay:
    """Main controller owning the rotation, device and link state.

    Runs the rotation loop, the link supervision loop and the ingress HTTP
    server, and exposes the ingress operations used by the API.
    """

    def __init__(self, settings: Settings, device: DeviceInterface | None = None) -> None:
        """Initialize the message relay.

        Args:
            settings: Application settings.
            device: Device override; built from settings if omitted.
        """
        self._settings = settings
        self._shutdown_event = asyncio.Event()
        self._server: uvicorn.Server | None = None

        # Initialize components
        self._client = httpx.AsyncClient(timeout=settings.link.request_timeout)
        self._link = LinkSupervisor(config=settings.link, client=self._client)
        self._device = device or create_device(settings, link=self._link, client=self._client)
        self._scheduler = RotationScheduler(device=self._device, config=settings.rotation)

    @property
    def scheduler(self) -> RotationScheduler:
        """The rotation scheduler."""
        return self._scheduler

    @property
    def link(self) -> LinkSupervisor:
        """The link supervisor."""
        return self._link

    @property
    def device(self) -> DeviceInterface:
        """The device messages are applied to."""
        return self._device

    async def submit(self, text: str, color: str | None = None) -> SubmitResult:
        """Submit a message for display.

        Raises:
            InvalidInputError: If the text is empty or too long.
        """
        return await self._scheduler.enqueue_or_promote(text, color)

    async def remove(self, message_id: int) -> None:
        """Remove a queued or current message. Unknown ids are ignored."""
        await self._scheduler.remove(message_id)

    async def snapshot(self) -> QueueSnapshot:
        """Report current and pending messages."""
        return await self._scheduler.snapshot()

    async def run(self) -> None:
        """Main entry point - start all async tasks.

        Runs until shutdown is requested via shutdown() method.
        """
        logger.info("Starting message relay via %s", self._link.ssh_target)

        try:
            async with asyncio.TaskGroup() as tg:
                loops = [
                    tg.create_task(self._link.supervise_loop(), name="link"),
                    tg.create_task(self._scheduler.run(), name="rotation"),
                ]
                if self._settings.http.enabled:
                    tg.create_task(self._serve_http(), name="http")

                # A failing task cancels this wait through the task group
                await self._shutdown_event.wait()
                # The HTTP server exits on its own once should_exit is set
                for task in loops:
                    task.cancel()
        except* Exception as eg:
            for exc in eg.exceptions:
                logger.error("Task failed: %s", exc, exc_info=exc)
        finally:
            await self._cleanup()

    async def shutdown(self) -> None:
        """Request graceful shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()
        if self._server is not None:
            self._server.should_exit = True

    async def _serve_http(self) -> None:
        """Serve the ingress API; the relay stops when the server does."""
        config = uvicorn.Config(
            create_app(self),
            host=self._settings.http.host,
            port=self._settings.http.port,
            log_level="info",
        )
        server = uvicorn.Server(config)
        self._server = server
        if self._shutdown_event.is_set():
            server.should_exit = True
        logger.info("Ingress API listening on %s:%d", self._settings.http.host, self._settings.http.port)
        await server.serve()
        logger.info("Ingress API stopped")
        await self.shutdown()

    async def _cleanup(self) -> None:
        """Clean up resources on shutdown."""
        logger.info("Cleaning up resources...")
        await self._client.aclose()
