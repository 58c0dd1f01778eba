"""FastAPI ingress for submitting, removing and listing messages."""

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import FastAPI, Form, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from wled_message_relay import __version__
from wled_message_relay.exceptions import InvalidInputError

if TYPE_CHECKING:
    from wled_message_relay.controller import MessageRelay

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store, max-age=0", "Pragma": "no-cache"}


def create_app(relay: "MessageRelay") -> FastAPI:
    """Create the FastAPI application.

    Args:
        relay: MessageRelay the routes operate on.

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="WLED Message Relay",
        description="Queue short messages for a remote WLED display",
        version=__version__,
    )

    app.state.relay = relay

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError) -> PlainTextResponse:
        logger.info("Rejected message from %s: %s", request.client.host if request.client else "?", exc)
        return PlainTextResponse(str(exc), status_code=400)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "ok"}

    @app.post("/api/message", response_class=PlainTextResponse)
    async def send_message(
        text: Annotated[str, Form()],
        color: Annotated[str | None, Form()] = None,
    ) -> str:
        """Queue a message, or switch to it if the current one has expired."""
        result = await relay.submit(text, color or None)
        return result.value

    @app.get("/api/queue")
    async def get_queue() -> JSONResponse:
        """Current message, its elapsed seconds and the pending queue."""
        snapshot = await relay.snapshot()
        return JSONResponse(snapshot.model_dump(), headers=NO_STORE_HEADERS)

    @app.post("/api/admin/remove", response_class=PlainTextResponse)
    async def admin_remove(id: Annotated[int, Form()]) -> str:  # noqa: A002
        """Remove a queued or current message by id."""
        await relay.remove(id)
        return "ok"

    return app
