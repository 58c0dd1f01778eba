"""CLI entry point for the WLED Message Relay."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Annotated

import typer

from wled_message_relay.config import load_settings
from wled_message_relay.controller import MessageRelay
from wled_message_relay.exceptions import ConfigurationError

app = typer.Typer(
    name="wled-relay",
    help="WLED Message Relay - rotate short messages on a remote LED display.",
    add_completion=False,
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Per-request logging from httpx is too noisy at the probe rate
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to YAML configuration file.",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
    ssh_host: Annotated[
        str | None,
        typer.Option(
            "--ssh-host",
            help="SSH host that can reach the device (overrides config file).",
            envvar="SSH_HOST",
        ),
    ] = None,
    mock: Annotated[
        bool,
        typer.Option(
            "--mock",
            help="Use a mock device instead of WLED.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging.",
        ),
    ] = False,
) -> None:
    """Start the WLED Message Relay daemon.

    The relay serves the message API, rotates queued messages on the WLED
    display every minute, and keeps the SSH forward to the device alive.
    """
    setup_logging(verbose=verbose)
    logger = logging.getLogger(__name__)

    # Load settings
    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        raise typer.Exit(code=2) from e

    # Override from CLI arguments
    if ssh_host:
        settings.link.ssh_host = ssh_host
    if mock:
        settings.device.mock = True

    logger.info("Starting WLED Message Relay")
    logger.info("SSH host: %s", settings.link.ssh_host)
    logger.info(
        "Device: %s:%d via local port %d",
        settings.link.device_host,
        settings.link.device_port,
        settings.link.local_port,
    )
    logger.info("Mock device: %s", settings.device.mock)

    # Create relay
    relay = MessageRelay(settings)

    # Runner cancels leftover tasks when the block exits
    with asyncio.Runner() as runner:
        loop = runner.get_loop()
        shutdown_tasks: set[asyncio.Task[None]] = set()

        def request_shutdown(sig: signal.Signals) -> None:
            logger.info("Received signal %s, initiating shutdown...", sig.name)
            task = loop.create_task(relay.shutdown())
            shutdown_tasks.add(task)
            task.add_done_callback(shutdown_tasks.discard)

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, request_shutdown, sig)

        runner.run(relay.run())

    logger.info("Message relay stopped")


if __name__ == "__main__":
    app()
