"""SSH port-forward supervision for reaching the WLED device."""

import asyncio
import logging
import subprocess

import httpx

from wled_message_relay.config import LinkConfig
from wled_message_relay.exceptions import LinkUnavailableError

logger = logging.getLogger(__name__)


class LinkSupervisor:
    """Keeps a local SSH port forward to the device alive.

    The forward's reachability is re-probed on every call instead of being
    tracked as state. Spawned ssh processes are not tracked either; the
    supervision loop's periodic probe replaces any that die.
    """

    def __init__(self, config: LinkConfig, client: httpx.AsyncClient) -> None:
        """Initialize the link supervisor.

        Args:
            config: SSH forward configuration.
            client: Shared HTTP client used for probes.
        """
        self._config = config
        self._client = client
        self._lock = asyncio.Lock()

    @property
    def base_url(self) -> str:
        """Local base URL of the forwarded device API."""
        return f"http://127.0.0.1:{self._config.local_port}"

    @property
    def ssh_target(self) -> str:
        """SSH destination in ``[user@]host`` form."""
        if self._config.ssh_user:
            return f"{self._config.ssh_user}@{self._config.ssh_host}"
        return self._config.ssh_host

    @property
    def forward_spec(self) -> str:
        """Argument for ``ssh -L``."""
        return (
            f"127.0.0.1:{self._config.local_port}:"
            f"{self._config.device_host}:{self._config.device_port}"
        )

    def ssh_command(self) -> list[str]:
        """Build the ssh command line for the forward."""
        return [
            "ssh",
            "-NT",
            "-o",
            "ExitOnForwardFailure=yes",
            "-o",
            "ServerAliveInterval=10",
            "-o",
            "ServerAliveCountMax=3",
            "-L",
            self.forward_spec,
            self.ssh_target,
        ]

    async def is_reachable(self) -> bool:
        """Probe the local end of the forward.

        Any HTTP response counts as reachable; only transport errors do not.
        """
        try:
            await self._client.get(f"{self.base_url}/")
        except httpx.HTTPError as e:
            logger.debug("Link probe failed: %s", e)
            return False
        return True

    async def ensure(self) -> None:
        """Make sure the forward is up, spawning ssh if the probe fails.

        Serialized so concurrent callers never spawn two forwards. After a
        spawn this waits the settle time and returns without confirming the
        link, assuming it is usable.

        Raises:
            LinkUnavailableError: If the ssh process cannot be started.
        """
        async with self._lock:
            if await self.is_reachable():
                return

            logger.info("Starting ssh tunnel to %s forwarding %s", self.ssh_target, self.forward_spec)
            try:
                pid = self._spawn_forward()
            except OSError as e:
                raise LinkUnavailableError(f"Failed to start ssh tunnel: {e}") from e

            logger.debug("ssh tunnel spawned with pid %d", pid)
            await asyncio.sleep(self._config.settle_seconds)

    def _spawn_forward(self) -> int:
        """Launch the ssh forward in the background without waiting on it.

        Returns:
            Process id of the spawned ssh.
        """
        process = subprocess.Popen(  # noqa: S603
            self.ssh_command(),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        return process.pid

    async def heartbeat(self) -> bool:
        """Request the device's JSON API through the forward."""
        try:
            await self._client.get(f"{self.base_url}/json")
        except httpx.HTTPError as e:
            logger.warning("Device heartbeat failed: %s", e)
            return False
        return True

    async def supervise_loop(self) -> None:
        """Keep the forward alive for the lifetime of the process.

        Fixed backoff: a failed ensure waits ``retry_seconds``, a failed
        heartbeat re-checks after ``unhealthy_interval_seconds``.
        """
        logger.info("Link supervision started for %s", self.ssh_target)
        while True:
            try:
                await self.ensure()
            except LinkUnavailableError:
                logger.exception("ssh tunnel error")
                await asyncio.sleep(self._config.retry_seconds)
                continue

            if await self.heartbeat():
                await asyncio.sleep(self._config.healthy_interval_seconds)
            else:
                await asyncio.sleep(self._config.unhealthy_interval_seconds)
