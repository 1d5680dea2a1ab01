"""Discovery of locally running OpenCode instances.

Probes a contiguous port range concurrently. Each probe is time-bounded and
independent: a hung or refusing port never delays or cancels its siblings.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from opentray.config import UNKNOWN_DIRECTORY, TrayConfig
from opentray.log import get_logger
from opentray.models import HealthResponse, Instance, PathInfo, Project


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


logger = get_logger(__name__)


class InstanceLocator:
    """Finds running instances on the configured local port range."""

    def __init__(
        self,
        config: TrayConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the locator.

        Args:
            config: Engine configuration (port range and probe timeout)
            transport: Optional httpx transport (used for testing)
        """
        self.config = config or TrayConfig()
        self._transport = transport

    async def discover(self) -> list[Instance]:
        """Probe all ports and return the healthy instances, ordered by port."""
        timeout = httpx.Timeout(self.config.probe_timeout)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            results = await asyncio.gather(
                *(self._probe(client, port) for port in self.config.ports),
                return_exceptions=True,
            )
        instances: list[Instance] = []
        for port, result in zip(self.config.ports, results, strict=True):
            if isinstance(result, Instance):
                instances.append(result)
            elif isinstance(result, Exception):
                logger.debug("Probe failed", port=port, error=str(result))
        logger.debug("Discovery finished", found=len(instances))
        return instances

    async def _probe(self, client: httpx.AsyncClient, port: int) -> Instance | None:
        url = f"http://{self.config.host}:{port}"
        async with asyncio.timeout(self.config.probe_timeout * 3):
            try:
                response = await client.get(f"{url}/global/health")
            except httpx.HTTPError:
                return None
            if not response.is_success:
                return None
            try:
                health = HealthResponse.model_validate_json(response.content)
            except ValidationError:
                return None
            if not health.healthy:
                return None
            directory = await self._resolve_directory(client, url)
        logger.info("Found instance", url=url, directory=directory, version=health.version)
        return Instance(
            endpoint=url,
            directory=directory,
            port=port,
            connected=True,
            version=health.version,
        )

    async def _resolve_directory(self, client: httpx.AsyncClient, url: str) -> str:
        """Ask /path first, then /project/current, else fall back to "Unknown"."""
        try:
            response = await client.get(f"{url}/path")
            response.raise_for_status()
            return PathInfo.model_validate_json(response.content).directory
        except (httpx.HTTPError, ValidationError) as e:
            logger.debug("Primary directory lookup failed", url=url, error=str(e))
        try:
            response = await client.get(f"{url}/project/current")
            response.raise_for_status()
            return Project.model_validate_json(response.content).path
        except (httpx.HTTPError, ValidationError) as e:
            logger.debug("Fallback directory lookup failed", url=url, error=str(e))
        return UNKNOWN_DIRECTORY


class DiscoveryPoller:
    """Runs discovery aggressively at first, then relaxes to steady polling.

    The initial burst retries up to `initial_attempts` times, `retry_delay`
    apart, and stops as soon as any instance is found. Afterwards discovery
    repeats every `poll_interval` seconds until stopped.
    """

    def __init__(
        self,
        discover: Callable[[], Awaitable[list[Instance]]],
        config: TrayConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._discover = discover
        self.config = config or TrayConfig()
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    async def initial_burst(self) -> list[Instance]:
        """Run the initial retry burst and return the last result."""
        found: list[Instance] = []
        for attempt in range(1, self.config.initial_attempts + 1):
            found = await self._discover()
            if found:
                break
            logger.debug("No instances yet", attempt=attempt)
            if attempt < self.config.initial_attempts:
                await self._sleep(self.config.retry_delay)
        return found

    async def run(self) -> None:
        """Initial burst followed by polling, forever."""
        await self.initial_burst()
        while True:
            await self._sleep(self.config.poll_interval)
            await self._discover()

    def start(self) -> None:
        """Start polling in a background task (non-blocking)."""
        if self.is_running:
            msg = "Discovery is already running"
            raise RuntimeError(msg)
        self._task = asyncio.create_task(self.run(), name="opentray-discovery")

    async def stop(self) -> None:
        """Stop the background task and wait for it to finish."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()
