"""Background connectivity monitor used to fast-fail requests while offline."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Tracks the most recent known network state.

    The state starts as available. ``start()`` spawns a task that probes
    ``host:port`` with a TCP connect every ``interval`` seconds; hosts that
    have their own reachability signal can call ``set_available`` instead.

    Args:
        host: Host to probe.
        port: Port to probe (default 443).
        interval: Seconds between probes.
        probe_timeout: Seconds before a probe counts as failed.
    """

    def __init__(
        self,
        host: str = "api.x.ai",
        port: int = 443,
        interval: float = 30.0,
        probe_timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.interval = interval
        self.probe_timeout = probe_timeout
        self._available = True
        self._task: asyncio.Task | None = None

    @classmethod
    def for_url(cls, url: str, **kwargs) -> ConnectivityMonitor:
        parsed = urlparse(url)
        port = parsed.port or (80 if parsed.scheme == "http" else 443)
        return cls(host=parsed.hostname or "", port=port, **kwargs)

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_available(self, available: bool) -> None:
        if available != self._available:
            logger.info(f"Network {'available' if available else 'unavailable'}")
        self._available = available

    async def probe(self) -> bool:
        """Attempt one TCP connection and record the result."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.probe_timeout,
            )
        except (OSError, asyncio.TimeoutError):
            self.set_available(False)
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        self.set_available(True)
        return True

    async def _run(self) -> None:
        while True:
            await self.probe()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Begin monitoring on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
