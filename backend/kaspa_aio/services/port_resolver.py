"""Kaspa node port discovery with fallback.

The node's RPC port is configurable, but a stale or hand-edited
configuration must not leave the dashboard blind. Ports are tried in order:

  1. the configured port
  2. the standard RPC port 16110
  3. the alternative port 16111

The first port that answers at all is cached and tried first next time.
While the node is unreachable a background loop retries on a fixed interval.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable

import httpx
from pydantic import BaseModel
from tenacity import AsyncRetrying, retry_if_result, stop_after_delay, wait_fixed

from kaspa_aio.config import settings
from kaspa_aio.core.ttl_cache import TtlCache

logger = logging.getLogger(__name__)

STANDARD_FALLBACK_PORTS = (16110, 16111)


class ConnectionResult(BaseModel):
    """Outcome of probing one port or the whole chain."""

    connected: bool
    port: int | None = None
    url: str | None = None
    error: str | None = None
    attempted_ports: list[int] = []


class ResolverStatus(BaseModel):
    configured_port: int
    cached_port: int | None
    port_chain: list[int]
    retry_active: bool
    retry_interval: float


SuccessCallback = Callable[[ConnectionResult], Awaitable[None] | None]


def build_port_chain(configured_port: int, fallback_ports: Iterable[int]) -> list[int]:
    """Configured port first, then every fallback port once."""
    chain = [configured_port]
    for port in fallback_ports:
        if port not in chain:
            chain.append(port)
    return chain


class PortResolver:
    """Finds and remembers the port a dependent service answers on."""

    def __init__(
        self,
        configured_port: int | None = None,
        fallback_ports: Iterable[int] = STANDARD_FALLBACK_PORTS,
        *,
        host: str | None = None,
        timeout: float | None = None,
        retry_interval: float | None = None,
        service_name: str = "Kaspa node",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.configured_port = configured_port or settings.kaspa_node_port
        self.fallback_ports = tuple(fallback_ports)
        self.host = host or settings.kaspa_node_host
        self.timeout = timeout if timeout is not None else settings.port_probe_timeout_seconds
        self.retry_interval = (
            retry_interval if retry_interval is not None else settings.port_retry_interval_seconds
        )
        self.service_name = service_name

        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._cached_port: TtlCache[int] = TtlCache()
        self._retry_task: asyncio.Task | None = None
        self._port_chain = build_port_chain(self.configured_port, self.fallback_ports)

    # ------------------------------------------------------------------
    # Chain and cache
    # ------------------------------------------------------------------

    @property
    def port_chain(self) -> list[int]:
        return list(self._port_chain)

    def has_port(self, port: int) -> bool:
        return port in self._port_chain

    def set_configured_port(self, port: int) -> None:
        """Rebuild the chain for a new configured port and forget the cached one."""
        self.configured_port = port
        self._port_chain = build_port_chain(port, self.fallback_ports)
        self.clear_cache()
        logger.info("%s port chain is now %s", self.service_name, self._port_chain)

    @property
    def working_port(self) -> int | None:
        return self._cached_port.value

    @property
    def working_url(self) -> str | None:
        port = self.working_port
        return None if port is None else self._url(port)

    def clear_cache(self) -> None:
        self._cached_port.clear()

    def get_status(self) -> ResolverStatus:
        return ResolverStatus(
            configured_port=self.configured_port,
            cached_port=self.working_port,
            port_chain=self.port_chain,
            retry_active=self.retry_active,
            retry_interval=self.retry_interval,
        )

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    async def connect(self) -> ConnectionResult:
        """Return the first reachable port, trying the cached one first."""
        attempted: list[int] = []

        cached = self.working_port
        if cached is not None:
            attempted.append(cached)
            result = await self._test_connection(cached)
            if result.connected:
                result.attempted_ports = attempted
                return result
            logger.info("Cached %s port %d stopped answering: %s", self.service_name, cached, result.error)
            self.clear_cache()

        for port in self._port_chain:
            attempted.append(port)
            result = await self._test_connection(port)
            if result.connected:
                self._cached_port.set(port)
                if port != self.configured_port:
                    logger.warning(
                        "%s not reachable on configured port %d, using fallback port %d",
                        self.service_name, self.configured_port, port,
                    )
                result.attempted_ports = list(dict.fromkeys(attempted))
                return result
            logger.debug("%s probe failed: %s", self.service_name, result.error)

        ports = ", ".join(str(p) for p in self._port_chain)
        logger.warning("%s unreachable on all ports: %s", self.service_name, ports)
        return ConnectionResult(
            connected=False,
            error=f"Failed to connect to {self.service_name} on any port: {ports}",
            attempted_ports=list(dict.fromkeys(attempted)),
        )

    async def _test_connection(self, port: int) -> ConnectionResult:
        url = self._url(port)
        try:
            await self._get_client().post(url, json={"method": "ping", "params": {}})
        except httpx.TimeoutException:
            return ConnectionResult(connected=False, port=port, error=f"Connection timed out on port {port}")
        except httpx.ConnectError:
            return ConnectionResult(connected=False, port=port, error=f"Connection refused on port {port}")
        except (httpx.HTTPError, OSError) as e:
            return ConnectionResult(connected=False, port=port, error=f"Unexpected error on port {port}: {e}")

        # Any response, even an RPC or HTTP error, proves the port is open
        return ConnectionResult(connected=True, port=port, url=url)

    def _url(self, port: int) -> str:
        return f"http://{self.host}:{port}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def wait_until_reachable(
        self, timeout: float, poll_interval: float | None = None
    ) -> ConnectionResult:
        """Retry ``connect()`` until it succeeds or *timeout* seconds pass.

        Returns the last result either way.
        """
        retrying = AsyncRetrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(poll_interval if poll_interval is not None else self.retry_interval),
            retry=retry_if_result(lambda result: not result.connected),
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        return await retrying(self.connect)

    # ------------------------------------------------------------------
    # Background retry
    # ------------------------------------------------------------------

    def start_retry(self, on_success: SuccessCallback | None = None) -> None:
        """Retry ``connect()`` every ``retry_interval`` seconds until stopped.

        Replaces any loop already running for this resolver.
        """
        self.stop_retry()
        self._retry_task = asyncio.get_running_loop().create_task(self._retry_loop(on_success))
        logger.info("Retrying %s connection every %ss", self.service_name, self.retry_interval)

    def stop_retry(self) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None

    @property
    def retry_active(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    async def _retry_loop(self, on_success: SuccessCallback | None) -> None:
        while True:
            await asyncio.sleep(self.retry_interval)
            try:
                result = await self.connect()
            except Exception:
                logger.error("%s retry attempt failed", self.service_name, exc_info=True)
                continue

            if result.connected and on_success is not None:
                try:
                    outcome = on_success(result)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception:
                    logger.error("Error in %s reconnect callback", self.service_name, exc_info=True)

    async def close(self) -> None:
        """Stop retrying and close the HTTP client."""
        self.stop_retry()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
