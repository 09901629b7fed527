"""
Network transports for batch delivery.

Two delivery modes:
- ``Transport.send``: keep-alive POST with auth header, scheduled as a
  fire-and-forget task on the running loop (or on a private loop in a
  worker thread when the caller has none).
- ``BeaconSender.send_beacon``: header-less POST for teardown. Runs on a
  non-daemon thread with its own loop, so the request completes even after
  the host loop is gone.

The ``*_blocking`` variants serve interpreter exit, where worker threads
no longer run: the POST runs inline on a private loop with in-thread DNS
resolution, bounded by the request timeout.

Neither mode reports its outcome to the caller, retries, or re-queues.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp.abc import AbstractResolver

from watchlog_rum.exceptions import TransportError
from watchlog_rum.utils.async_helpers import (
    BackgroundTasks,
    get_running_loop_or_none,
    run_detached,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class InlineResolver(AbstractResolver):
    """
    Resolver that calls ``getaddrinfo`` on the loop thread.

    aiohttp's default resolver hands lookups to an executor thread, which
    cannot be started while the interpreter is finalizing.
    """

    async def resolve(
        self, host: str, port: int = 0, family: int = socket.AF_INET
    ) -> List[Dict[str, Any]]:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM, family=family)
        hosts = []
        for fam, _, proto, _, address in infos:
            hosts.append(
                {
                    "hostname": host,
                    "host": address[0],
                    "port": address[1],
                    "family": fam,
                    "proto": proto,
                    "flags": socket.AI_NUMERICHOST | socket.AI_NUMERICSERV,
                }
            )
        return hosts

    async def close(self) -> None:
        return None


def one_shot_session(timeout: float, inline_dns: bool = False) -> aiohttp.ClientSession:
    """Throwaway ClientSession for sends made outside the host loop."""
    connector = aiohttp.TCPConnector(resolver=InlineResolver()) if inline_dns else None
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout),
    )



class Transport(ABC):
    """Abstract base class for fire-and-forget batch transports."""

    @abstractmethod
    def send(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        """Start sending ``body``. Must not block on the network."""
        pass

    def send_blocking(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        """Send and wait for the outcome. Used at interpreter exit."""
        self.send(url, body, headers)

    async def aclose(self) -> None:
        """Release network resources once in-flight sends have settled."""
        return None


class BeaconSender(ABC):
    """Abstract base class for teardown-safe, header-less delivery."""

    @abstractmethod
    def send_beacon(self, url: str, body: bytes) -> bool:
        """Queue ``body`` for delivery. Returns True when accepted."""
        pass

    def send_beacon_blocking(self, url: str, body: bytes) -> bool:
        """Deliver ``body`` before returning. Used at interpreter exit."""
        return self.send_beacon(url, body)


class AiohttpTransport(Transport):
    """
    aiohttp-based transport sharing one keep-alive ClientSession per loop.

    Args:
        timeout: Total request timeout in seconds.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._session = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks = BackgroundTasks()

        self._sent = 0
        self._failed = 0

    async def _get_session(self):
        """Get or create the aiohttp session for the running loop."""
        loop = asyncio.get_running_loop()
        if self._session is None or self._session.closed or self._session_loop is not loop:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._session_loop = loop
        return self._session

    async def _post(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        try:
            session = await self._get_session()
            async with session.post(url, data=body, headers=headers) as response:
                if response.status >= 400:
                    raise TransportError(f"Collector answered {response.status}")
            self._sent += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed += 1
            logger.debug(f"[Transport] Send failed: {e}")

    async def _post_once(
        self,
        url: str,
        body: bytes,
        headers: Dict[str, str],
        inline_dns: bool = False,
    ) -> None:
        """Send on a throwaway session (used off-loop)."""
        try:
            async with one_shot_session(self.timeout, inline_dns) as session:
                async with session.post(url, data=body, headers=headers) as response:
                    if response.status >= 400:
                        raise TransportError(f"Collector answered {response.status}")
            self._sent += 1
        except Exception as e:
            self._failed += 1
            logger.debug(f"[Transport] Detached send failed: {e}")

    def send(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        if get_running_loop_or_none() is None:
            run_detached(
                lambda: self._post_once(url, body, headers),
                name="watchlog-rum-send",
            )
            return
        self._tasks.spawn(self._post(url, body, headers))

    def send_blocking(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        # Worker threads are not run once the interpreter is exiting
        if get_running_loop_or_none() is not None:
            self.send(url, body, headers)
            return
        asyncio.run(self._post_once(url, body, headers, inline_dns=True))

    async def aclose(self) -> None:
        await self._tasks.wait(timeout=self.timeout)
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def get_stats(self) -> Dict[str, Any]:
        return {
            "sent": self._sent,
            "failed": self._failed,
            "in_flight": self._tasks.pending,
        }


class AiohttpBeacon(BeaconSender):
    """
    Beacon delivery on a detached, non-daemon thread.

    At interpreter exit the post runs inline instead, bounded by ``timeout``.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    async def _post(self, url: str, body: bytes, inline_dns: bool = False) -> None:
        async with one_shot_session(self.timeout, inline_dns) as session:
            async with session.post(
                url,
                data=body,
                headers={"Content-Type": "application/json"},
            ) as response:
                logger.debug(f"[Beacon] Collector answered {response.status}")

    def send_beacon(self, url: str, body: bytes) -> bool:
        run_detached(
            lambda: self._post(url, body),
            name="watchlog-rum-beacon",
            daemon=False,
        )
        return True

    def send_beacon_blocking(self, url: str, body: bytes) -> bool:
        if get_running_loop_or_none() is not None:
            return self.send_beacon(url, body)
        try:
            asyncio.run(self._post(url, body, inline_dns=True))
        except Exception as e:
            logger.debug(f"[Beacon] Delivery failed: {e}")
            return False
        return True
