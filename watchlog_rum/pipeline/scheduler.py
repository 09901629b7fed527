"""
Flush scheduling and batch hand-off to the transport.

A flush drains the whole queue *before* the payload is sent, so a slow or
failing send can never put an event back in the queue or send it twice,
and events enqueued while a send is in flight start a fresh batch.

Flush triggers:
- periodic timer every ``flush_interval`` seconds
- queue thresholds (byte budget, batch size)
- page-hide / unload, in beacon mode
- explicit ``flush()`` from the host
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from watchlog_rum.config.base_config import DEFAULT_ENDPOINT, RumConfig
from watchlog_rum.pipeline.queue import EventQueue
from watchlog_rum.transport.http import BeaconSender, Transport
from watchlog_rum.transport.payload import build_headers, build_payload, encode_payload
from watchlog_rum.utils.async_helpers import PeriodicTimer
from watchlog_rum.utils.clock import now_ms

logger = logging.getLogger(__name__)


class FlushScheduler:
    """
    Owns the event queue and moves its contents to the network.

    Args:
        config: Resolved agent configuration.
        session_id: Session stamped on every payload.
        device_id: Device stamped on every payload.
        transport: Keep-alive transport.
        beacon: Teardown transport, or None when unavailable.
        clock: Epoch-millisecond clock for ``sentAt``.
    """

    def __init__(
        self,
        config: RumConfig,
        session_id: str,
        device_id: str,
        transport: Transport,
        beacon: Optional[BeaconSender] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.session_id = session_id
        self.device_id = device_id
        self.transport = transport
        self.beacon = beacon
        self._clock = clock

        self.queue = EventQueue(
            max_bytes=config.max_queue_bytes,
            batch_max=config.batch_max,
            on_full=self.flush,
        )
        self._timer = PeriodicTimer(config.flush_interval, self.flush, name="flush")

        self._flushes = 0
        self._events_sent = 0
        self._beacon_batches = 0
        self._send_failures = 0

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    @property
    def beacon_available(self) -> bool:
        return self.beacon is not None and self.config.use_beacon

    def start(self) -> bool:
        """(Re)start the periodic flush timer. False when no loop is running."""
        self._timer.cancel()
        started = self._timer.start()
        if started:
            logger.debug(f"[Flush] Timer started ({self.config.flush_interval}s)")
        return started

    def stop(self) -> None:
        self._timer.cancel()

    def flush(self, use_beacon: bool = False, blocking: bool = False) -> bool:
        """
        Drain the queue into one payload and hand it to a transport.

        Args:
            use_beacon: Prefer the beacon channel when one is available.
            blocking: Wait for delivery (interpreter exit, no worker threads).

        Returns:
            True when a batch left the queue (whether or not it arrives).
        """
        if not self.queue.length:
            return False

        events = self.queue.drain()
        self._flushes += 1

        try:
            payload = build_payload(
                self.config,
                self.session_id,
                self.device_id,
                events,
                sent_at=self._clock(),
            )
            body = encode_payload(payload)
        except Exception as e:
            self._send_failures += 1
            logger.debug(f"[Flush] Could not encode batch of {len(events)}: {e}")
            return True

        url = self.config.endpoint or DEFAULT_ENDPOINT

        if use_beacon and self.beacon_available:
            try:
                if blocking:
                    self.beacon.send_beacon_blocking(url, body)
                else:
                    self.beacon.send_beacon(url, body)
                self._beacon_batches += 1
                self._events_sent += len(events)
            except Exception as e:
                # The queue is already drained; a second channel could double-send.
                self._send_failures += 1
                logger.debug(f"[Flush] Beacon failed, batch of {len(events)} lost: {e}")
            return True

        try:
            headers = build_headers(self.config.api_key)
            if blocking:
                self.transport.send_blocking(url, body, headers)
            else:
                self.transport.send(url, body, headers)
            self._events_sent += len(events)
        except Exception as e:
            self._send_failures += 1
            logger.debug(f"[Flush] Send failed, batch of {len(events)} lost: {e}")
        return True

    def get_stats(self) -> Dict[str, Any]:
        return {
            "timer_running": self._timer.running,
            "timer_ticks": self._timer.ticks,
            "flushes": self._flushes,
            "events_sent": self._events_sent,
            "beacon_batches": self._beacon_batches,
            "send_failures": self._send_failures,
            "queue": self.queue.get_stats(),
        }
