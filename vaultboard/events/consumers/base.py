"""
Base consumer class for event bus stream processing.

Provides lifecycle management, signal handling, and error recovery.
Subclasses override `handle()` to process events.

Usage:
    class MyConsumer(BaseConsumer):
        stream = "audit"
        group = "audit-writers"

        def handle(self, event: dict) -> None:
            print(event["type"], event["payload"])

    MyConsumer().run()
"""

from __future__ import annotations

import logging
import os
import signal
from abc import ABC, abstractmethod

from vaultboard.events.bus import subscribe

logger = logging.getLogger(__name__)


class BaseConsumer(ABC):
    """Base class for event bus consumers.

    Attributes:
        stream: Stream name (audit, entries, system)
        group: Consumer group name (each event is delivered once per group)
        consumer_name: Unique consumer name within the group
        batch_size: Number of messages to read per iteration
        block_ms: How long to block waiting for new messages (ms)
        retry_ms: Delay before failed events are replayed (ms)
    """

    stream: str
    group: str
    consumer_name: str = "worker-0"
    batch_size: int = 10
    block_ms: int = 5000
    retry_ms: int = 30000

    def __init__(self) -> None:
        self._running = True
        self.consumer_name = os.environ.get("CONSUMER_NAME", self.consumer_name)

    @abstractmethod
    def handle(self, event: dict) -> None:
        """Process a single event.

        On success the event is acknowledged. On exception it stays pending
        and is handed to this consumer again after ``retry_ms``.
        """

    def _signal_handler(self, signum: int, _frame: object) -> None:
        name = signal.Signals(signum).name
        logger.info("%s consumer received %s, shutting down", self.stream, name)
        self._running = False
        raise KeyboardInterrupt

    def run(self, max_iterations: int | None = None) -> None:
        """Start the blocking subscribe loop.

        Args:
            max_iterations: Stop after N iterations. None = infinite (production).
        """
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        logger.info(
            "Starting %s consumer: stream=%s group=%s consumer=%s",
            self.__class__.__name__,
            self.stream,
            self.group,
            self.consumer_name,
        )

        try:
            subscribe(
                self.stream,
                self.group,
                self.consumer_name,
                handler=self.handle,
                batch_size=self.batch_size,
                block_ms=self.block_ms,
                retry_ms=self.retry_ms,
                max_iterations=max_iterations,
            )
        except KeyboardInterrupt:
            logger.info("%s consumer interrupted", self.stream)
        finally:
            logger.info("%s consumer stopped", self.stream)
