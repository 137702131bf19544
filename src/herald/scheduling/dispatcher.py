"""Dispatcher: polls for due messages and delivers them.

The dispatcher owns two loops. The poll loop runs tick() on a fixed
interval and moves each due message to sent or failed. The retention loop
runs sweep() on a coarse interval and purges old terminal rows. All state
lives in the MessageStore; terminal writes are conditioned on the row
still being pending, so a cancel that lands mid-flight wins.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from herald.config.models import SchedulerConfig
from herald.errors import (
    ConfigurationError,
    CredentialRejectedError,
    DeliveryError,
    HeraldError,
)
from herald.scheduling.store import MessageStore
from herald.scheduling.types import (
    Clock,
    FixedWebhook,
    MessageStatus,
    ScheduledMessage,
    UserChannel,
    format_timestamp,
    utc_timestamp,
)
from herald.slack.client import DeliveryClient

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

# Poll loop heartbeat, in ticks (~1 hour at the default 60s interval).
HEARTBEAT_TICKS = 60

WEBHOOK_NOT_CONFIGURED = "Webhook URL not configured"


class CredentialResolver(Protocol):
    async def get_credential_for_owner(self, owner_id: str) -> str: ...


class Outcome(StrEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TickReport:
    """What one tick did."""

    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0
    overlapped: bool = False

    def record(self, outcome: Outcome) -> None:
        match outcome:
            case Outcome.SENT:
                self.sent += 1
            case Outcome.FAILED:
                self.failed += 1
            case Outcome.SKIPPED:
                self.skipped += 1


@dataclass
class DispatcherStatus:
    running: bool
    pending_count: int
    last_tick_at: int | None = None
    last_sweep_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "pending_count": self.pending_count,
            "last_tick_at": self.last_tick_at,
            "last_tick_at_readable": format_timestamp(self.last_tick_at),
            "last_sweep_at": self.last_sweep_at,
        }


def describe_failure(error: BaseException) -> str:
    """Text recorded in error_message for a failed delivery."""
    if isinstance(error, HeraldError):
        return error.message
    return str(error) or type(error).__name__


class Dispatcher:
    """Delivers due messages on a fixed interval.

    Example:
        dispatcher = Dispatcher(store, slack, StoreCredentialResolver(users))
        await dispatcher.start()
        ...
        await dispatcher.stop()
    """

    def __init__(
        self,
        store: MessageStore,
        client: DeliveryClient,
        credentials: CredentialResolver,
        config: SchedulerConfig | None = None,
        *,
        webhook_url: str | None = None,
        clock: Clock = utc_timestamp,
    ):
        self._store = store
        self._client = client
        self._credentials = credentials
        self._config = config or SchedulerConfig()
        self._webhook_url = webhook_url
        self._clock = clock
        self._tick_lock = asyncio.Lock()
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._tick_count = 0
        self._last_tick_at: int | None = None
        self._last_sweep_at: int | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info(
            "dispatcher_started",
            extra={
                "scheduler.poll_interval": self._config.poll_interval_seconds,
                "scheduler.batch_size": self._config.batch_size,
                "scheduler.retention_days": self._config.retention_days,
            },
        )
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name="herald-dispatch"),
            asyncio.create_task(self._retention_loop(), name="herald-retention"),
        ]

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("dispatcher_stopped")

    async def status(self) -> DispatcherStatus:
        counts = await self._store.count_by_status()
        return DispatcherStatus(
            running=self._running,
            pending_count=counts[MessageStatus.PENDING],
            last_tick_at=self._last_tick_at,
            last_sweep_at=self._last_sweep_at,
        )

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self._config.poll_interval_seconds
        while self._running:
            started = loop.time()
            try:
                self._tick_count += 1
                if self._tick_count % HEARTBEAT_TICKS == 0:
                    logger.info(
                        "dispatcher_heartbeat",
                        extra={"tick.count": self._tick_count},
                    )
                await self.tick()
            except Exception as e:
                logger.error("dispatch_tick_error", extra={"error.message": str(e)})
            await asyncio.sleep(max(0.0, interval - (loop.time() - started)))

    async def _retention_loop(self) -> None:
        while self._running:
            try:
                await self.sweep()
            except Exception as e:
                logger.error("retention_sweep_error", extra={"error.message": str(e)})
            await asyncio.sleep(self._config.retention_interval_seconds)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> TickReport:
        """Deliver every message due now, in bounded concurrent batches.

        A tick requested while another is still running does nothing and
        returns a report with `overlapped` set.
        """
        if self._tick_lock.locked():
            logger.warning("dispatch_tick_overlapped")
            return TickReport(overlapped=True)

        async with self._tick_lock:
            now = self._clock()
            self._last_tick_at = now
            due = await self._store.list_due(now)
            report = TickReport(due=len(due))
            if not due:
                return report

            batch_size = self._config.batch_size
            for start in range(0, len(due), batch_size):
                batch = due[start : start + batch_size]
                results = await asyncio.gather(
                    *(self._dispatch_one(message) for message in batch),
                    return_exceptions=True,
                )
                for message, result in zip(batch, results, strict=True):
                    if isinstance(result, BaseException):
                        # Row stays pending and is picked up by the next tick.
                        report.errors += 1
                        logger.error(
                            "dispatch_message_error",
                            extra={
                                "message.id": message.id,
                                "error.message": describe_failure(result),
                            },
                        )
                    else:
                        report.record(result)

            logger.info(
                "dispatch_tick_complete",
                extra={
                    "tick.due": report.due,
                    "tick.sent": report.sent,
                    "tick.failed": report.failed,
                    "tick.skipped": report.skipped,
                    "tick.errors": report.errors,
                },
            )
            return report

    async def _dispatch_one(self, message: ScheduledMessage) -> Outcome:
        current = await self._store.get_by_id(message.id)
        if current is None or not current.is_due(self._clock()):
            logger.debug("dispatch_message_skipped", extra={"message.id": message.id})
            return Outcome.SKIPPED

        try:
            await self._deliver(current)
        except Exception as e:
            error_message = describe_failure(e)
            extra: dict[str, Any] = {
                "message.id": current.id,
                "message.destination": current.destination.kind.value,
                "error.message": error_message,
            }
            if isinstance(e, DeliveryError):
                extra["delivery.kind"] = e.kind.value
            logger.warning("scheduled_message_failed", extra=extra)
            return await self._finish(
                current,
                Outcome.FAILED,
                {"status": MessageStatus.FAILED, "error_message": error_message},
            )

        return await self._finish(
            current,
            Outcome.SENT,
            {"status": MessageStatus.SENT, "sent_at": self._clock()},
        )

    async def _finish(
        self, message: ScheduledMessage, outcome: Outcome, fields: dict[str, Any]
    ) -> Outcome:
        recorded = await self._store.update(
            message.id, fields, expected_status=MessageStatus.PENDING
        )
        if not recorded:
            logger.debug(
                "dispatch_result_discarded",
                extra={"message.id": message.id, "dispatch.outcome": outcome.value},
            )
            return Outcome.SKIPPED
        if outcome is Outcome.SENT:
            logger.info(
                "scheduled_message_sent",
                extra={
                    "message.id": message.id,
                    "message.destination": message.destination.kind.value,
                },
            )
        return outcome

    async def _deliver(self, message: ScheduledMessage) -> None:
        match message.destination:
            case FixedWebhook():
                if not self._webhook_url:
                    raise ConfigurationError(WEBHOOK_NOT_CONFIGURED)
                await self._client.send_to_webhook(self._webhook_url, message.body)
            case UserChannel(owner_id=owner_id, channel_id=channel_id):
                credential = await self._credentials.get_credential_for_owner(owner_id)
                if not await self._client.credential_is_valid(credential):
                    raise CredentialRejectedError()
                await self._client.send_to_channel(credential, channel_id, message.body)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def sweep(self) -> int:
        """Purge terminal messages older than the retention window."""
        now = self._clock()
        removed = await self._store.purge_terminal_older_than(
            self._config.retention_days * SECONDS_PER_DAY, now
        )
        self._last_sweep_at = now
        logger.info("retention_sweep_complete", extra={"purge.count": removed})
        return removed
