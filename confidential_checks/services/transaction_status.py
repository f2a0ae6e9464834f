"""
Transaction status channel.

Single-slot, process-wide notification of the current long-running
operation's progress. Each write overwrites the previous status and gets a
new sequence number. A scheduled clear carries the sequence number of the
status it belongs to and only acts if that status is still current, so a
superseded status never wipes a newer one.
"""

import asyncio

from confidential_checks.config import settings
from confidential_checks.infrastructure.observability.logging import get_logger
from confidential_checks.models.domain.check_domain import StatusPhase, TransactionStatus

logger = get_logger(__name__)


class TransactionStatusChannel:
    """Single-writer status slot with self-expiring success and error messages."""

    def __init__(
        self,
        success_clear_seconds: float | None = None,
        error_clear_seconds: float | None = None,
    ):
        self.success_clear_seconds = (
            settings.STATUS_SUCCESS_CLEAR_SECONDS
            if success_clear_seconds is None
            else success_clear_seconds
        )
        self.error_clear_seconds = (
            settings.STATUS_ERROR_CLEAR_SECONDS if error_clear_seconds is None else error_clear_seconds
        )
        self._status = TransactionStatus()
        self._clear_handle: asyncio.TimerHandle | None = None
        self._changed = asyncio.Event()

    @property
    def sequence(self) -> int:
        return self._status.sequence

    def current(self) -> TransactionStatus:
        return self._status

    def pending(self, message: str) -> TransactionStatus:
        return self.set("pending", message)

    def success(self, message: str) -> TransactionStatus:
        return self.set("success", message)

    def error(self, message: str) -> TransactionStatus:
        return self.set("error", message)

    def set(self, phase: StatusPhase, message: str) -> TransactionStatus:
        """Overwrite the slot and schedule its own expiry."""
        self._cancel_scheduled_clear()
        status = self._publish(TransactionStatus(visible=True, phase=phase, message=message))

        delay = None
        if phase == "success":
            delay = self.success_clear_seconds
        elif phase == "error":
            delay = self.error_clear_seconds

        if delay is not None:
            loop = asyncio.get_running_loop()
            self._clear_handle = loop.call_later(delay, self._expire, status.sequence)

        logger.debug("Transaction status set", phase=phase, sequence=status.sequence)
        return status

    def clear(self) -> TransactionStatus:
        """Hide the status immediately."""
        self._cancel_scheduled_clear()
        return self._publish(TransactionStatus())

    async def wait_for_change(self, after_sequence: int, timeout: float) -> TransactionStatus:
        """
        Wait until the status moves past `after_sequence`.

        Returns the current status straight away if it already has, or after
        `timeout` seconds with whatever is current then.
        """
        if self._status.sequence > after_sequence:
            return self._status

        changed = self._changed
        try:
            await asyncio.wait_for(changed.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self._status

    def _expire(self, sequence: int) -> None:
        if sequence != self._status.sequence:
            logger.debug(
                "Stale status clear ignored", expired=sequence, current=self._status.sequence
            )
            return
        self._clear_handle = None
        self._publish(TransactionStatus())

    def _publish(self, status: TransactionStatus) -> TransactionStatus:
        self._status = status.model_copy(update={"sequence": self._status.sequence + 1})

        # Wake everyone waiting on the previous value, then arm a fresh event
        previous, self._changed = self._changed, asyncio.Event()
        previous.set()
        return self._status

    def _cancel_scheduled_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None


# Process-wide instance; only the lifecycle manager writes to it
transaction_status = TransactionStatusChannel()
