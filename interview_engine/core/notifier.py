"""
Outbound notifications.

The core publishes messages and never waits for delivery. A background
task drains the queue into a ``NotificationSender``; delivery failures are
logged and dropped.
"""

import asyncio
import logging
from typing import Annotated, Literal, Protocol, Union

from pydantic import BaseModel, Field

from interview_engine.models.report import LinearReportRequest, PanelFinalReport

logger = logging.getLogger(__name__)


class PanelReportEmail(BaseModel):
    """Report email for a finished or abandoned panel interview."""

    kind: Literal["panel_report_email"] = "panel_report_email"
    to: str
    candidate_name: str
    session_id: str
    report: PanelFinalReport
    abandoned: bool = False
    questions_asked: int = 0
    questions_answered: int = 0
    questions_skipped: int = 0


class LinearReportMessage(BaseModel):
    """Report generation request for a completed linear session."""

    kind: Literal["linear_report_request"] = "linear_report_request"
    request: LinearReportRequest


Notification = Annotated[
    Union[PanelReportEmail, LinearReportMessage],
    Field(discriminator="kind"),
]


class NotificationSender(Protocol):
    """Delivery capability (mail transport, report queue, ...)."""

    async def send(self, message: Notification) -> None: ...


class LoggingSender:
    """Default sender: logs what would have been delivered."""

    async def send(self, message: Notification) -> None:
        if isinstance(message, PanelReportEmail):
            status = "abandoned" if message.abandoned else "completed"
            logger.info(
                f"Report email for panel session {message.session_id} ({status}) "
                f"to {message.to}: overall {message.report.overall_score}/100"
            )
        else:
            summary = message.request.summary
            logger.info(
                f"Report requested for linear session {message.request.session_id}: "
                f"{summary.percentage}% (passed={summary.passed})"
            )


class Notifier:
    """Fire-and-forget publisher backed by an asyncio queue and one drain task."""

    def __init__(self, sender: NotificationSender | None = None, enabled: bool = True):
        self.sender = sender or LoggingSender()
        self.enabled = enabled
        self._queue: asyncio.Queue | None = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def publish(self, message: Notification) -> None:
        """Queue a message for delivery. Returns immediately."""
        if not self.enabled:
            logger.debug(f"Notifications disabled, dropping {message.kind}")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, dropping {message.kind}")
            return

        # Queue and drain task belong to the loop they were created on
        if self._loop is not loop:
            self._loop = loop
            self._queue = asyncio.Queue()
            self._task = None
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._drain(self._queue), name="notifier")
        self._queue.put_nowait(message)

    async def flush(self) -> None:
        """Wait until every published message has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        if self._loop is asyncio.get_running_loop():
            await asyncio.gather(task, return_exceptions=True)

    async def _drain(self, queue: asyncio.Queue) -> None:
        while True:
            message = await queue.get()
            try:
                await self.sender.send(message)
            except Exception as e:
                logger.error(f"Failed to deliver {message.kind}: {e!r}")
            finally:
                queue.task_done()
