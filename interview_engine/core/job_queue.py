"""
In-process job queue for answer evaluation.

Jobs are consumed by a fixed pool of asyncio worker tasks. Each job is
retried with exponential backoff (tenacity) when the handler raises
``TransientStoreError``; once attempts are exhausted the queue hands the
job to an exhaustion callback so the answer can be force-finalized.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from interview_engine.core.errors import TransientStoreError

logger = logging.getLogger(__name__)


class EvaluationJob(BaseModel):
    """Work item: grade one answer."""

    answer_id: str
    session_id: str
    question_type: str | None = None


JobHandler = Callable[[EvaluationJob], Awaitable[None]]
ExhaustedHandler = Callable[[EvaluationJob, BaseException], Awaitable[None]]


class JobQueue(Protocol):
    """Injected queue capability. Enqueue must not wait for the job to run."""

    async def enqueue(self, job: EvaluationJob) -> None: ...


class InProcessJobQueue:
    """
    asyncio-backed ``JobQueue``.

    Workers start lazily on the first enqueue (which needs a running loop)
    and are cancelled by ``close``.
    """

    def __init__(
        self,
        handler: JobHandler,
        on_exhausted: ExhaustedHandler | None = None,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        backoff_max_seconds: float = 30.0,
        workers: int = 4,
    ):
        self.handler = handler
        self.on_exhausted = on_exhausted
        self.max_attempts = max(3, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.worker_count = workers

        self._queue: asyncio.Queue[EvaluationJob] | None = None
        self._workers: list[asyncio.Task] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    def _ensure_started(self) -> asyncio.Queue[EvaluationJob]:
        loop = asyncio.get_running_loop()
        # Queue and workers belong to the loop they were created on
        if self._loop is not loop:
            self._loop = loop
            self._queue = asyncio.Queue()
            self._workers = []
        if not self._workers:
            self._workers = [
                asyncio.create_task(self._worker(self._queue), name=f"evaluation-worker-{i}")
                for i in range(self.worker_count)
            ]
            logger.info(f"Started {self.worker_count} evaluation workers")
        return self._queue

    async def enqueue(self, job: EvaluationJob) -> None:
        queue = self._ensure_started()
        queue.put_nowait(job)
        logger.debug(f"Enqueued evaluation for answer {job.answer_id}")

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        if workers and self._loop is asyncio.get_running_loop():
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, queue: asyncio.Queue) -> None:
        while True:
            job = await queue.get()
            try:
                await self.run(job)
            finally:
                queue.task_done()

    async def run(self, job: EvaluationJob) -> None:
        """Run one job with retries. Never raises."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.backoff_max_seconds),
            retry=retry_if_exception_type(TransientStoreError),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying evaluation of answer {job.answer_id} "
                            f"(attempt {attempt.retry_state.attempt_number}/{self.max_attempts})"
                        )
                    await self.handler(job)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(f"Evaluation of answer {job.answer_id} exhausted retries: {cause!r}")
            await self._finalize_failed(job, cause)
        except Exception as e:
            logger.exception(f"Evaluation job for answer {job.answer_id} failed: {e!r}")
            await self._finalize_failed(job, e)

    async def _finalize_failed(self, job: EvaluationJob, error: BaseException | None) -> None:
        if self.on_exhausted is None:
            return
        try:
            await self.on_exhausted(job, error)
        except Exception as final_err:
            logger.error(f"Could not finalize answer {job.answer_id}: {final_err!r}")
