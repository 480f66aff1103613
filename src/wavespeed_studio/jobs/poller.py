from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt

from ..clients.wavespeed import WaveSpeedClient
from ..errors import EmptyResultError, PollTimeoutError, TransientPollError
from ..types import JobHandle, JobOutcome, JobStatus, RawArtifact
from .progress import ProgressEvent, ProgressSink, emit

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
Clock = Callable[[], float]


class _StillRunning(Exception):
    """Raised inside an attempt when the job has not reached a terminal state."""


def _reported_cost(data: Mapping[str, Any]) -> Decimal | None:
    extra = data.get("extra")
    cost = extra.get("cost") if isinstance(extra, Mapping) else None
    if cost is None:
        cost = data.get("cost")
    if cost is None or isinstance(cost, bool):
        return None
    try:
        return Decimal(str(cost))
    except InvalidOperation:
        return None


def _outputs(job: Mapping[str, Any]) -> tuple[RawArtifact, ...]:
    outputs = job.get("outputs")
    if not outputs:
        return ()
    if isinstance(outputs, (list, tuple)):
        return tuple(outputs)
    return (outputs,)


class Poller:
    """Waits for one submitted job to reach a terminal state.

    Every attempt sleeps ``interval_seconds`` and then queries the result
    endpoint once. Three ways out, and they must stay distinct:

    - transport or HTTP failures are transient and only consume an attempt,
    - a ``failed`` status ends polling at once with a failed outcome,
    - running out of attempts raises ``PollTimeoutError``.
    """

    def __init__(
        self,
        client: WaveSpeedClient,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._client = client
        self._sleep = sleep
        self._clock = clock

    def _elapsed_ms(self, started: float) -> int:
        return int(round((self._clock() - started) * 1000))

    async def poll(
        self,
        handle: JobHandle,
        credential: str,
        *,
        max_attempts: int,
        interval_seconds: float,
        index: int = 0,
        on_progress: Optional[ProgressSink] = None,
    ) -> JobOutcome:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        started = self._clock()
        outcome: JobOutcome | None = None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            retry=retry_if_exception_type((TransientPollError, _StillRunning)),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    outcome = await self._attempt(
                        handle,
                        credential,
                        attempt_number=attempt.retry_state.attempt_number,
                        max_attempts=max_attempts,
                        interval_seconds=interval_seconds,
                        started=started,
                        index=index,
                        on_progress=on_progress,
                    )
        except RetryError as exc:
            logger.warning("Job %s still not finished after %d attempts", handle.id, max_attempts)
            raise PollTimeoutError(handle.id, max_attempts) from exc.last_attempt.exception()

        if outcome is None:  # pragma: no cover - tenacity always runs at least one attempt
            raise PollTimeoutError(handle.id, max_attempts)
        return outcome

    async def _attempt(
        self,
        handle: JobHandle,
        credential: str,
        *,
        attempt_number: int,
        max_attempts: int,
        interval_seconds: float,
        started: float,
        index: int,
        on_progress: Optional[ProgressSink],
    ) -> JobOutcome:
        await self._sleep(interval_seconds)

        try:
            data: Dict[str, Any] = await self._client.fetch_status(handle, credential)
        except TransientPollError as exc:
            logger.warning(
                "Polling error for job %s on attempt %d/%d (retrying): %s",
                handle.id,
                attempt_number,
                max_attempts,
                exc,
            )
            raise

        elapsed_ms = self._elapsed_ms(started)
        job = data.get("data")
        if not isinstance(job, Mapping):
            job = {}
        label = job.get("status")
        status = JobStatus.from_remote(label if isinstance(label, str) else None)
        cost = _reported_cost(data)

        emit(
            on_progress,
            ProgressEvent(
                index=index,
                phase=status,
                elapsed_ms=elapsed_ms,
                cost=cost,
                job_id=handle.id,
                raw=data,
            ),
        )

        if status is JobStatus.FAILED:
            reason = job.get("fail_reason") or data.get("message") or "Unknown server error"
            logger.info("Job %s failed: %s", handle.id, reason)
            return JobOutcome.failed(handle.id, str(reason), elapsed_ms=elapsed_ms, raw=data)

        if status is JobStatus.SUCCEEDED:
            outputs = _outputs(job)
            if outputs:
                logger.info("Job %s completed in %d ms", handle.id, elapsed_ms)
                return JobOutcome.succeeded(handle.id, outputs, elapsed_ms, cost, raw=data)
            if attempt_number >= max_attempts:
                raise EmptyResultError(handle.id)
            logger.debug("Job %s reported completion without outputs; polling again", handle.id)

        raise _StillRunning(label)
