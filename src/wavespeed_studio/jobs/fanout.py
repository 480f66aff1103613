from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Optional, Sequence, TypeVar

from ..clients.wavespeed import WaveSpeedClient
from ..normalizer import normalize_artifact
from ..types import Artifact, GenerationRequest, JobHandle, JobStatus
from .poller import Poller
from .progress import ProgressEvent, ProgressSink, emit

logger = logging.getLogger(__name__)

MAX_SEED = 2_147_483_647

T = TypeVar("T")


def random_seed() -> int:
    return random.randrange(MAX_SEED)


def _raise_first_failure(results: Sequence[T | BaseException]) -> list[T]:
    """Raise the failure with the lowest index, or return the results unchanged."""
    for item in results:
        if isinstance(item, BaseException):
            raise item
    return list(results)  # type: ignore[arg-type]


class FanOutCoordinator:
    """Runs N independent jobs for one request and joins them in submission order."""

    def __init__(
        self,
        client: WaveSpeedClient,
        poller: Poller,
        *,
        seed_factory: Callable[[], int] = random_seed,
    ) -> None:
        self._client = client
        self._poller = poller
        self._seed_factory = seed_factory

    async def _submit(
        self,
        index: int,
        request: GenerationRequest,
        credential: str,
        on_progress: Optional[ProgressSink],
    ) -> JobHandle:
        handle = await self._client.submit(request, credential)
        emit(on_progress, ProgressEvent(index=index, phase=JobStatus.QUEUED, elapsed_ms=0, job_id=handle.id))
        return handle

    async def _await_artifact(
        self,
        index: int,
        handle: JobHandle,
        credential: str,
        *,
        max_attempts: int,
        interval_seconds: float,
        on_progress: Optional[ProgressSink],
    ) -> Artifact:
        outcome = await self._poller.poll(
            handle,
            credential,
            max_attempts=max_attempts,
            interval_seconds=interval_seconds,
            index=index,
            on_progress=on_progress,
        )
        outcome.raise_for_failure()
        if len(outcome.artifacts) > 1:
            logger.warning(
                "Job %s returned %d outputs; keeping the first",
                handle.id,
                len(outcome.artifacts),
            )
        return normalize_artifact(outcome.artifacts[0])

    async def run_job(
        self,
        request: GenerationRequest,
        credential: str,
        *,
        max_attempts: int,
        interval_seconds: float,
        index: int = 0,
        on_progress: Optional[ProgressSink] = None,
    ) -> Artifact:
        """Submit one job, wait for it, and return its artifact."""
        handle = await self._submit(index, request, credential, on_progress)
        return await self._await_artifact(
            index,
            handle,
            credential,
            max_attempts=max_attempts,
            interval_seconds=interval_seconds,
            on_progress=on_progress,
        )

    async def generate(
        self,
        base_request: GenerationRequest,
        artifact_count: int,
        credential: str,
        *,
        max_attempts: int,
        interval_seconds: float,
        on_progress: Optional[ProgressSink] = None,
    ) -> list[Artifact]:
        """
        Produce ``artifact_count`` artifacts, one job each, differing only by seed.

        All jobs are submitted concurrently and then polled concurrently. The
        batch is all-or-nothing: every unit is awaited, and if any failed the
        failure of the lowest index is raised and successful siblings are dropped.
        """
        if artifact_count < 1:
            raise ValueError("artifact_count must be at least 1")

        requests = [base_request.with_seed(self._seed_factory()) for _ in range(artifact_count)]

        submitted = await asyncio.gather(
            *(
                self._submit(index, request, credential, on_progress)
                for index, request in enumerate(requests)
            ),
            return_exceptions=True,
        )
        handles: list[JobHandle] = _raise_first_failure(submitted)

        artifacts: list[Artifact | None] = [None] * artifact_count

        async def run_unit(index: int, handle: JobHandle) -> None:
            artifacts[index] = await self._await_artifact(
                index,
                handle,
                credential,
                max_attempts=max_attempts,
                interval_seconds=interval_seconds,
                on_progress=on_progress,
            )

        finished = await asyncio.gather(
            *(run_unit(index, handle) for index, handle in enumerate(handles)),
            return_exceptions=True,
        )
        _raise_first_failure(finished)

        logger.info("Fan-out of %d jobs completed", artifact_count)
        return [artifact for artifact in artifacts if artifact is not None]
