from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..clients.wavespeed import WaveSpeedClient
from ..config import WaveSpeedConfig
from ..errors import RequestValidationError
from ..types import Artifact, GenerationRequest
from .fanout import FanOutCoordinator
from .poller import Poller
from .progress import ProgressSink

logger = logging.getLogger(__name__)


class GenerationEngine:
    """Caller-facing entry point: submit a request and wait for its artifacts."""

    def __init__(
        self,
        config: WaveSpeedConfig,
        *,
        client: WaveSpeedClient | None = None,
        poller: Poller | None = None,
        coordinator: FanOutCoordinator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = client or WaveSpeedClient(config, transport=transport)
        self._poller = poller or Poller(self._client)
        self._coordinator = coordinator or FanOutCoordinator(self._client, self._poller)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _credential(self, credential: str | None) -> str:
        resolved = credential or self._config.api_key
        if not resolved:
            raise RequestValidationError("Please provide a WaveSpeed API key to run this model.")
        return resolved

    async def submit_and_await(
        self,
        request: GenerationRequest,
        credential: str | None = None,
        *,
        on_progress: Optional[ProgressSink] = None,
        max_attempts: int | None = None,
        interval_seconds: float | None = None,
    ) -> Artifact | list[Artifact]:
        """
        Run ``request`` to completion.

        Returns a single artifact when ``request.artifact_count`` is None, or a
        list of exactly ``artifact_count`` artifacts in submission order. Any
        failure is raised as one ``WaveSpeedError``; partial lists are never
        returned.
        """
        token = self._credential(credential)
        attempts = self._config.max_poll_attempts if max_attempts is None else max_attempts
        interval = self._config.poll_interval_seconds if interval_seconds is None else interval_seconds

        if request.artifact_count is None:
            logger.debug("Running single job against %s", request.endpoint)
            return await self._coordinator.run_job(
                request,
                token,
                max_attempts=attempts,
                interval_seconds=interval,
                on_progress=on_progress,
            )

        logger.debug("Fanning out %d jobs against %s", request.artifact_count, request.endpoint)
        return await self._coordinator.generate(
            request,
            request.artifact_count,
            token,
            max_attempts=attempts,
            interval_seconds=interval,
            on_progress=on_progress,
        )

    async def __aenter__(self) -> "GenerationEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()
