from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from ..config import WaveSpeedConfig
from ..errors import ProtocolError, SubmissionError, TransientPollError
from ..types import GenerationRequest, JobHandle

logger = logging.getLogger(__name__)


class WaveSpeedClient:
    """Async client for the WaveSpeed v3 prediction endpoints."""

    def __init__(
        self,
        config: WaveSpeedConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._session = httpx.AsyncClient(
            base_url=config.api_url.rstrip("/"),
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(config.request_timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._session.aclose()

    @staticmethod
    def _auth(credential: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credential}"}

    @staticmethod
    def submission_path(endpoint: str) -> str:
        return f"/api/v3/{endpoint.strip('/')}"

    @staticmethod
    def result_path(job_id: str) -> str:
        return f"/api/v3/predictions/{job_id}/result"

    async def submit(self, request: GenerationRequest, credential: str) -> JobHandle:
        """
        Submit one generation job and return its handle.

        Submission failures are not retried: a rejected request usually means a
        malformed payload or a bad credential.
        """
        path = self.submission_path(request.endpoint)
        try:
            response = await self._session.post(
                path,
                json=request.to_payload(),
                headers=self._auth(credential),
            )
        except httpx.RequestError as exc:
            raise SubmissionError(None, str(exc) or type(exc).__name__, endpoint=path) from exc

        if response.is_error:
            raise SubmissionError(response.status_code, response.text, endpoint=path)

        try:
            data: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise ProtocolError(f"Submission response from {path} is not JSON") from exc

        job = data.get("data") if isinstance(data, dict) else None
        job_id = job.get("id") if isinstance(job, dict) else None
        if not job_id:
            raise ProtocolError("No Request ID returned.")

        logger.info("Submitted job %s to %s", job_id, request.endpoint)
        return JobHandle(id=str(job_id), endpoint=request.endpoint)

    async def fetch_status(self, handle: JobHandle, credential: str) -> Dict[str, Any]:
        """Query the result endpoint once; any transport or HTTP failure is transient."""
        try:
            response = await self._session.get(
                self.result_path(handle.id),
                headers=self._auth(credential),
            )
        except httpx.RequestError as exc:
            raise TransientPollError(f"Status request for job {handle.id} failed: {exc!r}") from exc

        if response.is_error:
            raise TransientPollError(
                f"Status request for job {handle.id} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TransientPollError(f"Status response for job {handle.id} is not JSON") from exc
        if not isinstance(data, dict):
            raise TransientPollError(f"Status response for job {handle.id} is not an object")
        return data

    async def __aenter__(self) -> "WaveSpeedClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()
