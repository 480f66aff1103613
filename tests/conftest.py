from __future__ import annotations

import json
from collections import defaultdict
from typing import Any, Callable, Iterator

import httpx
import pytest

from wavespeed_studio.clients.wavespeed import WaveSpeedClient
from wavespeed_studio.config import WaveSpeedConfig
from wavespeed_studio.jobs.engine import GenerationEngine
from wavespeed_studio.jobs.fanout import FanOutCoordinator
from wavespeed_studio.jobs.poller import Poller
from wavespeed_studio.types import GenerationRequest, InputImage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def status(label: str | None, outputs: list[Any] | None = None, **top_level: Any) -> dict[str, Any]:
    job: dict[str, Any] = {"outputs": outputs or []}
    if label is not None:
        job["status"] = label
    if "fail_reason" in top_level:
        job["fail_reason"] = top_level.pop("fail_reason")
    return {"code": 200, "data": job, **top_level}


class FakeClock:
    """Monotonic clock that only advances when the code under test sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeWaveSpeed:
    """Scripted stand-in for the WaveSpeed REST API.

    Job ids are derived from the submitted seed when present so fan-out tests
    know which index maps to which job. ``default_status`` answers any job
    without a script, for callers whose seeds are random.
    """

    def __init__(self) -> None:
        self.submissions: list[dict[str, Any]] = []
        self.auth_headers: list[str | None] = []
        self.submit_steps: list[Any] = []
        self.status_scripts: dict[str, list[Any]] = {}
        self.status_calls: dict[str, int] = defaultdict(int)
        self.default_status: Any = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def script(self, job_id: str, *steps: Any) -> None:
        """Queue status responses for ``job_id``; the last one repeats forever."""
        self.status_scripts[job_id] = list(steps)

    def _respond(self, step: Any) -> httpx.Response:
        if isinstance(step, Exception):
            raise step
        if isinstance(step, httpx.Response):
            return step
        return httpx.Response(200, json=step)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.auth_headers.append(request.headers.get("Authorization"))
        if request.method == "POST":
            body = json.loads(request.content)
            self.submissions.append(body)
            if self.submit_steps:
                return self._respond(self.submit_steps.pop(0))
            job_id = f"job-{body['seed']}" if "seed" in body else f"job-{len(self.submissions)}"
            return httpx.Response(200, json={"code": 200, "data": {"id": job_id}})

        job_id = request.url.path.split("/")[-2]
        self.status_calls[job_id] += 1
        steps = self.status_scripts.get(job_id)
        if not steps and self.default_status is not None:
            return self._respond(self.default_status)
        if not steps:
            return httpx.Response(404, json={"message": "unknown job"})
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        return self._respond(step)


@pytest.fixture
def fake_api() -> FakeWaveSpeed:
    return FakeWaveSpeed()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> WaveSpeedConfig:
    return WaveSpeedConfig(api_key="test-key", poll_interval_seconds=2.0, max_poll_attempts=5)


def counting_seeds(start: int = 1) -> Callable[[], int]:
    counter: Iterator[int] = iter(range(start, start + 10_000))
    return lambda: next(counter)


@pytest.fixture
def make_engine(
    fake_api: FakeWaveSpeed, clock: FakeClock, config: WaveSpeedConfig
) -> Callable[..., GenerationEngine]:
    def factory(engine_config: WaveSpeedConfig | None = None) -> GenerationEngine:
        cfg = engine_config or config
        client = WaveSpeedClient(cfg, transport=fake_api.transport)
        poller = Poller(client, sleep=clock.sleep, clock=clock)
        coordinator = FanOutCoordinator(client, poller, seed_factory=counting_seeds())
        return GenerationEngine(cfg, client=client, poller=poller, coordinator=coordinator)

    return factory


@pytest.fixture
def png_image() -> InputImage:
    return InputImage(data=PNG_BYTES, mime_type="image/png", name="input.png")


@pytest.fixture
def seedream_request(png_image: InputImage) -> GenerationRequest:
    return GenerationRequest(
        endpoint="bytedance/seedream-v4.5/edit",
        prompt="make it night",
        images=(png_image,),
        params={"size": "1024*1024", "enable_sync_mode": False, "enable_base64_output": False},
        artifact_count=3,
    )
