from __future__ import annotations

import httpx
import pytest

from conftest import status
from wavespeed_studio.clients.wavespeed import WaveSpeedClient
from wavespeed_studio.errors import ProtocolError, SubmissionError, TransientPollError
from wavespeed_studio.types import GenerationRequest, JobHandle


class TestSubmit:
    @pytest.mark.asyncio
    async def test_posts_payload_with_bearer_credential(
        self, fake_api, config, seedream_request
    ) -> None:
        request = seedream_request.with_seed(42)

        async with WaveSpeedClient(config, transport=fake_api.transport) as client:
            handle = await client.submit(request, "secret")

        assert handle == JobHandle(id="job-42", endpoint="bytedance/seedream-v4.5/edit")
        assert fake_api.auth_headers == ["Bearer secret"]
        body = fake_api.submissions[0]
        assert body["prompt"] == "make it night"
        assert body["size"] == "1024*1024"
        assert body["enable_sync_mode"] is False
        assert body["seed"] == 42

    @pytest.mark.asyncio
    async def test_submission_url(self, config, seedream_request) -> None:
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, json={"data": {"id": "abc"}})

        async with WaveSpeedClient(config, transport=httpx.MockTransport(handler)) as client:
            await client.submit(seedream_request, "k")

        assert str(seen[0]) == "https://api.wavespeed.ai/api/v3/bytedance/seedream-v4.5/edit"

    @pytest.mark.asyncio
    async def test_http_error_raises_submission_error(
        self, fake_api, config, seedream_request
    ) -> None:
        fake_api.submit_steps = [httpx.Response(400, text='{"message": "prompt too long"}')]

        async with WaveSpeedClient(config, transport=fake_api.transport) as client:
            with pytest.raises(SubmissionError) as exc_info:
                await client.submit(seedream_request, "k")

        assert exc_info.value.status_code == 400
        assert "prompt too long" in exc_info.value.body
        assert "(400)" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_raises_submission_error(
        self, fake_api, config, seedream_request
    ) -> None:
        fake_api.submit_steps = [httpx.ConnectError("dns failure")]

        async with WaveSpeedClient(config, transport=fake_api.transport) as client:
            with pytest.raises(SubmissionError) as exc_info:
                await client.submit(seedream_request, "k")

        assert exc_info.value.status_code is None

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"data": {}}),
            httpx.Response(200, json={"code": 200}),
            httpx.Response(200, json=["unexpected"]),
            httpx.Response(200, text="not json"),
        ],
    )
    @pytest.mark.asyncio
    async def test_missing_job_id_is_protocol_error(
        self, fake_api, config, seedream_request, response
    ) -> None:
        fake_api.submit_steps = [response]

        async with WaveSpeedClient(config, transport=fake_api.transport) as client:
            with pytest.raises(ProtocolError):
                await client.submit(seedream_request, "k")


class TestFetchStatus:
    HANDLE = JobHandle(id="job-7", endpoint="x/y")

    @pytest.mark.asyncio
    async def test_returns_status_payload(self, fake_api, config) -> None:
        fake_api.script("job-7", status("processing"))

        async with WaveSpeedClient(config, transport=fake_api.transport) as client:
            data = await client.fetch_status(self.HANDLE, "k")

        assert data["data"]["status"] == "processing"

    @pytest.mark.parametrize(
        "step",
        [
            httpx.Response(500, text="boom"),
            httpx.Response(429, text="slow down"),
            httpx.Response(200, text="garbage"),
            httpx.Response(200, json=[1, 2, 3]),
            httpx.ReadTimeout("timed out"),
        ],
    )
    @pytest.mark.asyncio
    async def test_failures_are_transient(self, fake_api, config, step) -> None:
        fake_api.script("job-7", step)

        async with WaveSpeedClient(config, transport=fake_api.transport) as client:
            with pytest.raises(TransientPollError):
                await client.fetch_status(self.HANDLE, "k")


def test_paths() -> None:
    assert WaveSpeedClient.submission_path("/kwaivgi/kling/") == "/api/v3/kwaivgi/kling"
    assert WaveSpeedClient.result_path("abc") == "/api/v3/predictions/abc/result"


def test_request_payload_without_images() -> None:
    request = GenerationRequest(endpoint="a/b", prompt="p", params={"size": "512*512"})
    assert request.to_payload() == {"prompt": "p", "size": "512*512"}
