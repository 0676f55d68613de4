"""
AssemblyAI client tests
"""

import json

import httpx
import pytest

from app.core.exceptions import UpstreamServiceError
from app.models import StageStatus
from app.services.ai.assemblyai_provider import AssemblyAITranscriptionClient, map_upstream_status


def make_client(handler) -> AssemblyAITranscriptionClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://stt.test/v2",
        headers={"Authorization": "test-key"}
    )
    return AssemblyAITranscriptionClient({"poll_interval": 0}, http_client=http_client)


class TestStatusMapping:

    @pytest.mark.parametrize("upstream, expected", [
        ("completed", StageStatus.COMPLETED),
        ("error", StageStatus.FAILED),
        ("queued", StageStatus.PROCESSING),
        ("processing", StageStatus.PROCESSING),
        (None, StageStatus.PROCESSING),
    ])
    def test_map_upstream_status(self, upstream, expected):
        assert map_upstream_status(upstream) == expected


class TestAssemblyAIClient:

    @pytest.mark.asyncio
    async def test_submit(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "tx-123", "status": "queued"})

        client = make_client(handler)
        job_id = await client.submit("https://bucket/rec1.mp3?sig=1")
        await client.close()

        assert job_id == "tx-123"
        assert seen == {
            "path": "/v2/transcript",
            "auth": "test-key",
            "body": {"audio_url": "https://bucket/rec1.mp3?sig=1", "speaker_labels": True},
        }

    @pytest.mark.asyncio
    async def test_submit_without_job_id(self):
        client = make_client(lambda request: httpx.Response(200, json={"status": "queued"}))

        with pytest.raises(UpstreamServiceError):
            await client.submit("https://bucket/rec1.mp3")

    @pytest.mark.asyncio
    async def test_http_error_is_upstream_error(self):
        client = make_client(lambda request: httpx.Response(500, json={"error": "boom"}))

        with pytest.raises(UpstreamServiceError) as exc_info:
            await client.submit("https://bucket/rec1.mp3")
        assert "HTTP 500" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_is_upstream_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(UpstreamServiceError):
            await client.poll("tx-1")

    @pytest.mark.asyncio
    async def test_wait_until_completed(self):
        responses = iter([
            {"id": "tx-1", "status": "queued"},
            {"id": "tx-1", "status": "processing"},
            {
                "id": "tx-1",
                "status": "completed",
                "text": "Hello, thanks for calling",
                "confidence": 0.91,
                "audio_duration": 42,
                "utterances": [
                    {"speaker": "A", "start": 0, "end": 900, "text": "Hello,", "confidence": 0.9},
                    {"speaker": "B", "start": 900, "end": 2000, "text": "thanks for calling", "confidence": 0.92},
                ],
            },
        ])
        client = make_client(lambda request: httpx.Response(200, json=next(responses)))

        result = await client.wait_for_completion("tx-1", timeout=5)

        assert result.status == StageStatus.COMPLETED
        assert result.text == "Hello, thanks for calling"
        assert result.audio_duration == 42
        assert [u["speaker"] for u in result.utterances] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_upstream_error_status(self):
        client = make_client(lambda request: httpx.Response(
            200, json={"id": "tx-1", "status": "error", "error": "Download failed"}
        ))

        result = await client.wait_for_completion("tx-1", timeout=5)

        assert result.status == StageStatus.FAILED
        assert result.error == "Download failed"
        assert result.text == ""

    @pytest.mark.asyncio
    async def test_timeout_yields_failed_poll(self):
        client = make_client(lambda request: httpx.Response(200, json={"id": "tx-1", "status": "processing"}))

        result = await client.wait_for_completion("tx-1", timeout=0.05, interval=0.01)

        assert result.status == StageStatus.FAILED
        assert result.error == "Transcription timed out after 0.05 seconds"
