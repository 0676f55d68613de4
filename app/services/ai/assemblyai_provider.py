"""
AssemblyAI speech-to-text client
"""

import asyncio
from typing import Dict, Any, Optional

import httpx

from app.core.exceptions import UpstreamServiceError
from app.core.logging import ai_logger
from app.models.transcription import StageStatus
from .base import TranscriptionClient, AIProvider, TranscriptPoll


# Upstream vocabulary that maps onto local terminal states;
# everything else ("queued", "processing", ...) is in progress
TERMINAL_STATUS_MAP = {
    "completed": StageStatus.COMPLETED,
    "error": StageStatus.FAILED,
}

DEFAULT_POLL_INTERVAL = 3.0


def map_upstream_status(upstream_status: Optional[str]) -> StageStatus:
    return TERMINAL_STATUS_MAP.get((upstream_status or "").lower(), StageStatus.PROCESSING)


class AssemblyAITranscriptionClient(TranscriptionClient):
    """AssemblyAI transcript API over httpx"""

    def __init__(self, config: Dict[str, Any], http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)

        self.poll_interval = config.get("poll_interval", DEFAULT_POLL_INTERVAL)

        if http_client is None:
            client_kwargs = {
                "base_url": config.get("base_url", "https://api.assemblyai.com/v2"),
                "headers": {"Authorization": config.get("api_key") or ""},
                "timeout": config.get("timeout", 30),
            }
            if config.get("http_proxy"):
                client_kwargs["proxy"] = config.get("http_proxy")
            http_client = httpx.AsyncClient(**client_kwargs)

        self.client = http_client

    def _get_provider_name(self) -> AIProvider:
        return AIProvider.ASSEMBLYAI

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamServiceError(
                f"Speech-to-text service returned HTTP {e.response.status_code}",
                service=self.provider.value
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamServiceError(
                f"Speech-to-text request failed: {e.__class__.__name__}: {e}",
                service=self.provider.value
            ) from e
        except ValueError as e:
            raise UpstreamServiceError(
                "Speech-to-text service returned a non-JSON body",
                service=self.provider.value
            ) from e

    async def submit(self, audio_url: str, speaker_labels: bool = True) -> str:
        data = await self._request(
            "POST",
            "/transcript",
            json={"audio_url": audio_url, "speaker_labels": speaker_labels}
        )

        job_id = data.get("id")
        if not job_id:
            raise UpstreamServiceError(
                "Speech-to-text service did not return a job id",
                service=self.provider.value
            )

        ai_logger.info(f"Submitted transcription job {job_id}")
        return job_id

    async def poll(self, job_id: str) -> TranscriptPoll:
        data = await self._request("GET", f"/transcript/{job_id}")
        status = map_upstream_status(data.get("status"))

        if status != StageStatus.COMPLETED:
            return TranscriptPoll(
                job_id=job_id,
                status=status,
                error=data.get("error") if status == StageStatus.FAILED else None
            )

        utterances = [
            {
                "speaker": u.get("speaker"),
                "start": u.get("start"),
                "end": u.get("end"),
                "text": u.get("text") or "",
                "confidence": u.get("confidence"),
            }
            for u in (data.get("utterances") or [])
        ]

        return TranscriptPoll(
            job_id=job_id,
            status=status,
            text=data.get("text") or "",
            utterances=utterances,
            confidence=data.get("confidence"),
            audio_duration=data.get("audio_duration")
        )

    async def _poll_until_terminal(self, job_id: str, interval: float) -> TranscriptPoll:
        while True:
            await asyncio.sleep(interval)
            result = await self.poll(job_id)
            if result.is_terminal:
                return result
            ai_logger.debug(f"Transcription job {job_id} still in progress")

    async def wait_for_completion(
        self,
        job_id: str,
        timeout: float,
        interval: Optional[float] = None
    ) -> TranscriptPoll:
        interval = self.poll_interval if interval is None else interval

        try:
            return await asyncio.wait_for(self._poll_until_terminal(job_id, interval), timeout)
        except asyncio.TimeoutError:
            ai_logger.warning(f"Transcription job {job_id} timed out after {timeout}s")
            return TranscriptPoll(
                job_id=job_id,
                status=StageStatus.FAILED,
                error=f"Transcription timed out after {timeout:g} seconds"
            )

    async def close(self):
        await self.client.aclose()
