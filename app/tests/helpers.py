"""
Test doubles and payload builders
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import update

from app.models import StageStatus
from app.services.ai.base import AIProvider, AnalysisClient, TranscriptionClient, TranscriptPoll
from app.services.ai.openai_provider import parse_analysis_payload
from app.services.reporting import DeliveryResult, ReportingClient
from app.services.storage import StorageBackend


TEAM_ID = 10

TRANSCRIPT_TEXT = "Hello, thanks for calling"


def analysis_json(**overrides) -> str:
    """Language-model response in the expected shape"""
    payload = {
        "overallScore": 83,
        "customerService": 80,
        "productKnowledge": 85,
        "communicationSkills": 78,
        "complianceAdherence": 90,
        "strengths": ["Friendly greeting"],
        "improvements": ["Confirm the customer's needs"],
        "keyMoments": [{"timestamp": "00:01", "description": "Greeting"}],
        "recommendations": ["Summarise next steps"],
        "summary": "Polite, well-structured call",
    }
    payload.update(overrides)
    return json.dumps({k: v for k, v in payload.items() if v is not None})


class FakeTranscriptionClient(TranscriptionClient):
    """Speech-to-text double; submit can be held open with `hold`"""

    def __init__(self, text: str = TRANSCRIPT_TEXT, status: StageStatus = StageStatus.COMPLETED,
                 error: Optional[str] = None):
        super().__init__({})
        self.text = text
        self.status = status
        self.error = error
        self.submit_error: Optional[Exception] = None
        self.submitted: List[str] = []
        self.submit_started = asyncio.Event()
        self.hold: Optional[asyncio.Event] = None
        self.closed = False

    def _get_provider_name(self) -> AIProvider:
        return AIProvider.ASSEMBLYAI

    async def submit(self, audio_url: str, speaker_labels: bool = True) -> str:
        self.submitted.append(audio_url)
        self.submit_started.set()
        if self.hold is not None:
            await self.hold.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return f"job-{len(self.submitted)}"

    async def poll(self, job_id: str) -> TranscriptPoll:
        if self.status == StageStatus.COMPLETED:
            return TranscriptPoll(job_id=job_id, status=self.status, text=self.text,
                                  utterances=[{"speaker": "A", "start": 0, "end": 1200, "text": self.text}],
                                  confidence=0.93, audio_duration=12.5)
        return TranscriptPoll(job_id=job_id, status=self.status, error=self.error)

    async def wait_for_completion(self, job_id: str, timeout: float, interval: Optional[float] = None) -> TranscriptPoll:
        return await self.poll(job_id)

    async def close(self):
        self.closed = True


class FakeAnalysisClient(AnalysisClient):
    """Language-model double; responses go through the real payload validation"""

    def __init__(self, raw: Optional[str] = None):
        super().__init__({})
        self.raw = raw if raw is not None else analysis_json()
        self.error: Optional[Exception] = None
        self.calls: List[Dict] = []

    def _get_provider_name(self) -> AIProvider:
        return AIProvider.OPENAI

    async def analyze(self, transcript_text: str, criteria_weights: Optional[Dict[str, float]] = None):
        self.calls.append({"text": transcript_text, "weights": criteria_weights})
        if self.error is not None:
            raise self.error
        return parse_analysis_payload(self.raw)


class FakeStorage(StorageBackend):
    def __init__(self):
        self.keys: List[str] = []

    async def get_signed_download_url(self, storage_key: str) -> str:
        self.keys.append(storage_key)
        return f"https://storage.test/{storage_key}?signature=abc"


class FakeReporting(ReportingClient):
    def __init__(self):
        self.sent: List[Dict] = []
        self.error: Optional[Exception] = None

    async def send_report(self, destination_email: str, subject: str, html_body: str) -> DeliveryResult:
        if self.error is not None:
            raise self.error
        self.sent.append({"to": destination_email, "subject": subject, "html": html_body})
        return DeliveryResult(
            destination=destination_email,
            subject=subject,
            message_id=f"<{len(self.sent)}@test>",
            sent_at=datetime.now()
        )




async def settled(tasks, count: int):
    """Wait until at least count of the tasks are done"""
    while sum(task.done() for task in tasks) < count:
        await asyncio.sleep(0.01)


async def backdate_claim(session_factory, model, recording_id: int, seconds: float):
    """Move a stage's started_at into the past, as if its holder had died"""
    async with session_factory() as session:
        await session.execute(
            update(model)
            .where(model.recording_id == recording_id)
            .values(started_at=datetime.now(timezone.utc) - timedelta(seconds=seconds))
        )
        await session.commit()
