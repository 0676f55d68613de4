"""
Recording processing pipeline

Transcribe a stored call recording, analyse the transcript, score it against a
rubric and share the report. Each stage moves PENDING -> PROCESSING ->
COMPLETED | FAILED; FAILED may be retried, COMPLETED is final.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError as PydanticValidationError

from app.core.events import event_emitter, Events, EventEmitter
from app.core.exceptions import (
    CallAuditException,
    ConfigurationError,
    ConflictError,
    MalformedAnalysisError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from app.core.logging import pipeline_logger
from app.models import Recording, Transcription, Analysis, ScoreCard, StageStatus
from app.schemas.pipeline import SectionLabel, SpeakerLabel
from app.schemas.principal import Principal
from app.schemas.recording import RecordingQuery
from app.services.access import AccessGuard, access_guard
from app.services.ai.base import TranscriptionClient, AnalysisClient
from app.services.criteria import CriteriaService
from app.services.pipeline_store import PipelineStore
from app.services.reporting import ReportingClient, DeliveryResult, render_report_html
from app.services.scorecard import ScoreCardBuilder, scorecard_builder
from app.services.storage import StorageBackend

TRANSCRIPTION = "transcription"
ANALYSIS = "analysis"

MAX_CONTEXT_NOTES = 10000


@dataclass
class StageResult:
    """Outcome of one stage request"""
    stage: str
    recording_id: int
    status: StageStatus
    record: Any = None
    scorecard: Optional[ScoreCard] = None
    error_code: Optional[str] = None
    error_detail: Optional[str] = None
    reused: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.COMPLETED


@dataclass
class ShareResult:
    recording_id: int
    delivery: DeliveryResult


@dataclass
class PipelineState:
    recording: Recording
    transcription: Optional[Transcription] = None
    analysis: Optional[Analysis] = None
    scorecard: Optional[ScoreCard] = None


def _validate_recording_id(recording_id) -> int:
    if isinstance(recording_id, bool) or not isinstance(recording_id, int) or recording_id <= 0:
        raise ValidationError(f"Invalid recording id: {recording_id}")
    return recording_id


def _validate_email(destination: Optional[str]) -> str:
    try:
        return validate_email((destination or "").strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid destination e-mail {destination!r}: {e}")


def _validate_labels(schema, labels, kind: str) -> Dict[str, Dict[str, str]]:
    if not isinstance(labels, dict):
        raise ValidationError(f"{kind.capitalize()} labels must be a mapping")
    validated = {}
    for key, value in labels.items():
        key = str(key).strip()
        if not key:
            raise ValidationError(f"Empty {kind} id")
        try:
            validated[key] = schema.model_validate(value).model_dump()
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {kind} label {key!r}: {e.errors()[0]['msg']}")
    return validated


class PipelineOrchestrator:
    """Drives transcription and analysis of recordings.

    Collaborators are injected; the orchestrator holds no per-recording state,
    so concurrent calls on different recordings never interfere and calls on
    the same recording are serialised by the store's compare-and-set claims.
    """

    def __init__(
        self,
        store: PipelineStore,
        transcription_client: TranscriptionClient,
        analysis_client: AnalysisClient,
        storage: StorageBackend,
        reporting: ReportingClient,
        guard: AccessGuard = access_guard,
        builder: ScoreCardBuilder = scorecard_builder,
        transcription_timeout: float = 600.0,
        poll_interval: Optional[float] = None,
        emitter: EventEmitter = event_emitter,
        transcription_lease: Optional[float] = None,
        analysis_lease: float = 120.0
    ):
        self.store = store
        self.transcription_client = transcription_client
        self.analysis_client = analysis_client
        self.storage = storage
        self.reporting = reporting
        self.guard = guard
        self.builder = builder
        self.criteria_service = CriteriaService(store, guard)
        self.transcription_timeout = transcription_timeout
        self.poll_interval = poll_interval
        self.emitter = emitter
        # Seconds after which a PROCESSING stage is presumed abandoned
        if transcription_lease is None:
            transcription_lease = transcription_timeout + 60.0
        self.transcription_lease = transcription_lease
        self.analysis_lease = analysis_lease

    async def _load_recording(self, recording_id: int, principal: Principal) -> Recording:
        _validate_recording_id(recording_id)
        recording = await self.store.get_recording(recording_id)
        if recording is None:
            raise NotFoundError("Recording")
        self.guard.ensure_can_access_recording(principal, recording)
        return recording

    async def _fail(self, model, stage: str, recording_id: int, attempt: int, error_code: str,
                    detail: str, raw_response: Optional[str] = None) -> StageResult:
        pipeline_logger.warning(f"{stage} of recording {recording_id} failed ({error_code}): {detail}")
        await self.store.fail_stage(model, recording_id, attempt, detail,
                                    error_code=error_code, raw_response=raw_response)
        event = Events.TRANSCRIPTION_FAILED if model is Transcription else Events.ANALYSIS_FAILED
        await self.emitter.emit(event, {
            "recording_id": recording_id,
            "error_code": error_code,
            "error_detail": detail,
        })
        return StageResult(
            stage=stage,
            recording_id=recording_id,
            status=StageStatus.FAILED,
            record=await self.store.get_stage(model, recording_id),
            error_code=error_code,
            error_detail=detail
        )

    async def _fail_on_abort(self, model, recording_id: int, attempt: int, detail: str):
        """Terminal write for a cancelled or crashed attempt; must survive cancellation"""
        try:
            await asyncio.shield(self.store.fail_stage(model, recording_id, attempt, detail,
                                                       error_code="INTERNAL_ERROR"))
        except asyncio.CancelledError:
            pass
        except Exception as e:
            pipeline_logger.error(f"Could not mark recording {recording_id} as failed: {e}")

    # Transcription

    async def request_transcription(self, recording_id: int, principal: Principal) -> StageResult:
        """
        Transcribe a recording

        Returns the stored transcript without calling upstream when the stage
        is already COMPLETED. A PROCESSING stage older than the lease belongs
        to a dead attempt and is claimed again.

        Raises:
            ValidationError, NotFoundError, UnauthorizedError
            ConflictError: transcription already in progress
        """
        recording = await self._load_recording(recording_id, principal)

        existing = await self.store.get_transcription(recording.id)
        if existing is not None and existing.status == StageStatus.COMPLETED:
            return StageResult(TRANSCRIPTION, recording.id, existing.status, record=existing, reused=True)

        attempt = await self.store.claim_stage(Transcription, recording.id, stale_after=self.transcription_lease)
        if attempt is None:
            current = await self.store.get_transcription(recording.id)
            if current is not None and current.status == StageStatus.COMPLETED:
                return StageResult(TRANSCRIPTION, recording.id, current.status, record=current, reused=True)
            raise ConflictError(f"Transcription of recording {recording.id} is already in progress")

        pipeline_logger.info(f"Transcription of recording {recording.id} claimed (attempt {attempt})")
        return await self._run_transcription(recording, attempt)

    async def _run_transcription(self, recording: Recording, attempt: int) -> StageResult:
        try:
            audio_url = await self.storage.get_signed_download_url(recording.storage_key)
            job_id = await self.transcription_client.submit(audio_url, speaker_labels=True)
            await self.store.set_upstream_job(recording.id, attempt, job_id)
            poll = await self.transcription_client.wait_for_completion(
                job_id, timeout=self.transcription_timeout, interval=self.poll_interval
            )
        except CallAuditException as e:
            return await self._fail(Transcription, TRANSCRIPTION, recording.id, attempt, e.code, e.message)
        except asyncio.CancelledError:
            await self._fail_on_abort(Transcription, recording.id, attempt, "Transcription was cancelled")
            raise
        except Exception as e:
            pipeline_logger.exception(f"Unexpected error transcribing recording {recording.id}")
            await self._fail_on_abort(Transcription, recording.id, attempt, f"Unexpected error: {e}")
            raise

        if poll.status == StageStatus.FAILED:
            return await self._fail(Transcription, TRANSCRIPTION, recording.id, attempt,
                                    "UPSTREAM_SERVICE_ERROR", poll.error or "Transcription failed upstream")
        if not (poll.text or "").strip():
            return await self._fail(Transcription, TRANSCRIPTION, recording.id, attempt,
                                    "UPSTREAM_SERVICE_ERROR", "Transcription completed with an empty transcript")

        if not await self.store.complete_transcription(recording.id, attempt, poll):
            raise ConflictError(f"Transcription attempt {attempt} of recording {recording.id} was superseded")

        transcription = await self.store.get_transcription(recording.id)
        pipeline_logger.info(f"Transcription of recording {recording.id} completed ({len(poll.text)} chars)")
        await self.emitter.emit(Events.TRANSCRIPTION_COMPLETED, {
            "recording_id": recording.id,
            "job_id": poll.job_id,
            "attempt": attempt,
        })
        return StageResult(TRANSCRIPTION, recording.id, StageStatus.COMPLETED, record=transcription)

    # Analysis

    async def request_analysis(
        self,
        recording_id: int,
        principal: Principal,
        criteria_id: Optional[int] = None
    ) -> StageResult:
        """
        Analyse a transcribed recording and build its scorecard

        Raises:
            ValidationError, NotFoundError, UnauthorizedError
            PreconditionError: no completed transcript
            ConflictError: analysis already in progress
        """
        recording = await self._load_recording(recording_id, principal)

        transcription = await self.store.get_transcription(recording.id)
        if (transcription is None or transcription.status != StageStatus.COMPLETED
                or not (transcription.text or "").strip()):
            raise PreconditionError(f"Recording {recording.id} has no completed transcription")

        criteria = await self.criteria_service.resolve_criteria(recording, principal, criteria_id)

        existing = await self.store.get_analysis(recording.id)
        if existing is not None and existing.status == StageStatus.COMPLETED:
            return await self._completed_analysis(existing)

        attempt = await self.store.claim_stage(
            Analysis, recording.id,
            stale_after=self.analysis_lease,
            criteria_id=criteria.id if criteria is not None else None
        )
        if attempt is None:
            current = await self.store.get_analysis(recording.id)
            if current is not None and current.status == StageStatus.COMPLETED:
                return await self._completed_analysis(current)
            raise ConflictError(f"Analysis of recording {recording.id} is already in progress")

        pipeline_logger.info(
            f"Analysis of recording {recording.id} claimed (attempt {attempt}, "
            f"criteria {criteria.id if criteria is not None else 'equal weights'})"
        )

        try:
            weights = criteria.weights if criteria is not None else None
            result = await self.analysis_client.analyze(transcription.text, weights)
            card = self.builder.build(result, criteria, transcription.text)
        except MalformedAnalysisError as e:
            return await self._fail(Analysis, ANALYSIS, recording.id, attempt, e.code, e.message,
                                    raw_response=e.raw_payload)
        except CallAuditException as e:
            return await self._fail(Analysis, ANALYSIS, recording.id, attempt, e.code, e.message)
        except asyncio.CancelledError:
            await self._fail_on_abort(Analysis, recording.id, attempt, "Analysis was cancelled")
            raise
        except Exception as e:
            pipeline_logger.exception(f"Unexpected error analysing recording {recording.id}")
            await self._fail_on_abort(Analysis, recording.id, attempt, f"Unexpected error: {e}")
            raise

        if not await self.store.complete_analysis(recording.id, attempt, result, card):
            raise ConflictError(f"Analysis attempt {attempt} of recording {recording.id} was superseded")

        analysis = await self.store.get_analysis(recording.id)
        scorecard = await self.store.get_scorecard(recording.id)
        pipeline_logger.info(f"Analysis of recording {recording.id} completed, weighted score {card.overall_score}")
        await self.emitter.emit(Events.ANALYSIS_COMPLETED, {
            "recording_id": recording.id,
            "overall_score": card.overall_score,
            "criteria_id": card.criteria_id,
        })
        return StageResult(ANALYSIS, recording.id, StageStatus.COMPLETED, record=analysis, scorecard=scorecard)

    async def _completed_analysis(self, analysis: Analysis) -> StageResult:
        scorecard = await self.store.get_scorecard(analysis.recording_id)
        return StageResult(ANALYSIS, analysis.recording_id, analysis.status,
                           record=analysis, scorecard=scorecard, reused=True)

    async def rescore(
        self,
        recording_id: int,
        principal: Principal,
        criteria_id: Optional[int] = None
    ) -> ScoreCard:
        """Recompute the scorecard of a completed analysis with another rubric"""
        recording = await self._load_recording(recording_id, principal)

        analysis = await self.store.get_analysis(recording.id)
        if analysis is None or analysis.status != StageStatus.COMPLETED:
            raise PreconditionError(f"Recording {recording.id} has no completed analysis")

        transcription = await self.store.get_transcription(recording.id)
        criteria = await self.criteria_service.resolve_criteria(recording, principal, criteria_id)
        card = self.builder.build(analysis, criteria, transcription.text if transcription else "")

        if not await self.store.replace_scorecard(recording.id, card):
            raise PreconditionError(f"Analysis of recording {recording.id} is no longer completed")

        await self.emitter.emit(Events.SCORECARD_RECOMPUTED, {
            "recording_id": recording.id,
            "overall_score": card.overall_score,
            "criteria_id": card.criteria_id,
        })
        return await self.store.get_scorecard(recording.id)

    # Transcript review

    async def get_transcript(self, recording_id: int, principal: Principal) -> Transcription:
        recording = await self._load_recording(recording_id, principal)
        transcription = await self.store.get_transcription(recording.id)
        if transcription is None:
            raise NotFoundError("Transcription")
        return transcription

    async def edit_transcript(
        self,
        recording_id: int,
        principal: Principal,
        speaker_map: Optional[Dict[str, Any]] = None,
        sections: Optional[Dict[str, Any]] = None,
        context_notes: Optional[str] = None
    ) -> Transcription:
        """
        Label speakers and sections of a completed transcript

        Omitted arguments keep their stored value. The transcribed text and
        the stage status never change.

        Raises:
            ValidationError: nothing to change, a malformed label or an
                unknown speaker
            PreconditionError: the transcript is not COMPLETED
        """
        recording = await self._load_recording(recording_id, principal)

        values: Dict[str, Any] = {}
        if speaker_map is not None:
            values["speaker_map"] = _validate_labels(SpeakerLabel, speaker_map, "speaker")
        if sections is not None:
            values["sections"] = _validate_labels(SectionLabel, sections, "section")
        if context_notes is not None:
            if len(context_notes) > MAX_CONTEXT_NOTES:
                raise ValidationError(f"Context notes exceed {MAX_CONTEXT_NOTES} characters")
            values["context_notes"] = context_notes.strip()
        if not values:
            raise ValidationError("No transcript changes given")

        transcription = await self.store.get_transcription(recording.id)
        if transcription is None or transcription.status != StageStatus.COMPLETED:
            raise PreconditionError(f"Recording {recording.id} has no completed transcription to edit")

        if "speaker_map" in values:
            known = {u.get("speaker") for u in transcription.utterances or [] if u.get("speaker")}
            unknown = sorted(set(values["speaker_map"]) - known) if known else []
            if unknown:
                raise ValidationError(f"Unknown speakers: {', '.join(unknown)}")

        if not await self.store.save_transcript_edits(recording.id, principal.id, **values):
            raise PreconditionError(f"Transcription of recording {recording.id} is no longer completed")

        pipeline_logger.info(f"Transcript of recording {recording.id} edited by user {principal.id}: {sorted(values)}")
        await self.emitter.emit(Events.TRANSCRIPT_EDITED, {
            "recording_id": recording.id,
            "edited_by": principal.id,
            "fields": sorted(values),
        })
        return await self.store.get_transcription(recording.id)

    # Sharing and reads

    async def share_report(
        self,
        recording_id: int,
        principal: Principal,
        destination: str,
        subject: Optional[str] = None
    ) -> ShareResult:
        """
        E-mail the report of a completed analysis

        Access is checked again here; a principal who lost team membership
        since the analysis ran cannot share it. Pipeline state is not touched.
        """
        destination = _validate_email(destination)
        recording = await self._load_recording(recording_id, principal)

        analysis = await self.store.get_analysis(recording.id)
        if analysis is None or analysis.status != StageStatus.COMPLETED:
            raise PreconditionError(f"Recording {recording.id} has no completed analysis to share")

        scorecard = await self.store.get_scorecard(recording.id)
        html_body = render_report_html(recording, analysis, scorecard)
        subject = (subject or "").strip() or f"Call quality report: {recording.title}"

        delivery = await self.reporting.send_report(destination, subject, html_body)

        pipeline_logger.info(f"Report of recording {recording.id} shared with {destination} by user {principal.id}")
        await self.emitter.emit(Events.REPORT_SHARED, {
            "recording_id": recording.id,
            "destination": destination,
            "shared_by": principal.id,
        })
        return ShareResult(recording_id=recording.id, delivery=delivery)

    async def get_pipeline_state(self, recording_id: int, principal: Principal) -> PipelineState:
        recording = await self._load_recording(recording_id, principal)
        return PipelineState(
            recording=recording,
            transcription=await self.store.get_transcription(recording.id),
            analysis=await self.store.get_analysis(recording.id),
            scorecard=await self.store.get_scorecard(recording.id)
        )

    async def retry_failed(self, stage: str, principal: Principal, query: RecordingQuery) -> Dict[int, StageResult]:
        """
        Re-run FAILED stages of the recordings matching query

        PROCESSING stages are swept too; those past their lease are claimed
        again, live ones are skipped with a conflict. Errors on one recording
        are logged and do not stop the rest.
        """
        if stage == TRANSCRIPTION:
            status_field, run = "transcription_status", self.request_transcription
        elif stage == ANALYSIS:
            status_field, run = "analysis_status", self.request_analysis
        else:
            raise ValidationError(f"Unknown stage: {stage}")

        recordings: List[Recording] = []
        for status in (StageStatus.FAILED, StageStatus.PROCESSING):
            recordings += await self.store.find_recordings(query.model_copy(update={status_field: status}))

        results = {}
        for recording in sorted(recordings, key=lambda r: r.id):
            try:
                results[recording.id] = await run(recording.id, principal)
            except CallAuditException as e:
                pipeline_logger.warning(f"Retry of {stage} for recording {recording.id} skipped: {e.message}")
        return results

    async def close(self):
        await self.transcription_client.close()
        await self.analysis_client.close()


_orchestrator: Optional[PipelineOrchestrator] = None


def build_pipeline_orchestrator(settings, session_factory) -> PipelineOrchestrator:
    """Wire the orchestrator from settings"""
    from app.services.ai import create_transcription_client, create_analysis_client
    from app.services.reporting import create_reporting_client
    from app.services.storage import create_storage_backend

    if not settings.assemblyai_api_key:
        raise ConfigurationError("assemblyai_api_key is not configured")
    if not settings.openai_api_key:
        raise ConfigurationError("openai_api_key is not configured")

    return PipelineOrchestrator(
        store=PipelineStore(session_factory),
        transcription_client=create_transcription_client(settings),
        analysis_client=create_analysis_client(settings),
        storage=create_storage_backend(settings),
        reporting=create_reporting_client(settings),
        transcription_timeout=settings.transcription_timeout,
        poll_interval=settings.transcription_poll_interval,
        transcription_lease=settings.transcription_timeout + settings.stage_lease_margin,
        analysis_lease=settings.analysis_timeout + settings.stage_lease_margin
    )


def get_pipeline_orchestrator() -> PipelineOrchestrator:
    """Process-wide orchestrator, built on first use"""
    global _orchestrator
    if _orchestrator is None:
        from app.config import settings
        from app.db.session import AsyncSessionLocal
        _orchestrator = build_pipeline_orchestrator(settings, AsyncSessionLocal)
    return _orchestrator


async def close_pipeline_orchestrator():
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
