"""
Recording pipeline API endpoints
"""

from fastapi import APIRouter, Depends, Path
from fastapi.responses import JSONResponse
from typing import Dict, Any, Optional

from app.core.auth import get_current_principal
from app.schemas.principal import Principal
from app.schemas.pipeline import (
    AnalyzeRequest,
    RescoreRequest,
    ShareReportRequest,
    TranscriptEditRequest,
    TranscriptionResponse,
    AnalysisResponse,
    ScoreCardResponse,
    PipelineStateResponse,
)
from app.services.pipeline import PipelineOrchestrator, StageResult, get_pipeline_orchestrator


router = APIRouter()


def _stage_data(result: StageResult) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "stage": result.stage,
        "recording_id": result.recording_id,
        "status": result.status.value,
        "reused": result.reused,
    }
    if result.record is not None:
        schema = TranscriptionResponse if result.stage == "transcription" else AnalysisResponse
        data[result.stage] = schema.model_validate(result.record).model_dump(mode="json")
    if result.scorecard is not None:
        data["scorecard"] = ScoreCardResponse.model_validate(result.scorecard).model_dump(mode="json")
    return data


def _stage_response(result: StageResult, message: str):
    if result.succeeded:
        return {
            "success": True,
            "message": message,
            "data": _stage_data(result)
        }
    return JSONResponse(
        status_code=502,
        content={
            "success": False,
            "error": True,
            "code": result.error_code,
            "message": result.error_detail,
            "data": _stage_data(result)
        }
    )


@router.post("/{recording_id}/transcribe", summary="Transcribe a recording")
async def transcribe_recording(
    recording_id: int = Path(..., description="Recording ID"),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator)
):
    """
    Run speech-to-text on the recording's audio.

    A recording that is already transcribed is returned as stored; a
    transcription in progress yields 409.
    """
    result = await orchestrator.request_transcription(recording_id, principal)
    return _stage_response(result, "Transcription completed")


@router.post("/{recording_id}/analyze", summary="Analyse a transcribed recording")
async def analyze_recording(
    recording_id: int = Path(..., description="Recording ID"),
    request: Optional[AnalyzeRequest] = None,
    principal: Principal = Depends(get_current_principal),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator)
):
    """
    Score the transcript with the language model and build the weighted scorecard.

    - **criteria_id**: rubric to use; defaults to the recording's rubric, then
      the team default, then equal weights
    """
    criteria_id = request.criteria_id if request else None
    result = await orchestrator.request_analysis(recording_id, principal, criteria_id=criteria_id)
    return _stage_response(result, "Analysis completed")


@router.post("/{recording_id}/rescore", summary="Recompute the scorecard")
async def rescore_recording(
    recording_id: int = Path(..., description="Recording ID"),
    request: Optional[RescoreRequest] = None,
    principal: Principal = Depends(get_current_principal),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator)
) -> Dict[str, Any]:
    """Re-weight a completed analysis against another rubric without calling the model again"""
    criteria_id = request.criteria_id if request else None
    scorecard = await orchestrator.rescore(recording_id, principal, criteria_id=criteria_id)
    return {
        "success": True,
        "message": "Scorecard recomputed",
        "data": ScoreCardResponse.model_validate(scorecard).model_dump(mode="json")
    }


@router.post("/{recording_id}/share", summary="E-mail the quality report")
async def share_report(
    request: ShareReportRequest,
    recording_id: int = Path(..., description="Recording ID"),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator)
) -> Dict[str, Any]:
    """
    Send the report of a completed analysis.

    - **email**: destination address
    - **subject**: optional mail subject
    """
    result = await orchestrator.share_report(
        recording_id, principal, destination=request.email, subject=request.subject
    )
    return {
        "success": True,
        "message": "Report sent",
        "data": {
            "recording_id": result.recording_id,
            "destination": result.delivery.destination,
            "subject": result.delivery.subject,
            "message_id": result.delivery.message_id,
            "sent_at": result.delivery.sent_at.isoformat(),
        }
    }


@router.get("/{recording_id}/pipeline", summary="Pipeline state of a recording")
async def get_pipeline_state(
    recording_id: int = Path(..., description="Recording ID"),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator)
) -> Dict[str, Any]:
    state = await orchestrator.get_pipeline_state(recording_id, principal)
    response = PipelineStateResponse(
        recording_id=state.recording.id,
        title=state.recording.title,
        transcription=TranscriptionResponse.model_validate(state.transcription) if state.transcription else None,
        analysis=AnalysisResponse.model_validate(state.analysis) if state.analysis else None,
        scorecard=ScoreCardResponse.model_validate(state.scorecard) if state.scorecard else None
    )
    return {
        "success": True,
        "data": response.model_dump(mode="json")
    }


@router.get("/{recording_id}/transcript", summary="Transcript with annotations")
async def get_transcript(
    recording_id: int = Path(..., description="Recording ID"),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator)
) -> Dict[str, Any]:
    transcription = await orchestrator.get_transcript(recording_id, principal)
    return {
        "success": True,
        "data": TranscriptionResponse.model_validate(transcription).model_dump(mode="json")
    }


@router.put("/{recording_id}/transcript", summary="Annotate a completed transcript")
async def edit_transcript(
    request: TranscriptEditRequest,
    recording_id: int = Path(..., description="Recording ID"),
    principal: Principal = Depends(get_current_principal),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator)
) -> Dict[str, Any]:
    """
    Name speakers, label sections and add reviewer notes.

    - **speaker_map**: speaker label -> {name, role}
    - **sections**: section id -> {name, color}
    - **context_notes**: free text

    Omitted fields are kept. The transcribed text is never changed.
    """
    edits = request.model_dump()
    transcription = await orchestrator.edit_transcript(recording_id, principal, **edits)
    return {
        "success": True,
        "message": "Transcript updated",
        "data": TranscriptionResponse.model_validate(transcription).model_dump(mode="json")
    }
