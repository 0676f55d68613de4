"""
Scoring criteria API endpoints
"""

from fastapi import APIRouter, Depends, Path
from typing import Dict, Any

from app.core.auth import get_current_principal
from app.db.session import AsyncSessionLocal
from app.schemas.criteria import CriteriaCreate, CriteriaResponse
from app.schemas.principal import Principal
from app.services.criteria import CriteriaService
from app.services.pipeline_store import PipelineStore


router = APIRouter()


def get_criteria_service() -> CriteriaService:
    return CriteriaService(PipelineStore(AsyncSessionLocal))


@router.post("", summary="Create a scoring rubric")
async def create_criteria(
    request: CriteriaCreate,
    principal: Principal = Depends(get_current_principal),
    service: CriteriaService = Depends(get_criteria_service)
) -> Dict[str, Any]:
    """
    Save a rubric. The four category weights must sum to 100.

    - **team_id**: owning team; requires a team manager
    - **is_default**: make this the team's default rubric
    - **required_phrases** / **prohibited_phrases**: phrase compliance rules
    """
    criteria = await service.create_criteria(request, principal)
    return {
        "success": True,
        "message": "Criteria created",
        "data": CriteriaResponse.model_validate(criteria).model_dump(mode="json")
    }


@router.get("/{criteria_id}", summary="Get a scoring rubric")
async def get_criteria(
    criteria_id: int = Path(..., description="Criteria ID"),
    principal: Principal = Depends(get_current_principal),
    service: CriteriaService = Depends(get_criteria_service)
) -> Dict[str, Any]:
    criteria = await service.get_criteria(criteria_id, principal)
    return {
        "success": True,
        "data": CriteriaResponse.model_validate(criteria).model_dump(mode="json")
    }
