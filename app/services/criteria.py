"""
Scoring criteria service
"""

from typing import Optional

from app.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from app.core.logging import service_logger
from app.models import Criteria, Recording
from app.schemas.criteria import CriteriaCreate
from app.schemas.principal import Principal
from app.services.access import AccessGuard, access_guard
from app.services.pipeline_store import PipelineStore
from app.services.scorecard import validate_weights


class CriteriaService:
    """Creates, reads and resolves scoring rubrics"""

    def __init__(self, store: PipelineStore, guard: AccessGuard = access_guard):
        self.store = store
        self.guard = guard

    def can_use_criteria(self, principal: Principal, criteria: Criteria) -> bool:
        if principal.is_admin or criteria.team_id is None:
            return True
        if criteria.created_by_id == principal.id:
            return True
        return criteria.team_id in principal.team_ids

    async def create_criteria(self, data: CriteriaCreate, principal: Principal) -> Criteria:
        """
        Save a rubric

        Weights are validated here, at save time, so an invalid rubric never
        reaches the scorecard builder.

        Raises:
            ValidationError: weights do not sum to 100, or a default without a team
            UnauthorizedError: principal may not manage the team
        """
        weights = validate_weights(data.weights)

        if data.is_default and data.team_id is None:
            raise ValidationError("A default rubric must belong to a team")
        if data.team_id is not None:
            self.guard.ensure_can_manage_team(principal, data.team_id)

        criteria = await self.store.save_criteria(
            name=data.name,
            description=data.description,
            customer_service_weight=weights["customer_service"],
            product_knowledge_weight=weights["product_knowledge"],
            communication_skills_weight=weights["communication_skills"],
            compliance_adherence_weight=weights["compliance_adherence"],
            required_phrases=list(data.required_phrases),
            prohibited_phrases=list(data.prohibited_phrases),
            team_id=data.team_id,
            is_default=data.is_default,
            created_by_id=principal.id
        )
        service_logger.info(f"Criteria {criteria.id} '{criteria.name}' created by user {principal.id}")
        return criteria

    async def get_criteria(self, criteria_id: int, principal: Principal) -> Criteria:
        if criteria_id is None or criteria_id <= 0:
            raise ValidationError(f"Invalid criteria id: {criteria_id}")

        criteria = await self.store.get_criteria(criteria_id)
        if criteria is None:
            raise NotFoundError("Criteria")
        if not self.can_use_criteria(principal, criteria):
            raise UnauthorizedError(f"User {principal.id} may not use criteria {criteria_id}")
        return criteria

    async def resolve_criteria(
        self,
        recording: Recording,
        principal: Principal,
        criteria_id: Optional[int] = None
    ) -> Optional[Criteria]:
        """
        Pick the rubric for a recording

        Explicit id, then the recording's own rubric, then the team default.
        None means the equal 25/25/25/25 split. The chosen rubric's weights
        are validated before it is returned.
        """
        criteria = None
        if criteria_id is not None:
            criteria = await self.get_criteria(criteria_id, principal)
        elif recording.criteria_id is not None:
            criteria = await self.store.get_criteria(recording.criteria_id)
        if criteria is None and criteria_id is None and recording.team_id is not None:
            criteria = await self.store.get_team_default_criteria(recording.team_id)

        if criteria is not None:
            validate_weights(criteria.weights)
        return criteria
