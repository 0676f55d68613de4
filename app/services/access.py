"""
Recording access rules
"""

from typing import Optional

from app.core.exceptions import UnauthorizedError
from app.models.recording import Recording
from app.schemas.principal import Principal, Role, TeamRole


class AccessGuard:
    """Decides whether a principal may act on a recording or manage a team.

    Evaluated on every call against the principal handed in with the request;
    nothing is cached because team membership can change between calls.
    """

    def can_access_recording(self, principal: Principal, recording: Recording) -> bool:
        if principal.is_admin:
            return True
        if recording.uploaded_by_id == principal.id:
            return True
        return recording.team_id is not None and recording.team_id in principal.team_ids

    def can_manage_team(self, principal: Principal, team_id: Optional[int]) -> bool:
        if principal.is_admin:
            return True
        if team_id is None or principal.role != Role.MANAGER:
            return False
        membership = principal.membership(team_id)
        return membership is not None and membership.role == TeamRole.MANAGER

    def ensure_can_access_recording(self, principal: Principal, recording: Recording):
        if not self.can_access_recording(principal, recording):
            raise UnauthorizedError(f"User {principal.id} may not access recording {recording.id}")

    def ensure_can_manage_team(self, principal: Principal, team_id: Optional[int]):
        if not self.can_manage_team(principal, team_id):
            raise UnauthorizedError(f"User {principal.id} may not manage team {team_id}")


access_guard = AccessGuard()
