"""
Authenticated principal
"""

import enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Role(str, enum.Enum):
    """Account role"""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    USER = "USER"


class TeamRole(str, enum.Enum):
    """Role inside a team"""
    MEMBER = "MEMBER"
    MANAGER = "MANAGER"


class TeamMembership(BaseModel):
    """Team membership of a principal"""
    team_id: int = Field(..., description="Team ID")
    role: TeamRole = Field(default=TeamRole.MEMBER, description="Role inside the team")


class Principal(BaseModel):
    """Actor on whose behalf a pipeline operation runs"""
    id: int = Field(..., description="User ID")
    role: Role = Field(default=Role.USER, description="Account role")
    company_id: Optional[int] = Field(None, description="Company ID")
    teams: List[TeamMembership] = Field(default_factory=list, description="Team memberships")

    class Config:
        frozen = True

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def team_ids(self) -> frozenset:
        return frozenset(m.team_id for m in self.teams)

    def membership(self, team_id: int) -> Optional[TeamMembership]:
        for m in self.teams:
            if m.team_id == team_id:
                return m
        return None


# Used by operator commands (retry-failed)
SYSTEM_PRINCIPAL = Principal(id=0, role=Role.ADMIN)
