"""
Recording query filters
"""

from typing import Optional

from pydantic import BaseModel, Field

from app.models.transcription import StageStatus


class RecordingQuery(BaseModel):
    """Typed recording filter; every supported filter is a field"""
    team_id: Optional[int] = Field(None, description="Only recordings of this team")
    uploaded_by_id: Optional[int] = Field(None, description="Only recordings uploaded by this user")
    transcription_status: Optional[StageStatus] = Field(None, description="Transcription stage status")
    analysis_status: Optional[StageStatus] = Field(None, description="Analysis stage status")
    limit: int = Field(default=100, ge=1, le=1000, description="Maximum rows")
    offset: int = Field(default=0, ge=0, description="Rows to skip")
