"""
Data models
"""

from .recording import Recording
from .transcription import Transcription, StageStatus
from .analysis import Analysis
from .criteria import Criteria
from .scorecard import ScoreCard

__all__ = [
    "Recording",
    "Transcription",
    "StageStatus",
    "Analysis",
    "Criteria",
    "ScoreCard"
]
