"""
Upstream AI clients
"""

from .base import (
    AIProvider,
    TranscriptionClient,
    AnalysisClient,
    TranscriptPoll,
    AnalysisResult,
    KeyMoment,
)
from .assemblyai_provider import AssemblyAITranscriptionClient
from .openai_provider import OpenAIAnalysisClient, parse_analysis_payload


def create_transcription_client(settings) -> TranscriptionClient:
    """Build the speech-to-text client from settings"""
    return AssemblyAITranscriptionClient({
        "api_key": settings.assemblyai_api_key,
        "base_url": settings.assemblyai_base_url,
        "poll_interval": settings.transcription_poll_interval,
        "timeout": settings.transcription_request_timeout,
        "http_proxy": settings.http_proxy,
    })


def create_analysis_client(settings) -> AnalysisClient:
    """Build the language-model client from settings"""
    return OpenAIAnalysisClient({
        "api_key": settings.openai_api_key,
        "base_url": settings.openai_base_url,
        "model": settings.openai_model,
        "temperature": settings.analysis_temperature,
        "timeout": settings.analysis_timeout,
        "http_proxy": settings.http_proxy,
    })


__all__ = [
    'AIProvider',
    'TranscriptionClient',
    'AnalysisClient',
    'TranscriptPoll',
    'AnalysisResult',
    'KeyMoment',
    'AssemblyAITranscriptionClient',
    'OpenAIAnalysisClient',
    'parse_analysis_payload',
    'create_transcription_client',
    'create_analysis_client',
]
