"""
Pydantic schemas for API request/response validation.
"""
from app.schemas.job import (
    TextToSpeechCreate,
    SpeechToSpeechCreate,
    SoundEffectCreate,
    ImageCreate,
    JobAccepted,
    JobResponse,
    JobListResponse,
    JobStatusResponse,
)
from app.schemas.voice import VoiceResponse, VoiceListResponse, VoiceUploadAccepted

__all__ = [
    'TextToSpeechCreate',
    'SpeechToSpeechCreate',
    'SoundEffectCreate',
    'ImageCreate',
    'JobAccepted',
    'JobResponse',
    'JobListResponse',
    'JobStatusResponse',
    'VoiceResponse',
    'VoiceListResponse',
    'VoiceUploadAccepted',
]
