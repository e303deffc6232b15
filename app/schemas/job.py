"""
Pydantic schemas for Job API operations.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict


class TextToSpeechCreate(BaseModel):
    """Schema for a text-to-speech request."""
    text: str = Field(..., min_length=1, description='The text to synthesize')
    voice: str = Field(..., min_length=1, description='Target voice key')


class SpeechToSpeechCreate(BaseModel):
    """Schema for a voice conversion request."""
    source_audio_key: str = Field(..., min_length=1, description='Storage key of the audio to convert')
    voice: str = Field(..., min_length=1, description='Target voice key')


class SoundEffectCreate(BaseModel):
    """Schema for a sound effect request."""
    prompt: str = Field(..., min_length=1, description='Description of the sound')


class ImageCreate(BaseModel):
    """Schema for an image generation request."""
    prompt: str = Field(..., min_length=1)
    provider: str
    model_id: str
    aspect_ratio: Optional[str] = None


class JobAccepted(BaseModel):
    """Returned when a job has been queued."""
    job_id: str
    should_show_throttle_alert: bool


class JobResponse(BaseModel):
    """Schema for job response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: str
    service: str
    text: Optional[str]
    voice: Optional[str]
    source_audio_key: Optional[str]
    provider: Optional[str]
    model_id: Optional[str]
    status: str
    result_key: Optional[str]
    failed: bool
    error_message: Optional[str]
    created_at: datetime
    completed_at: Optional[datetime]


class JobListResponse(BaseModel):
    """Schema for paginated job list response."""
    jobs: List[JobResponse]
    total: int
    limit: int
    offset: int


class JobStatusResponse(BaseModel):
    """Outcome of a job for polling clients."""
    success: bool
    url: Optional[str]
    status: str
