"""
Pydantic schemas for Voice API operations.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict


class VoiceResponse(BaseModel):
    """Schema for voice response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    service: str
    voice_key: str
    name: str
    voice_type: str
    created_at: datetime


class VoiceListResponse(BaseModel):
    """Schema for voice list response."""
    voices: List[VoiceResponse]


class VoiceUploadAccepted(BaseModel):
    """Returned when a voice upload has been queued."""
    message: str
    event_id: str
    voice_key: Optional[str] = None
