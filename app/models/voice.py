"""
Voice asset model for system and user-uploaded voices.
"""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, UniqueConstraint

from app.models.base import Base, utcnow


class VoiceType(str, enum.Enum):
    system = 'system'
    user = 'user'


class VoiceAsset(Base):
    """
    A named voice reference registered with a provider.

    Attributes:
        owner_id: Uploading user (null = system voice)
        service: Provider namespace the voice belongs to
        voice_key: Provider-side identifier, unique within the service
        name: Display name (the name the provider accepted)
        s3_key: Storage key of the reference audio
        voice_type: system or user
    """
    __tablename__ = 'voices'
    __table_args__ = (UniqueConstraint('service', 'voice_key', name='uq_voice_service_key'),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=True, index=True)
    service = Column(String(32), nullable=False)
    voice_key = Column(String(200), nullable=False)
    name = Column(String(200), nullable=False)
    s3_key = Column(Text, nullable=True)
    voice_type = Column(String(10), nullable=False, default=VoiceType.user.value)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<VoiceAsset {self.service}/{self.voice_key}>'
