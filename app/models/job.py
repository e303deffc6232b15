"""
Job model for generation tasks.
"""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Boolean

from app.models.base import Base, utcnow


class JobStatus(str, enum.Enum):
    """Status states for generation jobs."""
    pending = 'pending'
    in_progress = 'in_progress'
    completed = 'completed'
    failed = 'failed'


TERMINAL_STATUSES = frozenset({JobStatus.completed.value, JobStatus.failed.value})


class JobKind(str, enum.Enum):
    """What a job generates."""
    tts = 'tts'
    speech_to_speech = 'speech_to_speech'
    sound_effect = 'sound_effect'
    image = 'image'


# Provider namespace serving each kind
KIND_SERVICES = {
    JobKind.tts.value: 'styletts2',
    JobKind.speech_to_speech.value: 'seedvc',
    JobKind.sound_effect.value: 'make-an-audio',
    JobKind.image.value: 'image',
}

AUDIO_KINDS = frozenset({JobKind.tts.value, JobKind.speech_to_speech.value, JobKind.sound_effect.value})


class Job(Base):
    """
    Represents one generation request and its lifecycle.

    Attributes:
        id: Unique job identifier (UUID)
        owner_id: User who requested the job
        kind: JobKind value
        service: Provider namespace handling the job
        text: Text to synthesize, or the prompt for sound effects and images
        voice: Target voice key (tts, speech_to_speech)
        source_audio_key: Storage key of the audio to convert (speech_to_speech)
        provider: Image provider key
        model_id: Image model identifier
        aspect_ratio: Requested image aspect ratio
        status: Current job status
        result_key: Storage key of the generated media, set on completion
        failed: Set once when any failure is observed, never cleared
        error_message: Last recorded error
        created_at: Job creation timestamp
        completed_at: When the job reached a terminal status
    """
    __tablename__ = 'jobs'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    service = Column(String(32), nullable=False)
    text = Column(Text, nullable=True)
    voice = Column(String(200), nullable=True)
    source_audio_key = Column(Text, nullable=True)
    provider = Column(String(50), nullable=True)
    model_id = Column(String(200), nullable=True)
    aspect_ratio = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default=JobStatus.pending.value)
    result_key = Column(Text, nullable=True)
    failed = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_audio(self) -> bool:
        return self.kind in AUDIO_KINDS

    def __repr__(self):
        return f'<Job {self.id} kind={self.kind} status={self.status}>'
