"""
Pydantic schemas for job-lifecycle events.

Each event name has its own model; `parse_event` validates a raw payload
against the model registered for its name.
"""
import uuid
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.exceptions import EventValidationError


class EventData(BaseModel):
    """Event payloads use camelCase on the wire."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class AudioGenerationData(EventData):
    audio_clip_id: str = Field(..., alias='audioClipId', min_length=1)
    user_id: str = Field(..., alias='userId', min_length=1)


class ImageGenerationData(EventData):
    image_id: str = Field(..., alias='imageId', min_length=1)
    user_id: str = Field(..., alias='userId', min_length=1)


class VoiceUploadRequestData(EventData):
    file_buffer_b64: str = Field(..., alias='fileBufferB64')
    file_name: str = Field(..., alias='fileName')
    content_type: str = Field(..., alias='contentType')
    voice_name: Optional[str] = Field(None, alias='voiceName')
    user_id: Optional[str] = Field(None, alias='userId')


class VoiceUploadCompletedData(EventData):
    user_id: str = Field(..., alias='userId')
    voice_key: str = Field(..., alias='voiceKey')
    voice_name: str = Field(..., alias='voiceName')
    service: str


class TestConnectionData(EventData):
    model_config = ConfigDict(populate_by_name=True, extra='allow')


class BaseEvent(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    def payload(self) -> Dict[str, Any]:
        """Wire representation of the event data."""
        return self.data.model_dump(by_alias=True, exclude_none=True)


class AudioGenerationRequested(BaseEvent):
    name: Literal['generate.request']
    data: AudioGenerationData


class ImageGenerationRequested(BaseEvent):
    name: Literal['image.generate.request']
    data: ImageGenerationData


class StyleTTS2VoiceUploadRequested(BaseEvent):
    name: Literal['styletts2.voice.upload.request']
    data: VoiceUploadRequestData


class SeedVCVoiceUploadRequested(BaseEvent):
    name: Literal['seedvc.voice.upload.request']
    data: VoiceUploadRequestData


class StyleTTS2VoiceUploadCompleted(BaseEvent):
    name: Literal['styletts2.voice.upload.completed']
    data: VoiceUploadCompletedData


class SeedVCVoiceUploadCompleted(BaseEvent):
    name: Literal['seedvc.voice.upload.completed']
    data: VoiceUploadCompletedData


class TestConnection(BaseEvent):
    name: Literal['test.connection']
    data: TestConnectionData = Field(default_factory=TestConnectionData)


Event = Annotated[
    Union[
        AudioGenerationRequested,
        ImageGenerationRequested,
        StyleTTS2VoiceUploadRequested,
        SeedVCVoiceUploadRequested,
        StyleTTS2VoiceUploadCompleted,
        SeedVCVoiceUploadCompleted,
        TestConnection,
    ],
    Field(discriminator='name'),
]

_event_adapter = TypeAdapter(Event)


def parse_event(name: str, data: Dict[str, Any], event_id: Optional[str] = None) -> BaseEvent:
    """
    Validate a raw event.

    Raises:
        EventValidationError: unknown name or payload not matching its schema
    """
    raw: Dict[str, Any] = {'name': name, 'data': data}
    if event_id is not None:
        raw['id'] = event_id
    try:
        return _event_adapter.validate_python(raw)
    except ValidationError as e:
        raise EventValidationError(f'Invalid {name} event: {e}') from e


def upload_request_event(service: str) -> str:
    return f'{service}.voice.upload.request'


def upload_completed_event(service: str) -> str:
    return f'{service}.voice.upload.completed'
