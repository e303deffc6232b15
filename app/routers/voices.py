"""
Voice endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from app.container import Container
from app.dependencies import get_container, get_current_user, get_generation_service
from app.exceptions import EventPublishError, InvalidRequestError
from app.models.user import User
from app.schemas.voice import VoiceListResponse, VoiceResponse, VoiceUploadAccepted
from app.services.generation import GenerationService


router = APIRouter(prefix='/voices', tags=['voices'])


@router.get('', response_model=VoiceListResponse)
async def list_voices(
    service: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> VoiceListResponse:
    """
    List voices usable by the caller.

    System voices plus the caller's own uploads, optionally for one service.
    """
    voices = await container.voices.list_voices(owner_id=user.id, service=service)
    return VoiceListResponse(voices=[VoiceResponse.model_validate(v) for v in voices])


@router.post('/{service}/upload', response_model=VoiceUploadAccepted, status_code=202)
async def upload_voice(
    service: str,
    file: UploadFile = File(...),
    voice_name: Optional[str] = Form(default=None),
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> VoiceUploadAccepted:
    """
    Queue an upload of a reference voice to a provider.

    Raises:
        400: Unknown service or empty file
        503: Upload could not be queued
    """
    data = await file.read()
    try:
        queued = await generation.request_voice_upload(
            user.id,
            service,
            data,
            file.filename or 'voice.wav',
            file.content_type or 'application/octet-stream',
            voice_name,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EventPublishError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return VoiceUploadAccepted(
        message=f'{service} voice upload initiated successfully',
        event_id=queued['event_id'],
        voice_key=queued['voice_key'],
    )
