"""
Media endpoints: source audio uploads and presigned downloads.
"""
import mimetypes

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from app.container import Container
from app.dependencies import get_container, get_current_user, get_generation_service
from app.exceptions import InvalidRequestError
from app.models.user import User
from app.services.generation import GenerationService
from app.services.storage import ObjectNotFoundError


router = APIRouter(prefix='/media', tags=['media'])


class SourceAudioResponse(BaseModel):
    key: str


@router.post('/source-audio', response_model=SourceAudioResponse, status_code=201)
async def upload_source_audio(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> SourceAudioResponse:
    """Store audio for a later speech-to-speech job (MP3 or WAV)."""
    data = await file.read()
    try:
        key = await generation.upload_source_audio(user.id, data, file.content_type or '')
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SourceAudioResponse(key=key)


@router.get('/{key:path}')
async def download(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    container: Container = Depends(get_container),
):
    """
    Serve an object through a presigned URL.

    Raises:
        403: Signature invalid or expired
        404: Object not found
    """
    if not container.storage.verify(key, expires, signature):
        raise HTTPException(status_code=403, detail='Invalid or expired link')
    try:
        path = container.storage.open(key)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail='Object not found')

    media_type, _ = mimetypes.guess_type(path.name)
    return FileResponse(
        path=str(path),
        media_type=media_type or 'application/octet-stream',
        filename=path.name,
    )
