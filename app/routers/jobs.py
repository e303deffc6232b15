"""
Job endpoints for media generation.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import get_current_user, get_generation_service
from app.exceptions import InsufficientCreditsError, InvalidRequestError, JobNotFoundError, QueueError
from app.models.user import User
from app.schemas.job import (
    ImageCreate,
    JobAccepted,
    JobListResponse,
    JobResponse,
    JobStatusResponse,
    SoundEffectCreate,
    SpeechToSpeechCreate,
    TextToSpeechCreate,
)
from app.services.generation import GenerationService


router = APIRouter(prefix='/jobs', tags=['jobs'])


async def _accept(submission) -> JobAccepted:
    """Await a submission and translate acceptance errors to HTTP errors."""
    try:
        return JobAccepted(**await submission)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsufficientCreditsError as e:
        raise HTTPException(status_code=402, detail=str(e))
    except QueueError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post('/text-to-speech', response_model=JobAccepted, status_code=202)
async def create_text_to_speech(
    body: TextToSpeechCreate,
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> JobAccepted:
    """
    Queue a text-to-speech job.

    Returns immediately; poll /jobs/{id}/status for the outcome.
    """
    return await _accept(generation.generate_text_to_speech(user.id, body.text, body.voice))


@router.post('/speech-to-speech', response_model=JobAccepted, status_code=202)
async def create_speech_to_speech(
    body: SpeechToSpeechCreate,
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> JobAccepted:
    """Queue a voice conversion of previously uploaded source audio."""
    return await _accept(generation.generate_speech_to_speech(user.id, body.source_audio_key, body.voice))


@router.post('/sound-effect', response_model=JobAccepted, status_code=202)
async def create_sound_effect(
    body: SoundEffectCreate,
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> JobAccepted:
    return await _accept(generation.generate_sound_effect(user.id, body.prompt))


@router.post('/image', response_model=JobAccepted, status_code=202)
async def create_image(
    body: ImageCreate,
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> JobAccepted:
    return await _accept(generation.generate_image(
        user.id, body.prompt, body.provider, body.model_id, body.aspect_ratio,
    ))


@router.get('', response_model=JobListResponse)
async def list_jobs(
    kind: Optional[List[str]] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> JobListResponse:
    """
    List the caller's jobs with pagination.

    Returns jobs ordered by creation time (newest first).
    """
    jobs, total = await generation.job_store.list_jobs(user.id, kinds=kind, limit=limit, offset=offset)
    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get('/{job_id}', response_model=JobResponse)
async def get_job(
    job_id: str,
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> JobResponse:
    """Get details for one of the caller's jobs."""
    try:
        job = await generation.job_store.get_job(job_id, owner_id=user.id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobResponse.model_validate(job)


@router.get('/{job_id}/status', response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    user: User = Depends(get_current_user),
    generation: GenerationService = Depends(get_generation_service),
) -> JobStatusResponse:
    """
    Poll a job.

    success is False once the job has been flagged failed; url is a presigned
    download link once the result is stored.
    """
    try:
        status = await generation.generation_status(user.id, job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return JobStatusResponse(**status)
