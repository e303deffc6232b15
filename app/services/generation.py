"""
Request acceptance: validates generation requests, creates jobs and queues
their trigger events.
"""
import base64
import logging
from typing import Any, Dict, Optional

from app import config
from app.exceptions import InsufficientCreditsError, InvalidRequestError, QueueError
from app.models.job import JobKind
from app.schemas.events import upload_request_event
from app.services.credit_ledger import CreditLedger
from app.services.event_bus import EventBus
from app.services.functions import job_cost
from app.services.job_store import JobStore
from app.services.provider_gateway import UPLOAD_SERVICES
from app.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

SOURCE_AUDIO_TYPES = {
    'audio/mp3': 'mp3',
    'audio/mpeg': 'mp3',
    'audio/wav': 'wav',
    'audio/x-wav': 'wav',
}

# More jobs than this in the trailing window shows the client a throttle warning
THROTTLE_ALERT_THRESHOLD = 3


class GenerationService:
    """Entry points used by the request handlers."""

    def __init__(
        self,
        job_store: JobStore,
        ledger: CreditLedger,
        bus: EventBus,
        storage: LocalObjectStorage,
    ):
        self.job_store = job_store
        self.ledger = ledger
        self.bus = bus
        self.storage = storage

    async def generate_text_to_speech(self, user_id: str, text: str, voice: str) -> Dict[str, Any]:
        if not text or not text.strip():
            raise InvalidRequestError('Text is required')
        if not voice or not voice.strip():
            raise InvalidRequestError('Voice ID is required')
        return await self._submit_audio(
            user_id, JobKind.tts.value, {'text': text, 'voice': voice}, 'audio generation',
        )

    async def generate_speech_to_speech(self, user_id: str, source_audio_key: str, voice: str) -> Dict[str, Any]:
        if not source_audio_key:
            raise InvalidRequestError('Source audio is required')
        if not voice or not voice.strip():
            raise InvalidRequestError('Voice ID is required')
        return await self._submit_audio(
            user_id,
            JobKind.speech_to_speech.value,
            {'source_audio_key': source_audio_key, 'voice': voice},
            'voice conversion',
        )

    async def generate_sound_effect(self, user_id: str, prompt: str) -> Dict[str, Any]:
        if not prompt or not prompt.strip():
            raise InvalidRequestError('Prompt is required')
        return await self._submit_audio(
            user_id, JobKind.sound_effect.value, {'text': prompt}, 'sound effect generation',
        )

    async def generate_image(
        self,
        user_id: str,
        prompt: str,
        provider: str,
        model_id: str,
        aspect_ratio: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not prompt or not prompt.strip():
            raise InvalidRequestError('Invalid request parameters')
        models = config.IMAGE_PROVIDERS.get(provider)
        if models is None or model_id not in models:
            raise InvalidRequestError('Invalid request parameters')

        if provider not in config.CUSTOM_ASPECT_RATIO_PROVIDERS or not aspect_ratio:
            aspect_ratio = config.DEFAULT_ASPECT_RATIO

        cost = job_cost(JobKind.image.value)
        if not await self.ledger.has_sufficient_credits(user_id, cost):
            raise InsufficientCreditsError(f'Insufficient credits. Image generation requires {cost} credits.')

        job = await self.job_store.create_job(user_id, JobKind.image.value, {
            'text': prompt,
            'provider': provider,
            'model_id': model_id,
            'aspect_ratio': aspect_ratio,
        })
        await self._queue(job.id, 'image.generate.request', {'imageId': job.id, 'userId': user_id}, 'image generation')
        return await self._accepted(user_id, job.id)

    async def upload_source_audio(self, user_id: str, data: bytes, content_type: str) -> str:
        """Store audio to be converted; returns its storage key."""
        extension = SOURCE_AUDIO_TYPES.get(content_type)
        if extension is None:
            raise InvalidRequestError('Only MP3 and WAV files are supported')
        if not data:
            raise InvalidRequestError('No file provided')
        key = self.storage.put_object(data, 'seed-vc-audio-uploads', extension)
        logger.info('Stored source audio %s for user %s', key, user_id)
        return key

    async def request_voice_upload(
        self,
        user_id: str,
        service: str,
        data: bytes,
        file_name: str,
        content_type: str,
        voice_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Queue a voice upload to a provider."""
        if service not in UPLOAD_SERVICES:
            raise InvalidRequestError(f'Unknown voice service: {service}')
        if not data:
            raise InvalidRequestError('No file provided')

        payload = {
            'fileBufferB64': base64.b64encode(data).decode('ascii'),
            'fileName': file_name,
            'contentType': content_type,
            'userId': user_id,
        }
        if voice_name:
            payload['voiceName'] = voice_name

        event = await self.bus.publish(upload_request_event(service), payload)
        logger.info('Queued %s voice upload %s for user %s', service, event.id, user_id)
        return {'event_id': event.id, 'voice_key': voice_name or file_name}

    async def generation_status(self, user_id: str, job_id: str) -> Dict[str, Any]:
        """Outcome of a job as shown to its owner."""
        job = await self.job_store.get_job(job_id, owner_id=user_id)
        if job.failed:
            return {'success': False, 'url': None, 'status': job.status}
        if job.result_key:
            return {
                'success': True,
                'url': self.storage.presign(job.result_key, ttl=config.PRESIGN_TTL_SECONDS),
                'status': job.status,
            }
        return {'success': True, 'url': None, 'status': job.status}

    async def should_show_throttle_alert(self, user_id: str) -> bool:
        count = await self.job_store.count_recent_jobs(user_id, config.THROTTLE_PERIOD_SECONDS)
        return count > THROTTLE_ALERT_THRESHOLD

    async def _submit_audio(self, user_id: str, kind: str, payload: Dict[str, Any], label: str) -> Dict[str, Any]:
        if not await self.ledger.has_sufficient_credits(user_id, job_cost(kind)):
            raise InsufficientCreditsError()

        job = await self.job_store.create_job(user_id, kind, payload)
        await self._queue(job.id, 'generate.request', {'audioClipId': job.id, 'userId': user_id}, label)
        return await self._accepted(user_id, job.id)

    async def _queue(self, job_id: str, event_name: str, data: Dict[str, Any], label: str):
        try:
            await self.bus.publish(event_name, data)
        except Exception as e:
            logger.error('Failed to send %s event for job %s: %s', event_name, job_id, e)
            # Never leave the job pending without a trigger
            await self.job_store.mark_failed(job_id, error=f'Failed to queue: {e}', terminal=True)
            raise QueueError(f'Failed to queue {label}') from e
        logger.info('Sent %s event for job %s', event_name, job_id)

    async def _accepted(self, user_id: str, job_id: str) -> Dict[str, Any]:
        return {
            'job_id': job_id,
            'should_show_throttle_alert': await self.should_show_throttle_alert(user_id),
        }
