"""
Uniform HTTP contract over the generation backends.
"""
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from app.exceptions import ProviderError
from app.models.job import Job, JobKind

logger = logging.getLogger(__name__)

# Operation name -> URL path on the backend
OPERATION_PATHS = {
    'generate': '/generate',
    'convert': '/convert',
    'upload-voice': '/upload-voice',
}

UPLOAD_SERVICES = ('styletts2', 'seedvc')


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class ProviderGateway:
    """
    Calls the configured backend for a provider namespace.

    Every request is a single POST authenticated with the shared backend key.
    Non-2xx responses and transport failures raise ProviderError.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        routes: Mapping[str, str],
        api_key: str,
        clock_ms: Callable[[], int] = _epoch_millis,
    ):
        self._client = client
        self._routes = dict(routes)
        self._api_key = api_key
        self._clock_ms = clock_ms

    def _url(self, service: str, operation: str) -> str:
        try:
            base = self._routes[service]
        except KeyError:
            raise ValueError(f'Unknown provider service: {service}') from None
        try:
            path = OPERATION_PATHS[operation]
        except KeyError:
            raise ValueError(f'Unknown provider operation: {operation}') from None
        return base.rstrip('/') + path

    def _headers(self) -> Dict[str, str]:
        return {'Authorization': f'Bearer {self._api_key}'}

    async def invoke(
        self,
        service: str,
        operation: str,
        body: Optional[Mapping[str, Any]] = None,
        *,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform one call and return the decoded JSON response.

        `body` is sent as JSON; `data`/`files` as multipart form.
        """
        url = self._url(service, operation)
        logger.info('Calling %s %s', service, url)
        try:
            if files is not None:
                response = await self._client.post(url, headers=self._headers(), data=data, files=files)
            else:
                response = await self._client.post(url, headers=self._headers(), json=dict(body or {}))
        except httpx.TransportError as e:
            logger.error('%s unreachable at %s: %s', service, url, e)
            raise ProviderError(service, 0, str(e)) from e

        if not response.is_success:
            logger.error('%s API error %s from %s: %s', service, response.status_code, url, response.text)
            raise ProviderError(service, response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(service, response.status_code, f'Invalid JSON response: {response.text}') from e

    async def generate_for_job(self, job: Job) -> Dict[str, Any]:
        """Dispatch a job to the backend for its kind. The response carries s3_key."""
        if job.kind == JobKind.tts.value:
            result = await self.invoke('styletts2', 'generate', {
                'text': job.text,
                'target_voice': job.voice,
            })
        elif job.kind == JobKind.speech_to_speech.value:
            result = await self.invoke('seedvc', 'convert', {
                'source_audio_key': job.source_audio_key,
                'target_voice': job.voice,
            })
        elif job.kind == JobKind.sound_effect.value:
            result = await self.invoke('make-an-audio', 'generate', {
                'prompt': job.text,
            })
        elif job.kind == JobKind.image.value:
            result = await self.invoke('image', 'generate', {
                'prompt': job.text,
                'provider': job.provider,
                'model_id': job.model_id,
                'aspect_ratio': job.aspect_ratio,
            })
        else:
            raise ValueError(f'Unsupported job kind: {job.kind}')

        if not result.get('s3_key'):
            raise ProviderError(job.service, 200, f'Response missing s3_key: {result}')
        return result

    async def upload_voice(
        self,
        service: str,
        file_bytes: bytes,
        file_name: str,
        content_type: str,
        voice_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Upload a reference voice.

        A name collision is retried once as `<name>_<epoch millis>`; any other
        error, or a second failure, propagates. The returned dict adds
        `voice_name`, the name the provider accepted.
        """
        if service not in UPLOAD_SERVICES:
            raise ValueError(f'Service does not accept voice uploads: {service}')

        files = {'file': (file_name, file_bytes, content_type)}
        try:
            result = await self.invoke(service, 'upload-voice', data=self._voice_form(voice_name), files=files)
            accepted_name = voice_name
        except ProviderError as e:
            if not e.is_name_collision:
                raise
            base_name = voice_name or Path(file_name).stem
            accepted_name = f'{base_name}_{self._clock_ms()}'
            logger.info('Voice name %s exists on %s, retrying as %s', base_name, service, accepted_name)
            result = await self.invoke(service, 'upload-voice', data=self._voice_form(accepted_name), files=files)

        result['voice_name'] = accepted_name or result.get('voice_key')
        return result

    @staticmethod
    def _voice_form(voice_name: Optional[str]) -> Dict[str, str]:
        return {'voice_name': voice_name} if voice_name else {}
