"""
Durable functions for generation jobs and voice uploads.
"""
import base64
import binascii
import logging
import time
from typing import Callable, List

from app import config
from app.exceptions import JobNotFoundError, NonRetriableError, ProviderError
from app.models.job import JobKind
from app.schemas.events import BaseEvent, upload_completed_event, upload_request_event
from app.services.credit_ledger import CreditLedger
from app.services.job_store import JobStore
from app.services.orchestrator import DurableFunction, StepContext
from app.services.provider_gateway import UPLOAD_SERVICES, ProviderGateway
from app.services.voice_registry import VoiceRegistry

logger = logging.getLogger(__name__)


def job_cost(kind: str) -> int:
    """Credits charged for a completed job of this kind."""
    if kind == JobKind.image.value:
        return config.IMAGE_GENERATION_COST
    return config.AUDIO_GENERATION_COST


def _by_user(event: BaseEvent):
    return event.data.user_id


def build_generation_function(
    function_id: str,
    event_name: str,
    get_job_id: Callable[[BaseEvent], str],
    job_store: JobStore,
    ledger: CreditLedger,
    gateway: ProviderGateway,
    atomic_debit: bool = False,
) -> DurableFunction:
    """
    Generation pipeline: get-job, check-credits, call-provider, save-result,
    deduct-credits.
    """

    async def handler(event: BaseEvent, step: StepContext):
        job_id = get_job_id(event)
        logger.info('Starting generation for job %s (attempt %d)', job_id, step.attempt)

        async def get_job():
            try:
                job = await job_store.get_job(job_id)
            except JobNotFoundError as e:
                raise NonRetriableError(str(e)) from e
            if not job.is_terminal:
                await job_store.mark_in_progress(job_id)
            return {
                'id': job.id,
                'owner_id': job.owner_id,
                'kind': job.kind,
                'status': job.status,
                'result_key': job.result_key,
            }

        job = await step.run('get-job', get_job)
        if job['result_key']:
            logger.info('Job %s already has a result, nothing to do', job_id)
            return {'success': True, 's3_key': job['result_key']}
        if job['status'] in ('completed', 'failed'):
            raise NonRetriableError(f'Job {job_id} is already {job["status"]}')

        cost = job_cost(job['kind'])

        async def check_credits():
            if not await ledger.has_sufficient_credits(job['owner_id'], cost):
                logger.error('Insufficient credits for user %s (job %s)', job['owner_id'], job_id)
                raise NonRetriableError('Not enough credits')
            return {'cost': cost}

        await step.run('check-credits', check_credits)

        async def call_provider():
            record = await job_store.get_job(job_id)
            try:
                result = await gateway.generate_for_job(record)
            except ProviderError as e:
                # Visible to the dashboard while retries continue
                await job_store.mark_failed(job_id, error=str(e))
                raise
            logger.info('Provider success for job %s - key: %s', job_id, result['s3_key'])
            return {'s3_key': result['s3_key'], 'url': result.get('audio_url') or result.get('url')}

        result = await step.run('call-provider', call_provider)

        async def save_result():
            return {'saved': await job_store.mark_completed(job_id, result['s3_key'])}

        saved = await step.run('save-result', save_result)
        if not saved['saved']:
            raise NonRetriableError(f'Job {job_id} finished elsewhere, result not saved')

        async def deduct_credits():
            if atomic_debit:
                if not await ledger.debit_if_sufficient(job['owner_id'], cost):
                    raise NonRetriableError('Not enough credits')
            else:
                await ledger.debit(job['owner_id'], cost)
            return {'debited': cost}

        await step.run('deduct-credits', deduct_credits)

        logger.info('Generation completed for job %s', job_id)
        return {'success': True, 's3_key': result['s3_key']}

    async def on_failure(event: BaseEvent, error: BaseException):
        job_id = get_job_id(event)
        logger.error('Generation failed for job %s: %s', job_id, error)
        try:
            await job_store.mark_failed(job_id, error=str(error), terminal=True)
        except Exception:
            logger.exception('Failed to mark job %s as failed', job_id)

    return DurableFunction(
        id=function_id,
        event=event_name,
        handler=handler,
        max_attempts=config.GENERATION_MAX_ATTEMPTS,
        throttle_key=_by_user,
        on_failure=on_failure,
    )


def build_voice_upload_function(
    service: str,
    gateway: ProviderGateway,
    voices: VoiceRegistry,
) -> DurableFunction:
    """Upload a reference voice to a provider and register it."""

    async def handler(event: BaseEvent, step: StepContext):
        data = event.data
        if not data.file_buffer_b64 or not data.file_name or not data.content_type:
            raise NonRetriableError('Missing file data, name, or content type for voice upload.')
        try:
            file_bytes = base64.b64decode(data.file_buffer_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise NonRetriableError(f'Voice upload payload is not valid base64: {e}') from e

        async def upload():
            return await gateway.upload_voice(
                service,
                file_bytes,
                data.file_name,
                data.content_type,
                data.voice_name,
            )

        result = await step.run('upload-voice', upload)
        voice_key = result.get('voice_key')
        voice_name = result.get('voice_name') or voice_key

        if data.user_id and voice_key:
            async def save_voice():
                voice = await voices.create_voice(
                    service=service,
                    voice_key=voice_key,
                    name=voice_name,
                    s3_key=result.get('s3_key'),
                    owner_id=data.user_id,
                )
                logger.info('Voice %s uploaded for user %s. S3 Key: %s', voice_key, data.user_id, voice.s3_key)
                return {'voice_id': voice.id}

            await step.run('save-voice', save_voice)

            # Lets a listening client refresh its voice list
            await step.send_event('send-completion-event', upload_completed_event(service), {
                'userId': data.user_id,
                'voiceKey': voice_key,
                'voiceName': voice_name,
                'service': service,
            })

        return {
            'success': True,
            'message': result.get('message'),
            'voice_key': voice_key,
            'voice_name': voice_name,
            's3_key': result.get('s3_key'),
        }

    return DurableFunction(
        id=f'upload-voice-to-{service}',
        event=upload_request_event(service),
        handler=handler,
        max_attempts=config.UPLOAD_MAX_ATTEMPTS,
    )


async def _test_connection(event: BaseEvent, step: StepContext):
    logger.info('Test connection successful: %s', event.payload())
    return {'success': True, 'timestamp': int(time.time() * 1000)}


def build_functions(
    job_store: JobStore,
    ledger: CreditLedger,
    gateway: ProviderGateway,
    voices: VoiceRegistry,
    atomic_debit: bool = False,
) -> List[DurableFunction]:
    """Every durable function the service runs."""
    functions = [
        build_generation_function(
            'generate-audio-clip',
            'generate.request',
            lambda event: event.data.audio_clip_id,
            job_store, ledger, gateway, atomic_debit,
        ),
        build_generation_function(
            'generate-image',
            'image.generate.request',
            lambda event: event.data.image_id,
            job_store, ledger, gateway, atomic_debit,
        ),
    ]
    functions.extend(build_voice_upload_function(service, gateway, voices) for service in UPLOAD_SERVICES)
    functions.append(DurableFunction(id='test-connection', event='test.connection', handler=_test_connection))
    return functions
