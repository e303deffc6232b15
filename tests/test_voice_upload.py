"""
Voice upload function tests.
"""
import base64
import re

import httpx
import pytest

from app.models.run import RunStatus
from app.schemas.events import parse_event
from tests.conftest import form_voice_name


def _upload_event(service='seedvc', **overrides):
    data = {
        'fileBufferB64': base64.b64encode(b'RIFF-voice').decode('ascii'),
        'fileName': 'alex.wav',
        'contentType': 'audio/wav',
        'voiceName': 'alex',
    }
    data.update(overrides)
    return parse_event(f'{service}.voice.upload.request', data)


@pytest.fixture
def completions(container):
    received = []

    async def recorder(event):
        received.append(event)

    container.bus.subscribe('seedvc.voice.upload.completed', recorder)
    container.bus.subscribe('styletts2.voice.upload.completed', recorder)
    return received


class TestVoiceUpload:

    @pytest.mark.asyncio
    async def test_upload_registers_voice_and_announces_it(self, container, user, providers, completions):
        result = await container.generation.request_voice_upload(
            user.id, 'styletts2', b'RIFF-voice', 'alex.wav', 'audio/wav', 'alex',
        )
        await container.bus.drain()

        assert result['voice_key'] == 'alex'
        request = providers.calls('styletts2', '/upload-voice')[0]
        assert b'RIFF-voice' in request.content

        voice = await container.voices.get_voice('styletts2', 'alex')
        assert voice.owner_id == user.id
        assert voice.voice_type == 'user'
        assert voice.s3_key == 'voices/alex.wav'

        assert len(completions) == 1
        assert completions[0].data.voice_key == 'alex'
        assert completions[0].data.user_id == user.id

    @pytest.mark.asyncio
    async def test_name_collision_saves_suffixed_name(self, container, user, providers, completions):
        """Test a taken name is stored under the name the provider accepted."""
        providers.queue('seedvc', '/upload-voice', httpx.Response(400, text='Voice alex already exists'))
        function = container.orchestrator.functions['upload-voice-to-seedvc']

        run = await container.orchestrator.execute(function, _upload_event(userId=user.id))
        await container.bus.drain()

        assert run.status == RunStatus.completed.value
        calls = providers.calls('seedvc', '/upload-voice')
        assert [form_voice_name(c) for c in calls][0] == 'alex'
        assert re.fullmatch(r'alex_\d+', form_voice_name(calls[1]))

        voices = await container.voices.list_voices(owner_id=user.id, service='seedvc')
        assert len(voices) == 1
        assert re.fullmatch(r'alex_\d+', voices[0].name)
        assert voices[0].voice_key == voices[0].name
        assert completions[0].data.voice_name == voices[0].name

    @pytest.mark.asyncio
    async def test_without_user_nothing_is_saved(self, container, providers, completions):
        function = container.orchestrator.functions['upload-voice-to-seedvc']

        run = await container.orchestrator.execute(function, _upload_event())
        await container.bus.drain()

        assert run.status == RunStatus.completed.value
        assert run.output['voice_key'] == 'alex'
        assert await container.voices.get_voice('seedvc', 'alex') is None
        assert completions == []

    @pytest.mark.asyncio
    async def test_missing_file_data_is_not_retried(self, container, providers):
        function = container.orchestrator.functions['upload-voice-to-seedvc']

        run = await container.orchestrator.execute(function, _upload_event(fileBufferB64=''))

        assert run.status == RunStatus.failed.value
        assert 'Missing file data' in run.error
        assert providers.requests == []

    @pytest.mark.asyncio
    async def test_invalid_base64_is_not_retried(self, container, providers):
        function = container.orchestrator.functions['upload-voice-to-styletts2']

        run = await container.orchestrator.execute(function, _upload_event('styletts2', fileBufferB64='not base64!'))

        assert run.status == RunStatus.failed.value
        assert providers.requests == []

    @pytest.mark.asyncio
    async def test_provider_failure_is_attempted_once(self, container, user, providers):
        providers.queue('seedvc', '/upload-voice', httpx.Response(500, text='disk full'))
        function = container.orchestrator.functions['upload-voice-to-seedvc']

        run = await container.orchestrator.execute(function, _upload_event(userId=user.id))

        assert run.status == RunStatus.failed.value
        assert run.attempts == 1
        assert len(providers.calls('seedvc', '/upload-voice')) == 1
        assert await container.voices.list_voices(owner_id=user.id, service='seedvc') == []
