"""
API Layer Tests

Tests for job, voice, media and credit endpoints.
"""
import pytest


def _auth(user):
    return {'X-User-Id': user.id}


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get('/health')

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ok'
        assert data['event_bus_running'] is True
        assert 'generate-audio-clip' in data['functions']
        assert 'upload-voice-to-seedvc' in data['functions']


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        response = await client.get('/jobs')

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        response = await client.get('/credits', headers={'X-User-Id': 'nobody'})

        assert response.status_code == 401


class TestJobEndpoints:
    """Tests for /jobs endpoints."""

    @pytest.mark.asyncio
    async def test_create_text_to_speech(self, client, user, container):
        response = await client.post(
            '/jobs/text-to-speech',
            json={'text': 'Hello world', 'voice': 'alex'},
            headers=_auth(user),
        )

        assert response.status_code == 202
        data = response.json()
        assert data['job_id']
        assert data['should_show_throttle_alert'] is False

        await container.bus.drain()
        status = await client.get(f'/jobs/{data["job_id"]}/status', headers=_auth(user))
        assert status.status_code == 200
        body = status.json()
        assert body['success'] is True
        assert body['status'] == 'completed'
        assert body['url'].startswith('/media/')

    @pytest.mark.asyncio
    async def test_create_validation_error(self, client, user):
        response = await client.post('/jobs/text-to-speech', json={'text': '', 'voice': 'alex'}, headers=_auth(user))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_whitespace_text_rejected(self, client, user):
        response = await client.post('/jobs/sound-effect', json={'prompt': '   '}, headers=_auth(user))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_insufficient_credits(self, client, make_user):
        poor = await make_user(0)

        response = await client.post('/jobs/sound-effect', json={'prompt': 'rain'}, headers=_auth(poor))

        assert response.status_code == 402

    @pytest.mark.asyncio
    async def test_create_image(self, client, user):
        response = await client.post(
            '/jobs/image',
            json={
                'prompt': 'a lighthouse',
                'provider': 'fireworks2',
                'model_id': 'accounts/fireworks/models/flux-1-dev-fp8',
                'aspect_ratio': '16:9',
            },
            headers=_auth(user),
        )

        assert response.status_code == 202

    @pytest.mark.asyncio
    async def test_create_image_invalid_model(self, client, user):
        response = await client.post(
            '/jobs/image',
            json={'prompt': 'a lighthouse', 'provider': 'fireworks2', 'model_id': 'nope'},
            headers=_auth(user),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_get_job(self, client, user, container):
        job = await container.job_store.create_job(user.id, 'tts', {'text': 'Hi', 'voice': 'alex'})

        response = await client.get(f'/jobs/{job.id}', headers=_auth(user))

        assert response.status_code == 200
        data = response.json()
        assert data['id'] == job.id
        assert data['kind'] == 'tts'
        assert data['status'] == 'pending'
        assert data['failed'] is False

    @pytest.mark.asyncio
    async def test_get_other_users_job(self, client, user, make_user, container):
        other = await make_user(100)
        job = await container.job_store.create_job(other.id, 'tts', {'text': 'Hi', 'voice': 'alex'})

        response = await client.get(f'/jobs/{job.id}', headers=_auth(user))
        status = await client.get(f'/jobs/{job.id}/status', headers=_auth(user))

        assert response.status_code == 404
        assert status.status_code == 404

    @pytest.mark.asyncio
    async def test_list_jobs_pagination(self, client, user, container):
        for i in range(5):
            await container.job_store.create_job(user.id, 'sound_effect', {'text': f'sound {i}'})
        await container.job_store.create_job(user.id, 'image', {'text': 'a cat'})

        response = await client.get('/jobs', params={'limit': 2, 'offset': 0}, headers=_auth(user))
        filtered = await client.get('/jobs', params={'kind': 'image'}, headers=_auth(user))

        data = response.json()
        assert data['total'] == 6
        assert len(data['jobs']) == 2
        assert data['limit'] == 2
        assert filtered.json()['total'] == 1


class TestVoiceEndpoints:
    """Tests for /voices endpoints."""

    @pytest.mark.asyncio
    async def test_upload_and_list(self, client, user, container):
        response = await client.post(
            '/voices/styletts2/upload',
            files={'file': ('alex.wav', b'RIFF-voice', 'audio/wav')},
            data={'voice_name': 'alex'},
            headers=_auth(user),
        )

        assert response.status_code == 202
        data = response.json()
        assert data['event_id']
        assert data['voice_key'] == 'alex'

        await container.bus.drain()
        listed = await client.get('/voices', params={'service': 'styletts2'}, headers=_auth(user))
        voices = listed.json()['voices']
        assert [v['voice_key'] for v in voices] == ['alex']
        assert voices[0]['voice_type'] == 'user'

    @pytest.mark.asyncio
    async def test_list_hides_other_users_voices(self, client, user, make_user, container):
        other = await make_user(100)
        await container.voices.create_voice('seedvc', 'narrator', 'Narrator')
        await container.voices.create_voice('seedvc', 'private', 'Private', owner_id=other.id)

        response = await client.get('/voices', headers=_auth(user))

        assert [v['voice_key'] for v in response.json()['voices']] == ['narrator']

    @pytest.mark.asyncio
    async def test_upload_to_unknown_service(self, client, user):
        response = await client.post(
            '/voices/make-an-audio/upload',
            files={'file': ('alex.wav', b'RIFF', 'audio/wav')},
            headers=_auth(user),
        )

        assert response.status_code == 400


class TestMediaEndpoints:

    @pytest.mark.asyncio
    async def test_source_audio_then_speech_to_speech(self, client, user, providers, container):
        upload = await client.post(
            '/media/source-audio',
            files={'file': ('clip.wav', b'RIFF-source', 'audio/wav')},
            headers=_auth(user),
        )
        assert upload.status_code == 201
        key = upload.json()['key']

        response = await client.post(
            '/jobs/speech-to-speech',
            json={'source_audio_key': key, 'voice': 'alex'},
            headers=_auth(user),
        )
        assert response.status_code == 202
        await container.bus.drain()

        assert len(providers.calls('seedvc', '/convert')) == 1

    @pytest.mark.asyncio
    async def test_source_audio_wrong_type(self, client, user):
        response = await client.post(
            '/media/source-audio',
            files={'file': ('clip.ogg', b'OggS', 'audio/ogg')},
            headers=_auth(user),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_presigned_download(self, client, container):
        key = container.storage.put_object(b'RIFF-result', 'styletts2-output', 'wav')

        response = await client.get(container.storage.presign(key))

        assert response.status_code == 200
        assert response.content == b'RIFF-result'

    @pytest.mark.asyncio
    async def test_bad_signature(self, client, container):
        key = container.storage.put_object(b'RIFF-result', 'styletts2-output', 'wav')

        response = await client.get(f'/media/{key}', params={'expires': 9999999999, 'signature': 'forged'})

        assert response.status_code == 403


class TestCreditsEndpoint:

    @pytest.mark.asyncio
    async def test_balance_after_generation(self, client, user, container):
        await client.post('/jobs/sound-effect', json={'prompt': 'rain'}, headers=_auth(user))
        await container.bus.drain()

        response = await client.get('/credits', headers=_auth(user))

        assert response.status_code == 200
        assert response.json() == {'credits': 85}
