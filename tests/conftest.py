"""
Pytest fixtures for testing.
"""
import re
import uuid
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Tuple

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from app.container import Container, build_container
from app.models.user import User
from app.services.throttle import Throttle


PROVIDER_ROUTES = {
    'styletts2': 'http://styletts2.test',
    'seedvc': 'http://seedvc.test',
    'make-an-audio': 'http://make-an-audio.test',
    'image': 'http://image.test',
}

API_KEY = 'test-backend-key'

_VOICE_NAME_FIELD = re.compile(rb'name="voice_name"\r\n\r\n(.*?)\r\n', re.S)


def form_voice_name(request: httpx.Request):
    """voice_name field of a multipart upload request, if any."""
    match = _VOICE_NAME_FIELD.search(request.content)
    return match.group(1).decode() if match else None


class FakeProviders:
    """
    MockTransport handler standing in for the generation backends.

    Responses queued for a (host, path) are returned in order; once the queue
    is empty the backend answers with a success payload.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._queued: Dict[Tuple[str, str], list] = {}

    def queue(self, service: str, path: str, *responses):
        """Queue httpx.Response objects or async callables(request) -> Response."""
        host = httpx.URL(PROVIDER_ROUTES[service]).host
        self._queued.setdefault((host, path), []).extend(responses)

    def calls(self, service: str, path: str) -> List[httpx.Request]:
        host = httpx.URL(PROVIDER_ROUTES[service]).host
        return [r for r in self.requests if r.url.host == host and r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self._queued.get((request.url.host, request.url.path))
        if queued:
            response = queued.pop(0)
            if callable(response):
                response = await response(request)
            return response
        return self.success(request)

    @staticmethod
    def success(request: httpx.Request) -> httpx.Response:
        if request.url.path == '/upload-voice':
            name = form_voice_name(request) or 'voice'
            return httpx.Response(200, json={
                'message': 'Voice uploaded successfully',
                'voice_key': name,
                's3_key': f'voices/{name}.wav',
                'voices': {name: f'voices/{name}.wav'},
            })
        key = f'{request.url.host.split(".")[0]}/{uuid.uuid4()}.wav'
        return httpx.Response(200, json={'audio_url': f'https://cdn.test/{key}', 's3_key': key})


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def throttle_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def throttle(throttle_sleep) -> Throttle:
    return Throttle(limit=3, period=60.0, sleep=throttle_sleep)


@pytest.fixture
def test_db_url(tmp_path: Path) -> str:
    """Generate test database URL."""
    return f'sqlite+aiosqlite:///{tmp_path / "test.db"}'


@pytest_asyncio.fixture
async def container(test_db_url, tmp_path, providers, throttle) -> AsyncGenerator[Container, None]:
    """A started container wired to the fake providers."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(providers))
    container = build_container(
        database_url=test_db_url,
        storage_dir=tmp_path / 'storage',
        provider_routes=PROVIDER_ROUTES,
        api_key=API_KEY,
        http_client=http_client,
        throttle=throttle,
        retry_delay=0,
    )
    await container.start()
    yield container
    await container.stop()


@pytest.fixture
def session_factory(container):
    return container.session_factory


@pytest_asyncio.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Factory creating a user with a credit balance."""
    async def _make_user(credits: int = 100) -> User:
        user = User(credits=credits)
        async with session_factory() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def user(make_user) -> User:
    return await make_user(100)


@pytest_asyncio.fixture
async def client(container):
    """Create a test client against the container-backed app."""
    from server import create_app

    app = create_app(container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as client:
        yield client
