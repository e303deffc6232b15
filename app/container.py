"""
Construction of the clients and services a process runs with.

server.py builds one Container in its lifespan and stores it on app.state;
routers reach services through the dependencies in app.dependencies.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from app import config
from app.database import close_db, create_engine, create_session_factory, init_db
from app.services.credit_ledger import CreditLedger
from app.services.event_bus import EventBus
from app.services.functions import build_functions
from app.services.generation import GenerationService
from app.services.job_store import JobStore
from app.services.orchestrator import Orchestrator
from app.services.provider_gateway import ProviderGateway
from app.services.storage import LocalObjectStorage
from app.services.throttle import Throttle
from app.services.voice_registry import VoiceRegistry

logger = logging.getLogger(__name__)


@dataclass
class Container:
    engine: AsyncEngine
    session_factory: async_sessionmaker
    http_client: httpx.AsyncClient
    bus: EventBus
    job_store: JobStore
    ledger: CreditLedger
    voices: VoiceRegistry
    storage: LocalObjectStorage
    gateway: ProviderGateway
    orchestrator: Orchestrator
    generation: GenerationService

    async def start(self):
        """Create tables, start delivering events and pick up interrupted runs."""
        await init_db(self.engine)
        await self.bus.start()
        resumed = await self.orchestrator.resume_incomplete()
        if resumed:
            logger.info('Resumed %d interrupted run(s)', resumed)

    async def stop(self):
        """Stop the bus, then release HTTP and database resources."""
        await self.bus.stop()
        await self.http_client.aclose()
        await close_db(self.engine)


def build_container(
    database_url: str = config.DATABASE_URL,
    storage_dir: Path = config.STORAGE_DIR,
    provider_routes: Optional[Mapping[str, str]] = None,
    api_key: str = config.BACKEND_API_KEY,
    http_client: Optional[httpx.AsyncClient] = None,
    throttle: Optional[Throttle] = None,
    retry_delay: float = config.RETRY_DELAY_SECONDS,
    atomic_debit: bool = config.ATOMIC_DEBIT,
) -> Container:
    """Wire every service explicitly; nothing here is a module-level singleton."""
    engine = create_engine(database_url)
    session_factory = create_session_factory(engine)

    if http_client is None:
        http_client = httpx.AsyncClient(timeout=config.PROVIDER_TIMEOUT_SECONDS)
    if throttle is None:
        throttle = Throttle(limit=config.THROTTLE_LIMIT, period=config.THROTTLE_PERIOD_SECONDS)

    bus = EventBus()
    job_store = JobStore(session_factory)
    ledger = CreditLedger(session_factory)
    voices = VoiceRegistry(session_factory)
    storage = LocalObjectStorage(storage_dir, config.STORAGE_SECRET)
    gateway = ProviderGateway(http_client, provider_routes or config.PROVIDER_ROUTES, api_key)

    orchestrator = Orchestrator(session_factory, bus, throttle=throttle, retry_delay=retry_delay)
    for function in build_functions(job_store, ledger, gateway, voices, atomic_debit=atomic_debit):
        orchestrator.register(function)
    logger.info('Registered functions: %s', ', '.join(orchestrator.functions))

    return Container(
        engine=engine,
        session_factory=session_factory,
        http_client=http_client,
        bus=bus,
        job_store=job_store,
        ledger=ledger,
        voices=voices,
        storage=storage,
        gateway=gateway,
        orchestrator=orchestrator,
        generation=GenerationService(job_store, ledger, bus, storage),
    )
