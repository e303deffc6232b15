"""
Catalogue of system and user-uploaded voices.
"""
import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.models.voice import VoiceAsset, VoiceType

logger = logging.getLogger(__name__)


class VoiceRegistry:
    """Voice assets are created once and never modified."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def create_voice(
        self,
        service: str,
        voice_key: str,
        name: str,
        s3_key: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> VoiceAsset:
        voice = VoiceAsset(
            owner_id=owner_id,
            service=service,
            voice_key=voice_key,
            name=name,
            s3_key=s3_key,
            voice_type=VoiceType.user.value if owner_id else VoiceType.system.value,
        )
        async with self._session_factory() as session:
            session.add(voice)
            await session.commit()
            await session.refresh(voice)
        logger.info('Registered voice %s/%s for owner %s', service, voice_key, owner_id or 'system')
        return voice

    async def get_voice(self, service: str, voice_key: str) -> Optional[VoiceAsset]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(VoiceAsset).where(VoiceAsset.service == service, VoiceAsset.voice_key == voice_key)
            )
            return result.scalar_one_or_none()

    async def list_voices(self, owner_id: Optional[str] = None, service: Optional[str] = None) -> List[VoiceAsset]:
        """System voices plus the owner's own voices, optionally for one service."""
        visibility = VoiceAsset.owner_id.is_(None)
        if owner_id is not None:
            visibility = or_(visibility, VoiceAsset.owner_id == owner_id)

        query = select(VoiceAsset).where(visibility)
        if service is not None:
            query = query.where(VoiceAsset.service == service)

        async with self._session_factory() as session:
            result = await session.execute(query.order_by(VoiceAsset.voice_type, VoiceAsset.name))
            return list(result.scalars().all())
