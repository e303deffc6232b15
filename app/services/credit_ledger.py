"""
Credit ledger: gates and charges generation work against a user's balance.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.exceptions import UserNotFoundError
from app.models.user import User

logger = logging.getLogger(__name__)


class CreditLedger:
    """
    Balance checks and debits on User.credits.

    has_sufficient_credits() and debit() are separate operations: two runs can
    both pass the check before either debits. debit_if_sufficient() closes that
    gap with a single conditional UPDATE.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_balance(self, user_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(User.credits).where(User.id == user_id))
            credits = result.scalar_one_or_none()
        if credits is None:
            raise UserNotFoundError(user_id)
        return credits

    async def has_sufficient_credits(self, user_id: str, cost: int) -> bool:
        """Read-only check; unknown users have no credits."""
        try:
            balance = await self.get_balance(user_id)
        except UserNotFoundError:
            return False
        return balance >= cost

    async def debit(self, user_id: str, cost: int):
        """Unconditional decrement. The balance may go negative."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(User).where(User.id == user_id).values(credits=User.credits - cost)
            )
            await session.commit()
        if result.rowcount == 0:
            raise UserNotFoundError(user_id)
        logger.info('Debited %d credits from user %s', cost, user_id)

    async def debit_if_sufficient(self, user_id: str, cost: int) -> bool:
        """
        Atomically debit only when the balance covers the cost.

        Returns False (and changes nothing) when the balance is short.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                update(User)
                .where(User.id == user_id, User.credits >= cost)
                .values(credits=User.credits - cost)
            )
            await session.commit()
        if result.rowcount:
            logger.info('Debited %d credits from user %s', cost, user_id)
            return True

        # Distinguish a short balance from a missing user
        await self.get_balance(user_id)
        logger.warning('User %s cannot cover %d credits', user_id, cost)
        return False

