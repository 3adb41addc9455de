"""Financial data store consumed by the agents.

Agents only read accounts, transactions and the profile document, and write
patches back into the profile (for persisted agent memory). The SQLAlchemy
implementation keeps the profile as a JSON column.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ... import models
from ...database import AsyncSessionLocal
from ...schemas.finance import BankAccount, Transaction

logger = logging.getLogger(__name__)


@runtime_checkable
class FinancialDataStore(Protocol):
    """Interface for the user data the agents consume."""

    async def get_user_data(self, uid: str) -> Optional[Dict[str, Any]]:
        """Profile document or None."""
        ...

    async def get_user_transactions(self, uid: str) -> List[Transaction]:
        ...

    async def get_user_bank_accounts(self, uid: str) -> List[BankAccount]:
        ...

    async def store_user_data(self, uid: str, patch: Dict[str, Any]) -> None:
        """Merge `patch` into the profile document."""
        ...


class SqlFinancialDataStore:
    """FinancialDataStore backed by the async SQLAlchemy models."""

    def __init__(self, session_factory: Callable[[], AsyncSession] = AsyncSessionLocal):
        self._session_factory = session_factory

    async def get_user_data(self, uid: str) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.UserProfile).where(models.UserProfile.uid == uid)
            )
            profile = result.scalar_one_or_none()
            if not profile:
                return None
            data = dict(profile.data or {})
            data.setdefault("uid", profile.uid)
            if profile.display_name:
                data.setdefault("displayName", profile.display_name)
            return data

    async def get_user_transactions(self, uid: str) -> List[Transaction]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.Transaction)
                .where(models.Transaction.uid == uid)
                .order_by(models.Transaction.txn_date.desc())
            )
            return [
                Transaction(
                    id=row.id,
                    amount=row.amount or 0.0,
                    type=row.type or "expense",
                    category=row.category,
                    description=row.description,
                    txn_date=row.txn_date,
                    account_id=row.account_id,
                )
                for row in result.scalars().all()
            ]

    async def get_user_bank_accounts(self, uid: str) -> List[BankAccount]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.BankAccount).where(models.BankAccount.uid == uid)
            )
            return [BankAccount.model_validate(row) for row in result.scalars().all()]

    async def store_user_data(self, uid: str, patch: Dict[str, Any]) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.UserProfile).where(models.UserProfile.uid == uid)
            )
            profile = result.scalar_one_or_none()
            if not profile:
                profile = models.UserProfile(uid=uid, data={})
                session.add(profile)

            # Reassign so the JSON column is flagged dirty
            profile.data = {**(profile.data or {}), **patch}
            profile.updated_at = datetime.now()
            await session.commit()
            logger.debug(f"[Store] Updated profile {uid} keys={list(patch.keys())}")
