from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from ..utils.money import quantize_amount


class UserNotFoundError(Exception):
    """Raised when a ledger user cannot be found."""


async def get_user(session: AsyncSession, user_id: int) -> Optional[User]:
    return await session.get(User, user_id)


async def create_user(session: AsyncSession, user_id: int) -> User:
    """Return the user, creating it with a zero balance when missing.

    Calling this again never resets an existing balance.
    """
    existing = await session.get(User, user_id)
    if existing:
        return existing

    user = User(id=user_id, balance=Decimal("0.00"))
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # Another event created the row first.
        await session.rollback()
        existing = await session.get(User, user_id)
        if existing is None:
            raise
        return existing
    await session.refresh(user)
    return user


async def lock_user(session: AsyncSession, user_id: int) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.id == user_id).with_for_update().execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def set_balance(session: AsyncSession, user_id: int, balance: Decimal) -> User:
    user = await lock_user(session, user_id)
    if not user:
        raise UserNotFoundError("User not found")
    user.balance = quantize_amount(balance)
    await session.commit()
    await session.refresh(user)
    return user


async def adjust_balance(session: AsyncSession, user_id: int, delta: Decimal) -> User:
    """Add ``delta`` to the balance, creating the user first when needed."""
    await create_user(session, user_id)
    user = await lock_user(session, user_id)
    if not user:
        raise UserNotFoundError("User not found")
    user.balance = quantize_amount((user.balance or Decimal("0")) + delta)
    await session.commit()
    await session.refresh(user)
    return user
