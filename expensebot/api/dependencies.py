from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..db import SessionLocal, get_db
from ..models.user import User
from ..services import get_user
from ..services.ledger import LedgerStore, SqlLedger

SessionDep = Annotated[AsyncSession, Depends(get_db)]


def local_now() -> datetime:
    return datetime.now(get_settings().tzinfo)


def get_ledger() -> LedgerStore:
    """Ledger for endpoints that share the conversation's read paths."""
    return SqlLedger(SessionLocal, clock=local_now)


LedgerDep = Annotated[LedgerStore, Depends(get_ledger)]


async def get_existing_user(user_id: int, session: SessionDep) -> User:
    user = await get_user(session, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


ExistingUser = Annotated[User, Depends(get_existing_user)]
