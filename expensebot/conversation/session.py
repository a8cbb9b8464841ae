"""Per-user conversation sessions held in process memory.

Sessions are transient: they are created on demand, dropped once the user is
back to idle, and lost on restart. All access goes through
``SessionStore.acquire`` which serialises events for the same user while
different users proceed in parallel.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..models.expense import ExpenseCategory
from ..services.periods import DateRange


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_BALANCE_AMOUNT = "awaiting_balance_amount"
    AWAITING_EXPENSE_AMOUNT = "awaiting_expense_amount"
    AWAITING_CATEGORY = "awaiting_category"
    AWAITING_DESCRIPTION = "awaiting_description"
    AWAITING_CUSTOM_RANGE_START = "awaiting_custom_range_start"
    AWAITING_CUSTOM_RANGE_END = "awaiting_custom_range_end"


class MissingSessionPrecondition(RuntimeError):
    """Raised when a step runs without the data earlier steps should have stored."""


@dataclass
class Session:
    state: ConversationState = ConversationState.IDLE
    pending_amount: Optional[Decimal] = None
    pending_category: Optional[ExpenseCategory] = None
    custom_range_start: Optional[DateRange] = None
    touched_at: Optional[datetime] = None

    @property
    def is_idle(self) -> bool:
        return self.state == ConversationState.IDLE

    def begin(self, state: ConversationState) -> None:
        """Enter a flow's first state, discarding whatever was pending."""
        self.reset()
        self.state = state

    def reset(self) -> None:
        self.state = ConversationState.IDLE
        self.pending_amount = None
        self.pending_category = None
        self.custom_range_start = None

    def snapshot(self) -> "Session":
        return replace(self)

    def restore(self, snapshot: "Session") -> None:
        self.state = snapshot.state
        self.pending_amount = snapshot.pending_amount
        self.pending_category = snapshot.pending_category
        self.custom_range_start = snapshot.custom_range_start
        self.touched_at = snapshot.touched_at


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """In-memory mapping of user id to ``Session`` with per-user locking."""

    def __init__(
        self,
        *,
        idle_timeout: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._sessions: dict[int, Session] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}
        self._idle_timeout = idle_timeout
        self._clock = clock

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def peek(self, user_id: int) -> Optional[Session]:
        return self._sessions.get(user_id)

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        return lock

    def _release_lock(self, user_id: int) -> None:
        # Forget the lock once nobody holds or waits on it.
        remaining = self._lock_users[user_id] - 1
        if remaining:
            self._lock_users[user_id] = remaining
        else:
            del self._lock_users[user_id]
            del self._locks[user_id]

    def _is_stale(self, session: Session, now: datetime) -> bool:
        if self._idle_timeout is None or session.is_idle or session.touched_at is None:
            return False
        return now - session.touched_at > self._idle_timeout

    @contextlib.asynccontextmanager
    async def acquire(self, user_id: int) -> AsyncIterator[Session]:
        """Hold the user's lock and yield their session for the whole event."""
        lock = self._lock_for(user_id)
        try:
            async with lock:
                now = self._clock()
                session = self._sessions.get(user_id)
                if session is None:
                    session = Session()
                elif self._is_stale(session, now):
                    session.reset()
                try:
                    yield session
                finally:
                    if session.is_idle:
                        self._sessions.pop(user_id, None)
                    else:
                        session.touched_at = now
                        self._sessions[user_id] = session
        finally:
            self._release_lock(user_id)
