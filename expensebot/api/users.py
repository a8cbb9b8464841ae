from fastapi import APIRouter, HTTPException, status

from ..schemas import BalanceTopUp, BalanceUpdate, UserRead
from ..services import UserNotFoundError, adjust_balance, create_user, set_balance
from .dependencies import ExistingUser, SessionDep

router = APIRouter()


@router.get("/{user_id}", response_model=UserRead)
async def get_user_endpoint(user_id: int, user: ExistingUser) -> UserRead:
    return UserRead.model_validate(user)


@router.post("/{user_id}", response_model=UserRead)
async def create_user_endpoint(user_id: int, session: SessionDep) -> UserRead:
    """Idempotent: an existing user is returned with its balance untouched."""
    user = await create_user(session, user_id)
    return UserRead.model_validate(user)


@router.put("/{user_id}/balance", response_model=UserRead)
async def set_balance_endpoint(
    user_id: int,
    payload: BalanceUpdate,
    session: SessionDep,
) -> UserRead:
    try:
        user = await set_balance(session, user_id, payload.balance)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserRead.model_validate(user)


@router.post("/{user_id}/balance/top-up", response_model=UserRead)
async def top_up_balance_endpoint(
    user_id: int,
    payload: BalanceTopUp,
    session: SessionDep,
) -> UserRead:
    user = await adjust_balance(session, user_id, payload.amount)
    return UserRead.model_validate(user)
