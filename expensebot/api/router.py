from fastapi import APIRouter

from . import expenses, telegram, users

api_router = APIRouter()
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(expenses.router, prefix="/users", tags=["expenses"])
api_router.include_router(telegram.router, prefix="/telegram", tags=["telegram"])
