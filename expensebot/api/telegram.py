import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException, status

from ..config import get_settings
from ..telegram.bot import handle_update

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_secret(secret: str) -> None:
    settings = get_settings()
    if not settings.telegram_webhook_secret or secret != settings.telegram_webhook_secret:
        logger.warning("Rejected Telegram webhook call with an unknown secret.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)


@router.post("/webhook/{secret}", status_code=status.HTTP_204_NO_CONTENT)
async def telegram_webhook(secret: str, payload: dict[str, Any] = Body(...)) -> None:
    verify_secret(secret)
    await handle_update(payload)
