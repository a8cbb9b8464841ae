from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from typing import Any, Sequence

from telegram import (
    BotCommand,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
    Update,
)
from telegram.error import BadRequest
from telegram.ext import (
    AIORateLimiter,
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..config import Settings, get_settings
from ..conversation import (
    Choice,
    Command,
    ConversationMachine,
    EventKind,
    InboundEvent,
    OutboundMessage,
    SessionStore,
)
from ..db import SessionLocal, init_db
from ..services.ledger import LedgerError, SqlLedger

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message", "callback_query"]
STORAGE_FAILURE_TEXT = "⚠️ Something went wrong while saving your data. Please try again in a moment."

BOT_COMMANDS = [
    BotCommand(Command.START.value, "Show the main menu"),
    BotCommand(Command.HELP.value, "How the tracker works"),
    BotCommand(Command.BALANCE.value, "Add money to your balance"),
    BotCommand(Command.EXPENSE.value, "Record an expense"),
    BotCommand(Command.REPORT.value, "Spending report, e.g. /report last week"),
    BotCommand(Command.CHECK.value, "Show your balance"),
    BotCommand(Command.CANCEL.value, "Abandon the current entry"),
]

_application: Application | None = None
_lock = asyncio.Lock()


def build_conversation(settings: Settings) -> ConversationMachine:
    tz = settings.tzinfo

    def clock() -> datetime:
        return datetime.now(tz)

    idle_timeout = None
    if settings.session_idle_timeout_seconds:
        idle_timeout = timedelta(seconds=settings.session_idle_timeout_seconds)
    return ConversationMachine(
        SqlLedger(SessionLocal, clock=clock),
        SessionStore(idle_timeout=idle_timeout),
        clock=clock,
        currency=settings.currency,
        preview_limit=settings.report_preview_limit,
    )


def _keyboard(choices: Sequence[Sequence[Choice]]) -> InlineKeyboardMarkup | None:
    if not choices:
        return None
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(choice.label, callback_data=choice.action_id) for choice in row]
            for row in choices
        ]
    )


def _is_message_not_modified_error(error: Exception) -> bool:
    return "message is not modified" in str(error).lower()


async def _safe_edit_message(
    query: CallbackQuery,
    text: str,
    *,
    reply_markup: InlineKeyboardMarkup | None,
) -> None:
    try:
        await query.edit_message_text(text, reply_markup=reply_markup)
    except BadRequest as exc:
        if _is_message_not_modified_error(exc):
            try:
                await query.edit_message_reply_markup(reply_markup=reply_markup)
            except BadRequest as exc2:
                if not _is_message_not_modified_error(exc2):
                    raise
        else:
            raise


async def _run_machine(
    context: ContextTypes.DEFAULT_TYPE, event: InboundEvent
) -> list[OutboundMessage]:
    machine: ConversationMachine = context.application.bot_data["conversation"]
    try:
        return await machine.handle(event)
    except LedgerError:
        logger.exception("Ledger failure while handling %s event for user %s", event.kind.value, event.user_id)
        return [OutboundMessage(STORAGE_FAILURE_TEXT)]


async def _reply_all(message: Message, replies: list[OutboundMessage]) -> None:
    for reply in replies:
        await message.reply_text(reply.text, reply_markup=_keyboard(reply.choices))


async def command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.message
    if not message or not message.text or not update.effective_user:
        return
    event = InboundEvent(update.effective_user.id, EventKind.COMMAND, message.text)
    await _reply_all(message, await _run_machine(context, event))


async def free_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.message
    if not message or message.text is None or not update.effective_user:
        return
    event = InboundEvent(update.effective_user.id, EventKind.TEXT, message.text)
    await _reply_all(message, await _run_machine(context, event))


async def selection(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if not query:
        return
    event = InboundEvent(query.from_user.id, EventKind.SELECTION, query.data or "")
    replies = await _run_machine(context, event)

    toast = next((reply.text for reply in replies if reply.ephemeral), None)
    if toast:
        await query.answer(toast)
    else:
        await query.answer()

    # The first full reply replaces the pressed menu; anything further is sent below it.
    edited = False
    for reply in replies:
        if reply.ephemeral:
            continue
        markup = _keyboard(reply.choices)
        if not edited and query.message is not None:
            await _safe_edit_message(query, reply.text, reply_markup=markup)
            edited = True
        elif query.message is not None:
            await query.message.reply_text(reply.text, reply_markup=markup)


def _create_application(token: str, conversation: ConversationMachine) -> Application:
    application = (
        Application.builder()
        .token(token)
        .rate_limiter(AIORateLimiter())
        .build()
    )
    application.bot_data["conversation"] = conversation
    application.add_handler(CommandHandler([item.value for item in Command], command))
    application.add_handler(MessageHandler(filters.COMMAND, command))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, free_text))
    application.add_handler(CallbackQueryHandler(selection))
    return application


async def init_bot() -> None:
    """Initialise the Telegram bot and register the webhook."""
    settings = get_settings()
    if not settings.telegram_bot_token or not settings.telegram_webhook_secret:
        logger.info("Telegram bot or webhook secret not configured; skipping bot initialisation.")
        return
    if not settings.backend_base_url:
        logger.warning("BACKEND_BASE_URL is missing; skipping Telegram webhook setup.")
        return

    base_url = str(settings.backend_base_url)
    webhook_url = base_url.rstrip("/") + f"/api/telegram/webhook/{settings.telegram_webhook_secret}"

    async with _lock:
        global _application
        if _application is not None:
            return

        application = _create_application(settings.telegram_bot_token, build_conversation(settings))

        try:
            await application.initialize()
            await application.start()
            try:
                await application.bot.set_my_commands(BOT_COMMANDS)
            except Exception:
                logger.exception("Failed to set Telegram command list.")
            if settings.telegram_register_webhook_on_start:
                await application.bot.set_webhook(
                    url=webhook_url, drop_pending_updates=False, allowed_updates=ALLOWED_UPDATES
                )
        except Exception:
            logger.exception("Failed to initialise Telegram webhook; bot disabled for this run.")
            with contextlib.suppress(Exception):
                await application.stop()
            with contextlib.suppress(Exception):
                await application.shutdown()
            return

        _application = application
        logger.info("Telegram webhook configured at %s", webhook_url)


async def handle_update(payload: dict[str, Any]) -> None:
    """Process a Telegram update forwarded by FastAPI."""
    async with _lock:
        if _application is None:
            raise RuntimeError("Telegram bot is not initialised.")
        application = _application
    update = Update.de_json(payload, application.bot)
    await application.process_update(update)


async def shutdown_bot() -> None:
    """Tear down the Telegram bot."""
    async with _lock:
        global _application
        if _application is None:
            return
        await _application.stop()
        await _application.shutdown()
        _application = None


async def _post_init(application: Application) -> None:
    await init_db()
    await application.bot.set_my_commands(BOT_COMMANDS)


def main() -> None:  # pragma: no cover - local polling entry point
    """Run the bot with long polling instead of the FastAPI webhook."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=logging.INFO,
    )
    settings = get_settings()
    if not settings.telegram_bot_token:
        raise SystemExit("TELEGRAM_BOT_TOKEN is not set.")
    application = _create_application(settings.telegram_bot_token, build_conversation(settings))
    application.post_init = _post_init
    application.run_polling(allowed_updates=ALLOWED_UPDATES)


if __name__ == "__main__":  # pragma: no cover
    main()
