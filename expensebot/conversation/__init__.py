from .events import (
    Action,
    Choice,
    Command,
    EventKind,
    InboundEvent,
    OutboundMessage,
    Selection,
    UnknownActionError,
    parse_action,
    parse_command,
)
from .machine import ConversationMachine
from .session import ConversationState, MissingSessionPrecondition, Session, SessionStore

__all__ = [
    "Action",
    "Choice",
    "Command",
    "EventKind",
    "InboundEvent",
    "OutboundMessage",
    "Selection",
    "UnknownActionError",
    "parse_action",
    "parse_command",
    "ConversationMachine",
    "ConversationState",
    "MissingSessionPrecondition",
    "Session",
    "SessionStore",
]
