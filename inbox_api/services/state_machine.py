from enum import Enum


class ConversationMode(str, Enum):
    BOT = "BOT"
    HUMAN = "HUMAN"


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class InboundAction(str, Enum):
    STORE_ONLY = "store_only"
    RUN_FLOW = "run_flow"


def parse_mode(value: str) -> ConversationMode:
    """Parse a stored mode value. Raises ValueError on unknown modes."""
    return ConversationMode(value.upper())


def needs_restore(deleted_at) -> bool:
    """A message arriving for a soft-deleted conversation brings it back."""
    return deleted_at is not None


def inbound_action(mode: ConversationMode) -> InboundAction:
    """Decide what happens to an inbound message once it is stored."""
    if mode == ConversationMode.HUMAN:
        return InboundAction.STORE_ONLY
    return InboundAction.RUN_FLOW


def mode_after_restore() -> ConversationMode:
    return ConversationMode.BOT


def mode_for_operator_reply() -> ConversationMode:
    """Operator replies always silence the bot before the send goes out."""
    return ConversationMode.HUMAN
