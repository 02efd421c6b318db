from dataclasses import dataclass

from sqlalchemy.orm import Session

from inbox_api.logging_config import LoggerAdapter, get_logger
from inbox_api.models import Conversation, Message
from inbox_api.services.conversation_service import (
    get_or_create_conversation,
    get_owned_conversation,
    mark_handled,
    restore_conversation,
    set_mode,
    soft_delete_conversation,
)
from inbox_api.services.errors import TransportFailure
from inbox_api.services.flow_service import FlowSessions
from inbox_api.services.message_service import save_message
from inbox_api.services.state_machine import (
    ConversationMode,
    MessageDirection,
    mode_for_operator_reply,
    needs_restore,
)
from inbox_api.services.tenant_service import TenantRecord
from inbox_api.services.twilio_service import send_message

logger = get_logger("operator_service")

WHATSAPP_PREFIX = "whatsapp:"


@dataclass
class OperatorSend:
    conversation: Conversation
    message: Message
    delivered: bool


def normalize_phone(phone_number: str) -> str:
    """Operator input may omit the channel prefix Twilio uses for WhatsApp."""
    phone_number = phone_number.strip().replace(" ", "")
    if phone_number.startswith(WHATSAPP_PREFIX):
        return phone_number
    return f"{WHATSAPP_PREFIX}{phone_number}"


def _deliver(db: Session, tenant: TenantRecord, conversation: Conversation, text: str) -> OperatorSend:
    log = LoggerAdapter(logger, {"tenant": tenant.slug, "conversation_id": conversation.id})

    # The bot must be silenced before the message leaves
    set_mode(db, conversation.id, mode_for_operator_reply())
    db.commit()

    try:
        delivered = send_message(conversation.phone_number, text, tenant)
    except TransportFailure:
        save_message(db, conversation.id, MessageDirection.OUTBOUND, text)
        mark_handled(db, conversation.id)
        db.commit()
        log.error("Operator message not delivered")
        raise

    message = save_message(db, conversation.id, MessageDirection.OUTBOUND, text)
    conversation = mark_handled(db, conversation.id)
    db.commit()
    log.info("Operator message sent", context={"message_id": message.id, "delivered": delivered})
    return OperatorSend(conversation=conversation, message=message, delivered=delivered)


def send_operator_reply(db: Session, tenant: TenantRecord, conversation_id: int, text: str) -> OperatorSend:
    conversation = get_owned_conversation(db, tenant.id, conversation_id)
    return _deliver(db, tenant, conversation, text)


def send_to_phone(db: Session, tenant: TenantRecord, phone_number: str, text: str) -> OperatorSend:
    """Operator-initiated message; creates or restores the conversation first."""
    conversation = get_or_create_conversation(db, tenant.id, normalize_phone(phone_number))
    if needs_restore(conversation.deleted_at):
        conversation = restore_conversation(db, conversation.id)
    return _deliver(db, tenant, conversation, text)


def reset_to_bot(db: Session, tenant: TenantRecord, conversation_id: int, sessions: FlowSessions) -> Conversation:
    """Hand the conversation back to the bot. Safe to repeat."""
    conversation = get_owned_conversation(db, tenant.id, conversation_id)
    conversation = set_mode(db, conversation.id, ConversationMode.BOT)
    db.commit()
    sessions.discard(tenant.id, conversation.phone_number)
    logger.info(f"Conversation {conversation.id} reset to BOT")
    return conversation


def delete_conversation(db: Session, tenant: TenantRecord, conversation_id: int, sessions: FlowSessions) -> Conversation:
    conversation = get_owned_conversation(db, tenant.id, conversation_id, include_deleted=True)
    conversation = soft_delete_conversation(db, conversation.id)
    db.commit()
    sessions.discard(tenant.id, conversation.phone_number)
    return conversation
