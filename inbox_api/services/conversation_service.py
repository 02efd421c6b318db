from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inbox_api.database import upsert_insert
from inbox_api.logging_config import get_logger
from inbox_api.models import Conversation, Message
from inbox_api.services.errors import (
    AlreadyDeleted,
    ConversationNotFound,
    NotDeleted,
    TenantOwnershipMismatch,
)
from inbox_api.services.state_machine import ConversationMode, mode_after_restore

logger = get_logger("conversation_service")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _reload(db: Session, conversation_id: int) -> Conversation:
    return db.query(Conversation).populate_existing().filter(Conversation.id == conversation_id).one()


def _find(db: Session, tenant_id: int, phone_number: str) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .populate_existing()
        .filter(Conversation.tenant_id == tenant_id, Conversation.phone_number == phone_number)
        .first()
    )


def get_or_create_conversation(db: Session, tenant_id: int, phone_number: str) -> Conversation:
    """
    Upsert the conversation for (tenant, phone) in a single statement.

    A new row starts in BOT mode; an existing row only gets updated_at touched.
    Soft-deleted rows come back as they are. Restoring them is the caller's job.
    """
    now = _now()
    insert = upsert_insert(db)

    if insert is None:
        # No native upsert: insert inside a savepoint and fall back to the existing row
        existing = _find(db, tenant_id, phone_number)
        if existing:
            existing.updated_at = now
            db.flush()
            return existing
        try:
            with db.begin_nested():
                db.add(
                    Conversation(
                        tenant_id=tenant_id,
                        phone_number=phone_number,
                        mode=ConversationMode.BOT.value,
                        human_handled=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            logger.info(f"Concurrent create for tenant={tenant_id} phone={phone_number}, reusing row")
        return _find(db, tenant_id, phone_number)

    stmt = insert(Conversation).values(
        tenant_id=tenant_id,
        phone_number=phone_number,
        mode=ConversationMode.BOT.value,
        human_handled=False,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["tenant_id", "phone_number"],
        set_={"updated_at": now},
    )
    db.execute(stmt)
    return _find(db, tenant_id, phone_number)


def get_conversation(db: Session, conversation_id: int) -> Optional[Conversation]:
    return db.query(Conversation).filter(Conversation.id == conversation_id).first()


def get_owned_conversation(
    db: Session,
    tenant_id: int,
    conversation_id: int,
    include_deleted: bool = False,
) -> Conversation:
    """Load a conversation and check it belongs to the tenant."""
    conversation = get_conversation(db, conversation_id)
    if conversation is None:
        raise ConversationNotFound(f"Conversation {conversation_id} not found")

    if conversation.tenant_id != tenant_id:
        logger.warning(
            "Conversation ownership mismatch",
            extra={
                "context": {
                    "conversation_id": conversation_id,
                    "request_tenant_id": tenant_id,
                }
            },
        )
        raise TenantOwnershipMismatch("Conversation does not belong to this tenant")

    if conversation.is_deleted and not include_deleted:
        raise ConversationNotFound(f"Conversation {conversation_id} not found")

    return conversation


def restore_conversation(db: Session, conversation_id: int) -> Conversation:
    """Bring back a soft-deleted conversation in BOT mode."""
    updated = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.deleted_at.isnot(None))
        .update(
            {"deleted_at": None, "mode": mode_after_restore().value, "updated_at": _now()},
            synchronize_session=False,
        )
    )
    if not updated:
        if get_conversation(db, conversation_id) is None:
            raise ConversationNotFound(f"Conversation {conversation_id} not found")
        raise NotDeleted(f"Conversation {conversation_id} is not deleted")

    logger.info(f"Conversation {conversation_id} restored")
    return _reload(db, conversation_id)


def set_mode(db: Session, conversation_id: int, mode: ConversationMode) -> Conversation:
    updated = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id)
        .update({"mode": mode.value, "updated_at": _now()}, synchronize_session=False)
    )
    if not updated:
        raise ConversationNotFound(f"Conversation {conversation_id} not found")
    return _reload(db, conversation_id)


def soft_delete_conversation(db: Session, conversation_id: int) -> Conversation:
    now = _now()
    updated = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.deleted_at.is_(None))
        .update({"deleted_at": now, "updated_at": now}, synchronize_session=False)
    )
    if not updated:
        if get_conversation(db, conversation_id) is None:
            raise ConversationNotFound(f"Conversation {conversation_id} not found")
        raise AlreadyDeleted(f"Conversation {conversation_id} is already deleted")

    logger.info(f"Conversation {conversation_id} soft-deleted")
    return _reload(db, conversation_id)


def mark_handled(db: Session, conversation_id: int) -> Conversation:
    """Flag that an operator answered. Reporting only, mode stays as it is."""
    updated = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id)
        .update({"human_handled": True, "updated_at": _now()}, synchronize_session=False)
    )
    if not updated:
        raise ConversationNotFound(f"Conversation {conversation_id} not found")
    return _reload(db, conversation_id)


@dataclass
class ConversationSummary:
    conversation: Conversation
    message_count: int
    last_message: Optional[str]
    last_message_direction: Optional[str]


def list_conversation_summaries(db: Session, tenant_id: int) -> list[ConversationSummary]:
    """Live conversations of a tenant, most recently updated first."""
    conversations = (
        db.query(Conversation)
        .filter(Conversation.tenant_id == tenant_id, Conversation.deleted_at.is_(None))
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        .all()
    )
    if not conversations:
        return []

    ids = [c.id for c in conversations]
    stats = (
        db.query(Message.conversation_id, func.count(Message.id), func.max(Message.id))
        .filter(Message.conversation_id.in_(ids))
        .group_by(Message.conversation_id)
        .all()
    )
    counts = {conversation_id: count for conversation_id, count, _ in stats}
    last_ids = [last_id for _, _, last_id in stats]
    last_messages = {}
    if last_ids:
        for message in db.query(Message).filter(Message.id.in_(last_ids)).all():
            last_messages[message.conversation_id] = message

    summaries = []
    for conversation in conversations:
        last = last_messages.get(conversation.id)
        summaries.append(
            ConversationSummary(
                conversation=conversation,
                message_count=counts.get(conversation.id, 0),
                last_message=last.body if last else None,
                last_message_direction=last.direction if last else None,
            )
        )
    return summaries
