from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from inbox_api.models import Message
from inbox_api.services.errors import InvalidCursor, MessageNotFound
from inbox_api.services.state_machine import MessageDirection

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def save_message(
    db: Session,
    conversation_id: int,
    direction: MessageDirection,
    body: str,
    provider_message_id: Optional[str] = None,
    media_url: Optional[str] = None,
    media_type: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Message:
    """Append a message. Messages are never updated afterwards."""
    message = Message(
        conversation_id=conversation_id,
        direction=direction.value,
        body=body,
        provider_message_id=provider_message_id or None,
        media_url=media_url or None,
        media_type=media_type or None,
        latitude=latitude,
        longitude=longitude,
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    db.flush()
    return message


def _parse_positive_int(raw, name: str) -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InvalidCursor(f"{name} must be an integer, got '{raw}'")
    if value < 1:
        raise InvalidCursor(f"{name} must be a positive integer")
    return value


def parse_page_params(limit=None, before_id=None) -> Tuple[int, Optional[int]]:
    """Validate raw query values. Limits above the maximum are clamped."""
    parsed_limit = _parse_positive_int(limit, "limit")
    if parsed_limit is None:
        parsed_limit = DEFAULT_PAGE_SIZE
    return min(parsed_limit, MAX_PAGE_SIZE), _parse_positive_int(before_id, "beforeId")


@dataclass
class MessagePage:
    messages: list[Message]
    has_more: bool
    oldest_message_id: Optional[int]
    total: int
    limit: int
    before_id: Optional[int] = None


def get_messages(
    db: Session,
    conversation_id: int,
    limit: int = DEFAULT_PAGE_SIZE,
    before_id: Optional[int] = None,
) -> MessagePage:
    """
    One page of a conversation's messages in display (ascending) order.

    The cursor is the message id, so rows inserted while a client pages
    backwards land above the first page and never shift older pages.
    """
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    query = db.query(Message).filter(Message.conversation_id == conversation_id)
    if before_id is not None:
        query = query.filter(Message.id < before_id)
    newest_first = query.order_by(Message.id.desc()).limit(limit).all()
    messages = list(reversed(newest_first))

    total = db.query(Message).filter(Message.conversation_id == conversation_id).count()

    if before_id is None:
        has_more = total > len(messages)
    else:
        has_more = len(messages) == limit

    return MessagePage(
        messages=messages,
        has_more=has_more,
        oldest_message_id=messages[0].id if messages else None,
        total=total,
        limit=limit,
        before_id=before_id,
    )


def get_message(db: Session, message_id: int) -> Message:
    message = db.query(Message).filter(Message.id == message_id).first()
    if message is None:
        raise MessageNotFound(f"Message {message_id} not found")
    return message


def get_message_locations(db: Session, conversation_id: int) -> list[Message]:
    """Inbound messages that carried coordinates, newest first."""
    return (
        db.query(Message)
        .filter(
            Message.conversation_id == conversation_id,
            Message.direction == MessageDirection.INBOUND.value,
            Message.latitude.isnot(None),
            Message.longitude.isnot(None),
        )
        .order_by(Message.id.desc())
        .all()
    )
