from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inbox_api.database import get_db
from inbox_api.dependencies import get_current_tenant, get_flow_sessions
from inbox_api.logging_config import get_logger
from inbox_api.schemas.conversation import (
    ConversationActionResponse,
    ConversationResponse,
    ConversationSummaryResponse,
    DeleteResponse,
    ReplyRequest,
    ReplyResponse,
)
from inbox_api.schemas.message import LocationResponse, MessagePageResponse, MessageResponse
from inbox_api.services.conversation_service import get_owned_conversation, list_conversation_summaries
from inbox_api.services.errors import TenantOwnershipMismatch
from inbox_api.services.flow_service import FlowSessions
from inbox_api.services.message_service import (
    get_message,
    get_message_locations,
    get_messages,
    parse_page_params,
)
from inbox_api.services.operator_service import delete_conversation, reset_to_bot, send_operator_reply
from inbox_api.services.tenant_service import TenantRecord

logger = get_logger("conversations")

router = APIRouter(prefix="/api", tags=["conversations"])


@router.get("/conversations", response_model=list[ConversationSummaryResponse])
def list_conversations(
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    summaries = list_conversation_summaries(db, tenant.id)
    return [
        ConversationSummaryResponse(
            **ConversationResponse.model_validate(s.conversation).model_dump(),
            message_count=s.message_count,
            last_message=s.last_message,
            last_message_direction=s.last_message_direction,
        )
        for s in summaries
    ]


@router.get("/conversations/{conversation_id}/messages", response_model=MessagePageResponse)
def list_messages(
    conversation_id: int,
    limit: Optional[str] = Query(default=None),
    before_id: Optional[str] = Query(default=None, alias="beforeId"),
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    """Newest page by default; pass beforeId=<oldestMessageId> to load older messages."""
    page_limit, cursor = parse_page_params(limit, before_id)
    get_owned_conversation(db, tenant.id, conversation_id)
    page = get_messages(db, conversation_id, limit=page_limit, before_id=cursor)
    return MessagePageResponse(
        messages=[MessageResponse.model_validate(m) for m in page.messages],
        has_more=page.has_more,
        oldest_message_id=page.oldest_message_id,
        total=page.total,
        limit=page.limit,
        before_id=page.before_id,
    )


@router.get("/conversations/{conversation_id}/locations", response_model=list[LocationResponse])
def list_locations(
    conversation_id: int,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    get_owned_conversation(db, tenant.id, conversation_id)
    return get_message_locations(db, conversation_id)


@router.post("/conversations/{conversation_id}/reply", response_model=ReplyResponse)
def reply(
    conversation_id: int,
    request: ReplyRequest,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    """Operator reply. Puts the conversation in HUMAN mode before sending."""
    sent = send_operator_reply(db, tenant, conversation_id, request.text)
    return ReplyResponse(delivered=sent.delivered, message=MessageResponse.model_validate(sent.message))


@router.post("/conversations/{conversation_id}/reset-bot", response_model=ConversationActionResponse)
def reset_bot(
    conversation_id: int,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
    sessions: FlowSessions = Depends(get_flow_sessions),
):
    conversation = reset_to_bot(db, tenant, conversation_id, sessions)
    return ConversationActionResponse(conversation=ConversationResponse.model_validate(conversation))


@router.delete("/conversations/{conversation_id}", response_model=DeleteResponse)
def remove_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
    sessions: FlowSessions = Depends(get_flow_sessions),
):
    delete_conversation(db, tenant, conversation_id, sessions)
    logger.info(f"Conversation {conversation_id} deleted by operator")
    return DeleteResponse(message="Conversation deleted")


@router.get("/messages/{message_id}", response_model=MessageResponse)
def read_message(
    message_id: int,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    message = get_message(db, message_id)
    try:
        get_owned_conversation(db, tenant.id, message.conversation_id, include_deleted=True)
    except TenantOwnershipMismatch:
        raise TenantOwnershipMismatch("Message does not belong to this tenant") from None
    return message
