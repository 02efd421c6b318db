from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inbox_api.logging_config import get_logger
from inbox_api.models import Conversation
from inbox_api.schemas.webhook import TwilioWebhookForm
from inbox_api.services.conversation_service import (
    get_or_create_conversation,
    restore_conversation,
    set_mode,
)
from inbox_api.services.errors import InboxError, TransportFailure
from inbox_api.services.flow_service import FlowOutcome, FlowSessions, get_flow, select_policy
from inbox_api.services.message_service import save_message
from inbox_api.services.result import Result
from inbox_api.services.state_machine import (
    InboundAction,
    MessageDirection,
    inbound_action,
    needs_restore,
    parse_mode,
)
from inbox_api.services.tenant_service import TenantRecord
from inbox_api.services.twilio_service import send_message

logger = get_logger("inbound_service")


@dataclass
class InboundResult:
    conversation_id: int
    message_id: int
    action: InboundAction
    restored: bool = False
    flow: Optional[Result[FlowOutcome]] = None


def store_inbound(db: Session, tenant: TenantRecord, form: TwilioWebhookForm) -> tuple[Conversation, int, bool]:
    """Upsert the conversation, restore it if deleted and append the inbound message."""
    conversation = get_or_create_conversation(db, tenant.id, form.from_)
    restored = False
    if needs_restore(conversation.deleted_at):
        conversation = restore_conversation(db, conversation.id)
        restored = True

    message = save_message(
        db,
        conversation.id,
        MessageDirection.INBOUND,
        form.stored_body,
        provider_message_id=form.message_sid,
        media_url=form.media_url if form.has_media else None,
        media_type=form.media_content_type if form.has_media else None,
        latitude=form.latitude,
        longitude=form.longitude,
    )
    return conversation, message.id, restored


def run_bot_flow(
    db: Session,
    tenant: TenantRecord,
    conversation: Conversation,
    form: TwilioWebhookForm,
    sessions: FlowSessions,
) -> Result[FlowOutcome]:
    """
    Run the tenant's flow and apply its outcome.

    The mode change is committed before any reply goes out. Each reply is stored
    and committed right after its send, even when the send fails, so replies
    already delivered survive a later failure. Nothing raised here reaches the
    webhook.
    """
    policy = select_policy(tenant.slug)
    try:
        outcome = get_flow(policy, sessions).handle(form, conversation, tenant)

        if outcome.mode is not None:
            set_mode(db, conversation.id, outcome.mode)
            db.commit()
            logger.info(
                "Flow changed conversation mode",
                extra={"context": {"conversation_id": conversation.id, "mode": outcome.mode.value, "policy": policy.value}},
            )

        for reply in outcome.replies:
            try:
                send_message(conversation.phone_number, reply, tenant)
            except TransportFailure as e:
                logger.error(
                    f"Bot reply not delivered: {e.message}",
                    extra={"context": {"conversation_id": conversation.id, "tenant": tenant.slug}},
                )
            save_message(db, conversation.id, MessageDirection.OUTBOUND, reply)
            db.commit()

        return Result.success(outcome)
    except InboxError as e:
        db.rollback()
        logger.error(f"Bot flow failed: {e.message}", extra={"context": {"conversation_id": conversation.id}})
        return Result.from_error(e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Bot flow store error: {e}", extra={"context": {"conversation_id": conversation.id}})
        return Result.failure(str(e), "store_error", status_code=503)
    except Exception as e:
        db.rollback()
        logger.error(
            f"Bot flow crashed: {e}",
            extra={"context": {"conversation_id": conversation.id, "tenant": tenant.slug}},
            exc_info=True,
        )
        return Result.failure(str(e), "flow_error")


def handle_inbound(
    db: Session,
    tenant: TenantRecord,
    form: TwilioWebhookForm,
    sessions: FlowSessions,
) -> InboundResult:
    """
    Persist an inbound message and route it by conversation mode.

    The inbound message is committed before the flow runs, so a failing flow
    never loses it.
    """
    conversation, message_id, restored = store_inbound(db, tenant, form)
    db.commit()

    if restored:
        # A restored conversation starts the flow from the top
        sessions.discard(tenant.id, conversation.phone_number)

    action = inbound_action(parse_mode(conversation.mode))
    logger.info(
        "Inbound message stored",
        extra={
            "context": {
                "tenant": tenant.slug,
                "conversation_id": conversation.id,
                "message_id": message_id,
                "mode": conversation.mode,
                "restored": restored,
                "action": action.value,
            }
        },
    )

    result = InboundResult(conversation_id=conversation.id, message_id=message_id, action=action, restored=restored)
    if action == InboundAction.RUN_FLOW:
        result.flow = run_bot_flow(db, tenant, conversation, form, sessions)
    return result
