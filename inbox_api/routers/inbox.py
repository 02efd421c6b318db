from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inbox_api.database import get_db
from inbox_api.dependencies import get_current_tenant
from inbox_api.schemas.inbox import InboxSendRequest, InboxSendResponse
from inbox_api.services.operator_service import send_to_phone
from inbox_api.services.tenant_service import TenantRecord

router = APIRouter(prefix="/inbox", tags=["inbox"])


@router.post("/send", response_model=InboxSendResponse)
def send(
    request: InboxSendRequest,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    """Start or continue a conversation from the inbox."""
    sent = send_to_phone(db, tenant, request.phone_number, request.message)
    return InboxSendResponse(
        delivered=sent.delivered,
        conversation_id=sent.conversation.id,
        message_id=sent.message.id,
    )
