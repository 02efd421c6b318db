from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import Session

from inbox_api.database import get_db
from inbox_api.dependencies import get_current_tenant, get_flow_sessions
from inbox_api.logging_config import get_logger
from inbox_api.schemas.webhook import TwilioWebhookForm
from inbox_api.services.errors import InvalidPayload
from inbox_api.services.flow_service import FlowSessions
from inbox_api.services.inbound_service import handle_inbound
from inbox_api.services.tenant_service import TenantRecord

logger = get_logger("webhook")

router = APIRouter(tags=["webhook"])

EMPTY_TWIML = "<Response></Response>"


async def _parse_twilio_form(request: Request) -> TwilioWebhookForm:
    try:
        form = await request.form()
    except Exception as e:
        raise InvalidPayload(f"Unreadable form body: {e}") from e

    fields = {key: value for key, value in form.items() if isinstance(value, str)}
    try:
        return TwilioWebhookForm.model_validate(fields)
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        logger.warning(f"Rejected webhook payload: {errors}")
        raise InvalidPayload(f"Invalid webhook payload: {errors}") from e


@router.post("/webhook/whatsapp")
async def whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
    sessions: FlowSessions = Depends(get_flow_sessions),
):
    """Incoming WhatsApp message from Twilio. Acknowledged once it is stored."""
    form = await _parse_twilio_form(request)
    result = await run_in_threadpool(handle_inbound, db, tenant, form, sessions)

    if result.flow is not None and not result.flow.ok:
        logger.warning(
            "Inbound stored but bot flow failed",
            extra={"context": {"conversation_id": result.conversation_id, "error": result.flow.error_code, "retryable": result.flow.retryable}},
        )
    return Response(content=EMPTY_TWIML, media_type="application/xml")


@router.get("/webhook/whatsapp")
async def whatsapp_webhook_check(tenant: TenantRecord = Depends(get_current_tenant)):
    """Reachability check for the provider console; real webhooks must use POST."""
    return {"ok": True, "message": "Use POST with form-encoded payload", "tenant": tenant.slug}
