from dataclasses import dataclass, field
from typing import Optional

import httpx

from inbox_api.config import settings
from inbox_api.logging_config import get_logger
from inbox_api.services.errors import TransportFailure
from inbox_api.services.tenant_service import TenantRecord

logger = get_logger("twilio_service")


@dataclass(frozen=True)
class TwilioCredentials:
    account_sid: Optional[str]
    auth_token: Optional[str] = field(default=None, repr=False)
    sender: Optional[str] = None
    source: str = "settings"  # tenant, settings, mixed

    @property
    def complete(self) -> bool:
        return bool(self.account_sid and self.auth_token)


def resolve_credentials(tenant: Optional[TenantRecord] = None) -> TwilioCredentials:
    """Tenant credentials, each field falling back to the process-wide defaults."""
    tenant_values = (
        (tenant.provider_account_id, tenant.provider_auth_secret, tenant.sender_address)
        if tenant
        else (None, None, None)
    )
    defaults = (settings.twilio_account_sid, settings.twilio_auth_token, settings.whatsapp_from)
    resolved = [own or default or None for own, default in zip(tenant_values, defaults)]

    own_count = sum(1 for value in tenant_values if value)
    if own_count == 3:
        source = "tenant"
    elif own_count == 0:
        source = "settings"
    else:
        source = "mixed"

    return TwilioCredentials(account_sid=resolved[0], auth_token=resolved[1], sender=resolved[2], source=source)


def _use_mock(credentials: TwilioCredentials, tenant_slug: Optional[str]) -> bool:
    if settings.enable_twilio_mock:
        return True
    if credentials.complete:
        return False
    if settings.is_production:
        raise TransportFailure(f"Twilio credentials are not configured (tenant: {tenant_slug})")
    logger.warning(f"No Twilio credentials for tenant {tenant_slug}, simulating send")
    return True


def _post_message(credentials: TwilioCredentials, data: dict, tenant_slug: Optional[str]) -> str:
    url = f"{settings.twilio_api_base_url.rstrip('/')}/2010-04-01/Accounts/{credentials.account_sid}/Messages.json"
    try:
        with httpx.Client(timeout=settings.twilio_timeout_seconds) as client:
            response = client.post(url, data=data, auth=(credentials.account_sid, credentials.auth_token))
    except httpx.HTTPError as e:
        logger.error(f"Twilio request failed: {e}", extra={"context": {"tenant": tenant_slug, "to": data["To"]}})
        raise TransportFailure(f"Twilio request failed: {e}") from e

    if response.status_code >= 400:
        logger.error(
            "Twilio rejected message",
            extra={
                "context": {
                    "tenant": tenant_slug,
                    "to": data["To"],
                    "status": response.status_code,
                    "body": response.text[:200],
                }
            },
        )
        raise TransportFailure(f"Twilio returned HTTP {response.status_code}")

    try:
        sid = response.json().get("sid", "")
    except ValueError:
        # Accepted but unreadable body; the message already went out
        logger.warning(
            "Twilio accepted message without a readable sid",
            extra={"context": {"tenant": tenant_slug, "to": data["To"], "status": response.status_code}},
        )
        sid = ""
    logger.info(
        "Twilio message sent",
        extra={"context": {"tenant": tenant_slug, "to": data["To"], "sid": sid, "credentials": credentials.source}},
    )
    return sid


def _send(to: str, data: dict, tenant: Optional[TenantRecord]) -> bool:
    tenant_slug = tenant.slug if tenant else None
    credentials = resolve_credentials(tenant)

    if _use_mock(credentials, tenant_slug):
        logger.info(
            "[MOCK SEND]",
            extra={"context": {"tenant": tenant_slug, "to": to, "body": data.get("Body"), "media": data.get("MediaUrl")}},
        )
        return False

    if not credentials.sender:
        raise TransportFailure(f"WhatsApp sender is not configured (tenant: {tenant_slug})")

    _post_message(credentials, {"To": to, "From": credentials.sender, **data}, tenant_slug)
    return True


def send_message(to: str, body: str, tenant: Optional[TenantRecord] = None) -> bool:
    """Send a text message. True when Twilio accepted it, False when simulated."""
    return _send(to, {"Body": body}, tenant)


def send_media_message(
    to: str,
    media_url: str,
    media_type: Optional[str] = None,
    body: Optional[str] = None,
    tenant: Optional[TenantRecord] = None,
) -> bool:
    """Send a media message with an optional caption."""
    data = {"MediaUrl": media_url}
    if body:
        data["Body"] = body
    logger.debug(f"Sending media to {to}: type={media_type}")
    return _send(to, data, tenant)
