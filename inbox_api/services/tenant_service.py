"""Tenant resolution from request hosts and tenant store reads."""

import re
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from inbox_api.config import settings
from inbox_api.logging_config import get_logger
from inbox_api.models import Tenant
from inbox_api.services.errors import InvalidSubdomain, MissingHost

logger = get_logger("tenant_service")

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}
NON_TENANT_LABELS = {"localhost", "127", "0", "0.0.0.0"}
_SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


@dataclass(frozen=True)
class TenantRecord:
    """Immutable snapshot of a tenant row, safe to share across requests."""

    id: int
    slug: str
    name: str
    provider_account_id: Optional[str] = None
    provider_auth_secret: Optional[str] = field(default=None, repr=False)
    sender_address: Optional[str] = None
    environment: str = "sandbox"

    @classmethod
    def from_model(cls, tenant: Tenant) -> "TenantRecord":
        return cls(
            id=tenant.id,
            slug=tenant.slug,
            name=tenant.name,
            provider_account_id=tenant.provider_account_id or None,
            provider_auth_secret=tenant.provider_auth_secret or None,
            sender_address=tenant.sender_address or None,
            environment=tenant.environment or "sandbox",
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.provider_account_id and self.provider_auth_secret)

    def credential_flags(self) -> dict:
        """Presence of each credential, for logs and listings. Never the values."""
        return {
            "has_account_id": bool(self.provider_account_id),
            "has_auth_secret": bool(self.provider_auth_secret),
            "has_sender_address": bool(self.sender_address),
        }


def _strip_port(host: str) -> str:
    host = host.strip()
    if host.startswith("["):
        # [::1]:8000
        return host[1:].split("]", 1)[0].lower()
    return host.split(":", 1)[0].lower()


def is_loopback_host(host: str) -> bool:
    hostname = _strip_port(host)
    return hostname in LOOPBACK_HOSTS or hostname.startswith("localhost")


def extract_slug(host: str) -> Optional[str]:
    """
    Take the tenant slug from the first label of the host.

    - "acme.inbox.example.com" -> "acme"
    - "acme.localhost:3333" -> "acme"
    - "localhost:3333" -> None (no subdomain)
    """
    hostname = _strip_port(host)
    if not hostname:
        return None

    labels = hostname.split(".")
    if len(labels) < 2:
        return None

    candidate = labels[0].strip()
    if not candidate or candidate in NON_TENANT_LABELS:
        return None
    if not _SLUG_PATTERN.match(candidate):
        return None
    return candidate


def resolve_tenant_slug(
    host: Optional[str],
    forwarded_host: Optional[str] = None,
    default_slug: Optional[str] = None,
) -> str:
    """Resolve the tenant slug for a request. X-Forwarded-Host wins over Host."""
    raw = forwarded_host or host
    if raw:
        # Proxies may append hosts: "a.example.com, b.internal"
        raw = raw.split(",", 1)[0].strip()
    if not raw:
        raise MissingHost("Host header is required to identify the tenant")

    slug = extract_slug(raw)
    if slug:
        if settings.debug_tenant:
            logger.info(
                "Tenant resolved",
                extra={"context": {"host": raw, "slug": slug, "forwarded": bool(forwarded_host)}},
            )
        return slug

    if is_loopback_host(raw):
        fallback = default_slug or settings.default_tenant_slug
        logger.debug(f"Loopback host {raw}, using default tenant {fallback}")
        return fallback

    logger.warning(
        "Invalid tenant subdomain",
        extra={"context": {"host": raw, "source": "x-forwarded-host" if forwarded_host else "host"}},
    )
    raise InvalidSubdomain(f"Invalid subdomain in host '{raw}'. Expected format: <tenant>.<domain>")


def get_tenant_by_slug(db: Session, slug: str) -> Optional[TenantRecord]:
    tenant = db.query(Tenant).filter(Tenant.slug == slug).first()
    return TenantRecord.from_model(tenant) if tenant else None


def list_tenants(db: Session) -> list[TenantRecord]:
    return [TenantRecord.from_model(t) for t in db.query(Tenant).order_by(Tenant.slug).all()]
