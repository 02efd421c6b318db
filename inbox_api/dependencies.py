from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from inbox_api.config import settings
from inbox_api.services.flow_service import FlowSessions
from inbox_api.services.tenant_cache import TenantCache
from inbox_api.services.tenant_service import TenantRecord, resolve_tenant_slug


def get_tenant_cache(request: Request) -> TenantCache:
    return request.app.state.tenant_cache


def get_flow_sessions(request: Request) -> FlowSessions:
    return request.app.state.flow_sessions


def get_current_tenant(
    request: Request,
    cache: TenantCache = Depends(get_tenant_cache),
) -> TenantRecord:
    """Resolve the request's tenant from its host headers."""
    slug = resolve_tenant_slug(
        request.headers.get("host"),
        request.headers.get("x-forwarded-host"),
    )
    tenant = cache.get(slug)
    request.state.tenant = tenant
    return tenant


def require_admin_token(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")) -> None:
    if not settings.admin_token:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not x_admin_token or x_admin_token != settings.admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")
