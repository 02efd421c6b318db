from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inbox_api.database import get_db
from inbox_api.dependencies import get_tenant_cache, require_admin_token
from inbox_api.logging_config import get_logger
from inbox_api.schemas.tenant import CacheRefreshResponse, CacheStatusResponse, TenantResponse
from inbox_api.services import tenant_service
from inbox_api.services.errors import TenantNotFound
from inbox_api.services.tenant_cache import TenantCache
from inbox_api.services.tenant_service import TenantRecord

logger = get_logger("tenants")

router = APIRouter(tags=["tenants"])


def _to_response(record: TenantRecord) -> TenantResponse:
    return TenantResponse(
        id=record.id,
        slug=record.slug,
        name=record.name,
        environment=record.environment,
        **record.credential_flags(),
    )


@router.get("/api/tenants", response_model=list[TenantResponse])
def list_tenants(db: Session = Depends(get_db)):
    """Tenant directory from the store. Credential presence only, never the values."""
    return [_to_response(t) for t in tenant_service.list_tenants(db)]


# === ADMIN ===


@router.get("/admin/tenants/cache", response_model=CacheStatusResponse, dependencies=[Depends(require_admin_token)])
def cache_status(cache: TenantCache = Depends(get_tenant_cache)):
    tenants = cache.tenants()
    return CacheStatusResponse(
        initialized=cache.is_initialized(),
        size=len(tenants),
        tenants=[_to_response(t) for t in tenants],
    )


@router.post("/admin/tenants/refresh", response_model=CacheRefreshResponse, dependencies=[Depends(require_admin_token)])
def refresh_all(cache: TenantCache = Depends(get_tenant_cache)):
    count = cache.refresh_all()
    logger.info(f"Tenant cache reloaded with {count} tenants")
    return CacheRefreshResponse(count=count)


@router.post(
    "/admin/tenants/{slug}/refresh",
    response_model=TenantResponse,
    dependencies=[Depends(require_admin_token)],
)
def refresh_one(slug: str, cache: TenantCache = Depends(get_tenant_cache)):
    record = cache.refresh(slug)
    if record is None:
        raise TenantNotFound(f"Tenant '{slug}' not found")
    return _to_response(record)
