from pydantic import BaseModel


class TenantResponse(BaseModel):
    id: int
    slug: str
    name: str
    environment: str
    has_account_id: bool
    has_auth_secret: bool
    has_sender_address: bool


class CacheStatusResponse(BaseModel):
    initialized: bool
    size: int
    tenants: list[TenantResponse]


class CacheRefreshResponse(BaseModel):
    success: bool = True
    count: int
