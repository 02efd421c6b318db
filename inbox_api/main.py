from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from inbox_api.config import settings
from inbox_api.database import SessionLocal, get_db, init_db
from inbox_api.logging_config import get_logger, setup_logging
from inbox_api.models import Contact, Conversation, Message, Tenant
from inbox_api.routers import contacts, conversations, inbox, tenants, webhook
from inbox_api.services.errors import InboxError, InvalidPayload, StoreUnavailable
from inbox_api.services.flow_service import FlowSessions
from inbox_api.services.tenant_cache import TenantCache

setup_logging(settings.log_level)
logger = get_logger("main")

app = FastAPI(
    title="Inbox API",
    description="Multi-tenant WhatsApp inbox backend",
    version="0.1.0",
)

app.state.tenant_cache = TenantCache(SessionLocal, max_entries=settings.tenant_cache_max_entries)
app.state.flow_sessions = FlowSessions()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.cors_allow_origin_regex or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(conversations.router)
app.include_router(contacts.router)
app.include_router(inbox.router)
app.include_router(tenants.router)


def _error_response(error: InboxError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content={"detail": error.message, "code": error.code})


@app.exception_handler(InboxError)
async def inbox_error_handler(request: Request, exc: InboxError):
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code}: {exc.message}",
            extra={"context": {"path": request.url.path, "method": request.method}},
        )
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return _error_response(InvalidPayload(errors))


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
@app.exception_handler(PoolTimeoutError)
async def store_error_handler(request: Request, exc: Exception):
    logger.error(
        f"Store unavailable: {exc}",
        extra={"context": {"path": request.url.path, "method": request.method}},
    )
    return _error_response(StoreUnavailable("Store is unavailable, retry later"))


@app.on_event("startup")
def startup() -> None:
    try:
        init_db()
    except (OperationalError, InterfaceError) as e:
        logger.error(f"Schema bootstrap failed, store unreachable: {e}")
        return
    try:
        count = app.state.tenant_cache.initialize()
        logger.info(f"Startup complete, {count} tenants cached")
    except StoreUnavailable as e:
        logger.error(f"Tenant cache not initialized at startup, will fill on demand: {e.message}")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "tenants": db.query(Tenant).count(),
        "conversations": db.query(Conversation).count(),
        "messages": db.query(Message).count(),
        "contacts": db.query(Contact).count(),
        "tenant_cache": len(app.state.tenant_cache),
    }
