"""Read-through, bounded cache of tenants keyed by slug."""

import threading
from collections import OrderedDict
from typing import Callable, Optional

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from inbox_api.logging_config import get_logger
from inbox_api.services.errors import StoreUnavailable, TenantNotFound
from inbox_api.services.tenant_service import TenantRecord, get_tenant_by_slug, list_tenants

logger = get_logger("tenant_cache")

STORE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


class TenantCache:
    """
    Process-wide slug -> TenantRecord map.

    Lookups of cached slugs only take the lock for the dict read. A miss reads
    the store without holding the lock and then inserts the result, so a slow
    store never blocks requests for tenants that are already cached.
    Entries beyond ``max_entries`` are evicted oldest-first.
    """

    def __init__(self, session_factory: Callable[[], Session], max_entries: int = 1024):
        self._session_factory = session_factory
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, TenantRecord]" = OrderedDict()
        self._lock = threading.RLock()
        self._initialized = False

    def _read_store(self, reader):
        db = self._session_factory()
        try:
            return reader(db)
        except STORE_ERRORS as e:
            logger.error(f"Tenant store unavailable: {e}")
            raise StoreUnavailable("Tenant store is unavailable") from e
        finally:
            db.close()

    def _put(self, record: TenantRecord) -> None:
        with self._lock:
            self._entries[record.slug] = record
            self._entries.move_to_end(record.slug)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted tenant {evicted} from cache")

    def initialize(self) -> int:
        """Load every tenant once. Later calls are no-ops."""
        with self._lock:
            if self._initialized:
                return len(self._entries)

        records = self._read_store(list_tenants)
        with self._lock:
            if self._initialized:
                return len(self._entries)
            for record in records:
                self._put(record)
            self._initialized = True
            count = len(self._entries)

        logger.info(
            "Tenant cache initialized",
            extra={"context": {"count": count, "slugs": [r.slug for r in records]}},
        )
        return count

    def get(self, slug: str) -> TenantRecord:
        with self._lock:
            record = self._entries.get(slug)
        if record is not None:
            return record

        record = self._read_store(lambda db: get_tenant_by_slug(db, slug))
        if record is None:
            raise TenantNotFound(f"Tenant '{slug}' not found")

        self._put(record)
        logger.info(
            "Tenant loaded on cache miss",
            extra={"context": {"slug": slug, **record.credential_flags()}},
        )
        return record

    def refresh(self, slug: str) -> Optional[TenantRecord]:
        """Re-read one tenant. Drops it from the cache if it no longer exists."""
        record = self._read_store(lambda db: get_tenant_by_slug(db, slug))
        if record is None:
            with self._lock:
                self._entries.pop(slug, None)
            logger.info(f"Tenant {slug} removed from cache")
            return None
        self._put(record)
        return record

    def refresh_all(self) -> int:
        records = self._read_store(list_tenants)
        with self._lock:
            self._entries.clear()
            for record in records:
                self._put(record)
            self._initialized = True
            return len(self._entries)

    def tenants(self) -> list[TenantRecord]:
        with self._lock:
            return list(self._entries.values())

    def is_initialized(self) -> bool:
        with self._lock:
            return self._initialized

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._initialized = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, slug: str) -> bool:
        with self._lock:
            return slug in self._entries
