from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inbox_api.database import upsert_insert
from inbox_api.logging_config import get_logger
from inbox_api.models import Contact
from inbox_api.services.errors import ContactNotFound, InvalidPayload, TenantOwnershipMismatch

logger = get_logger("contact_service")

CONTACT_FIELDS = ("name", "delivery_address", "delivery_latitude", "delivery_longitude", "notes")


def list_contacts(db: Session, tenant_id: int) -> list[Contact]:
    return (
        db.query(Contact)
        .filter(Contact.tenant_id == tenant_id)
        .order_by(Contact.updated_at.desc(), Contact.id.desc())
        .all()
    )


def get_owned_contact(db: Session, tenant_id: int, contact_id: int) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if contact is None:
        raise ContactNotFound(f"Contact {contact_id} not found")
    if contact.tenant_id != tenant_id:
        raise TenantOwnershipMismatch("Contact does not belong to this tenant")
    return contact


def _find_by_phone(db: Session, tenant_id: int, phone_number: str) -> Optional[Contact]:
    return (
        db.query(Contact)
        .populate_existing()
        .filter(Contact.tenant_id == tenant_id, Contact.phone_number == phone_number)
        .first()
    )


def upsert_contact(db: Session, tenant_id: int, phone_number: str, **fields) -> Contact:
    """
    Create the contact or fill in the provided fields in a single statement.

    None values keep what is stored. Concurrent upserts of the same phone land
    on one row.
    """
    now = datetime.now(timezone.utc)
    values = {name: fields[name] for name in CONTACT_FIELDS if fields.get(name) is not None}
    insert = upsert_insert(db)

    if insert is None:
        contact = _find_by_phone(db, tenant_id, phone_number)
        if contact is None:
            try:
                with db.begin_nested():
                    db.add(Contact(tenant_id=tenant_id, phone_number=phone_number, created_at=now, updated_at=now))
            except IntegrityError:
                logger.info(f"Concurrent contact create for tenant={tenant_id}, reusing row")
            contact = _find_by_phone(db, tenant_id, phone_number)
        for name, value in values.items():
            setattr(contact, name, value)
        contact.updated_at = now
        db.flush()
        return contact

    stmt = insert(Contact).values(
        tenant_id=tenant_id,
        phone_number=phone_number,
        created_at=now,
        updated_at=now,
        **values,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["tenant_id", "phone_number"],
        set_={"updated_at": now, **{name: stmt.excluded[name] for name in values}},
    )
    db.execute(stmt)
    return _find_by_phone(db, tenant_id, phone_number)


def update_contact(db: Session, tenant_id: int, contact_id: int, changes: dict) -> Contact:
    """Partial update; keys present in ``changes`` are written, including None."""
    updates = {name: value for name, value in changes.items() if name in CONTACT_FIELDS}
    if not updates:
        raise InvalidPayload("No fields to update")

    contact = get_owned_contact(db, tenant_id, contact_id)
    for name, value in updates.items():
        setattr(contact, name, value)
    contact.updated_at = datetime.now(timezone.utc)
    db.flush()
    return contact


def delete_contact(db: Session, tenant_id: int, contact_id: int) -> None:
    contact = get_owned_contact(db, tenant_id, contact_id)
    db.delete(contact)
    db.flush()
    logger.info(f"Contact {contact_id} deleted for tenant {tenant_id}")
