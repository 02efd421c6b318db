from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inbox_api.database import get_db
from inbox_api.dependencies import get_current_tenant
from inbox_api.schemas.contact import ContactResponse, ContactUpdate, ContactUpsert
from inbox_api.services import contact_service
from inbox_api.services.tenant_service import TenantRecord

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


@router.get("", response_model=list[ContactResponse])
def list_contacts(db: Session = Depends(get_db), tenant: TenantRecord = Depends(get_current_tenant)):
    return contact_service.list_contacts(db, tenant.id)


@router.get("/{contact_id}", response_model=ContactResponse)
def get_contact(contact_id: int, db: Session = Depends(get_db), tenant: TenantRecord = Depends(get_current_tenant)):
    return contact_service.get_owned_contact(db, tenant.id, contact_id)


@router.post("", response_model=ContactResponse)
def upsert_contact(
    request: ContactUpsert,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    """Create the contact for a phone number, or fill in the fields sent."""
    contact = contact_service.upsert_contact(
        db,
        tenant.id,
        request.phone_number.strip(),
        **request.model_dump(exclude={"phone_number"}),
    )
    db.commit()
    db.refresh(contact)
    return contact


@router.patch("/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: int,
    request: ContactUpdate,
    db: Session = Depends(get_db),
    tenant: TenantRecord = Depends(get_current_tenant),
):
    contact = contact_service.update_contact(db, tenant.id, contact_id, request.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(contact)
    return contact


@router.delete("/{contact_id}")
def delete_contact(contact_id: int, db: Session = Depends(get_db), tenant: TenantRecord = Depends(get_current_tenant)):
    contact_service.delete_contact(db, tenant.id, contact_id)
    db.commit()
    return {"success": True}
