import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rfpflow.database import get_db
from rfpflow.errors import ConflictError, NotFoundError, ValidationError
from rfpflow.models.vendor import Vendor
from rfpflow.schemas.vendor import VendorCreate, VendorResponse
from rfpflow.services.contact_checks import normalize_email, verify_email, verify_phone

router = APIRouter(prefix="/vendors", tags=["vendors"])
logger = logging.getLogger(__name__)

_DUPLICATE_EMAIL = "Vendor with this email already exists"


@router.post("", response_model=VendorResponse, status_code=201)
def create_vendor(payload: VendorCreate, db: Session = Depends(get_db)):
    name = (payload.name or "").strip()
    email = normalize_email(payload.email)
    phone = (payload.phone or "").strip()
    if not name or not email or not phone:
        raise ValidationError("Missing required field(s): name, email and phone are required")
    if not verify_email(email):
        raise ValidationError("email is not a valid address")
    if not verify_phone(phone):
        raise ValidationError("phone is not a valid number")
    if db.query(Vendor).filter(Vendor.email == email).first():
        raise ConflictError(_DUPLICATE_EMAIL)
    vendor = Vendor(name=name, email=email, phone=phone)
    db.add(vendor)
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent create for the same email.
        db.rollback()
        raise ConflictError(_DUPLICATE_EMAIL) from e
    db.refresh(vendor)
    logger.info("Created vendor id=%s email=%s", vendor.id, vendor.email)
    return vendor


@router.get("", response_model=list[VendorResponse])
def list_vendors(db: Session = Depends(get_db)):
    """All vendors, newest first."""
    return db.query(Vendor).order_by(Vendor.created_at.desc(), Vendor.id.desc()).all()


@router.delete("/{vendor_id}")
def delete_vendor(vendor_id: int, db: Session = Depends(get_db)):
    """Delete a vendor. Invitations and proposals that reference it are left as they are."""
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise NotFoundError("Vendor not found")
    db.delete(vendor)
    db.commit()
    logger.info("Deleted vendor id=%s", vendor_id)
    return {"status": "ok", "message": "Vendor deleted successfully"}
