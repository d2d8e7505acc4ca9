from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class VendorCreate(BaseModel):
    # Optional here so missing fields surface as one "Missing required field(s)" error.
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class VendorSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class VendorResponse(VendorSummary):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
