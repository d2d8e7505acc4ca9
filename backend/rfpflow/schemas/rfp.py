from datetime import datetime
from typing import Optional, List, Any
from pydantic import BaseModel, Field, field_validator

from rfpflow.models.base import INT_COLUMN_MAX
from rfpflow.schemas.proposal import ProposalResponse
from rfpflow.schemas.vendor import VendorSummary


class RFPDraftRequest(BaseModel):
    description: Optional[str] = None
    title: Optional[str] = None


class DraftLineItem(BaseModel):
    name: str
    quantity: Optional[int] = None
    spec: Optional[str] = None


class RFPDraftResponse(BaseModel):
    description_nlp: str
    title: str
    budget: Optional[float] = None
    delivery_days: Optional[int] = None
    payment_terms: Optional[str] = None
    warranty: Optional[str] = None
    line_items: List[DraftLineItem] = []
    summary: str
    raw: dict[str, Any] = {}


class LineItem(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(ge=1, le=INT_COLUMN_MAX)
    spec: str = Field(min_length=1)

    class Config:
        from_attributes = True

    @field_validator("name", "spec", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class RFPBase(BaseModel):
    title: str
    description_nlp: str
    budget: Optional[float] = None
    delivery_days: Optional[int] = Field(default=None, le=INT_COLUMN_MAX)
    payment_terms: Optional[str] = None
    warranty: Optional[str] = None


class RFPCreate(RFPBase):
    line_items: List[LineItem] = []

    @field_validator("title", "description_nlp")
    @classmethod
    def required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("payment_terms", "warranty")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class InvitedVendorResponse(BaseModel):
    vendor_id: int
    status: str
    sent_at: Optional[datetime] = None
    vendor: Optional[VendorSummary] = None  # None when the vendor has since been deleted


class RFPResponse(RFPBase):
    id: int
    line_items: List[LineItem] = []
    invited_vendors: List[InvitedVendorResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RFPListItem(RFPResponse):
    proposal_count: int = 0


class RecommendationResponse(BaseModel):
    proposal_id: int
    rank: int
    overall_score: Optional[float] = None  # 0-1
    reason: str


class RFPDetailResponse(BaseModel):
    rfp: RFPResponse
    proposals: List[ProposalResponse] = []
    recommendations: List[RecommendationResponse] = []


class InviteVendorsRequest(BaseModel):
    vendor_ids: List[int] = []


class InvitationOutcomeResponse(BaseModel):
    vendor_id: int
    email: Optional[str] = None
    status: str  # SENT | NOT_FOUND


class InviteVendorsResponse(BaseModel):
    rfp_id: int
    invited_vendors: List[InvitationOutcomeResponse] = []
