import json
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, field_validator

from rfpflow.schemas.vendor import VendorSummary


class VendorReplyBody(BaseModel):
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None

    def raw_email(self) -> str:
        """Plain text wins over html, as mail-ingestion webhooks send both."""
        if self.text and self.text.strip():
            return self.text
        return self.html or ""


class InboundEmailBody(VendorReplyBody):
    """A reply routed by the correlation token in its subject."""


class ProposalResponse(BaseModel):
    id: int
    rfp_id: int
    vendor_id: int
    raw_email: str
    parsed_structured: Optional[dict[str, Any]] = None
    total_price: Optional[float] = None
    delivery_days: Optional[float] = None
    payment_terms: Optional[str] = None
    warranty: Optional[str] = None
    score_overall: Optional[float] = None
    score_breakdown: Optional[dict[str, Optional[float]]] = None
    ai_summary: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    vendor: Optional[VendorSummary] = None

    class Config:
        from_attributes = True

    @field_validator("parsed_structured", "score_breakdown", mode="before")
    @classmethod
    def parse_json_object(cls, v: Any) -> Optional[dict]:
        if v is None:
            return None
        if isinstance(v, dict):
            return v
        if isinstance(v, str):
            try:
                out = json.loads(v)
                return out if isinstance(out, dict) else None
            except (TypeError, json.JSONDecodeError):
                return None
        return None
