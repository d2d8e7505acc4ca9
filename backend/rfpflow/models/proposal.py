from sqlalchemy import Column, Integer, Text, DateTime, Float, UniqueConstraint
from sqlalchemy.sql import func

from rfpflow.models.base import Base


class Proposal(Base):
    """A vendor's structured reply to an RFP. One row per (rfp_id, vendor_id)."""
    __tablename__ = "proposals"
    __table_args__ = (UniqueConstraint("rfp_id", "vendor_id", name="uq_proposals_rfp_vendor"),)

    id = Column(Integer, primary_key=True, index=True)
    # Weak references: deleting an RFP or vendor leaves the proposal in place.
    rfp_id = Column(Integer, nullable=False, index=True)
    vendor_id = Column(Integer, nullable=False, index=True)
    raw_email = Column(Text, nullable=False)
    parsed_structured = Column(Text, nullable=True)  # JSON object returned by the extractor
    total_price = Column(Float, nullable=True)
    delivery_days = Column(Float, nullable=True)
    payment_terms = Column(Text, nullable=True)
    warranty = Column(Text, nullable=True)
    score_overall = Column(Float, nullable=True)  # 0-100
    score_breakdown = Column(Text, nullable=True)  # JSON {price, delivery, terms, warranty}
    ai_summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
