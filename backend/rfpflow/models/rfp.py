from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.orm.collections import attribute_keyed_dict
from sqlalchemy.sql import func

from rfpflow.models.base import Base


class InvitationStatus:
    # DRAFT is never stored: a vendor without an invitation row is in draft.
    DRAFT = "DRAFT"
    SENT = "SENT"
    RESPONDED = "RESPONDED"

    ALL = (DRAFT, SENT, RESPONDED)


class RFP(Base):
    __tablename__ = "rfps"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description_nlp = Column(Text, nullable=False)  # buyer's original text, never updated
    budget = Column(Float, nullable=True)
    delivery_days = Column(Integer, nullable=True)
    payment_terms = Column(Text, nullable=True)
    warranty = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    line_items = relationship(
        "RFPLineItem",
        back_populates="rfp",
        order_by="RFPLineItem.position",
        cascade="all, delete-orphan",
    )
    # Keyed by vendor id so an RFP can hold at most one invitation per vendor.
    invitations = relationship(
        "RFPInvitation",
        back_populates="rfp",
        collection_class=attribute_keyed_dict("vendor_id"),
        cascade="all, delete-orphan",
    )

    def upsert_invitation(self, vendor_id: int, status: str, sent_at: datetime | None = None) -> "RFPInvitation":
        """Set the invitation state for a vendor, creating the entry if needed.

        ``sent_at`` is only overwritten when given, so a reply does not erase
        the time the invitation went out.
        """
        if status not in (InvitationStatus.SENT, InvitationStatus.RESPONDED):
            raise ValueError(f"Cannot store invitation status {status!r}")
        invitation = self.invitations.get(vendor_id)
        if invitation is None:
            invitation = RFPInvitation(vendor_id=vendor_id, status=status, sent_at=sent_at)
            self.invitations[vendor_id] = invitation
        else:
            invitation.status = status
            if sent_at is not None:
                invitation.sent_at = sent_at
        return invitation

    def invitation_status(self, vendor_id: int) -> str:
        invitation = self.invitations.get(vendor_id)
        return invitation.status if invitation is not None else InvitationStatus.DRAFT


class RFPLineItem(Base):
    __tablename__ = "rfp_line_items"

    id = Column(Integer, primary_key=True)
    rfp_id = Column(Integer, ForeignKey("rfps.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    spec = Column(Text, nullable=False)

    rfp = relationship("RFP", back_populates="line_items")


class RFPInvitation(Base):
    __tablename__ = "rfp_invitations"
    __table_args__ = (UniqueConstraint("rfp_id", "vendor_id", name="uq_rfp_invitations_rfp_vendor"),)

    id = Column(Integer, primary_key=True)
    rfp_id = Column(Integer, ForeignKey("rfps.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(Integer, nullable=False, index=True)  # weak reference to vendors.id
    status = Column(String(20), nullable=False, default=InvitationStatus.SENT)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    rfp = relationship("RFP", back_populates="invitations")
