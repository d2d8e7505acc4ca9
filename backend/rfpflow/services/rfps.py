import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from rfpflow.errors import NotFoundError
from rfpflow.models.proposal import Proposal
from rfpflow.models.rfp import RFP, RFPLineItem
from rfpflow.models.vendor import Vendor
from rfpflow.schemas.rfp import RFPCreate
from rfpflow.services.completion_client import TextCompletionClient
from rfpflow.services.ranking import rank_proposals

logger = logging.getLogger(__name__)


@dataclass
class RFPDetail:
    rfp: RFP
    proposals: list[Proposal]
    vendors: dict[int, Vendor]
    recommendations: list[dict[str, Any]] = field(default_factory=list)


def finalize_rfp(db: Session, payload: RFPCreate) -> RFP:
    rfp = RFP(
        title=payload.title,
        description_nlp=payload.description_nlp,
        budget=payload.budget,
        delivery_days=payload.delivery_days,
        payment_terms=payload.payment_terms,
        warranty=payload.warranty,
        line_items=[
            RFPLineItem(position=i, name=item.name, quantity=item.quantity, spec=item.spec)
            for i, item in enumerate(payload.line_items)
        ],
    )
    db.add(rfp)
    db.commit()
    db.refresh(rfp)
    logger.info("Created RFP id=%s title=%r", rfp.id, rfp.title)
    return rfp


def get_rfp(db: Session, rfp_id: int) -> RFP:
    rfp = db.query(RFP).filter(RFP.id == rfp_id).first()
    if not rfp:
        raise NotFoundError("RFP not found")
    return rfp


def vendors_by_id(db: Session, vendor_ids) -> dict[int, Vendor]:
    ids = set(vendor_ids)
    if not ids:
        return {}
    return {v.id: v for v in db.query(Vendor).filter(Vendor.id.in_(ids)).all()}


def list_rfps_with_proposal_counts(db: Session) -> list[tuple[RFP, int]]:
    """Every RFP, newest first, with how many proposals reference it."""
    counts = (
        db.query(Proposal.rfp_id.label("rfp_id"), func.count(Proposal.id).label("proposal_count"))
        .group_by(Proposal.rfp_id)
        .subquery()
    )
    rows = (
        db.query(RFP, func.coalesce(counts.c.proposal_count, 0))
        .outerjoin(counts, counts.c.rfp_id == RFP.id)
        .options(selectinload(RFP.invitations), selectinload(RFP.line_items))
        .order_by(RFP.created_at.desc(), RFP.id.desc())
        .all()
    )
    return [(rfp, int(count)) for rfp, count in rows]


def load_rfp_detail(db: Session, client: TextCompletionClient, rfp_id: int) -> RFPDetail:
    rfp = get_rfp(db, rfp_id)
    proposals = (
        db.query(Proposal)
        .filter(Proposal.rfp_id == rfp_id)
        .order_by(Proposal.created_at.desc(), Proposal.id.desc())
        .all()
    )
    vendors = vendors_by_id(db, list(rfp.invitations.keys()) + [p.vendor_id for p in proposals])
    recommendations = rank_proposals(client, rfp, proposals, vendors)
    return RFPDetail(rfp=rfp, proposals=proposals, vendors=vendors, recommendations=recommendations)


def delete_rfp(db: Session, rfp: RFP) -> None:
    """Delete the RFP with its line items and invitations; proposals stay."""
    rfp_id = rfp.id
    db.delete(rfp)
    db.commit()
    logger.info("Deleted RFP id=%s", rfp_id)
