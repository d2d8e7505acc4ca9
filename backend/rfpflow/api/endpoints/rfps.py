import asyncio
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rfpflow.database import get_db
from rfpflow.models.rfp import RFP, InvitationStatus
from rfpflow.models.vendor import Vendor
from rfpflow.schemas.proposal import ProposalResponse
from rfpflow.schemas.rfp import (
    RFPCreate,
    RFPDetailResponse,
    RFPDraftRequest,
    RFPDraftResponse,
    RFPListItem,
    RFPResponse,
    InvitedVendorResponse,
    InviteVendorsRequest,
    InviteVendorsResponse,
    LineItem,
    RecommendationResponse,
)
from rfpflow.schemas.vendor import VendorSummary
from rfpflow.services import rfps as rfp_service
from rfpflow.services.completion_client import TextCompletionClient, get_completion_client
from rfpflow.services.invitations import invite_vendors, outcomes_payload
from rfpflow.services.mail_service import Mailer, get_mailer
from rfpflow.services.rfp_drafting import draft_rfp

router = APIRouter(prefix="/rfps", tags=["rfps"])
logger = logging.getLogger(__name__)


def _vendor_summary(vendor: Vendor | None) -> VendorSummary | None:
    return VendorSummary.model_validate(vendor) if vendor is not None else None


def _rfp_response(rfp: RFP, vendors: dict[int, Vendor], model=RFPResponse, **extra):
    invited = sorted(rfp.invitations.values(), key=lambda iv: iv.id or 0)
    return model(
        id=rfp.id,
        title=rfp.title,
        description_nlp=rfp.description_nlp,
        budget=rfp.budget,
        delivery_days=rfp.delivery_days,
        payment_terms=rfp.payment_terms,
        warranty=rfp.warranty,
        line_items=[LineItem.model_validate(li) for li in rfp.line_items],
        invited_vendors=[
            InvitedVendorResponse(
                vendor_id=iv.vendor_id,
                status=iv.status,
                sent_at=iv.sent_at,
                vendor=_vendor_summary(vendors.get(iv.vendor_id)),
            )
            for iv in invited
        ],
        created_at=rfp.created_at,
        updated_at=rfp.updated_at,
        **extra,
    )


def proposal_response(proposal, vendor: Vendor | None) -> ProposalResponse:
    data = ProposalResponse.model_validate(proposal)
    data.vendor = _vendor_summary(vendor)
    return data


@router.post("/draft", response_model=RFPDraftResponse)
async def draft_rfp_endpoint(
    payload: RFPDraftRequest,
    client: TextCompletionClient = Depends(get_completion_client),
):
    """Turn a free-text description into a structured RFP draft. Nothing is saved."""
    return await asyncio.to_thread(draft_rfp, client, payload.description, payload.title)


@router.post("", response_model=RFPResponse, status_code=201)
def create_rfp(payload: RFPCreate, db: Session = Depends(get_db)):
    """Finalize a (possibly edited) draft into a persisted RFP."""
    rfp = rfp_service.finalize_rfp(db, payload)
    return _rfp_response(rfp, {})


@router.get("", response_model=list[RFPListItem])
def list_rfps(db: Session = Depends(get_db)):
    rows = rfp_service.list_rfps_with_proposal_counts(db)
    vendors = rfp_service.vendors_by_id(db, [vid for rfp, _ in rows for vid in rfp.invitations])
    return [_rfp_response(rfp, vendors, model=RFPListItem, proposal_count=count) for rfp, count in rows]


@router.get("/{rfp_id}", response_model=RFPDetailResponse)
async def get_rfp(
    rfp_id: int,
    db: Session = Depends(get_db),
    client: TextCompletionClient = Depends(get_completion_client),
):
    """RFP with its proposals (newest first) and ranked recommendations."""
    detail = await asyncio.to_thread(rfp_service.load_rfp_detail, db, client, rfp_id)
    return RFPDetailResponse(
        rfp=_rfp_response(detail.rfp, detail.vendors),
        proposals=[proposal_response(p, detail.vendors.get(p.vendor_id)) for p in detail.proposals],
        recommendations=[RecommendationResponse(**r) for r in detail.recommendations],
    )


@router.delete("/{rfp_id}", response_model=RFPResponse)
def delete_rfp(rfp_id: int, db: Session = Depends(get_db)):
    """Delete an RFP and return the deleted record. Proposals referencing it are kept."""
    rfp = rfp_service.get_rfp(db, rfp_id)
    deleted = _rfp_response(rfp, rfp_service.vendors_by_id(db, rfp.invitations.keys()))
    rfp_service.delete_rfp(db, rfp)
    return deleted


@router.post("/{rfp_id}/invitations", response_model=InviteVendorsResponse)
async def invite_vendors_endpoint(
    rfp_id: int,
    payload: InviteVendorsRequest,
    db: Session = Depends(get_db),
    client: TextCompletionClient = Depends(get_completion_client),
    mailer: Mailer = Depends(get_mailer),
):
    """Email each vendor a generated invitation and mark them SENT, one vendor at a time."""
    outcomes = await asyncio.to_thread(invite_vendors, db, client, mailer, rfp_id, payload.vendor_ids)
    logger.info("invite: rfp_id=%s sent=%s", rfp_id, sum(1 for o in outcomes if o.status == InvitationStatus.SENT))
    return outcomes_payload(rfp_id, outcomes)
