import asyncio
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rfpflow.api.endpoints.rfps import proposal_response
from rfpflow.database import get_db
from rfpflow.errors import ValidationError
from rfpflow.models.vendor import Vendor
from rfpflow.schemas.proposal import InboundEmailBody, ProposalResponse, VendorReplyBody
from rfpflow.services.completion_client import TextCompletionClient, get_completion_client
from rfpflow.services.invitations import parse_correlation_token
from rfpflow.services.proposals import ingest_vendor_reply

router = APIRouter(tags=["proposals"])
logger = logging.getLogger(__name__)


async def _ingest(db: Session, client: TextCompletionClient, rfp_id: int, vendor_id: int, body: VendorReplyBody):
    proposal = await asyncio.to_thread(
        ingest_vendor_reply,
        db,
        client,
        rfp_id,
        vendor_id,
        body.raw_email(),
        subject=body.subject,
    )
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    return proposal_response(proposal, vendor)


@router.post("/rfps/{rfp_id}/vendors/{vendor_id}/proposal", response_model=ProposalResponse)
async def ingest_reply(
    rfp_id: int,
    vendor_id: int,
    body: VendorReplyBody,
    db: Session = Depends(get_db),
    client: TextCompletionClient = Depends(get_completion_client),
):
    """Create or replace the vendor's proposal for this RFP from their email reply."""
    return await _ingest(db, client, rfp_id, vendor_id, body)


@router.post("/email/inbound", response_model=ProposalResponse)
async def inbound_email(
    body: InboundEmailBody,
    db: Session = Depends(get_db),
    client: TextCompletionClient = Depends(get_completion_client),
):
    """Mail-ingestion webhook: route a reply by the [RFP:..][VENDOR:..] tag in its subject."""
    token = parse_correlation_token(body.subject)
    if token is None:
        raise ValidationError("Subject does not contain an RFP/vendor correlation token")
    rfp_id, vendor_id = token
    logger.info("inbound-email: routed to rfp_id=%s vendor_id=%s", rfp_id, vendor_id)
    return await _ingest(db, client, rfp_id, vendor_id, body)
