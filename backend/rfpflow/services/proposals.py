import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rfpflow.errors import NotFoundError, ValidationError
from rfpflow.models.proposal import Proposal
from rfpflow.models.rfp import RFP, InvitationStatus
from rfpflow.models.vendor import Vendor
from rfpflow.services.completion_client import TextCompletionClient
from rfpflow.services.extraction import as_number, as_score, as_text, extract
from rfpflow.services.rfp_drafting import format_line_item

SCORE_DIMENSIONS = ("price", "delivery", "terms", "warranty")

logger = logging.getLogger(__name__)

_PROPOSAL_PROMPT = """You are an assistant that reads vendor email replies to an RFP and extracts a structured commercial proposal.

RFP details (JSON):
{rfp_json}

Line items (formatted):
{line_items}

Vendor:
- Name: {vendor_name}
- Email: {vendor_email}

Vendor email subject:
{subject}

Vendor email body:
---
{body}
---

Your task:
- Understand the vendor's quote from this email.
- Extract prices, delivery timeline, payment terms, warranty, and line item level prices if possible.
- Also provide an overall AI evaluation score relative to the RFP (budget, delivery days, terms, warranty).

Return ONLY valid JSON with this exact schema:

{{
  "totalPrice": number | null,
  "currency": string | null,
  "deliveryDays": number | null,
  "paymentTerms": string | null,
  "warranty": string | null,
  "lineItems": [
    {{
      "name": string,
      "quantity": number | null,
      "spec": string | null,
      "unitPrice": number | null,
      "totalPrice": number | null
    }}
  ],
  "scoreOverall": number | null,
  "scoreBreakdown": {{
    "price": number | null,
    "delivery": number | null,
    "terms": number | null,
    "warranty": number | null
  }},
  "summary": string
}}

"scoreOverall" and each "scoreBreakdown" value are between 0 and 100."""


def rfp_terms(rfp: RFP) -> dict[str, Any]:
    """RFP terms as plain data for prompts."""
    return {
        "title": rfp.title,
        "descriptionNlp": rfp.description_nlp,
        "budget": rfp.budget,
        "deliveryDays": rfp.delivery_days,
        "paymentTerms": rfp.payment_terms,
        "warranty": rfp.warranty,
        "lineItems": [{"name": li.name, "quantity": li.quantity, "spec": li.spec} for li in rfp.line_items],
    }


def build_proposal_prompt(rfp: RFP, vendor: Vendor, raw_email: str, subject: str | None) -> str:
    terms = rfp_terms(rfp)
    line_items = "\n".join(format_line_item(i, li) for i, li in enumerate(terms["lineItems"], start=1))
    return _PROPOSAL_PROMPT.format(
        rfp_json=json.dumps(terms),
        line_items=line_items or "No specific line items listed.",
        vendor_name=vendor.name,
        vendor_email=vendor.email,
        subject=(subject or "").strip() or "(no subject)",
        body=raw_email,
    )


def _coerce_breakdown(value: Any) -> dict[str, float | None] | None:
    if not isinstance(value, dict):
        return None
    return {dim: as_score(value.get(dim)) for dim in SCORE_DIMENSIONS}


def proposal_fields(record: dict[str, Any]) -> dict[str, Any]:
    """Map an extracted proposal record onto Proposal columns, one field at a time."""
    breakdown = _coerce_breakdown(record.get("scoreBreakdown"))
    return {
        "parsed_structured": json.dumps(record),
        "total_price": as_number(record.get("totalPrice")),
        "delivery_days": as_number(record.get("deliveryDays")),
        "payment_terms": as_text(record.get("paymentTerms")),
        "warranty": as_text(record.get("warranty")),
        "score_overall": as_score(record.get("scoreOverall")),
        "score_breakdown": json.dumps(breakdown) if breakdown is not None else None,
        "ai_summary": as_text(record.get("summary")),
    }


def _upsert_proposal(db: Session, rfp_id: int, vendor_id: int, values: dict[str, Any]) -> Proposal:
    proposal = (
        db.query(Proposal)
        .filter(Proposal.rfp_id == rfp_id, Proposal.vendor_id == vendor_id)
        .with_for_update()
        .first()
    )
    if proposal is None:
        proposal = Proposal(rfp_id=rfp_id, vendor_id=vendor_id)
        db.add(proposal)
    # Full replacement: nothing from an earlier reply survives.
    for key, value in values.items():
        setattr(proposal, key, value)
    proposal.updated_at = datetime.now(timezone.utc)
    db.flush()
    return proposal


def ingest_vendor_reply(
    db: Session,
    client: TextCompletionClient,
    rfp_id: int,
    vendor_id: int,
    raw_email: str | None,
    subject: str | None = None,
) -> Proposal:
    """
    Turn a vendor's reply into the single Proposal for (rfp_id, vendor_id) and mark the
    vendor RESPONDED. Extraction failures raise before anything is written.
    """
    raw_email = raw_email or ""
    if not raw_email.strip():
        raise ValidationError("Email body (text or html) is required")
    rfp = db.query(RFP).filter(RFP.id == rfp_id).first()
    if not rfp:
        raise NotFoundError("RFP not found")
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise NotFoundError("Vendor not found")

    prompt = build_proposal_prompt(rfp, vendor, raw_email, subject)
    record = extract(client, prompt).unwrap("proposal")
    values = proposal_fields(record)
    values["raw_email"] = raw_email

    try:
        proposal = _upsert_proposal(db, rfp_id, vendor_id, values)
    except IntegrityError:
        # Another request inserted the same pair first; ours becomes the later write.
        db.rollback()
        logger.info("ingest: rfp_id=%s vendor_id=%s concurrent insert, retrying as update", rfp_id, vendor_id)
        proposal = _upsert_proposal(db, rfp_id, vendor_id, values)
        rfp = db.query(RFP).filter(RFP.id == rfp_id).first()
        if not rfp:
            db.rollback()
            raise NotFoundError("RFP not found")

    rfp.upsert_invitation(vendor_id, InvitationStatus.RESPONDED)
    db.commit()
    db.refresh(proposal)
    logger.info(
        "ingest: rfp_id=%s vendor_id=%s proposal_id=%s score=%s",
        rfp_id, vendor_id, proposal.id, proposal.score_overall,
    )
    return proposal
