"""
Vendor invitations: write a personalised email per vendor, send it, and move
the vendor's invitation to SENT.

Vendors are handled one at a time in request order. Each vendor's transition
is committed right after its email is handed to the mailer, so when a later
vendor fails the earlier ones stay SENT and are reported back with the error.
"""
import logging
import os
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from rfpflow.errors import (
    CompletionError,
    DependencyError,
    InvitationBatchAborted,
    InvitationBatchQuotaAborted,
    NotFoundError,
    UpstreamQuotaError,
    ValidationError,
)
from rfpflow.models.rfp import RFP, InvitationStatus
from rfpflow.models.vendor import Vendor
from rfpflow.services.completion_client import TextCompletionClient
from rfpflow.services.mail_service import Mailer, OutgoingMessage
from rfpflow.services.rfp_drafting import format_line_item, format_number

DEFAULT_SUBJECT = "RFP Invitation"
OUTCOME_NOT_FOUND = "NOT_FOUND"

_TOKEN_PATTERN = re.compile(r"\[RFP:(\d+)\]\[VENDOR:(\d+)\]")

logger = logging.getLogger(__name__)

_INVITATION_PROMPT = """You are an assistant helping a procurement manager invite vendors to respond to an RFP.

Write a professional email to a vendor about the following RFP.

Vendor:
- Name: {vendor_name}
- Email: {vendor_email}

RFP details:
- Title: {title}
- Budget: {budget}
- Delivery timeline (days): {delivery_days}
- Payment terms: {payment_terms}
- Warranty: {warranty}

Line items:
{line_items}

Guidelines for the email:
- Start with a greeting addressing the vendor by name.
- Briefly describe the purpose of the RFP.
- Summarize the key requirements (budget range, delivery timeline, main items).
- Invite the vendor to submit a quote / proposal and mention preferred response timeline is within 5-7 working days.
- Keep the tone polite, clear, and concise.
- Do NOT include any markdown or bullet symbols like '*', just plain text lines.
- Include a clear subject line on the first line in the format: "Subject: ...".
- After a blank line, write the email body."""


@dataclass(frozen=True)
class InvitationOutcome:
    vendor_id: int
    email: str | None
    status: str


def correlation_token(rfp_id: int, vendor_id: int) -> str:
    return f"[RFP:{rfp_id}][VENDOR:{vendor_id}]"


def parse_correlation_token(subject: str | None) -> tuple[int, int] | None:
    """Find the (rfp_id, vendor_id) tag in a reply subject, e.g. 'Re: [RFP:3][VENDOR:7] Laptops'."""
    m = _TOKEN_PATTERN.search(subject or "")
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def _not_specified(value) -> str:
    if value is None or value == "":
        return "Not specified"
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def build_invitation_prompt(rfp: RFP, vendor: Vendor) -> str:
    line_items = "\n".join(
        format_line_item(i, {"name": li.name, "quantity": li.quantity, "spec": li.spec})
        for i, li in enumerate(rfp.line_items, start=1)
    )
    return _INVITATION_PROMPT.format(
        vendor_name=vendor.name,
        vendor_email=vendor.email,
        title=rfp.title,
        budget=_not_specified(rfp.budget),
        delivery_days=_not_specified(rfp.delivery_days),
        payment_terms=_not_specified(rfp.payment_terms),
        warranty=_not_specified(rfp.warranty),
        line_items=line_items or "No specific line items listed.",
    )


def split_subject(text: str) -> tuple[str, str]:
    """Split generated email text into (subject, body) using a leading 'Subject:' line."""
    lines = (text or "").strip().split("\n")
    if lines and lines[0].lower().startswith("subject:"):
        subject = lines[0][len("subject:"):].strip() or DEFAULT_SUBJECT
        body = "\n".join(lines[1:]).lstrip("\n")
        return subject, body
    return DEFAULT_SUBJECT, "\n".join(lines)


def submission_link(rfp_id: int, vendor_id: int) -> str | None:
    client_url = os.getenv("CLIENT_URL", "").strip().rstrip("/")
    if not client_url:
        return None
    return f"{client_url}/proposal/submit?{urlencode({'rfpId': rfp_id, 'vendorId': vendor_id})}"


def compose_invitation(client: TextCompletionClient, rfp: RFP, vendor: Vendor) -> OutgoingMessage:
    text = client.generate(build_invitation_prompt(rfp, vendor))
    if not (text or "").strip():
        raise CompletionError(f"AI returned an empty invitation for vendor {vendor.id}")
    subject, body = split_subject(text)
    link = submission_link(rfp.id, vendor.id)
    if link:
        body = f"{body.rstrip()}\n\nYou can submit your detailed proposal using this link: {link}\n"
    return OutgoingMessage(
        to=vendor.email,
        subject=f"{correlation_token(rfp.id, vendor.id)} {subject}",
        body=body,
    )


def _unique_ids(vendor_ids: list[int]) -> list[int]:
    seen = set()
    out = []
    for vid in vendor_ids:
        if vid not in seen:
            seen.add(vid)
            out.append(vid)
    return out


def invite_vendors(
    db: Session,
    client: TextCompletionClient,
    mailer: Mailer,
    rfp_id: int,
    vendor_ids: list[int] | None,
) -> list[InvitationOutcome]:
    if not vendor_ids:
        raise ValidationError("vendor_ids array is required")
    rfp = db.query(RFP).filter(RFP.id == rfp_id).first()
    if not rfp:
        raise NotFoundError("RFP not found")
    ids = _unique_ids(vendor_ids)
    vendors = {v.id: v for v in db.query(Vendor).filter(Vendor.id.in_(ids)).all()}
    if not vendors:
        raise NotFoundError("No vendors found for given IDs")

    outcomes: list[InvitationOutcome] = []
    for vid in ids:
        vendor = vendors.get(vid)
        if vendor is None:
            logger.warning("invite: rfp_id=%s vendor_id=%s not found, skipping", rfp_id, vid)
            outcomes.append(InvitationOutcome(vendor_id=vid, email=None, status=OUTCOME_NOT_FOUND))
            continue
        previous = rfp.invitation_status(vid)
        try:
            message = compose_invitation(client, rfp, vendor)
            mailer.send(message)
        except (DependencyError, UpstreamQuotaError) as e:
            db.rollback()
            logger.warning(
                "invite: rfp_id=%s aborted at vendor_id=%s after %s vendor(s): %s",
                rfp_id, vid, len(outcomes), e,
            )
            error_cls = InvitationBatchQuotaAborted if isinstance(e, UpstreamQuotaError) else InvitationBatchAborted
            raise error_cls(
                f"Invitation to vendor {vid} failed: {e.message}",
                extra={
                    "rfp_id": rfp_id,
                    "failed_vendor_id": vid,
                    "invited_vendors": [asdict(o) for o in outcomes],
                },
            ) from e
        if previous == InvitationStatus.RESPONDED:
            logger.warning("invite: rfp_id=%s vendor_id=%s already responded, re-inviting resets to SENT", rfp_id, vid)
        rfp.upsert_invitation(vid, InvitationStatus.SENT, sent_at=datetime.now(timezone.utc))
        db.commit()
        outcomes.append(InvitationOutcome(vendor_id=vid, email=vendor.email, status=InvitationStatus.SENT))
        logger.info("invite: rfp_id=%s vendor_id=%s %s -> SENT", rfp_id, vid, previous)
    return outcomes


def outcomes_payload(rfp_id: int, outcomes: list[InvitationOutcome]) -> dict:
    return {"rfp_id": rfp_id, "invited_vendors": [asdict(o) for o in outcomes]}
