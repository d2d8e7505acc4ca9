"""
Rank an RFP's proposals for the buyer.

The baseline (score sort) is always computed. An AI refinement is then
attempted; if it fails in any way the baseline is returned, so the RFP detail
read never fails because of the generator.
"""
import json
import logging
from typing import Any, Sequence

from rfpflow.models.proposal import Proposal
from rfpflow.models.rfp import RFP
from rfpflow.services.completion_client import TextCompletionClient
from rfpflow.services.extraction import as_int, as_score, as_text, extract
from rfpflow.services.proposals import rfp_terms

BASELINE_REASON = "Ranked based on internal overall score (higher overall score = better)."
DEFAULT_REFINED_REASON = "Ranked by AI assessment."

logger = logging.getLogger(__name__)

_RANKING_PROMPT = """You are helping a procurement manager choose the best proposal for an RFP.

RFP details (JSON):
{rfp_json}

Proposals (JSON array):
{proposals_json}

Consider:
- Price (within or under budget is better)
- Delivery days (faster is better)
- Payment terms (more favourable to buyer is better)
- Warranty (longer / better coverage is better)
- scoreOverall field (higher is better)

Return ONLY valid JSON in this format, sorted best to worst, with every proposal listed exactly once:

{{
  "recommendations": [
    {{
      "proposalId": "<id from proposals array>",
      "rank": 1,
      "overallScore": 0.0,
      "reason": "short explanation why this ranking"
    }}
  ]
}}

"overallScore" is your assessment between 0 and 1."""


class RefinementRejected(ValueError):
    pass


def _score(p: Proposal) -> float:
    s = p.score_overall
    return s if isinstance(s, (int, float)) and not isinstance(s, bool) else 0


def baseline_ranking(proposals: Sequence[Proposal]) -> list[dict[str, Any]]:
    """Score-descending order; unscored proposals count as 0 and keep their retrieval order on ties."""
    ordered = sorted(proposals, key=lambda p: -_score(p))
    return [
        {
            "proposal_id": p.id,
            "rank": index,
            "overall_score": round(_score(p) / 100.0, 4),
            "reason": BASELINE_REASON,
        }
        for index, p in enumerate(ordered, start=1)
    ]


def proposal_digest(p: Proposal, vendor: Any | None = None) -> dict[str, Any]:
    return {
        "id": str(p.id),
        "vendorName": getattr(vendor, "name", None),
        "vendorEmail": getattr(vendor, "email", None),
        "totalPrice": p.total_price,
        "deliveryDays": p.delivery_days,
        "paymentTerms": p.payment_terms,
        "warranty": p.warranty,
        "scoreOverall": p.score_overall,
    }


def _proposal_id(value: Any) -> int | None:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return as_int(value)


def validate_recommendations(record: dict[str, Any], proposal_ids: Sequence[int]) -> list[dict[str, Any]]:
    """Accept a refined ranking only if it ranks every proposal once with ranks 1..N."""
    items = record.get("recommendations")
    if not isinstance(items, list):
        raise RefinementRejected("response missing recommendations array")
    expected = set(proposal_ids)
    out = []
    for item in items:
        if not isinstance(item, dict):
            raise RefinementRejected("recommendation entry is not an object")
        pid = _proposal_id(item.get("proposalId"))
        rank = as_int(item.get("rank"))
        if pid not in expected:
            raise RefinementRejected(f"unknown proposalId {item.get('proposalId')!r}")
        if rank is None:
            raise RefinementRejected(f"missing rank for proposal {pid}")
        out.append({
            "proposal_id": pid,
            "rank": rank,
            "overall_score": as_score(item.get("overallScore"), high=1.0),
            "reason": as_text(item.get("reason")) or DEFAULT_REFINED_REASON,
        })
    if sorted(r["proposal_id"] for r in out) != sorted(expected):
        raise RefinementRejected("recommendations do not cover every proposal exactly once")
    if sorted(r["rank"] for r in out) != list(range(1, len(expected) + 1)):
        raise RefinementRejected("ranks are not a permutation of 1..N")
    return sorted(out, key=lambda r: r["rank"])


def refine_ranking(
    client: TextCompletionClient,
    rfp: RFP,
    proposals: Sequence[Proposal],
    vendors: dict[int, Any] | None = None,
) -> list[dict[str, Any]]:
    """Ask the generator for an ordering. Raises RefinementRejected on any failure."""
    vendors = vendors or {}
    prompt = _RANKING_PROMPT.format(
        rfp_json=json.dumps(rfp_terms(rfp)),
        proposals_json=json.dumps([proposal_digest(p, vendors.get(p.vendor_id)) for p in proposals]),
    )
    result = extract(client, prompt)
    if not result.ok:
        raise RefinementRejected(f"{result.error.kind}: {result.error.detail}")
    return validate_recommendations(result.record, [p.id for p in proposals])


def rank_proposals(
    client: TextCompletionClient,
    rfp: RFP,
    proposals: Sequence[Proposal],
    vendors: dict[int, Any] | None = None,
) -> list[dict[str, Any]]:
    if not proposals:
        return []
    baseline = baseline_ranking(proposals)
    try:
        refined = refine_ranking(client, rfp, proposals, vendors)
    except RefinementRejected as e:
        logger.warning("ranking: rfp_id=%s refinement rejected, using baseline: %s", rfp.id, e)
        return baseline
    except Exception as e:
        logger.warning("ranking: rfp_id=%s refinement failed, using baseline: %s", rfp.id, e, exc_info=True)
        return baseline
    logger.info("ranking: rfp_id=%s using AI ranking for %s proposal(s)", rfp.id, len(refined))
    return refined
