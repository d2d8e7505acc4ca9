import logging
from typing import Any

from rfpflow.errors import ValidationError
from rfpflow.services.completion_client import TextCompletionClient
from rfpflow.services.extraction import as_int, as_number, as_positive_int, as_text, extract

DEFAULT_RFP_TITLE = "Untitled RFP"

logger = logging.getLogger(__name__)

_DRAFT_PROMPT = """Given the following RFP description, extract a structured object with this schema:

{{
  "title": string,
  "budget": number | null,
  "deliveryDays": number | null,
  "paymentTerms": string | null,
  "warranty": string | null,
  "lineItems": [
    {{
      "name": string,
      "quantity": number,
      "spec": string
    }}
  ]
}}

Rules:
- If a field is not mentioned, use null or empty array.
- "budget" must be a number only (no currency symbol).
- "deliveryDays" is an integer number of days.
- "paymentTerms" and "warranty" are short human-readable strings.
- "lineItems" must be an array. If multiple items, separate them.
- Return ONLY valid JSON, no explanation, no markdown.

RFP description:
---
{description}
---"""


def format_number(value: float | int) -> str:
    """10000.0 -> '10000', 12.5 -> '12.5'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_line_item(index: int, item: dict[str, Any]) -> str:
    quantity = item.get("quantity")
    qty = str(quantity) if quantity is not None else "?"
    spec = item.get("spec") or "no spec"
    return f"{index}. {qty} x {item.get('name')} ({spec})"


def _coerce_line_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    items = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        name = as_text(raw.get("name"))
        if name is None:
            continue
        items.append({
            "name": name,
            "quantity": as_positive_int(raw.get("quantity")),
            "spec": as_text(raw.get("spec")),
        })
    return items


def summarize_draft(draft: dict[str, Any]) -> str:
    """One sentence per field, built from the final values rather than generator prose."""
    parts = [f'Title detected: "{draft["title"]}".']
    if draft["budget"] is not None:
        parts.append(f"Estimated budget: {format_number(draft['budget'])}.")
    else:
        parts.append("No explicit budget detected.")
    if draft["delivery_days"] is not None:
        parts.append(f"Requested delivery timeline: {draft['delivery_days']} days.")
    else:
        parts.append("No explicit delivery timeline detected.")
    if draft["payment_terms"]:
        parts.append(f"Payment terms: {draft['payment_terms']}.")
    else:
        parts.append("No specific payment terms detected.")
    if draft["warranty"]:
        parts.append(f"Warranty requested: {draft['warranty']}.")
    else:
        parts.append("No specific warranty information detected.")
    if draft["line_items"]:
        items = " ".join(format_line_item(i, item) for i, item in enumerate(draft["line_items"], start=1))
        parts.append(f"Line items detected: {items}")
    else:
        parts.append("No clear line items detected in the description.")
    return " ".join(parts)


def draft_rfp(client: TextCompletionClient, description: str | None, title: str | None = None) -> dict[str, Any]:
    """
    Build a structured RFP draft from a buyer's free-text description.
    Nothing is persisted; the buyer reviews the draft and finalizes it separately.
    """
    description = (description or "").strip()
    if not description:
        raise ValidationError("description is required")
    record = extract(client, _DRAFT_PROMPT.format(description=description)).unwrap("RFP generation")

    draft = {
        "description_nlp": description,
        "title": as_text(record.get("title")) or as_text(title) or DEFAULT_RFP_TITLE,
        "budget": as_number(record.get("budget")),
        "delivery_days": as_int(record.get("deliveryDays")),
        "payment_terms": as_text(record.get("paymentTerms")),
        "warranty": as_text(record.get("warranty")),
        "line_items": _coerce_line_items(record.get("lineItems")),
    }
    draft["summary"] = summarize_draft(draft)
    draft["raw"] = record
    logger.info("Drafted RFP %r with %s line item(s)", draft["title"], len(draft["line_items"]))
    return draft
