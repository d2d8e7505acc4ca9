"""Drafting a structured RFP from a buyer's description."""

import json

import pytest

from rfpflow.errors import ExtractionError, UpstreamQuotaError, ValidationError
from rfpflow.services.rfp_drafting import DEFAULT_RFP_TITLE, draft_rfp

from conftest import FakeCompletionClient

DESCRIPTION = "We need 20 laptops with 16GB RAM within 30 days, budget 50000, net 30, 1 year warranty."


def _generated(**fields):
    record = {
        "title": "Office laptops",
        "budget": 50000,
        "deliveryDays": 30,
        "paymentTerms": "Net 30",
        "warranty": "1 year",
        "lineItems": [{"name": "Laptop", "quantity": 20, "spec": "16GB RAM"}],
    }
    record.update(fields)
    return json.dumps(record)


class TestDraftFields:
    def test_full_draft(self):
        client = FakeCompletionClient([_generated()])
        draft = draft_rfp(client, DESCRIPTION)
        assert draft["description_nlp"] == DESCRIPTION
        assert draft["title"] == "Office laptops"
        assert draft["budget"] == 50000
        assert draft["delivery_days"] == 30
        assert draft["payment_terms"] == "Net 30"
        assert draft["warranty"] == "1 year"
        assert draft["line_items"] == [{"name": "Laptop", "quantity": 20, "spec": "16GB RAM"}]
        assert draft["raw"]["title"] == "Office laptops"
        assert DESCRIPTION in client.calls[0]["prompt"]

    def test_wrong_typed_budget_becomes_unset(self):
        draft = draft_rfp(FakeCompletionClient([_generated(budget="ten thousand")]), DESCRIPTION)
        assert draft["budget"] is None
        assert "No explicit budget detected." in draft["summary"]

    def test_wrong_typed_fields_degrade_independently(self):
        client = FakeCompletionClient([_generated(deliveryDays="soon", paymentTerms=30, warranty=None)])
        draft = draft_rfp(client, DESCRIPTION)
        assert draft["delivery_days"] is None
        assert draft["payment_terms"] is None
        assert draft["warranty"] is None
        assert draft["budget"] == 50000

    def test_integral_float_delivery_days(self):
        draft = draft_rfp(FakeCompletionClient([_generated(deliveryDays=30.0)]), DESCRIPTION)
        assert draft["delivery_days"] == 30

    def test_oversized_delivery_days_unset(self):
        draft = draft_rfp(FakeCompletionClient([_generated(deliveryDays=1e300)]), DESCRIPTION)
        assert draft["delivery_days"] is None

    def test_line_items_coerced(self):
        items = [
            {"name": "Laptop", "quantity": "twenty", "spec": "16GB"},
            {"quantity": 3, "spec": "no name"},
            "not an object",
            {"name": "Monitor", "quantity": 15},
        ]
        draft = draft_rfp(FakeCompletionClient([_generated(lineItems=items)]), DESCRIPTION)
        assert draft["line_items"] == [
            {"name": "Laptop", "quantity": None, "spec": "16GB"},
            {"name": "Monitor", "quantity": 15, "spec": None},
        ]

    def test_line_items_not_a_list(self):
        draft = draft_rfp(FakeCompletionClient([_generated(lineItems={"name": "Laptop"})]), DESCRIPTION)
        assert draft["line_items"] == []


class TestTitleFallback:
    def test_generated_title_wins(self):
        draft = draft_rfp(FakeCompletionClient([_generated()]), DESCRIPTION, title="Buyer title")
        assert draft["title"] == "Office laptops"

    def test_buyer_title_when_generator_has_none(self):
        draft = draft_rfp(FakeCompletionClient([_generated(title=None)]), DESCRIPTION, title="Buyer title")
        assert draft["title"] == "Buyer title"

    def test_default_title_last(self):
        draft = draft_rfp(FakeCompletionClient([_generated(title="  ")]), DESCRIPTION)
        assert draft["title"] == DEFAULT_RFP_TITLE


class TestSummary:
    def test_summary_built_from_values(self):
        draft = draft_rfp(FakeCompletionClient([_generated(budget=50000.0)]), DESCRIPTION)
        assert draft["summary"] == (
            'Title detected: "Office laptops". '
            "Estimated budget: 50000. "
            "Requested delivery timeline: 30 days. "
            "Payment terms: Net 30. "
            "Warranty requested: 1 year. "
            "Line items detected: 1. 20 x Laptop (16GB RAM)"
        )

    def test_summary_not_detected_phrasing(self):
        client = FakeCompletionClient(['{"title": null}'])
        draft = draft_rfp(client, DESCRIPTION)
        assert draft["summary"] == (
            f'Title detected: "{DEFAULT_RFP_TITLE}". '
            "No explicit budget detected. "
            "No explicit delivery timeline detected. "
            "No specific payment terms detected. "
            "No specific warranty information detected. "
            "No clear line items detected in the description."
        )


class TestDraftFailures:
    def test_missing_description_rejected_before_generation(self):
        client = FakeCompletionClient([_generated()])
        with pytest.raises(ValidationError):
            draft_rfp(client, "   ")
        assert client.calls == []

    def test_malformed_generator_output(self):
        with pytest.raises(ExtractionError):
            draft_rfp(FakeCompletionClient(["Sorry, I can't help with that."]), DESCRIPTION)

    def test_quota(self):
        with pytest.raises(UpstreamQuotaError):
            draft_rfp(FakeCompletionClient([UpstreamQuotaError()]), DESCRIPTION)
