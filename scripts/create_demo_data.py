#!/usr/bin/env python3
"""
Create demo data: vendors and a finalized RFP, optionally invitations and vendor replies.

Run with backend up: uvicorn rfpflow.main:app --reload (from backend dir)

Usage:
  python scripts/create_demo_data.py
  python scripts/create_demo_data.py --base http://localhost:8001
  python scripts/create_demo_data.py --invite --replies   (calls the AI service)

Writes: scripts/demo_data.json with created vendor and RFP IDs.
"""

import json
import os
import sys
import urllib.error
import urllib.request
from datetime import datetime, timezone
from pathlib import Path

# Default: backend on port 8001
BASE_URL = os.environ.get("API_BASE", "http://localhost:8001").rstrip("/")

DEMO_VENDORS = [
    {"name": "Acme Supplies", "email": "sales@acme-supplies.example", "phone": "+15550100"},
    {"name": "Beta Hardware", "email": "bids@beta-hardware.example", "phone": "+15550101"},
    {"name": "Gamma Tech", "email": "quotes@gammatech.example", "phone": "+15550102"},
]

DEMO_RFP = {
    "title": "Office laptops and monitors",
    "description_nlp": (
        "We need 20 laptops with 16GB RAM and 15 monitors 27-inch for our new office. "
        "Budget is 50000 total. Delivery within 30 days. Payment terms net 30, "
        "and we need at least 1 year warranty."
    ),
    "budget": 50000,
    "delivery_days": 30,
    "payment_terms": "Net 30",
    "warranty": "1 year",
    "line_items": [
        {"name": "Laptop", "quantity": 20, "spec": "16GB RAM, 512GB SSD"},
        {"name": "Monitor", "quantity": 15, "spec": "27-inch, 1440p"},
    ],
}

DEMO_REPLIES = [
    "Hello, we can supply 20 laptops at 1,200 each and 15 monitors at 300 each, total 28,500 USD. "
    "Delivery in 21 days, payment net 30, 2 years warranty on all items.",
    "Thanks for the invitation. Our offer is 46,000 USD for the full order, delivered in 45 days. "
    "50% upfront, balance on delivery. Standard 1 year warranty.",
]


class ApiError(Exception):
    def __init__(self, status: int, path: str, body: str):
        super().__init__(f"HTTP {status} {path}: {body}")
        self.status = status


def request(method: str, path: str, body: dict | None = None) -> dict | list:
    url = f"{BASE_URL}{path}"
    data = None
    if body is not None:
        data = json.dumps(body).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        method=method,
        headers={"Content-Type": "application/json"} if data else {},
    )
    try:
        with urllib.request.urlopen(req, timeout=300) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        err_body = e.read().decode("utf-8") if e.fp else ""
        raise ApiError(e.code, path, err_body) from e
    except urllib.error.URLError as e:
        raise SystemExit(f"Request failed (is the backend running at {BASE_URL}?): {e.reason}")


def ensure_vendor(payload: dict) -> dict:
    """Create the vendor, or reuse the existing one with the same email."""
    try:
        return request("POST", "/vendors", body=payload)
    except ApiError as e:
        if e.status != 409:
            raise
    for vendor in request("GET", "/vendors"):
        if vendor["email"] == payload["email"].lower():
            return vendor
    raise SystemExit(f"Vendor {payload['email']} reported as duplicate but not listed")


def seed(invite: bool = False, replies: bool = False) -> dict:
    vendors = [ensure_vendor(v) for v in DEMO_VENDORS]
    print(f"  Vendors ready: {[v['id'] for v in vendors]}")

    rfp = request("POST", "/rfps", body=DEMO_RFP)
    print(f"  RFP created: id={rfp['id']} ({rfp['title']})")

    invited = []
    if invite:
        result = request("POST", f"/rfps/{rfp['id']}/invitations", body={"vendor_ids": [v["id"] for v in vendors]})
        invited = result["invited_vendors"]
        print(f"  Invitations: {[(o['vendor_id'], o['status']) for o in invited]}")

    proposals = []
    if replies:
        for vendor, text in zip(vendors, DEMO_REPLIES):
            p = request(
                "POST",
                f"/rfps/{rfp['id']}/vendors/{vendor['id']}/proposal",
                body={"subject": f"Re: {rfp['title']}", "text": text},
            )
            proposals.append({"id": p["id"], "vendor_id": vendor["id"], "score_overall": p.get("score_overall")})
        print(f"  Proposals: {proposals}")

    return {
        "base_url": BASE_URL,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "vendors": [{"id": v["id"], "email": v["email"]} for v in vendors],
        "rfp": {"id": rfp["id"], "title": rfp["title"]},
        "invitations": invited,
        "proposals": proposals,
    }


def main() -> None:
    global BASE_URL
    if "--help" in sys.argv or "-h" in sys.argv:
        print(__doc__)
        sys.exit(0)
    for i, arg in enumerate(sys.argv):
        if arg == "--base" and i + 1 < len(sys.argv):
            BASE_URL = sys.argv[i + 1].rstrip("/")
            break

    print(f"Using API base: {BASE_URL}")
    print("Creating demo data...")
    try:
        manifest = seed(invite="--invite" in sys.argv, replies="--replies" in sys.argv)
    except ApiError as e:
        raise SystemExit(str(e))

    manifest_path = Path(__file__).resolve().parent / "demo_data.json"
    manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    print(f"  Manifest: {manifest_path}")
    print("\nDone. Next:")
    print(f"  GET {BASE_URL}/rfps/{manifest['rfp']['id']} to see proposals and recommendations.")


if __name__ == "__main__":
    main()
