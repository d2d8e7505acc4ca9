"""
Vendor contact checks: email and phone format validation.
Format only; nothing is sent and no number is dialled.
"""
import re
from typing import Optional

# International format, e.g. +15550100; short local numbers like "123" also pass
PHONE_E164_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
# Formatted numbers such as "(555) 010-0100"
PHONE_LOOSE_PATTERN = re.compile(r"^[\d\s\-\(\)\+\.]{3,20}$")
# local@domain.tld
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def verify_email(email: Optional[str]) -> Optional[bool]:
    """Return True if email format is valid, False if invalid, None if no email."""
    if not email or not str(email).strip():
        return None
    return bool(EMAIL_PATTERN.match(str(email).strip()))


def verify_phone(phone: Optional[str]) -> Optional[bool]:
    """True if the phone number looks dialable, False if not, None if no phone."""
    if not phone or not str(phone).strip():
        return None
    s = re.sub(r"[\s\-\.]", "", str(phone).strip())
    if PHONE_E164_PATTERN.match(s):
        return True
    if PHONE_LOOSE_PATTERN.match(str(phone).strip()):
        return True
    return False
