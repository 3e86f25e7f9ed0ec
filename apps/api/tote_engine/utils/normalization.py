"""Identity normalization for claims, waitlist entries and sponsors."""

import re
from typing import Optional

from tote_engine.core.config import settings


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    The lower-cased email is the uniqueness key for claims and waitlist
    entries, so every service normalizes before querying.
    """
    if not email:
        return None
    return email.strip().lower()


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Strip whitespace and collapse multiple spaces."""
    if not name:
        return None
    collapsed = " ".join(name.split())
    return collapsed or None


def normalize_phone(phone: Optional[str], country_code: Optional[str] = None) -> Optional[str]:
    """
    Normalize phone to E.164 format using the default country code.

    Accepts (country code 91 shown):
    - 10 digits: 9876543210 → +919876543210
    - Country code without +: 919876543210 → +919876543210
    - Trunk prefix 0: 09876543210 → +919876543210
    - Already E.164: +919876543210 → +919876543210

    Raises:
        ValueError: If the number cannot be normalized
    """
    if not phone:
        return None

    code = country_code or settings.PHONE_DEFAULT_COUNTRY_CODE
    cleaned = phone.strip()
    has_plus = cleaned.startswith("+")
    digits = re.sub(r"\D", "", cleaned)

    if has_plus and 8 <= len(digits) <= 15:
        return f"+{digits}"

    if len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"+{code}{digits}"
    if len(digits) == 10 + len(code) and digits.startswith(code):
        return f"+{digits}"

    raise ValueError(f"Invalid phone number '{phone}'. Use a 10-digit number or +<country><number>.")


def mask_phone(phone: Optional[str]) -> str:
    """Show only the last 4 digits of a phone number."""
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    return f"***{digits[-4:]}" if len(digits) >= 4 else "***"
