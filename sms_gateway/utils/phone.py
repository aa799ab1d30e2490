"""
Phone number helpers shared by the webhook receiver and the SMS client.
"""

import re
from typing import Optional

MASK_CHAR = "#"

# E.164: + followed by up to 15 digits
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
_SEPARATORS = re.compile(r"[\s\-()]")


def mask_phone_number(number: Optional[str]) -> Optional[str]:
    """
    Mask a phone number for log output.

    Keeps the first 4 and last 3 characters and replaces everything in
    between with MASK_CHAR, so the masked value has the same length.
    Numbers of 6 characters or fewer are returned unchanged.

    Args:
        number: Phone number as received

    Returns:
        Masked number (e.g. +277#####567), or the input if too short or empty
    """
    if not number or len(number) <= 6:
        return number
    return number[:4] + MASK_CHAR * (len(number) - 7) + number[-3:]


def normalize_number(number: str) -> str:
    """
    Normalize a phone number towards E.164.

    Args:
        number: Phone number in local or international form

    Returns:
        Normalized number, e.g. "082 123 4567" -> "+27821234567"
    """
    clean = _SEPARATORS.sub("", number)

    if not clean.startswith("+") and re.match(r"^[1-9]", clean):
        clean = "+" + clean

    # South African local numbers: 0xxxxxxxxx -> +27xxxxxxxxx
    if clean.startswith("0") and len(clean) == 10:
        clean = "+27" + clean[1:]

    return clean


def validate_e164(number: str) -> bool:
    """Check that a number is in E.164 format."""
    return bool(E164_PATTERN.match(number))
