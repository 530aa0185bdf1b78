"""
Normalization of contact identifiers for comparison and de-duplication.
"""

import re

_NON_DIGITS = re.compile(r"[^0-9]")
_PROTOCOL = re.compile(r"^https?://")
_WWW = re.compile(r"^www\.")


def normalize_phone(number: str) -> str:
    """Reduce a phone number to its digits."""
    return _NON_DIGITS.sub("", number or "")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_url(url: str) -> str:
    """Lowercase and strip protocol, leading www. and a trailing slash."""
    normalized = (url or "").strip().lower()
    normalized = _PROTOCOL.sub("", normalized)
    normalized = _WWW.sub("", normalized)
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized
