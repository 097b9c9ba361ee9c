"""Bangladesh mobile number helpers."""

import re

BD_MOBILE_RE = re.compile(r"^(\+?880|0)?1[3-9]\d{8}$")


def is_valid_bd_mobile(phone: str) -> bool:
    return bool(phone) and BD_MOBILE_RE.match(re.sub(r"\s", "", phone)) is not None


def normalize_phone(phone: str) -> str:
    """
    Canonical local form, digits only: 01XXXXXXXXX.

    Accepts +8801..., 8801..., 01... and 1... (with spaces or dashes).
    Raises ValueError for anything that is not a Bangladesh mobile number.
    """
    compact = re.sub(r"[\s\-]", "", phone or "")
    if not BD_MOBILE_RE.match(compact):
        raise ValueError("Invalid Bangladesh phone number format")
    digits = re.sub(r"\D", "", compact)
    return "0" + digits[-10:]


def to_international(phone: str) -> str:
    """Provider format: 8801XXXXXXXXX."""
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("0"):
        return "88" + digits
    if not digits.startswith("88"):
        return "88" + digits
    return digits


def mask_phone(phone: str) -> str:
    if not phone or len(phone) < 6:
        return "***"
    return phone[:3] + "****" + phone[-3:]
