import re

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(phone: str, country_code: str) -> str:
    """Strip non-digits; a bare 10-digit local number gets the country code."""
    digits = _NON_DIGITS.sub("", phone or "")
    if len(digits) == 10:
        return f"{country_code}{digits}"
    return digits


def phones_match(left: str, right: str, country_code: str) -> bool:
    normalized_left = normalize_phone(left, country_code)
    return bool(normalized_left) and normalized_left == normalize_phone(right, country_code)
