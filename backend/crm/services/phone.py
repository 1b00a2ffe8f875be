"""
Phone normalization — the single source of lead identity.

Every call site that stores or looks up a lead phone goes through
normalize_phone(); two call sites normalizing differently would create
duplicate leads for the same person.
"""
import re

DEFAULT_COUNTRY_CODE = "91"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw, country_code: str = DEFAULT_COUNTRY_CODE) -> str | None:
    """
    Map a raw phone string to its canonical key.

    Keeps digits only; a bare 10-digit national number gets the country code
    prefixed. Anything else is returned as its digit string. Empty input (or
    input with no digits at all) yields None. Idempotent.

        >>> normalize_phone("+91 98765-43210")
        '919876543210'
        >>> normalize_phone("9876543210")
        '919876543210'
    """
    if raw is None:
        return None

    digits = _NON_DIGITS.sub("", str(raw))
    if not digits:
        return None

    if len(digits) == 10:
        digits = country_code + digits

    return digits
