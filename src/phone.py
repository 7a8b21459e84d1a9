# SPDX-License-Identifier: GPL-3.0-only
"""Phone number normalization for Indian mobile numbers."""

import re

import phonenumbers

COUNTRY_PREFIX = "+91"
DEFAULT_REGION = "IN"

_NON_DIGITS = re.compile(r"[^0-9]")


class InvalidPhoneNumberError(ValueError):
    """Raised when a phone number matches no recognized format."""


def normalize_phone_number(phone_number: str, strict: bool = False) -> str:
    """Normalize a phone number to the canonical ``+91XXXXXXXXXX`` form.

    Args:
        phone_number: Raw phone number as typed by the user.
        strict: Reject unrecognized formats instead of keeping the last
            10 digits.

    Returns:
        The normalized phone number.

    Raises:
        InvalidPhoneNumberError: If ``strict`` is set and the number matches
            no recognized format.
    """
    digits = _NON_DIGITS.sub("", phone_number or "")

    if len(digits) == 10 and digits[0] in "6789":
        return COUNTRY_PREFIX + digits
    if len(digits) == 12 and digits.startswith("91"):
        return "+" + digits

    if strict:
        raise InvalidPhoneNumberError(
            f"Unrecognized phone number format ({len(digits)} digits)."
        )

    return COUNTRY_PREFIX + digits[-10:]


def to_national_number(phone_number: str) -> str:
    """Return the subscriber number without country code.

    Args:
        phone_number: Phone number in E.164 format (e.g., +919876543210).

    Returns:
        The national significant number as a string.
    """
    try:
        parsed_number = phonenumbers.parse(phone_number, DEFAULT_REGION)
        return str(parsed_number.national_number)
    except phonenumbers.NumberParseException:
        if phone_number.startswith(COUNTRY_PREFIX):
            return phone_number[len(COUNTRY_PREFIX) :]
        return phone_number.lstrip("+")

