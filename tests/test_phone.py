"""Test module for phone number normalization."""

import pytest

from src.phone import (
    InvalidPhoneNumberError,
    normalize_phone_number,
    to_national_number,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("9876543210", "+919876543210"),
        ("98765 43210", "+919876543210"),
        ("(987) 654-3210", "+919876543210"),
        ("6123456789", "+916123456789"),
        ("919876543210", "+919876543210"),
        ("+91 98765 43210", "+919876543210"),
        ("+91-98765-43210", "+919876543210"),
        ("09876543210", "+919876543210"),
        ("0091 9876543210", "+919876543210"),
    ],
)
def test_normalize_phone_number(raw, expected):
    """Test recognized and fallback formats."""
    assert normalize_phone_number(raw) == expected


def test_normalize_phone_number_fallback_keeps_last_ten_digits():
    """Test unrecognized numbers keep their last ten digits."""
    assert normalize_phone_number("5123456789") == "+915123456789"
    assert normalize_phone_number("12345") == "+9112345"
    assert normalize_phone_number("") == "+91"


@pytest.mark.parametrize("raw", ["9876543210", "919876543210", "+1 415 555 0100"])
def test_normalize_phone_number_is_idempotent(raw):
    """Test normalizing a normalized number changes nothing."""
    once = normalize_phone_number(raw)
    assert normalize_phone_number(once) == once


@pytest.mark.parametrize("raw", ["12345", "5123456789", "09876543210", ""])
def test_normalize_phone_number_strict(raw):
    """Test strict mode rejects unrecognized formats."""
    with pytest.raises(InvalidPhoneNumberError):
        normalize_phone_number(raw, strict=True)


def test_normalize_phone_number_strict_accepts_known_formats():
    assert normalize_phone_number("9876543210", strict=True) == "+919876543210"
    assert normalize_phone_number("+919876543210", strict=True) == "+919876543210"


def test_to_national_number():
    """Test the country code is dropped for gateway delivery."""
    assert to_national_number("+919876543210") == "9876543210"
    assert to_national_number("9876543210") == "9876543210"
