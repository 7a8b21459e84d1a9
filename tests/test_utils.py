"""Test module for configuration helpers."""

import pytest

from src.utils import (
    ConfigurationError,
    get_bool_config,
    get_configs,
    get_int_config,
    get_list_config,
    mask_phone_number,
    set_configs,
)


def test_get_configs(monkeypatch):
    monkeypatch.setenv("SMS_GATEWAY_ROUTE", "TR")
    monkeypatch.setenv("SMS_GATEWAY_SENDER_ID", "  ")
    monkeypatch.delenv("SMS_GATEWAY_USERNAME", raising=False)

    assert get_configs("SMS_GATEWAY_ROUTE") == "TR"
    assert get_configs("SMS_GATEWAY_SENDER_ID", default_value="EVSCTR") == "EVSCTR"
    assert get_configs("SMS_GATEWAY_USERNAME") == ""

    with pytest.raises(ConfigurationError):
        get_configs("SMS_GATEWAY_USERNAME", strict=True)


@pytest.mark.parametrize(
    "value, default, expected",
    [
        ("true", False, True),
        ("ON", False, True),
        ("0", True, False),
        ("no", True, False),
        ("maybe", True, True),
        ("", True, True),
    ],
)
def test_get_bool_config(monkeypatch, value, default, expected):
    monkeypatch.setenv("OTP_RATE_LIMIT_FAIL_OPEN", value)

    assert get_bool_config("OTP_RATE_LIMIT_FAIL_OPEN", default) is expected


def test_get_int_config(monkeypatch):
    monkeypatch.delenv("OTP_EXPIRY_MINUTES", raising=False)
    assert get_int_config("OTP_EXPIRY_MINUTES", 5) == 5

    monkeypatch.setenv("OTP_EXPIRY_MINUTES", " 10 ")
    assert get_int_config("OTP_EXPIRY_MINUTES", 5) == 10

    monkeypatch.setenv("OTP_EXPIRY_MINUTES", "ten")
    with pytest.raises(ConfigurationError):
        get_int_config("OTP_EXPIRY_MINUTES", 5)


@pytest.mark.parametrize(
    "value", ["contact_form,Service_Booking", "['contact_form', 'Service_Booking']"]
)
def test_get_list_config(monkeypatch, value):
    monkeypatch.setenv("OTP_ALLOWED_PURPOSES", value)

    assert get_list_config("OTP_ALLOWED_PURPOSES") == ["contact_form", "Service_Booking"]


def test_set_configs(monkeypatch):
    monkeypatch.setenv("DEVELOPMENT_MODE", "false")

    set_configs("DEVELOPMENT_MODE", True)

    assert get_bool_config("DEVELOPMENT_MODE") is True
    with pytest.raises(ValueError):
        set_configs("", "value")


def test_mask_phone_number():
    assert mask_phone_number("+919876543210") == "*********3210"
    assert mask_phone_number("123") == "123"
