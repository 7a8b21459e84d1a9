# SPDX-License-Identifier: GPL-3.0-only
"""Common type definitions for the application."""

from enum import Enum


class OTPPurpose(Enum):
    """Business contexts an OTP can be issued for.

    Stored as plain strings; the set accepted at runtime is configured with
    ``OTP_ALLOWED_PURPOSES`` and may grow beyond these members.
    """

    CONTACT_FORM = "contact_form"
    TEST_RIDE = "test_ride"
    BOOKING_FORM = "booking_form"


class SMSProvider(Enum):
    """Outbound SMS providers."""

    GATEWAY = "gateway"
    TWILIO = "twilio"


class SubmissionType(Enum):
    """Normalized payment status of a CRM submission."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class NotificationStatus(Enum):
    """Transaction status an e-mail notification was sent for."""

    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"


class EmailType(Enum):
    """Audience of a transaction e-mail."""

    ADMIN = "admin"
    CUSTOMER = "customer"
    BOTH = "both"
