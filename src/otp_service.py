# SPDX-License-Identifier: GPL-3.0-only
"""OTP Service Module - issues, delivers and verifies phone OTPs."""

import datetime
import logging
import secrets
from typing import Any, Dict, List, Optional, Union

from base_logger import get_logger
from src.db_models import OTPVerification
from src.phone import InvalidPhoneNumberError, normalize_phone_number
from src.sms_outbound import SMSSender, get_sms_sender
from src.types import OTPPurpose
from src.utils import (
    create_tables,
    get_bool_config,
    get_int_config,
    get_list_config,
    mask_phone_number,
)

logger = get_logger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999

INVALID_OTP_MESSAGE = "Invalid or expired OTP"


class OTPConfig:
    """Tunables for OTP issuance and verification."""

    def __init__(
        self,
        expiry_minutes: int = 5,
        max_attempts: int = 3,
        rate_limit_max_requests: int = 15,
        rate_limit_window_minutes: int = 60,
        rate_limit_fail_open: bool = True,
        verification_window_minutes: int = 60,
        cleanup_grace_minutes: int = 60,
        development_mode: bool = False,
        strict_phone_numbers: bool = False,
        allowed_purposes: Optional[List[str]] = None,
        auto_create_tables: bool = True,
    ):
        self.expiry_minutes = expiry_minutes
        self.max_attempts = max_attempts
        self.rate_limit_max_requests = rate_limit_max_requests
        self.rate_limit_window_minutes = rate_limit_window_minutes
        self.rate_limit_fail_open = rate_limit_fail_open
        self.verification_window_minutes = verification_window_minutes
        self.cleanup_grace_minutes = cleanup_grace_minutes
        self.development_mode = development_mode
        self.strict_phone_numbers = strict_phone_numbers
        if allowed_purposes is None:
            allowed_purposes = [purpose.value for purpose in OTPPurpose]
        self.allowed_purposes = allowed_purposes
        self.auto_create_tables = auto_create_tables

    @classmethod
    def from_env(cls) -> "OTPConfig":
        """Build the OTP configuration from environment variables."""
        return cls(
            expiry_minutes=get_int_config("OTP_EXPIRY_MINUTES", 5),
            max_attempts=get_int_config("OTP_MAX_VERIFY_ATTEMPTS", 3),
            rate_limit_max_requests=get_int_config("OTP_RATE_LIMIT_MAX_REQUESTS", 15),
            rate_limit_window_minutes=get_int_config(
                "OTP_RATE_LIMIT_WINDOW_MINUTES", 60
            ),
            rate_limit_fail_open=get_bool_config(
                "OTP_RATE_LIMIT_FAIL_OPEN", default_value=True
            ),
            verification_window_minutes=get_int_config(
                "OTP_VERIFICATION_WINDOW_MINUTES", 60
            ),
            cleanup_grace_minutes=get_int_config("OTP_CLEANUP_GRACE_MINUTES", 60),
            development_mode=get_bool_config("DEVELOPMENT_MODE"),
            strict_phone_numbers=get_bool_config("OTP_STRICT_PHONE_NUMBERS"),
            allowed_purposes=get_list_config(
                "OTP_ALLOWED_PURPOSES", [purpose.value for purpose in OTPPurpose]
            ),
            auto_create_tables=get_bool_config(
                "OTP_AUTO_CREATE_TABLES", default_value=True
            ),
        )

    @property
    def expires_in(self) -> int:
        """Lifetime of a fresh OTP in seconds."""
        return self.expiry_minutes * 60


def generate_otp() -> str:
    """Generate a 6-digit numeric OTP drawn uniformly from [100000, 999999]."""
    return f"{OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1):06d}"


class OTPService:
    """Phone OTP issuance and verification backed by ``otp_verifications``.

    Every public method returns a result instead of raising; storage errors
    are logged and reported in the result.
    """

    def __init__(
        self,
        config: Optional[OTPConfig] = None,
        sms_sender: Optional[SMSSender] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.config = config or OTPConfig.from_env()
        self.logger = log or logger
        self.sms_sender = sms_sender or get_sms_sender()

        if self.config.auto_create_tables:
            create_tables([OTPVerification])

    def _now(self) -> datetime.datetime:
        return datetime.datetime.now()

    def _resolve_purpose(self, purpose: Union[OTPPurpose, str]) -> Optional[str]:
        value = purpose.value if isinstance(purpose, OTPPurpose) else purpose
        if value in self.config.allowed_purposes:
            return value
        return None

    def _validation_error(self, message: str) -> Dict[str, Any]:
        return {"success": False, "error": message, "validation_error": True}

    def _prepare(self, phone: str, purpose: Union[OTPPurpose, str]):
        """Normalize the phone and purpose, or return a validation failure."""
        try:
            clean_phone = normalize_phone_number(
                phone, strict=self.config.strict_phone_numbers
            )
        except InvalidPhoneNumberError as e:
            self.logger.info("Rejected phone number: %s", e)
            return None, None, self._validation_error(
                "Please enter a valid 10-digit mobile number"
            )

        purpose_value = self._resolve_purpose(purpose)
        if purpose_value is None:
            self.logger.info("Rejected unknown OTP purpose: %s", purpose)
            return None, None, self._validation_error("Invalid purpose specified")

        return clean_phone, purpose_value, None

    def _latest_pending(self, phone: str, purpose: str, now: datetime.datetime):
        return (
            OTPVerification.select()
            .where(
                (OTPVerification.phone == phone)
                & (OTPVerification.purpose == purpose)
                & (OTPVerification.verified == False)  # noqa: E712
                & (OTPVerification.expires_at > now)
            )
            .order_by(OTPVerification.created_at.desc(), OTPVerification.id.desc())
            .first()
        )

    def _with_development_fields(
        self, response: Dict[str, Any], otp_code: str
    ) -> Dict[str, Any]:
        if self.config.development_mode:
            response["development_otp"] = otp_code
            response["development_mode"] = True
        return response

    def check_rate_limit(self, phone: str) -> bool:
        """Check whether another OTP may be issued to a phone number.

        Counts every OTP created for the phone inside the rate-limit window,
        across all purposes.

        Args:
            phone: Phone number as entered by the user.

        Returns:
            True if issuance is allowed. On storage failure returns the
            configured ``rate_limit_fail_open`` value.
        """
        try:
            clean_phone = normalize_phone_number(
                phone, strict=self.config.strict_phone_numbers
            )
        except InvalidPhoneNumberError as e:
            self.logger.info("Rejected phone number: %s", e)
            return False

        return self._within_rate_limit(clean_phone)

    def _recent_otp_count(self, clean_phone: str) -> int:
        window_start = self._now() - datetime.timedelta(
            minutes=self.config.rate_limit_window_minutes
        )
        return (
            OTPVerification.select()
            .where(
                (OTPVerification.phone == clean_phone)
                & (OTPVerification.created_at > window_start)
            )
            .count()
        )

    def _within_rate_limit(self, clean_phone: str) -> bool:
        """Rate-limit check for a phone that is already normalized."""
        try:
            count = self._recent_otp_count(clean_phone)
        except Exception as e:
            self.logger.error(
                "Rate limit check failed, %s: %s",
                "allowing" if self.config.rate_limit_fail_open else "blocking",
                e,
            )
            return self.config.rate_limit_fail_open

        allowed = count < self.config.rate_limit_max_requests
        if not allowed:
            self.logger.info(
                "Rate limit reached for %s: %d OTPs in %d minutes",
                mask_phone_number(clean_phone),
                count,
                self.config.rate_limit_window_minutes,
            )
        return allowed

    def generate_and_send_otp(
        self,
        phone: str,
        purpose: Union[OTPPurpose, str] = OTPPurpose.CONTACT_FORM,
        force_new: bool = False,
    ) -> Dict[str, Any]:
        """Issue an OTP for a phone and purpose, or reuse the pending one.

        Args:
            phone: Phone number as entered by the user.
            purpose: Form the OTP gates.
            force_new: Resend the pending OTP instead of only reporting it.

        Returns:
            Result dict with ``success`` and either ``expires_in`` or ``error``.
        """
        try:
            clean_phone, purpose_value, error = self._prepare(phone, purpose)
            if error:
                return error

            now = self._now()
            existing = self._latest_pending(clean_phone, purpose_value, now)

            if existing:
                if force_new:
                    return self._resend_existing_otp(existing, now)

                self.logger.info(
                    "Returning existing valid OTP id=%s for %s (%s)",
                    existing.id,
                    mask_phone_number(clean_phone),
                    purpose_value,
                )
                return self._with_development_fields(
                    {
                        "success": True,
                        "message": "OTP already sent to your mobile number",
                        "expires_in": existing.remaining_seconds(now),
                        "existing_otp": True,
                    },
                    existing.otp,
                )

            if not self._within_rate_limit(clean_phone):
                return {
                    "success": False,
                    "error": "Too many OTP requests. Please try again later.",
                    "rate_limited": True,
                }

            otp_code = generate_otp()
            otp_entry = OTPVerification.create(
                phone=clean_phone,
                otp=otp_code,
                purpose=purpose_value,
                created_at=now,
                expires_at=now + datetime.timedelta(minutes=self.config.expiry_minutes),
                attempts=0,
                max_attempts=self.config.max_attempts,
            )

            sms_result = self.sms_sender.send_otp_sms(clean_phone, otp_code)

            self.logger.info(
                "OTP id=%s generated for %s (%s), sms_success=%s",
                otp_entry.id,
                mask_phone_number(clean_phone),
                purpose_value,
                sms_result.get("success", False),
            )

            return self._with_development_fields(
                {
                    "success": True,
                    "message": "OTP sent successfully to your mobile number",
                    "expires_in": self.config.expires_in,
                    "sms_result": sms_result,
                },
                otp_code,
            )

        except Exception as e:
            self.logger.error(
                "Failed to generate OTP for purpose %s: %s", purpose, e, exc_info=True
            )
            return {
                "success": False,
                "error": "Failed to send OTP. Please try again.",
                "exception": str(e),
            }

    def _resend_existing_otp(
        self, otp_entry: OTPVerification, now: datetime.datetime
    ) -> Dict[str, Any]:
        """Deliver a pending OTP again without touching its expiry or attempts."""
        self.logger.info(
            "Resending existing valid OTP id=%s, expires at %s",
            otp_entry.id,
            otp_entry.expires_at,
        )
        sms_result = self.sms_sender.send_otp_sms(otp_entry.phone, otp_entry.otp)

        return self._with_development_fields(
            {
                "success": True,
                "message": "OTP resent to your mobile number",
                "expires_in": otp_entry.remaining_seconds(now),
                "existing_otp": True,
                "resent": True,
                "sms_result": sms_result,
            },
            otp_entry.otp,
        )

    def _increment_latest_attempts(
        self, phone: str, purpose: str, now: datetime.datetime
    ) -> None:
        """Count a failed attempt against the newest pending OTP."""
        otp_entry = self._latest_pending(phone, purpose, now)
        if not otp_entry:
            return

        rows_updated = (
            OTPVerification.update(attempts=OTPVerification.attempts + 1)
            .where(
                (OTPVerification.id == otp_entry.id)
                & (OTPVerification.attempts < OTPVerification.max_attempts)
            )
            .execute()
        )

        if rows_updated:
            self.logger.info("Incremented attempts for OTP id=%s", otp_entry.id)
        else:
            self.logger.info(
                "Skipped incrementing OTP id=%s, max attempts already reached",
                otp_entry.id,
            )

    def verify_otp(
        self,
        phone: str,
        otp_code: str,
        purpose: Union[OTPPurpose, str] = OTPPurpose.CONTACT_FORM,
    ) -> Dict[str, Any]:
        """Verify a submitted OTP.

        A correct code is accepted while ``attempts <= max_attempts``. On
        success the record is marked verified and every other record for the
        same phone and purpose is deleted.

        Args:
            phone: Phone number as entered by the user.
            otp_code: Code submitted by the user.
            purpose: Form the OTP gates.

        Returns:
            Result dict with ``success`` and either ``verified`` or ``error``.
        """
        try:
            clean_phone, purpose_value, error = self._prepare(phone, purpose)
            if error:
                return error

            otp_code = (otp_code or "").strip()
            now = self._now()

            otp_entry = (
                OTPVerification.select()
                .where(
                    (OTPVerification.phone == clean_phone)
                    & (OTPVerification.otp == otp_code)
                    & (OTPVerification.purpose == purpose_value)
                    & (OTPVerification.verified == False)  # noqa: E712
                    & (OTPVerification.expires_at > now)
                )
                .order_by(OTPVerification.created_at.desc(), OTPVerification.id.desc())
                .first()
            )

            if not otp_entry:
                self._increment_latest_attempts(clean_phone, purpose_value, now)
                self.logger.info(
                    "Invalid OTP attempt for %s (%s), attempted %s****",
                    mask_phone_number(clean_phone),
                    purpose_value,
                    otp_code[:2],
                )
                return {
                    "success": False,
                    "error": INVALID_OTP_MESSAGE,
                    "invalid_otp": True,
                }

            if otp_entry.attempts > otp_entry.max_attempts:
                self.logger.warning(
                    "OTP id=%s attempts exceeded: %d > %d",
                    otp_entry.id,
                    otp_entry.attempts,
                    otp_entry.max_attempts,
                )
                return {
                    "success": False,
                    "error": "Maximum OTP attempts exceeded. Please request a new OTP.",
                    "max_attempts_exceeded": True,
                }

            with OTPVerification._meta.database.atomic():
                rows_updated = (
                    OTPVerification.update(verified=True, verified_at=now)
                    .where(
                        (OTPVerification.id == otp_entry.id)
                        & (OTPVerification.verified == False)  # noqa: E712
                        & (OTPVerification.attempts <= OTPVerification.max_attempts)
                    )
                    .execute()
                )

                if not rows_updated:
                    self.logger.info(
                        "OTP id=%s was consumed by a concurrent request", otp_entry.id
                    )
                    return {
                        "success": False,
                        "error": INVALID_OTP_MESSAGE,
                        "invalid_otp": True,
                    }

                OTPVerification.delete().where(
                    (OTPVerification.phone == clean_phone)
                    & (OTPVerification.purpose == purpose_value)
                    & (OTPVerification.id != otp_entry.id)
                ).execute()

            self.logger.info(
                "OTP id=%s verified for %s (%s)",
                otp_entry.id,
                mask_phone_number(clean_phone),
                purpose_value,
            )
            return {
                "success": True,
                "message": "OTP verified successfully",
                "verified": True,
            }

        except Exception as e:
            self.logger.error(
                "OTP verification failed for purpose %s: %s", purpose, e, exc_info=True
            )
            return {
                "success": False,
                "error": "OTP verification failed. Please try again.",
                "exception": str(e),
            }

    def is_phone_verified(
        self, phone: str, purpose: Union[OTPPurpose, str] = OTPPurpose.CONTACT_FORM
    ) -> bool:
        """Check whether a phone was verified for a purpose recently."""
        try:
            clean_phone, purpose_value, error = self._prepare(phone, purpose)
            if error:
                return False

            window_start = self._now() - datetime.timedelta(
                minutes=self.config.verification_window_minutes
            )
            return (
                OTPVerification.select()
                .where(
                    (OTPVerification.phone == clean_phone)
                    & (OTPVerification.purpose == purpose_value)
                    & (OTPVerification.verified == True)  # noqa: E712
                    & (OTPVerification.verified_at > window_start)
                )
                .exists()
            )
        except Exception as e:
            self.logger.error("Failed to check phone verification: %s", e)
            return False

    def cleanup_expired_otps(self) -> int:
        """Delete OTPs that expired more than the grace period ago.

        Returns:
            Number of deleted records, 0 on failure.
        """
        try:
            cutoff = self._now() - datetime.timedelta(
                minutes=self.config.cleanup_grace_minutes
            )
            deleted_count = (
                OTPVerification.delete()
                .where(OTPVerification.expires_at < cutoff)
                .execute()
            )
            self.logger.info("Cleaned up %d expired OTPs", deleted_count)
            return deleted_count
        except Exception as e:
            self.logger.error("OTP cleanup failed: %s", e)
            return 0
