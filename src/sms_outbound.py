# SPDX-License-Identifier: GPL-3.0-only
"""Outbound SMS delivery - bulk SMS gateway, Twilio and development sender."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from base_logger import get_logger
from src.phone import to_national_number
from src.types import SMSProvider
from src.utils import (
    ConfigurationError,
    get_bool_config,
    get_configs,
    mask_phone_number,
)

logger = get_logger(__name__)

TEMPLATE_PLACEHOLDER = "{#var#}"
DEFAULT_OTP_TEMPLATE = "Your verification code is {#var#}. It is valid for 5 minutes."
DEFAULT_THANK_YOU_TEMPLATE = "Thank you for your booking. Your booking ID is {#var#}."


class SMSGatewayConfig:
    """Credentials and templates for the bulk SMS gateway."""

    REQUIRED_FIELDS = ("base_url", "username", "api_key", "sender_id", "route")

    def __init__(
        self,
        base_url: str,
        username: str,
        api_key: str,
        sender_id: str,
        route: str,
        otp_template: str = DEFAULT_OTP_TEMPLATE,
        otp_template_id: str = "",
        thank_you_template: str = DEFAULT_THANK_YOU_TEMPLATE,
        thank_you_template_id: str = "",
        timeout: int = 30,
    ):
        self.base_url = base_url
        self.username = username
        self.api_key = api_key
        self.sender_id = sender_id
        self.route = route
        self.otp_template = otp_template
        self.otp_template_id = otp_template_id
        self.thank_you_template = thank_you_template
        self.thank_you_template_id = thank_you_template_id
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "SMSGatewayConfig":
        """Build the gateway configuration from environment variables."""
        return cls(
            base_url=get_configs("SMS_GATEWAY_URL"),
            username=get_configs("SMS_GATEWAY_USERNAME"),
            api_key=get_configs("SMS_GATEWAY_API_KEY"),
            sender_id=get_configs("SMS_GATEWAY_SENDER_ID"),
            route=get_configs("SMS_GATEWAY_ROUTE"),
            otp_template=get_configs(
                "SMS_OTP_TEMPLATE", default_value=DEFAULT_OTP_TEMPLATE
            ),
            otp_template_id=get_configs("SMS_OTP_TEMPLATE_ID"),
            thank_you_template=get_configs(
                "SMS_THANK_YOU_TEMPLATE", default_value=DEFAULT_THANK_YOU_TEMPLATE
            ),
            thank_you_template_id=get_configs("SMS_THANK_YOU_TEMPLATE_ID"),
        )

    def validate(self) -> None:
        """Raise ConfigurationError when a required field is missing."""
        missing = [
            field for field in self.REQUIRED_FIELDS if not getattr(self, field)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing SMS gateway configuration: {', '.join(missing)}"
            )
        if TEMPLATE_PLACEHOLDER not in self.otp_template:
            raise ConfigurationError(
                f"SMS OTP template must contain the {TEMPLATE_PLACEHOLDER} placeholder"
            )


class SMSSender(ABC):
    """Base class for SMS senders."""

    @abstractmethod
    def send_otp_sms(self, phone_number: str, otp_code: str) -> Dict[str, Any]:
        """Send an OTP message."""

    @abstractmethod
    def send_thank_you_sms(self, phone_number: str, booking_id: str) -> Dict[str, Any]:
        """Send a booking confirmation message."""


class DevelopmentSMSSender(SMSSender):
    """Sender that logs instead of delivering, for local development."""

    def send_otp_sms(self, phone_number: str, otp_code: str) -> Dict[str, Any]:
        logger.info(
            "Development mode: skipping OTP SMS to %s (code %s)",
            mask_phone_number(phone_number),
            otp_code,
        )
        return {
            "success": True,
            "development_mode": True,
            "message": "OTP sent successfully (development mode)",
        }

    def send_thank_you_sms(self, phone_number: str, booking_id: str) -> Dict[str, Any]:
        logger.info(
            "Development mode: skipping thank-you SMS to %s for booking %s",
            mask_phone_number(phone_number),
            booking_id,
        )
        return {
            "success": True,
            "development_mode": True,
            "message": "Thank-you SMS sent successfully (development mode)",
        }


class SMSGateway(SMSSender):
    """Bulk SMS gateway speaking the ``apirequest=Text`` HTTP GET API."""

    def __init__(self, config: Optional[SMSGatewayConfig] = None, session=None):
        self.config = config or SMSGatewayConfig.from_env()
        self.config.validate()
        self.session = session or requests

    def send_otp_sms(self, phone_number: str, otp_code: str) -> Dict[str, Any]:
        """Send OTP via the SMS gateway."""
        message = self.config.otp_template.replace(TEMPLATE_PLACEHOLDER, otp_code)
        logger.info("Preparing to send OTP SMS to %s", mask_phone_number(phone_number))
        return self._send(phone_number, message, self.config.otp_template_id)

    def send_thank_you_sms(self, phone_number: str, booking_id: str) -> Dict[str, Any]:
        """Send a booking confirmation via the SMS gateway."""
        message = self.config.thank_you_template.replace(
            TEMPLATE_PLACEHOLDER, str(booking_id)
        )
        logger.info(
            "Preparing to send thank-you SMS to %s for booking %s",
            mask_phone_number(phone_number),
            booking_id,
        )
        return self._send(phone_number, message, self.config.thank_you_template_id)

    def _send(self, phone_number: str, message: str, template_id: str) -> Dict[str, Any]:
        params = {
            "username": self.config.username,
            "apikey": self.config.api_key,
            "apirequest": "Text",
            "sender": self.config.sender_id,
            "route": self.config.route,
            "mobile": to_national_number(phone_number),
            "message": message,
            "TemplateID": template_id,
            "format": "JSON",
        }

        try:
            response = self.session.get(
                self.config.base_url, params=params, timeout=self.config.timeout
            )
        except requests.RequestException as exc:
            logger.error("SMS gateway request failed: %s", exc)
            return {
                "success": False,
                "error": str(exc),
                "http_code": 0,
                "response": None,
            }

        success = response.status_code == 200 and bool(response.text)
        if success:
            logger.info("SMS gateway accepted message: %s", response.text)
        else:
            logger.error(
                "SMS gateway error %d: %s", response.status_code, response.text
            )

        return {
            "success": success,
            "http_code": response.status_code,
            "response": response.text,
            "error": None if success else "SMS gateway rejected the request",
        }


class TwilioSMSSender(SMSSender):
    """SMS delivery via the Twilio Messages API."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        otp_template: Optional[str] = None,
        thank_you_template: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        self.account_sid = account_sid or get_configs("TWILIO_ACCOUNT_SID")
        self.auth_token = auth_token or get_configs("TWILIO_AUTH_TOKEN")
        self.from_number = from_number or get_configs("TWILIO_PHONE_NUMBER")
        self.otp_template = otp_template or get_configs(
            "SMS_OTP_TEMPLATE", default_value=DEFAULT_OTP_TEMPLATE
        )
        self.thank_you_template = thank_you_template or get_configs(
            "SMS_THANK_YOU_TEMPLATE", default_value=DEFAULT_THANK_YOU_TEMPLATE
        )

        if not (self.account_sid and self.auth_token and self.from_number):
            raise ConfigurationError(
                "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER are required"
            )

        self.client = client or Client(self.account_sid, self.auth_token)

    def send_otp_sms(self, phone_number: str, otp_code: str) -> Dict[str, Any]:
        """Send OTP via Twilio."""
        body = self.otp_template.replace(TEMPLATE_PLACEHOLDER, otp_code)
        return self._send(phone_number, body)

    def send_thank_you_sms(self, phone_number: str, booking_id: str) -> Dict[str, Any]:
        """Send a booking confirmation via Twilio."""
        body = self.thank_you_template.replace(TEMPLATE_PLACEHOLDER, str(booking_id))
        return self._send(phone_number, body)

    def _send(self, phone_number: str, body: str) -> Dict[str, Any]:
        try:
            message = self.client.messages.create(
                body=body, from_=self.from_number, to=phone_number
            )
        except TwilioRestException as e:
            logger.error("Twilio error: %s", e)
            return {"success": False, "error": str(e), "http_code": e.status}

        if message.status in ("accepted", "queued", "sending", "sent"):
            logger.info("SMS sent via Twilio")
            return {"success": True, "sid": message.sid, "status": message.status}

        logger.error("Twilio send failed: %s", message.status)
        return {
            "success": False,
            "error": f"Unexpected Twilio status: {message.status}",
            "status": message.status,
        }


def get_sms_sender() -> SMSSender:
    """Build the SMS sender selected by configuration.

    Raises:
        ConfigurationError: If the provider is unknown or its credentials
            are missing.
    """
    if get_bool_config("DEVELOPMENT_MODE"):
        return DevelopmentSMSSender()

    provider = get_configs("SMS_PROVIDER", default_value=SMSProvider.GATEWAY.value)
    if provider == SMSProvider.GATEWAY.value:
        return SMSGateway()
    if provider == SMSProvider.TWILIO.value:
        return TwilioSMSSender()

    raise ConfigurationError(f"Unknown SMS provider: {provider}")
