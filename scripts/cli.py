# SPDX-License-Identifier: GPL-3.0-only
"""Lead verification CLI"""

import argparse
import json
import sys

from base_logger import get_logger
from src.otp_service import OTPService
from src.submission_ledger import get_email_stats

logger = get_logger("leads.cli")


def cleanup(service: OTPService) -> int:
    """Delete stale OTP records (meant to run from cron)."""
    deleted_count = service.cleanup_expired_otps()
    logger.info("Cleanup removed %d OTP records", deleted_count)
    return 0


def send_otp(service: OTPService, phonenumber: str, purpose: str, force_new: bool) -> int:
    """Issue an OTP and print the result."""
    result = service.generate_and_send_otp(phonenumber, purpose, force_new=force_new)
    print(json.dumps(result, default=str, indent=2))
    return 0 if result["success"] else 1


def verify_otp(service: OTPService, phonenumber: str, otp: str, purpose: str) -> int:
    """Verify an OTP and print the result."""
    result = service.verify_otp(phonenumber, otp, purpose)
    print(json.dumps(result, default=str, indent=2))
    return 0 if result["success"] else 1


def status(service: OTPService, phonenumber: str, purpose: str) -> int:
    """Print whether a phone number is currently verified."""
    verified = service.is_phone_verified(phonenumber, purpose)
    print(json.dumps({"phone": phonenumber, "purpose": purpose, "verified": verified}))
    return 0 if verified else 1


def email_stats(days: int) -> int:
    """Print transaction e-mail counts per day and status."""
    stats = get_email_stats(days)
    if not stats:
        print("No email notifications found.")
        return 0

    for stat in stats:
        print(
            f"Date: {stat['date']} | Status: {stat['status']} | Count: {stat['total_emails']}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(description="Lead verification CLI")
    subparsers = parser.add_subparsers(dest="command", description="Expected commands")

    subparsers.add_parser("cleanup", help="Deletes stale OTP records.")

    send_parser = subparsers.add_parser("send-otp", help="Issues an OTP.")
    send_parser.add_argument(
        "-n", "--phonenumber", type=str, help="Recipient phone number.", required=True
    )
    send_parser.add_argument("-p", "--purpose", type=str, default="contact_form")
    send_parser.add_argument(
        "--force-new", action="store_true", help="Resend a pending OTP."
    )

    verify_parser = subparsers.add_parser("verify-otp", help="Verifies an OTP.")
    verify_parser.add_argument("-n", "--phonenumber", type=str, required=True)
    verify_parser.add_argument("-o", "--otp", type=str, required=True)
    verify_parser.add_argument("-p", "--purpose", type=str, default="contact_form")

    status_parser = subparsers.add_parser(
        "status", help="Shows phone verification status."
    )
    status_parser.add_argument("-n", "--phonenumber", type=str, required=True)
    status_parser.add_argument("-p", "--purpose", type=str, default="contact_form")

    stats_parser = subparsers.add_parser(
        "email-stats", help="Shows transaction e-mail statistics."
    )
    stats_parser.add_argument("-d", "--days", type=int, default=7)

    return parser


def main(argv=None, service: OTPService = None) -> int:
    """Entry function"""

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    if args.command == "email-stats":
        return email_stats(args.days)

    service = service or OTPService()

    if args.command == "cleanup":
        return cleanup(service)
    if args.command == "send-otp":
        return send_otp(service, args.phonenumber, args.purpose, args.force_new)
    if args.command == "verify-otp":
        return verify_otp(service, args.phonenumber, args.otp, args.purpose)
    if args.command == "status":
        return status(service, args.phonenumber, args.purpose)

    return 2


if __name__ == "__main__":
    sys.exit(main())
