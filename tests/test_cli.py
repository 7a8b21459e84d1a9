"""Test module for the lead verification CLI."""

import json

import pytest

from src.utils import set_configs


class FakeService:
    def __init__(self, success=True, verified=True, deleted=3):
        self.success = success
        self.verified = verified
        self.deleted = deleted
        self.calls = []

    def cleanup_expired_otps(self):
        self.calls.append(("cleanup",))
        return self.deleted

    def generate_and_send_otp(self, phone, purpose, force_new=False):
        self.calls.append(("send", phone, purpose, force_new))
        return {"success": self.success, "expires_in": 300}

    def verify_otp(self, phone, otp_code, purpose):
        self.calls.append(("verify", phone, otp_code, purpose))
        if self.success:
            return {"success": True, "verified": True}
        return {"success": False, "error": "Invalid or expired OTP", "invalid_otp": True}

    def is_phone_verified(self, phone, purpose):
        self.calls.append(("status", phone, purpose))
        return self.verified


@pytest.fixture(autouse=True)
def set_testing_mode():
    """Set test mode."""
    set_configs("MODE", "testing")


def test_cleanup():
    from scripts.cli import main

    service = FakeService()

    assert main(["cleanup"], service=service) == 0
    assert service.calls == [("cleanup",)]


def test_send_otp(capsys):
    from scripts.cli import main

    service = FakeService()

    exit_code = main(
        ["send-otp", "-n", "9876543210", "-p", "test_ride", "--force-new"],
        service=service,
    )

    assert exit_code == 0
    assert service.calls == [("send", "9876543210", "test_ride", True)]
    assert json.loads(capsys.readouterr().out) == {"success": True, "expires_in": 300}


def test_verify_otp_failure(capsys):
    from scripts.cli import main

    service = FakeService(success=False)

    exit_code = main(["verify-otp", "-n", "9876543210", "-o", "000000"], service=service)

    assert exit_code == 1
    assert service.calls == [("verify", "9876543210", "000000", "contact_form")]
    assert json.loads(capsys.readouterr().out)["invalid_otp"] is True


@pytest.mark.parametrize("verified, expected", [(True, 0), (False, 1)])
def test_status(capsys, verified, expected):
    from scripts.cli import main

    service = FakeService(verified=verified)

    assert main(["status", "-n", "9876543210"], service=service) == expected
    assert json.loads(capsys.readouterr().out)["verified"] is verified


def test_email_stats(capsys, monkeypatch):
    from scripts import cli

    monkeypatch.setattr(
        cli,
        "get_email_stats",
        lambda days: [{"date": "2026-10-19", "status": "success", "total_emails": 4}],
    )

    assert cli.main(["email-stats", "-d", "1"]) == 0
    assert "Status: success | Count: 4" in capsys.readouterr().out


def test_no_command(capsys):
    from scripts.cli import main

    assert main([], service=FakeService()) == 2
    assert "usage" in capsys.readouterr().out
