# SPDX-License-Identifier: GPL-3.0-only
"""Peewee database models."""

import datetime

from peewee import (
    AutoField,
    BooleanField,
    CharField,
    DateTimeField,
    IntegerField,
    Model,
    TextField,
)

from src.db import connect

database = connect()


class BaseModel(Model):
    """Base model bound to the application database."""

    class Meta:
        database = database


class OTPVerification(BaseModel):
    """One-time password issued to a phone number for a purpose."""

    id = AutoField()
    phone = CharField(max_length=15)
    otp = CharField(max_length=6)
    purpose = CharField(max_length=32)
    verified = BooleanField(default=False)
    expires_at = DateTimeField()
    created_at = DateTimeField(default=datetime.datetime.now)
    verified_at = DateTimeField(null=True)
    attempts = IntegerField(default=0)
    max_attempts = IntegerField(default=3)

    class Meta:
        table_name = "otp_verifications"
        indexes = (
            (("phone", "purpose"), False),
            (("otp", "expires_at"), False),
            (("created_at",), False),
        )

    def remaining_seconds(self, now=None) -> int:
        """Seconds until expiry, never negative."""
        delta = self.expires_at - (now or datetime.datetime.now())
        return max(0, int(delta.total_seconds()))


class SalesforceSubmission(BaseModel):
    """Ledger of CRM submissions already sent for a transaction."""

    id = AutoField()
    transaction_id = CharField(max_length=255)
    form_type = CharField(max_length=50)
    submission_type = CharField(max_length=20)
    customer_email = CharField(max_length=255, default="")
    customer_phone = CharField(max_length=20, default="")
    submitted_at = DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "salesforce_submissions"
        indexes = (
            (("transaction_id", "submission_type", "form_type"), True),
            (("transaction_id", "submission_type"), False),
        )


class EmailNotification(BaseModel):
    """Ledger of transaction e-mails already sent."""

    id = AutoField()
    transaction_id = CharField(max_length=50)
    status = CharField(max_length=20)
    email_type = CharField(max_length=20, default="both")
    recipients = TextField(null=True)
    sent_at = DateTimeField(default=datetime.datetime.now)
    created_at = DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "email_notifications"
        indexes = (
            (("transaction_id", "status"), True),
            (("sent_at",), False),
        )
