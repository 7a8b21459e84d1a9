# SPDX-License-Identifier: GPL-3.0-only
"""Ledgers that stop repeated CRM submissions and transaction e-mails."""

import datetime
import json
from typing import Any, Dict, Iterable, List, Optional, Sequence

from peewee import Field, Insert, Model, MySQLDatabase, fn

from base_logger import get_logger
from src.db_models import EmailNotification, SalesforceSubmission
from src.types import EmailType, NotificationStatus, SubmissionType

logger = get_logger(__name__)

NOTIFICATION_STATUSES = {status.value for status in NotificationStatus}
EMAIL_TYPES = {email_type.value for email_type in EmailType}


def build_upsert(
    model: Model,
    row: Dict[str, Any],
    conflict_fields: Sequence[Field],
    update: Dict[Field, Any],
) -> Insert:
    """
    Build an INSERT that updates the existing row on a unique-key conflict.

    MySQL resolves the conflict through ``ON DUPLICATE KEY UPDATE`` on the
    table's unique index and rejects an explicit conflict target, so the
    target is only passed to the other backends.
    """
    query = model.insert(**row)
    if isinstance(model._meta.database, MySQLDatabase):
        return query.on_conflict(update=update)
    return query.on_conflict(conflict_target=list(conflict_fields), update=update)


def normalize_submission_type(payment_status: str) -> str:
    """Map a raw payment status onto success, failed or pending."""
    status = (payment_status or "").strip().lower()
    if status in ("completed", "success"):
        return SubmissionType.SUCCESS.value
    if status in ("failed", "failure"):
        return SubmissionType.FAILED.value
    return SubmissionType.PENDING.value


def has_submission(transaction_id: str, submission_type: str, form_type: str) -> bool:
    """Check whether a CRM submission was already recorded."""
    return (
        SalesforceSubmission.select()
        .where(
            (SalesforceSubmission.transaction_id == transaction_id)
            & (SalesforceSubmission.submission_type == submission_type)
            & (SalesforceSubmission.form_type == form_type)
        )
        .exists()
    )


def record_submission(
    transaction_id: str,
    form_type: str,
    submission_type: str,
    customer_email: str = "",
    customer_phone: str = "",
) -> None:
    """
    Record a CRM submission, refreshing the timestamp if it already exists.

    Args:
        transaction_id (str): Payment transaction identifier.
        form_type (str): Form that produced the submission.
        submission_type (str): Normalized payment status.
        customer_email (str): Customer e-mail, if known.
        customer_phone (str): Customer phone, if known.
    """
    now = datetime.datetime.now()
    with SalesforceSubmission._meta.database.atomic():
        build_upsert(
            SalesforceSubmission,
            {
                "transaction_id": transaction_id,
                "form_type": form_type,
                "submission_type": submission_type,
                "customer_email": customer_email or "",
                "customer_phone": customer_phone or "",
                "submitted_at": now,
            },
            conflict_fields=[
                SalesforceSubmission.transaction_id,
                SalesforceSubmission.submission_type,
                SalesforceSubmission.form_type,
            ],
            update={SalesforceSubmission.submitted_at: now},
        ).execute()

    logger.info(
        "Submission recorded: transaction=%s type=%s form=%s",
        transaction_id,
        submission_type,
        form_type,
    )


def is_duplicate_submission(
    transaction_id: str,
    payment_status: str,
    form_type: str,
    customer_email: str = "",
    customer_phone: str = "",
) -> bool:
    """
    Check a CRM submission against the ledger and claim it when new.

    Args:
        transaction_id (str): Payment transaction identifier.
        payment_status (str): Raw payment status.
        form_type (str): Form that produced the submission.

    Returns:
        bool: True if the submission was already sent. Missing identifiers
        and storage errors return False so that the send goes ahead.
    """
    if not transaction_id or not payment_status:
        return False

    submission_type = normalize_submission_type(payment_status)

    try:
        if has_submission(transaction_id, submission_type, form_type):
            logger.info(
                "Duplicate submission skipped: transaction=%s type=%s form=%s",
                transaction_id,
                submission_type,
                form_type,
            )
            return True

        record_submission(
            transaction_id,
            form_type,
            submission_type,
            customer_email=customer_email,
            customer_phone=customer_phone,
        )
        return False
    except Exception as e:
        logger.error(
            "Error checking duplicate submission for transaction %s: %s",
            transaction_id,
            e,
        )
        return False


def is_email_sent(transaction_id: str, status: str) -> bool:
    """Check whether a transaction e-mail was already sent for a status."""
    return (
        EmailNotification.select()
        .where(
            (EmailNotification.transaction_id == transaction_id)
            & (EmailNotification.status == status)
        )
        .exists()
    )


def record_email_sent(
    transaction_id: str,
    status: str,
    recipients: Optional[Iterable[str]] = None,
    email_type: str = EmailType.BOTH.value,
) -> bool:
    """
    Record a sent transaction e-mail.

    Re-recording the same transaction and status refreshes ``sent_at`` and
    the recipient list.

    Args:
        transaction_id (str): Payment transaction identifier.
        status (str): One of ``success``, ``failure`` or ``pending``.
        recipients (Iterable[str]): Addresses the e-mail went to.
        email_type (str): One of ``admin``, ``customer`` or ``both``.

    Returns:
        bool: True if recorded, False for an unknown status or type and on
        a storage error.
    """
    if status not in NOTIFICATION_STATUSES:
        logger.error("Unknown e-mail notification status: %s", status)
        return False
    if email_type not in EMAIL_TYPES:
        logger.error("Unknown e-mail notification type: %s", email_type)
        return False

    now = datetime.datetime.now()
    recipients_json = json.dumps(list(recipients)) if recipients else None

    try:
        with EmailNotification._meta.database.atomic():
            build_upsert(
                EmailNotification,
                {
                    "transaction_id": transaction_id,
                    "status": status,
                    "email_type": email_type,
                    "recipients": recipients_json,
                    "sent_at": now,
                    "created_at": now,
                },
                conflict_fields=[
                    EmailNotification.transaction_id,
                    EmailNotification.status,
                ],
                update={
                    EmailNotification.recipients: recipients_json,
                    EmailNotification.sent_at: now,
                },
            ).execute()
        return True
    except Exception as e:
        logger.error("Error recording email notification: %s", e)
        return False


def get_email_stats(days: int = 7) -> List[Dict[str, Any]]:
    """
    Count e-mail notifications per day and status.

    Args:
        days (int): Size of the trailing window in days.

    Returns:
        list: Dicts with ``date`` (``YYYY-MM-DD``), ``status`` and
        ``total_emails``, newest first.
    """
    since = datetime.datetime.now() - datetime.timedelta(days=days)
    # raw DATE() result, not parsed back into a datetime by the column type
    sent_date = fn.DATE(EmailNotification.sent_at).coerce(False)

    query = (
        EmailNotification.select(
            EmailNotification.status,
            fn.COUNT(EmailNotification.id).alias("total_emails"),
            sent_date.alias("date"),
        )
        .where(EmailNotification.sent_at >= since)
        .group_by(EmailNotification.status, sent_date)
        .order_by(sent_date.desc(), EmailNotification.status)
    )

    return [
        {
            "date": str(row["date"]),
            "status": row["status"],
            "total_emails": row["total_emails"],
        }
        for row in query.dicts()
    ]
