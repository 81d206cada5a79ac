# Overview: Sequential, rate-limited dispatch of WhatsApp reminders with an append-only delivery log.

"""
Notification Dispatcher

WHY: Reminders go out in batches started by an external scheduler
(weekly debt reminders, daily due-date reminders). The batch is best effort:
each customer is handled on its own and one failure never stops the rest.

Per customer:
1. Build the message.
2. Call the messaging capability (outside any DB transaction).
3. In one commit: append a NotificationLog row and, on success only,
   update the customer's reminder state.
4. Wait NOTIFICATION_DELAY_SECONDS (never less than one second) before
   the next customer.

A failed delivery leaves customer state untouched, so the customer stays
eligible and is picked up again by the next run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from flask import current_app
from sqlalchemy.orm import Session

from ..errors import TransactionFailure
from ..models import Customer, NotificationLog
from urban_store.time_utils import utcnow
from .concurrency import run_in_transaction
from .messaging import MessageSender, SendResult, debt_reminder_message, scheduled_payment_message
from .reminder_service import (
    DEFAULT_REMINDER_INTERVAL_DAYS,
    KIND_DEBT,
    KIND_SCHEDULED,
    debt_reminder_candidates,
    is_due_for_debt_reminder,
    is_due_for_scheduled_reminder,
    scheduled_payment_candidates,
)

LOG_STATUS_SENT = "SENT"
LOG_STATUS_FAILED = "FAILED"
LOG_STATUS_PENDING = "PENDING"

DEFAULT_DELAY_SECONDS = 1.0
MIN_DELAY_SECONDS = 1.0


@dataclass
class DispatchSummary:
    kind: str
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    log_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "log_ids": list(self.log_ids),
        }


def dispatch_debt_reminders(
    session: Session,
    sender: MessageSender,
    *,
    now: datetime | None = None,
    interval_days: int = DEFAULT_REMINDER_INTERVAL_DAYS,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    store_name: str = "Urban Store",
    sleep: Callable[[float], None] = time.sleep,
) -> DispatchSummary:
    """Send a debt reminder to every customer the debt rule selects."""
    customers = debt_reminder_candidates(session, now=now, interval_days=interval_days)
    return _dispatch_batch(
        session,
        sender,
        customers,
        kind=KIND_DEBT,
        now=now,
        interval_days=interval_days,
        delay_seconds=delay_seconds,
        store_name=store_name,
        sleep=sleep,
    )


def dispatch_scheduled_reminders(
    session: Session,
    sender: MessageSender,
    *,
    now: datetime | None = None,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    store_name: str = "Urban Store",
    sleep: Callable[[float], None] = time.sleep,
) -> DispatchSummary:
    """Send a due-date reminder to every customer the scheduled rule selects."""
    customers = scheduled_payment_candidates(session, now=now)
    return _dispatch_batch(
        session,
        sender,
        customers,
        kind=KIND_SCHEDULED,
        now=now,
        interval_days=DEFAULT_REMINDER_INTERVAL_DAYS,
        delay_seconds=delay_seconds,
        store_name=store_name,
        sleep=sleep,
    )


def _build_message(customer: Customer, kind: str, store_name: str) -> str:
    if kind == KIND_DEBT:
        return debt_reminder_message(customer.name, customer.balance_cents, store_name=store_name)
    return scheduled_payment_message(
        customer.name, customer.balance_cents, customer.next_payment_date, store_name=store_name
    )


def _still_eligible(customer: Customer, kind: str, now: datetime, interval_days: int) -> bool:
    if kind == KIND_DEBT:
        return is_due_for_debt_reminder(customer, now, interval_days)
    return is_due_for_scheduled_reminder(customer, now)


def _dispatch_batch(
    session: Session,
    sender: MessageSender,
    customers: list[Customer],
    *,
    kind: str,
    now: datetime | None,
    interval_days: int,
    delay_seconds: float,
    store_name: str,
    sleep: Callable[[float], None],
) -> DispatchSummary:
    logger = current_app.logger
    summary = DispatchSummary(kind=kind)
    spacing = max(delay_seconds or 0.0, MIN_DELAY_SECONDS)

    # Plain snapshots survive the commits/rollbacks done per customer
    targets = [
        {"id": c.id, "name": c.name, "whatsapp_number": c.whatsapp_number}
        for c in customers
    ]
    if not targets:
        logger.info("No customers pending %s reminder", kind.lower())
        return summary

    logger.info("Dispatching %s reminders to %d customers", kind.lower(), len(targets))

    for index, target in enumerate(targets):
        if index > 0:
            sleep(spacing)

        try:
            outcome, log_id = _dispatch_one(
                session, sender, target["id"],
                kind=kind, now=now, interval_days=interval_days, store_name=store_name,
            )
        except Exception as exc:
            session.rollback()
            logger.exception("Error processing %s reminder for customer %s", kind.lower(), target["name"])
            summary.processed += 1
            summary.failed += 1
            log_id = _record_failure(session, target, kind=kind, message="Error while processing reminder", error=str(exc))
            if log_id is not None:
                summary.log_ids.append(log_id)
            continue

        if outcome == "skipped":
            summary.skipped += 1
            continue

        summary.processed += 1
        summary.log_ids.append(log_id)
        if outcome == LOG_STATUS_SENT:
            summary.sent += 1
            logger.info("%s reminder sent to %s", kind.capitalize(), target["name"])
        else:
            summary.failed += 1
            logger.error("%s reminder to %s failed", kind.capitalize(), target["name"])

    logger.info(
        "%s reminders done: %d sent, %d failed, %d skipped",
        kind.capitalize(), summary.sent, summary.failed, summary.skipped,
    )
    return summary


def _dispatch_one(
    session: Session,
    sender: MessageSender,
    customer_id: int,
    *,
    kind: str,
    now: datetime | None,
    interval_days: int,
    store_name: str,
) -> tuple[str, int | None]:
    customer = session.get(Customer, customer_id)
    # A payment or deletion since selection can make the reminder moot
    if customer is None or not _still_eligible(customer, kind, now or utcnow(), interval_days):
        return "skipped", None

    body = _build_message(customer, kind, store_name)
    recipient = customer.whatsapp_number
    name = customer.name
    session.commit()  # Release the read transaction before the network call

    try:
        result = sender.send(recipient, body)
    except Exception as exc:
        current_app.logger.exception("Messaging capability raised for customer %s", customer_id)
        result = SendResult(success=False, error=str(exc) or exc.__class__.__name__)

    sent_at = now or utcnow()

    def _op():
        c = session.get(Customer, customer_id)
        log = NotificationLog(
            customer_id=customer_id,
            customer_name=c.name if c else name,
            whatsapp_number=recipient,
            kind=kind,
            message=body,
            status=LOG_STATUS_SENT if result.success else LOG_STATUS_FAILED,
            provider_response=result.to_dict(),
            error=result.error,
            sent_at=sent_at,
        )
        session.add(log)
        if result.success and c is not None:
            if kind == KIND_DEBT:
                c.last_reminder_at = sent_at
            else:
                c.payment_reminder_sent = True
        session.commit()
        return log.id

    try:
        log_id = run_in_transaction(session, _op, description="Notification log")
    except TransactionFailure as exc:
        # Keep the attempt on record even if the state update lost a race
        current_app.logger.error("Could not record %s reminder for customer %s: %s", kind.lower(), customer_id, exc)
        if result.success:
            error = f"Delivered; state update not recorded: {exc}"
        else:
            error = result.error or str(exc)
        log_id = _record_failure(
            session,
            {"id": customer_id, "name": name, "whatsapp_number": recipient},
            kind=kind,
            message=body,
            error=error,
            provider_response=result.to_dict(),
        )
        return LOG_STATUS_FAILED, log_id

    return (LOG_STATUS_SENT if result.success else LOG_STATUS_FAILED), log_id


def _record_failure(
    session: Session,
    target: dict,
    *,
    kind: str,
    message: str,
    error: str,
    provider_response: dict | None = None,
) -> int | None:
    """Write a FAILED log row on its own; never raises."""
    try:
        log = NotificationLog(
            customer_id=target["id"],
            customer_name=target["name"] or "",
            whatsapp_number=target["whatsapp_number"] or "",
            kind=kind,
            message=message,
            status=LOG_STATUS_FAILED,
            provider_response=provider_response,
            error=error,
            sent_at=utcnow(),
        )
        session.add(log)
        session.commit()
        return log.id
    except Exception:
        session.rollback()
        current_app.logger.exception("Error saving notification log for customer %s", target["id"])
        return None
