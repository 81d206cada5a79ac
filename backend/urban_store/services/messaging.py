# Overview: WhatsApp messaging capability (Twilio REST transport or simulated fallback).

"""
Messaging capability

Contract: sender.send(recipient, body) -> SendResult

- TwilioWhatsAppSender posts to Twilio's Messages API over httpx.
- SimulatedSender is used when Twilio is not configured. It logs the message
  and reports success with simulated=True; nothing is delivered.

send() never raises for delivery problems. Transport errors and provider
rejections come back as SendResult(success=False, error=...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from flask import current_app

from ..errors import ExternalServiceFailure

PLACEHOLDER_ACCOUNT_SID = "your_account_sid_here"


@dataclass
class SendResult:
    success: bool
    provider_id: str | None = None
    error: str | None = None
    simulated: bool = False
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {"success": self.success, "simulated": self.simulated}
        if self.provider_id:
            data["provider_id"] = self.provider_id
        if self.error:
            data["error"] = self.error
        data.update(self.payload)
        return data


class MessageSender(Protocol):
    def send(self, recipient: str, body: str) -> SendResult:
        ...


def format_whatsapp_address(number: str) -> str:
    number = number.strip()
    if number.startswith("whatsapp:"):
        return number
    # Twilio wants E.164 without formatting characters
    digits = "".join(ch for ch in number if ch.isdigit())
    return f"whatsapp:+{digits}"


class SimulatedSender:
    """Stand-in used when no provider credentials are configured."""

    def send(self, recipient: str, body: str) -> SendResult:
        current_app.logger.warning(
            "Twilio not configured; simulated WhatsApp message to %s: %s", recipient, body
        )
        return SendResult(
            success=True,
            simulated=True,
            payload={"to": recipient, "message": "Twilio not configured - simulated message"},
        )


class TwilioWhatsAppSender:
    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        from_number: str,
        api_base: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.account_sid = account_sid
        self.from_address = format_whatsapp_address(from_number)
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.Client(auth=(account_sid, auth_token), timeout=timeout)

    @property
    def messages_url(self) -> str:
        return f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"

    def _deliver(self, recipient: str, body: str) -> dict:
        try:
            response = self._client.post(
                self.messages_url,
                data={"From": self.from_address, "To": format_whatsapp_address(recipient), "Body": body},
            )
        except httpx.HTTPError as exc:
            raise ExternalServiceFailure(f"Messaging provider unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {"raw": response.text}

        if response.status_code >= 400:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ExternalServiceFailure(
                message or f"Messaging provider returned HTTP {response.status_code}",
                details={"status_code": response.status_code, "code": payload.get("code") if isinstance(payload, dict) else None},
            )
        return payload

    def send(self, recipient: str, body: str) -> SendResult:
        try:
            payload = self._deliver(recipient, body)
        except ExternalServiceFailure as exc:
            current_app.logger.error("WhatsApp send to %s failed: %s", recipient, exc.message)
            return SendResult(success=False, error=exc.message, payload={"to": recipient, **exc.details})

        current_app.logger.info("WhatsApp message sent to %s: %s", recipient, payload.get("sid"))
        return SendResult(
            success=True,
            provider_id=payload.get("sid"),
            payload={
                "to": payload.get("to", recipient),
                "status": payload.get("status"),
                "date_created": payload.get("date_created"),
            },
        )


def is_twilio_configured(config) -> bool:
    sid = config.get("TWILIO_ACCOUNT_SID")
    return bool(
        sid
        and sid != PLACEHOLDER_ACCOUNT_SID
        and config.get("TWILIO_AUTH_TOKEN")
        and config.get("TWILIO_WHATSAPP_FROM")
    )


def build_sender(config) -> MessageSender:
    """Pick the Twilio transport when configured, else the simulated one."""
    if not is_twilio_configured(config):
        return SimulatedSender()
    return TwilioWhatsAppSender(
        account_sid=config["TWILIO_ACCOUNT_SID"],
        auth_token=config["TWILIO_AUTH_TOKEN"],
        from_number=config["TWILIO_WHATSAPP_FROM"],
        api_base=config.get("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01"),
        timeout=config.get("MESSAGING_TIMEOUT_SECONDS", 10.0),
    )


# =============================================================================
# MESSAGE TEMPLATES
# =============================================================================

def format_money(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def debt_reminder_message(customer_name: str, balance_cents: int, store_name: str = "Urban Store") -> str:
    return (
        f"Hi {customer_name},\n\n"
        f"This is a reminder from *{store_name}*: you have a pending balance of "
        f"*{format_money(balance_cents)}*.\n\n"
        "Please stop by whenever you can to settle your account.\n\n"
        "Thank you for shopping with us!"
    )


def scheduled_payment_message(customer_name: str, balance_cents: int, due_date, store_name: str = "Urban Store") -> str:
    return (
        f"Hi {customer_name},\n\n"
        f"*{store_name}* reminds you that your payment was scheduled for "
        f"*{due_date.strftime('%Y-%m-%d')}*. Your pending balance is "
        f"*{format_money(balance_cents)}*.\n\n"
        "Thank you!"
    )
