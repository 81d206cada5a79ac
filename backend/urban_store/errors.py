# Overview: Error taxonomy shared by the ledger coordinators and the API layer.

"""
Ledger error taxonomy.

- NotFound: a referenced product, customer or sale does not exist.
- InvalidRequest: a precondition is violated (non-positive amount,
  overpayment, credit sale without customer, bad line item).
- InsufficientStock: a sale line asks for more units than are on hand.
- TransactionFailure: the atomic commit could not complete (lock timeout,
  concurrent modification, store outage). Nothing from the operation survives.
- ExternalServiceFailure: the messaging provider is unreachable or rejected
  the message. Only raised inside the messaging layer; the dispatcher records
  it and moves on.

NotFound / InvalidRequest are never retried. TransactionFailure is surfaced
as a generic failure and the caller resubmits.
"""


class LedgerError(Exception):
    """Base for all domain errors raised by the ledger services."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(LedgerError):
    status_code = 404


class InvalidRequest(LedgerError):
    status_code = 400


class InsufficientStock(InvalidRequest):
    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
            },
        )


class TransactionFailure(LedgerError):
    status_code = 503

    def to_dict(self) -> dict:
        # Store-level causes are not leaked to API callers
        return {"error": "Transaction could not be completed, please retry"}


class ExternalServiceFailure(LedgerError):
    status_code = 502
