# src/marketplace/core/errors.py
from __future__ import annotations


class MarketplaceError(Exception):
    """
    Root of every failure raised by the marketplace.

    `code` is stable and safe to show to callers / store in logs.
    """

    code: str = "MARKETPLACE_ERROR"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.code)
        self.context = dict(context)


# ------------------------------------------------------------
# custody
# ------------------------------------------------------------
class NotApproved(MarketplaceError):
    code = "NOT_APPROVED"


class CustodyTakeFailed(MarketplaceError):
    code = "CUSTODY_TAKE_FAILED"


class CustodyReleaseFailed(MarketplaceError):
    code = "CUSTODY_RELEASE_FAILED"


# ------------------------------------------------------------
# ledger
# ------------------------------------------------------------
class OrderNotFound(MarketplaceError):
    code = "ORDER_NOT_FOUND"


class OrderNotOpen(MarketplaceError):
    code = "ORDER_NOT_OPEN"


NotOpen = OrderNotOpen


class Unauthorized(MarketplaceError):
    code = "UNAUTHORIZED"


class InvalidPrice(MarketplaceError):
    code = "INVALID_PRICE"


# ------------------------------------------------------------
# settlement / pricing
# ------------------------------------------------------------
class InsufficientPayment(MarketplaceError):
    code = "INSUFFICIENT_PAYMENT"

    def __init__(self, *, required: int, paid: int, order_id: int | None = None):
        super().__init__(
            f"payment {paid} is below required {required}",
            required=required,
            paid=paid,
            order_id=order_id,
        )
        self.required = int(required)
        self.paid = int(paid)


class StaleOrMissingReading(MarketplaceError):
    code = "STALE_OR_MISSING_READING"


class PaymentFailed(MarketplaceError):
    code = "PAYMENT_FAILED"


# ------------------------------------------------------------
# collaborators
# ------------------------------------------------------------
class RegistryError(MarketplaceError):
    code = "REGISTRY_ERROR"


class UnknownRegistry(MarketplaceError):
    code = "UNKNOWN_REGISTRY"


class OracleUnavailable(MarketplaceError):
    code = "ORACLE_UNAVAILABLE"


class UnsupportedNetwork(MarketplaceError):
    code = "UNSUPPORTED_NETWORK"
