"""Error taxonomy for ledger operations.

Ledger errors are ``HTTPException`` subclasses so routers can let them
propagate unchanged; the app renders them as ``{"error", "detail"}`` bodies.
Wallet sync errors are never raised to callers (see ``services.wallets``).
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class LoyaltyError(HTTPException):
    """Base class for errors that stop a ledger operation."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Loyalty operation failed"

    def __init__(self, detail: Optional[str] = None, **context: Any) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.error)
        self.context = context


class InvalidRedemption(LoyaltyError):
    """Bad reward category or threshold shape."""

    error = "Invalid redemption request"


class AlreadyRedeemed(LoyaltyError):
    error = "Reward already redeemed"


class InsufficientPoints(LoyaltyError):
    error = "Insufficient points"

    def __init__(self, *, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        self.shortfall = required - balance
        super().__init__(
            f"Not enough points: have {balance}, need {required} "
            f"({self.shortfall} short)",
            balance=balance,
            required=required,
            shortfall=self.shortfall,
        )


class CustomerNotFound(LoyaltyError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Customer not found"


class PersistenceFailure(LoyaltyError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Failed to persist loyalty update"


class WalletConfigurationError(RuntimeError):
    """Wallet credentials or identifiers are unusable. Fatal, not per-request."""
