"""
Vault Error Taxonomy

Domain-specific exceptions raised by the vault ledger. Every error carries
its structured payload as attributes so callers (tests, HTTP layer, monitors)
can react to the exact condition instead of parsing messages.
"""

from typing import Any, Dict, Hashable


class VaultError(Exception):
    """Base class for all vault ledger errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        """Stable error identifier (the class name)"""
        return type(self).__name__

    def payload(self) -> Dict[str, Any]:
        """Structured fields describing the failure"""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "error": self.code,
            "message": self.message,
            "detail": self.payload()
        }


class InvalidConfiguration(VaultError):
    """Raised when the ledger is constructed with a non-positive limit"""

    def __init__(self, field: str, value: Any):
        super().__init__(f"{field} must be a positive integer, got {value!r}")
        self.field = field
        self.value = value

    def payload(self) -> Dict[str, Any]:
        return {"field": self.field, "value": self.value}


class InvalidAmount(VaultError):
    """Raised when an amount is negative or not an integer"""

    def __init__(self, amount: Any):
        super().__init__(f"Amount must be a non-negative integer, got {amount!r}")
        self.amount = amount

    def payload(self) -> Dict[str, Any]:
        return {"amount": repr(self.amount)}


class ZeroAmount(VaultError):
    """Raised when a deposit or withdrawal is requested for 0"""

    def __init__(self):
        super().__init__("Amount must be greater than zero")


class CapExceeded(VaultError):
    """
    Raised when a deposit would push the ledger total above the bank cap.

    ``available`` is the headroom left before the rejected deposit.
    """

    def __init__(self, attempted: int, available: int):
        super().__init__(
            f"Deposit would bring total to {attempted}, only {available} available under cap"
        )
        self.attempted = attempted
        self.available = available

    def payload(self) -> Dict[str, Any]:
        return {"attempted": self.attempted, "available": self.available}


class ExceedsWithdrawLimit(VaultError):
    """Raised when a single withdrawal exceeds the per-operation ceiling"""

    def __init__(self, requested: int, limit: int):
        super().__init__(f"Withdrawal of {requested} exceeds limit of {limit}")
        self.requested = requested
        self.limit = limit

    def payload(self) -> Dict[str, Any]:
        return {"requested": self.requested, "limit": self.limit}


class InsufficientBalance(VaultError):
    """Raised when an owner asks for more than their credited balance"""

    def __init__(self, requested: int, available: int):
        super().__init__(f"Insufficient balance: requested {requested}, available {available}")
        self.requested = requested
        self.available = available

    def payload(self) -> Dict[str, Any]:
        return {"requested": self.requested, "available": self.available}


class TransferFailed(VaultError):
    """Raised when the value transfer collaborator reports failure"""

    def __init__(self, to: Hashable, amount: int):
        super().__init__(f"Transfer of {amount} to {to} failed")
        self.to = to
        self.amount = amount

    def payload(self) -> Dict[str, Any]:
        return {"to": str(self.to), "amount": self.amount}


class LedgerInvariantError(VaultError):
    """Raised when the ledger's accounting invariants do not hold"""

    def __init__(self, violations: list):
        super().__init__("Ledger invariants violated: " + "; ".join(violations))
        self.violations = violations

    def payload(self) -> Dict[str, Any]:
        return {"violations": list(self.violations)}
