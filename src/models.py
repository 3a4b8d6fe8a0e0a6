import threading
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from enum import Enum
from typing import Dict, Optional

AMOUNT_SCALE = Decimal("0.0001")


def quantize_amount(value: Decimal) -> Decimal:
    """Round a balance to the fixed four-digit export scale."""
    return value.quantize(AMOUNT_SCALE, rounding=ROUND_HALF_EVEN)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def moves_funds(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class DisputeStatus(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"

    @property
    def is_terminal(self) -> bool:
        return self in (DisputeStatus.RESOLVED, DisputeStatus.CHARGED_BACK)


class RejectionReason(Enum):
    DUPLICATE_TRANSACTION_ID = "duplicate_transaction_id"
    UNKNOWN_TRANSACTION_REFERENCE = "unknown_transaction_reference"
    CLIENT_MISMATCH = "client_mismatch"
    INVALID_LIFECYCLE_TRANSITION = "invalid_lifecycle_transition"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ACCOUNT_LOCKED = "account_locked"
    INVALID_AMOUNT = "invalid_amount"


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount

    def lock(self) -> None:
        self.locked = True

    def snapshot(self) -> "AccountSnapshot":
        return AccountSnapshot(
            client_id=self.client_id,
            available=quantize_amount(self.available),
            held=quantize_amount(self.held),
            total=quantize_amount(self.total),
            locked=self.locked,
        )


@dataclass(frozen=True)
class AccountSnapshot:
    """Read-only export view of a ClientAccount, balances at the fixed scale."""

    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass
class DisputeEntry:
    """
    Dispute-tracking state for an accepted deposit or withdrawal.
    Amount and client are captured when the original transaction is accepted.
    """

    transaction_id: int
    client_id: int
    amount: Decimal
    transaction_type: TransactionType
    status: DisputeStatus = DisputeStatus.NORMAL


@dataclass(frozen=True)
class RejectedTransaction:
    transaction: Transaction
    reason: RejectionReason

    def __repr__(self) -> str:
        return f"RejectedTransaction({self.transaction!r}, reason={self.reason.value})"


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.processed = 0
        self.malformed = 0
        self._rejections: Counter = Counter()

    def record_success(self):
        with self._lock:
            self.processed += 1

    def record_rejection(self, reason: RejectionReason):
        with self._lock:
            self._rejections[reason] += 1

    def record_malformed(self):
        with self._lock:
            self.malformed += 1

    @property
    def rejected(self) -> int:
        with self._lock:
            return sum(self._rejections.values())

    def rejections_by_reason(self) -> Dict[RejectionReason, int]:
        with self._lock:
            return dict(self._rejections)
