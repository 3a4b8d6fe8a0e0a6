import logging
from typing import Optional, Tuple

from models import (
    DisputeEntry,
    DisputeStatus,
    RejectionReason,
    Transaction,
    TransactionType,
)
from state_manager import StateManager

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transactions against state.
    Returns None on success, or the RejectionReason explaining why the
    transaction was skipped. Every check runs before any mutation, so a
    rejected transaction leaves balances and dispute entries untouched; the
    only trace it can leave is the empty account of a client first seen in a
    refused withdrawal.
    Caller is responsible for holding the appropriate client lock.
    """

    def __init__(self, state: StateManager):
        self._state = state

    def process_transaction(self, transaction: Transaction) -> Optional[RejectionReason]:
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(transaction)
        raise ValueError(f"Unsupported transaction type: {transaction.transaction_type!r}")

    def _handle_deposit(self, transaction: Transaction) -> Optional[RejectionReason]:
        rejection = self._check_funds_movement(transaction)
        if rejection is not None:
            return rejection

        if not self._register(transaction):
            return RejectionReason.DUPLICATE_TRANSACTION_ID

        account = self._state.get_or_create_account(transaction.client_id)
        account.credit(transaction.amount)
        return None

    def _handle_withdrawal(self, transaction: Transaction) -> Optional[RejectionReason]:
        rejection = self._check_funds_movement(transaction)
        if rejection is not None:
            return rejection

        # A withdrawal opens the account even when it is then refused for lack of funds.
        account = self._state.get_or_create_account(transaction.client_id)
        if account.available < transaction.amount:
            logger.debug(f"Withdrawal tx {transaction.transaction_id}: insufficient funds (available {account.available}, requested {transaction.amount})")
            return RejectionReason.INSUFFICIENT_FUNDS

        if not self._register(transaction):
            return RejectionReason.DUPLICATE_TRANSACTION_ID

        account.debit(transaction.amount)
        return None

    def _handle_dispute(self, transaction: Transaction) -> Optional[RejectionReason]:
        entry, rejection = self._lookup_entry(transaction, DisputeStatus.NORMAL)
        if rejection is not None:
            return rejection

        # Withdrawals are disputable too: the withdrawn amount is held pending resolution.
        account = self._state.get_or_create_account(transaction.client_id)
        account.hold(entry.amount)
        entry.status = DisputeStatus.DISPUTED
        return None

    def _handle_resolve(self, transaction: Transaction) -> Optional[RejectionReason]:
        entry, rejection = self._lookup_entry(transaction, DisputeStatus.DISPUTED)
        if rejection is not None:
            return rejection

        account = self._state.get_or_create_account(transaction.client_id)
        account.release_hold(entry.amount)
        entry.status = DisputeStatus.RESOLVED
        return None

    def _handle_chargeback(self, transaction: Transaction) -> Optional[RejectionReason]:
        entry, rejection = self._lookup_entry(transaction, DisputeStatus.DISPUTED)
        if rejection is not None:
            return rejection

        account = self._state.get_or_create_account(transaction.client_id)
        account.remove_held(entry.amount)
        account.lock()
        entry.status = DisputeStatus.CHARGED_BACK
        logger.info(f"Chargeback tx {transaction.transaction_id}: client {transaction.client_id} account locked")
        return None

    def _check_funds_movement(self, transaction: Transaction) -> Optional[RejectionReason]:
        """Preconditions shared by deposits and withdrawals."""
        name = transaction.transaction_type.value.capitalize()

        if transaction.amount is None or transaction.amount <= 0:
            logger.debug(f"{name} tx {transaction.transaction_id}: invalid amount {transaction.amount}")
            return RejectionReason.INVALID_AMOUNT

        if self._state.has_dispute_entry(transaction.transaction_id):
            logger.debug(f"{name} tx {transaction.transaction_id}: transaction id already used")
            return RejectionReason.DUPLICATE_TRANSACTION_ID

        account = self._state.get_account(transaction.client_id)
        if account is not None and account.locked:
            logger.debug(f"{name} tx {transaction.transaction_id}: client {transaction.client_id} account is locked")
            return RejectionReason.ACCOUNT_LOCKED

        return None

    def _register(self, transaction: Transaction) -> bool:
        entry = DisputeEntry(
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            amount=transaction.amount,
            transaction_type=transaction.transaction_type,
        )
        return self._state.register_dispute_entry(entry)

    def _lookup_entry(
        self, transaction: Transaction, expected: DisputeStatus
    ) -> Tuple[Optional[DisputeEntry], Optional[RejectionReason]]:
        """
        Find the entry a dispute, resolve or chargeback refers to and check
        it is in the expected lifecycle state.
        Returns (entry, None) on success, (None, reason) otherwise.
        """
        name = transaction.transaction_type.value.capitalize()

        entry = self._state.get_dispute_entry(transaction.transaction_id)
        if entry is None:
            logger.debug(f"{name} for tx {transaction.transaction_id}: transaction not found")
            return None, RejectionReason.UNKNOWN_TRANSACTION_REFERENCE

        if entry.client_id != transaction.client_id:
            logger.debug(f"{name} for tx {transaction.transaction_id}: client mismatch (expected {entry.client_id}, got {transaction.client_id})")
            return None, RejectionReason.CLIENT_MISMATCH

        if entry.status != expected:
            logger.debug(f"{name} for tx {transaction.transaction_id}: transaction is {entry.status.value}, expected {expected.value}")
            return None, RejectionReason.INVALID_LIFECYCLE_TRANSITION

        return entry, None
