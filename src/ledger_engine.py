import logging
from dataclasses import replace
from typing import List, Optional

from models import AccountSnapshot, DisputeEntry, RejectionReason, Transaction
from state_manager import StateManager
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class LedgerEngine:
    """
    Owns all account and dispute state for one run.

    apply() is safe to call from several threads as long as each client's
    transactions are applied in input order; the client lock serialises
    mutations of a single account.
    """

    def __init__(self):
        self._state = StateManager()
        self._processor = TransactionProcessor(self._state)

    def apply(self, transaction: Transaction) -> Optional[RejectionReason]:
        """
        Apply one transaction.

        Returns:
            None if the transaction was applied, otherwise the reason it was
            rejected. A rejected transaction changes nothing.
        """
        lock = self._state.get_client_lock(transaction.client_id)
        with lock:
            reason = self._processor.process_transaction(transaction)

        if reason is None:
            logger.debug(f"Applied {transaction}")
        return reason

    def snapshot(self) -> List[AccountSnapshot]:
        """Export every account in first-seen order, balances at the fixed scale."""
        snapshots = []
        for account in self._state.get_all_accounts():
            with self._state.get_client_lock(account.client_id):
                snapshots.append(account.snapshot())
        return snapshots

    def account(self, client_id: int) -> Optional[AccountSnapshot]:
        account = self._state.get_account(client_id)
        if account is None:
            return None
        with self._state.get_client_lock(client_id):
            return account.snapshot()

    def dispute_entry(self, transaction_id: int) -> Optional[DisputeEntry]:
        """Copy of the dispute-tracking entry for audit; stays readable after a chargeback."""
        entry = self._state.get_dispute_entry(transaction_id)
        return replace(entry) if entry is not None else None
