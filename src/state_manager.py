import threading
from typing import Dict, List, Optional

from models import ClientAccount, DisputeEntry


class StateManager:
    """
    Thread-safe state management with per-client locking.
    Stores client accounts and the dispute-tracking entry of every accepted
    deposit and withdrawal.
    """

    def __init__(self):
        # Insertion order of _accounts is first-seen client order.
        self._accounts: Dict[int, ClientAccount] = {}
        self._dispute_entries: Dict[int, DisputeEntry] = {}

        # Global lock protects creation of new entries in all three dicts.
        # Without it, two threads could create duplicate locks for the same client,
        # or two clients could both claim the same transaction id.
        self._global_lock = threading.Lock()
        self._client_locks: Dict[int, threading.Lock] = {}

    def get_client_lock(self, client_id: int) -> threading.Lock:
        """
        Get or create a lock for a specific client.
        Acquired before applying any transaction for that client.
        """
        with self._global_lock:
            if client_id not in self._client_locks:
                self._client_locks[client_id] = threading.Lock()
            return self._client_locks[client_id]

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        """Get existing account, or None if the client has never been accepted."""
        return self._accounts.get(client_id)

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        with self._global_lock:
            if client_id not in self._accounts:
                self._accounts[client_id] = ClientAccount(client_id=client_id)
            return self._accounts[client_id]

    def has_dispute_entry(self, transaction_id: int) -> bool:
        return transaction_id in self._dispute_entries

    def register_dispute_entry(self, entry: DisputeEntry) -> bool:
        """
        Store the entry unless its transaction id is already taken.
        Returns False when the id was seen before.
        """
        with self._global_lock:
            if entry.transaction_id in self._dispute_entries:
                return False
            self._dispute_entries[entry.transaction_id] = entry
            return True

    def get_dispute_entry(self, transaction_id: int) -> Optional[DisputeEntry]:
        """Retrieve the dispute-tracking entry for a transaction id."""
        return self._dispute_entries.get(transaction_id)

    def get_all_accounts(self) -> List[ClientAccount]:
        """Return all accounts in first-seen order."""
        with self._global_lock:
            return list(self._accounts.values())
