import logging
import threading
from typing import Dict, Iterable, List, Optional

from csv_io import read_transactions
from ledger_engine import LedgerEngine
from message_queue import InMemoryQueue, PartitionedQueue
from models import AccountSnapshot, ProcessingStats, RejectedTransaction, Transaction

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Orchestrates transaction processing with publisher-consumer pattern.
    Transactions are partitioned by client id with one consumer per partition,
    so each client's transactions are applied in input order while distinct
    clients proceed in parallel.
    """

    def __init__(self, num_consumers: int = 4, ledger: Optional[LedgerEngine] = None):
        self._num_consumers = num_consumers
        self._queue = PartitionedQueue(num_consumers)
        self._ledger = ledger if ledger is not None else LedgerEngine()
        self._stats = ProcessingStats()
        self._publisher_error: Optional[BaseException] = None
        self._rejected: List[RejectedTransaction] = []

    @property
    def ledger(self) -> LedgerEngine:
        return self._ledger

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, AccountSnapshot]:
        """Process CSV file and return final account states."""
        return self.process_transactions(read_transactions(filepath, self._stats))

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, AccountSnapshot]:
        """Apply a stream of transactions and return final account states keyed by client id."""
        logger.info(f"Starting processing with {self._num_consumers} consumers")

        publisher_thread = threading.Thread(target=self._publish_transactions, args=(transactions,))
        publisher_thread.start()

        consumer_threads = []
        for index in range(self._num_consumers):
            consumer_thread = threading.Thread(target=self._consume_transactions, args=(self._queue.partition(index),))
            consumer_thread.start()
            consumer_threads.append(consumer_thread)

        publisher_thread.join()
        self._queue.shutdown()
        for consumer_thread in consumer_threads:
            consumer_thread.join()

        logger.info("Processing complete")

        self._rejected.extend(self._queue.get_dead_letter_queue_messages())

        if self._publisher_error is not None:
            error, self._publisher_error = self._publisher_error, None
            raise error

        return {account.client_id: account for account in self._ledger.snapshot()}

    def rejected_transactions(self) -> List[RejectedTransaction]:
        """Rejected transactions collected so far, grouped by partition."""
        return list(self._rejected)

    def _publish_transactions(self, transactions: Iterable[Transaction]) -> None:
        """
        Route transactions to their client's partition.

        Transaction ids are global, so a record naming an id last referenced
        from another partition must not overtake the earlier record. The
        publisher waits for all partitions to drain before routing it, which
        keeps id ownership in input order.
        """
        last_referenced_by: Dict[int, int] = {}
        try:
            for transaction in transactions:
                previous_client = last_referenced_by.get(transaction.transaction_id)
                if previous_client is not None and self._crosses_partitions(previous_client, transaction.client_id):
                    logger.debug(f"Tx {transaction.transaction_id} moves from client {previous_client} to {transaction.client_id}, draining partitions")
                    self._queue.wait_until_drained()
                last_referenced_by[transaction.transaction_id] = transaction.client_id
                self._queue.publish_message(transaction)
        except Exception as e:
            logger.error(f"Reading transactions failed: {e}")
            self._publisher_error = e

    def _consume_transactions(self, partition: InMemoryQueue) -> None:
        """Consumer loop: pull from one partition, apply, send rejections to DLQ."""
        while True:
            transaction = partition.consume_message()
            if transaction is None:
                if partition.is_shutdown() and partition.is_empty():
                    break
                continue

            try:
                reason = self._ledger.apply(transaction)
            finally:
                partition.mark_done()

            if reason is None:
                self._stats.record_success()
            else:
                logger.warning(f"Rejected {transaction}: {reason.value}")
                self._stats.record_rejection(reason)
                partition.send_to_dead_letter_queue(RejectedTransaction(transaction, reason))

    def _crosses_partitions(self, first_client: int, second_client: int) -> bool:
        return self._queue.partition_for(first_client) != self._queue.partition_for(second_client)
