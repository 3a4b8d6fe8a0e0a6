import sys
import os
import threading
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from message_queue import InMemoryQueue, PartitionedQueue
from models import RejectedTransaction, RejectionReason, Transaction, TransactionType


def make_transaction(client_id: int, transaction_id: int) -> Transaction:
    return Transaction(
        transaction_type=TransactionType.DEPOSIT,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=Decimal("100"),
    )


class TestInMemoryQueue:
    def test_publish_consume(self):
        queue = InMemoryQueue()
        transaction = make_transaction(1, 1)
        queue.publish_message(transaction)
        assert queue.consume_message() == transaction

    def test_consume_empty_returns_none(self):
        queue = InMemoryQueue()
        assert queue.consume_message() is None

    def test_shutdown(self):
        queue = InMemoryQueue()
        assert not queue.is_shutdown()
        queue.shutdown()
        assert queue.is_shutdown()

    def test_dead_letter_queue_send_and_get(self):
        queue = InMemoryQueue()
        rejected1 = RejectedTransaction(make_transaction(1, 1), RejectionReason.DUPLICATE_TRANSACTION_ID)
        rejected2 = RejectedTransaction(make_transaction(2, 2), RejectionReason.ACCOUNT_LOCKED)

        queue.send_to_dead_letter_queue(rejected1)
        queue.send_to_dead_letter_queue(rejected2)

        assert queue.get_dead_letter_queue_messages() == [rejected1, rejected2]
        assert queue.get_dead_letter_queue_messages() == []

    def test_dead_letter_queue_empty(self):
        queue = InMemoryQueue()
        assert queue.get_dead_letter_queue_messages() == []

    def test_wait_until_drained_returns_after_acknowledgement(self):
        queue = InMemoryQueue()
        queue.publish_message(make_transaction(1, 1))
        acknowledged = threading.Event()

        def consume():
            queue.consume_message()
            acknowledged.set()
            queue.mark_done()

        consumer = threading.Thread(target=consume)
        consumer.start()
        queue.wait_until_drained()

        assert acknowledged.is_set()
        consumer.join()


class TestPartitionedQueue:
    def test_routes_by_client(self):
        queue = PartitionedQueue(3)
        for transaction_id, client_id in enumerate([1, 4, 2, 7, 3], start=1):
            queue.publish_message(make_transaction(client_id, transaction_id))

        # Clients 1, 4 and 7 share partition 1 and keep publish order
        partition = queue.partition(1)
        assert [partition.consume_message().client_id for _ in range(3)] == [1, 4, 7]
        assert partition.is_empty()
        assert queue.partition(2).consume_message().client_id == 2
        assert queue.partition(0).consume_message().client_id == 3

    def test_shutdown_reaches_every_partition(self):
        queue = PartitionedQueue(2)
        queue.shutdown()
        assert queue.partition(0).is_shutdown()
        assert queue.partition(1).is_shutdown()

    def test_collects_dead_letters_from_all_partitions(self):
        queue = PartitionedQueue(2)
        rejected1 = RejectedTransaction(make_transaction(1, 1), RejectionReason.INSUFFICIENT_FUNDS)
        rejected2 = RejectedTransaction(make_transaction(2, 2), RejectionReason.INSUFFICIENT_FUNDS)
        queue.partition(1).send_to_dead_letter_queue(rejected1)
        queue.partition(0).send_to_dead_letter_queue(rejected2)

        assert queue.get_dead_letter_queue_messages() == [rejected2, rejected1]

    def test_wait_until_drained_covers_every_partition(self):
        queue = PartitionedQueue(2)
        queue.publish_message(make_transaction(1, 1))
        queue.publish_message(make_transaction(2, 2))
        handled = []

        def consume(partition):
            handled.append(partition.consume_message().client_id)
            partition.mark_done()

        consumers = [threading.Thread(target=consume, args=(queue.partition(index),)) for index in range(2)]
        for consumer in consumers:
            consumer.start()
        queue.wait_until_drained()

        assert sorted(handled) == [1, 2]
        for consumer in consumers:
            consumer.join()

    def test_requires_a_partition(self):
        with pytest.raises(ValueError):
            PartitionedQueue(0)
        assert len(PartitionedQueue(4)) == 4
