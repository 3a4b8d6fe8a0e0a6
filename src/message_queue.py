import threading
from queue import Queue, Empty
from typing import Optional, List

from models import RejectedTransaction, Transaction


class InMemoryQueue:
    """
    Thread-safe message queue with Dead Letter Queue support.
    The dead letter queue collects rejected transactions for the end-of-run report.
    All synchronization is internal - callers never need to lock.
    """

    DEFAULT_TIMEOUT = 0.1

    def __init__(self):
        self._main_queue: Queue[Transaction] = Queue()
        self._dead_letter_queue: Queue[RejectedTransaction] = Queue()
        self._shutdown_event = threading.Event()

    def publish_message(self, message: Transaction) -> None:
        """Add message to main queue. Thread-safe."""
        self._main_queue.put(message)

    def consume_message(self) -> Optional[Transaction]:
        """
        Get next message from main queue.
        Returns None if queue is empty after timeout.
        Thread-safe.
        """
        try:
            return self._main_queue.get(timeout=self.DEFAULT_TIMEOUT)
        except Empty:
            return None

    def is_empty(self) -> bool:
        """Check if main queue is empty."""
        return self._main_queue.empty()

    def send_to_dead_letter_queue(self, message: RejectedTransaction) -> None:
        """Park a rejected message for reporting. Thread-safe."""
        self._dead_letter_queue.put(message)

    def get_dead_letter_queue_messages(self) -> List[RejectedTransaction]:
        """
        Drain all messages from dead letter queue and return as list.
        Called after main processing is complete.
        """
        messages = []
        while True:
            try:
                messages.append(self._dead_letter_queue.get_nowait())
            except Empty:
                break
        return messages

    def mark_done(self) -> None:
        """Acknowledge that a consumed message has been fully handled."""
        self._main_queue.task_done()

    def wait_until_drained(self) -> None:
        """Block until every published message has been consumed and acknowledged."""
        self._main_queue.join()

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        self._shutdown_event.set()

    def is_shutdown(self) -> bool:
        """Check if shutdown has been signaled."""
        return self._shutdown_event.is_set()


class PartitionedQueue:
    """
    Fixed set of InMemoryQueues with messages routed by client id.
    Every message for a client lands on the same partition, so a single
    consumer per partition sees that client's messages in publish order.
    """

    def __init__(self, num_partitions: int):
        if num_partitions < 1:
            raise ValueError(f"num_partitions must be at least 1, got {num_partitions}")
        self._partitions = [InMemoryQueue() for _ in range(num_partitions)]

    def __len__(self) -> int:
        return len(self._partitions)

    def partition_for(self, client_id: int) -> int:
        return client_id % len(self._partitions)

    def partition(self, index: int) -> InMemoryQueue:
        return self._partitions[index]

    def publish_message(self, message: Transaction) -> None:
        self._partitions[self.partition_for(message.client_id)].publish_message(message)

    def wait_until_drained(self) -> None:
        for partition in self._partitions:
            partition.wait_until_drained()

    def shutdown(self) -> None:
        for partition in self._partitions:
            partition.shutdown()

    def get_dead_letter_queue_messages(self) -> List[RejectedTransaction]:
        messages = []
        for partition in self._partitions:
            messages.extend(partition.get_dead_letter_queue_messages())
        return messages
