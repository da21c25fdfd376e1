"""
Publish/subscribe transport for handing submissions to the judge.

Submissions are published on one topic per language.  Delivery is at
least once: a delivery that is not acknowledged is handed out again,
until it has been tried max_deliveries times.
"""
import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

log = logging.getLogger(__name__)


class Publisher(ABC):
    @abstractmethod
    def publish(self, topic: str, payload: bytes) -> None:
        """Publish payload on topic.

        Raises:
            TopicError: if the message could not be published.
        """


class TopicError(Exception):
    pass


@dataclass(frozen=True)
class Delivery:
    topic: str
    payload: bytes
    attempt: int = 1


class LocalTopics(Publisher):
    """In-process topics, one queue per topic."""

    def __init__(self, max_deliveries: int = 3) -> None:
        self.max_deliveries = max_deliveries
        self.dead_letters: list[Delivery] = []
        self._queues: dict[str, queue.Queue[Delivery]] = {}
        self._lock = threading.Lock()

    def _queue(self, topic: str) -> queue.Queue[Delivery]:
        with self._lock:
            if topic not in self._queues:
                self._queues[topic] = queue.Queue()
            return self._queues[topic]

    def publish(self, topic, payload):
        if not topic:
            raise TopicError('no topic given')
        log.debug('publish %d bytes on %s', len(payload), topic)
        self._queue(topic).put(Delivery(topic, payload))

    def receive(self, topic: str, timeout: float | None = None) -> Delivery | None:
        """Take the next delivery from topic.

        Every delivery received must be settled with ack() or nack().

        Returns:
            The delivery, or None if nothing arrived within timeout seconds.
        """
        try:
            return self._queue(topic).get(timeout=timeout)
        except queue.Empty:
            return None

    def ack(self, delivery: Delivery) -> None:
        self._queue(delivery.topic).task_done()

    def nack(self, delivery: Delivery) -> None:
        """Hand delivery out again, or give up on it after max_deliveries attempts."""
        q = self._queue(delivery.topic)
        if delivery.attempt < self.max_deliveries:
            q.put(Delivery(delivery.topic, delivery.payload, delivery.attempt + 1))
        else:
            log.error('giving up on message on %s after %d attempts', delivery.topic, delivery.attempt)
            with self._lock:
                self.dead_letters.append(delivery)
        q.task_done()

    def join(self, topic: str) -> None:
        """Block until every delivery published on topic has been settled."""
        self._queue(topic).join()

    def pending(self, topic: str) -> int:
        return self._queue(topic).qsize()
