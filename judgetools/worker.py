"""
Worker consuming submission topics and judging what arrives.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from .judge import Judge
from .run import limit
from .topics import Delivery, LocalTopics

log = logging.getLogger(__name__)


class JudgeWorker:
    """Judges submissions arriving on a set of topics.

    There is one consumer thread per topic; each delivery is judged on
    a thread of its own from a pool of `workers` threads, so that a slow
    submission does not hold up others.  A delivery whose judging raised
    is handed back to the transport for redelivery.

    Use as a context manager, or call start() and stop().
    """

    def __init__(self, judge: Judge, topics: LocalTopics, topic_names: list[str], workers: int = 4,
                 poll_interval: float = 0.1) -> None:
        self.judge = judge
        self.topics = topics
        self.topic_names = list(topic_names)
        self.workers = workers
        self.poll_interval = poll_interval
        self._executor: ThreadPoolExecutor | None = None
        self._slots = threading.BoundedSemaphore(workers)
        self._stopping = threading.Event()
        self._consumers: list[threading.Thread] = []

    def __enter__(self) -> 'JudgeWorker':
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def start(self) -> None:
        limit.check_limit_capabilities(log)
        self._stopping.clear()
        self._executor = ThreadPoolExecutor(self.workers, thread_name_prefix='judge')
        for topic in self.topic_names:
            thread = threading.Thread(target=self._consume, args=(topic,), name=f'consume-{topic}', daemon=True)
            thread.start()
            self._consumers.append(thread)
        log.info('judging submissions from %s', ', '.join(self.topic_names))

    def join(self) -> None:
        """Wait until everything published so far has been judged or given up on."""
        for topic in self.topic_names:
            self.topics.join(topic)

    def stop(self) -> None:
        self._stopping.set()
        for thread in self._consumers:
            thread.join()
        self._consumers = []
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _consume(self, topic: str) -> None:
        assert self._executor
        while not self._stopping.is_set():
            if not self._slots.acquire(timeout=self.poll_interval):
                continue
            delivery = self.topics.receive(topic, timeout=self.poll_interval)
            if delivery is None:
                self._slots.release()
                continue
            self._executor.submit(self._handle, delivery)

    def _handle(self, delivery: Delivery) -> None:
        try:
            status = self.judge.handle_event(delivery.payload)
        except Exception:
            log.exception('judging message from %s failed (attempt %d)', delivery.topic, delivery.attempt)
            self.topics.nack(delivery)
        else:
            log.debug('message from %s judged: %s', delivery.topic, status)
            self.topics.ack(delivery)
        finally:
            self._slots.release()
