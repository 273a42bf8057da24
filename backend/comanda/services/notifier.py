"""Push channel for "new print job" events.

Enqueue publishes the job id after commit; the queue processor subscribes
to wake up before its next poll. Delivery is best effort: a lost message
only costs latency because the processor keeps polling.
"""
import logging
import threading
from typing import Callable, List

import redis

from comanda.config import QUEUE_CHANNEL, REDIS_URL

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]
Unsubscribe = Callable[[], None]


class LocalNotifier:
    """Listeners in this process only."""

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def publish(self, job_id) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(str(job_id))
            except Exception:
                logger.exception("Print queue listener failed")

    def subscribe(self, listener: Listener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe


class RedisNotifier:
    """Redis pub/sub, reaches processors running on other machines."""

    def __init__(self, client, channel: str = QUEUE_CHANNEL, sleep_time: float = 0.5):
        self.client = client
        self.channel = channel
        self.sleep_time = sleep_time

    def publish(self, job_id) -> None:
        try:
            self.client.publish(self.channel, str(job_id))
        except Exception:
            # el poll lo recoge igual
            logger.warning("Could not publish print job %s on %s", job_id, self.channel, exc_info=True)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)

        def _handler(message):
            data = message.get("data")
            if isinstance(data, bytes):
                data = data.decode()
            listener(str(data))

        pubsub.subscribe(**{self.channel: _handler})
        worker = pubsub.run_in_thread(sleep_time=self.sleep_time, daemon=True)

        def _unsubscribe():
            worker.stop()
            pubsub.close()

        return _unsubscribe


def build_notifier(redis_url: str = REDIS_URL):
    if not redis_url:
        return LocalNotifier()

    logger.info("Print queue notifications via Redis channel %s", QUEUE_CHANNEL)
    return RedisNotifier(redis.Redis.from_url(redis_url))
