"""
InteractionBus: In-memory pub/sub between the bridge and its host runtime.

Supports:
    - Topic-based publishing of outbound interactions
    - Draining poll per topic, or across every topic in publish order
    - Per-topic publish metrics
    - Logging of events

Intended usage:
    - The coordinator publishes to 'vehicle.updates', 'signal.state_change', ...
    - The host runtime polls 'time.advance_request' to learn the next grant
"""

import logging
import threading
from typing import Any, Dict, List

from .message import Interaction
from .metrics import BusMetrics
from .utils import new_msg_id

log = logging.getLogger(__name__)


class InteractionBus:
    """
    Thread-safe transport for outbound interactions.

    Publishing and polling may happen on different threads (the lockstep
    runtime thread publishes, the status API reads the metrics).
    """

    def __init__(self):
        self._topics: Dict[str, List[Interaction]] = {}
        self._order: List[Interaction] = []
        self._lock = threading.Lock()
        self.metrics = BusMetrics()

    def publish(self, topic: str, sender: str, time: int, payload: Any) -> str:
        """
        Publish a payload to a specific topic.

        Args:
            topic (str): The topic name (e.g., 'vehicle.updates').
            sender (str): Federate id of the publisher.
            time (int): Simulation time in milliseconds.
            payload (Any): Event dataclass to deliver.

        Returns:
            str: The unique interaction ID.
        """
        msg = Interaction(id=new_msg_id(), topic=topic, sender=sender, time=time, payload=payload)
        with self._lock:
            self._topics.setdefault(topic, []).append(msg)
            self._order.append(msg)
            self.metrics.record_publish(topic)
        log.debug("publish topic=%s sender=%s t=%d id=%s", topic, sender, time, msg.id)
        return msg.id

    def poll(self, topic: str) -> List[Interaction]:
        """
        Retrieve and clear all interactions from a given topic.

        Args:
            topic (str): The topic name to poll interactions from.

        Returns:
            List[Interaction]: Interactions published to the topic since the last poll.
        """
        with self._lock:
            msgs = self._topics.pop(topic, [])
            if msgs:
                ids = {m.id for m in msgs}
                self._order = [m for m in self._order if m.id not in ids]
            self.metrics.record_poll(len(msgs))
        return msgs

    def poll_all(self) -> List[Interaction]:
        """Retrieve and clear every pending interaction in publish order."""
        with self._lock:
            msgs = self._order
            self._order = []
            self._topics.clear()
            self.metrics.record_poll(len(msgs))
        return msgs

    def pending(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, []))
