"""
BusMetrics: Tracks simple statistics for InteractionBus traffic.
"""

from collections import Counter
from typing import Dict


class BusMetrics:
    """
    Tracks how many interactions were published and polled.

    Attributes:
        published (int): Total number of interactions published.
        polled (int): Number of interactions handed out by poll().
        by_topic (Counter): Published interactions per topic.
    """

    def __init__(self):
        """Initialize all counters to zero."""
        self.published = 0
        self.polled = 0
        self.by_topic: Counter = Counter()

    def record_publish(self, topic: str) -> None:
        self.published += 1
        self.by_topic[topic] += 1

    def record_poll(self, count: int) -> None:
        self.polled += count

    def report(self) -> Dict[str, object]:
        """
        Return a snapshot of current metrics.

        Returns:
            dict: 'published', 'polled' and a copy of the per-topic counters.
        """
        return {
            "published": self.published,
            "polled": self.polled,
            "by_topic": dict(self.by_topic),
        }
