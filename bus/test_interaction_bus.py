#!/usr/bin/env python3
"""
Tests for the in-memory interaction bus.
"""

from __future__ import annotations

import unittest

from bus import Interaction, InteractionBus


class InteractionBusTests(unittest.TestCase):
    def test_poll_drains_one_topic(self) -> None:
        bus = InteractionBus()
        bus.publish("a", "fed", 0, {"n": 1})
        bus.publish("b", "fed", 0, {"n": 2})
        bus.publish("a", "fed", 1000, {"n": 3})

        msgs = bus.poll("a")
        self.assertEqual([m.payload["n"] for m in msgs], [1, 3])
        self.assertTrue(all(isinstance(m, Interaction) for m in msgs))
        self.assertEqual(bus.poll("a"), [])
        self.assertEqual(bus.pending("b"), 1)

    def test_poll_all_keeps_publish_order(self) -> None:
        bus = InteractionBus()
        for i, topic in enumerate(("x", "y", "x", "z")):
            bus.publish(topic, "fed", i, i)
        bus.poll("y")

        self.assertEqual([(m.topic, m.payload) for m in bus.poll_all()], [("x", 0), ("x", 2), ("z", 3)])
        self.assertEqual(bus.poll_all(), [])

    def test_envelope_fields(self) -> None:
        bus = InteractionBus()
        msg_id = bus.publish("t", "bridge", 5000, "payload")
        (msg,) = bus.poll("t")
        self.assertEqual((msg.id, msg.sender, msg.time, msg.payload), (msg_id, "bridge", 5000, "payload"))

    def test_metrics(self) -> None:
        bus = InteractionBus()
        bus.publish("a", "fed", 0, None)
        bus.publish("a", "fed", 0, None)
        bus.publish("b", "fed", 0, None)
        bus.poll("a")

        report = bus.metrics.report()
        self.assertEqual(report["published"], 3)
        self.assertEqual(report["polled"], 2)
        self.assertEqual(report["by_topic"], {"a": 2, "b": 1})


if __name__ == "__main__":
    unittest.main()
