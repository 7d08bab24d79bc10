#!/usr/bin/env python3
"""
Tests for the static signal topology loader.
"""

from __future__ import annotations

import json
import os
import tempfile
import unittest

from cosim.errors import TopologyFileError
from cosim.reducer import ConversionPolicy
from cosim.topology import load_topology, parse_topology

_SAMPLE = {
    "cluster_a": [
        {"p1": [{"landmark_id": "11"}, {"pos_x": "1.5"}, {"pos_y": "2.0"}]},
        {"p2": [{"landmark_id": "12"}, {"pos_x": "-3.0"}, {"pos_y": "-4.0"}]},
    ],
    "cluster_b": [
        {"p3": [{"landmark_id": "21"}, {"pos_x": "100"}, {"pos_y": "0"}]},
    ],
}

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


class ParseTopologyTests(unittest.TestCase):
    def test_y_axis_is_mirrored(self) -> None:
        poles = parse_topology(_SAMPLE)
        self.assertEqual((poles["11"].location.x, poles["11"].location.y), (1.5, -2.0))
        self.assertEqual((poles["12"].location.x, poles["12"].location.y), (-3.0, 4.0))

    def test_cluster_members_are_shared(self) -> None:
        poles = parse_topology(_SAMPLE)
        self.assertEqual(poles["11"].cluster_members, ["11", "12"])
        self.assertEqual(poles["12"].cluster_members, ["11", "12"])
        self.assertEqual(poles["21"].cluster_members, ["21"])
        self.assertIsNot(poles["11"].cluster_members, poles["12"].cluster_members)

    def test_policy_and_initial_state(self) -> None:
        poles = parse_topology(_SAMPLE, ConversionPolicy.PERMISSIVE)
        for pole in poles.values():
            self.assertIs(pole.policy, ConversionPolicy.PERMISSIVE)
            self.assertFalse(pole.matched)
            self.assertEqual(pole.number_of_indications, 0)

    def test_rejects_malformed_documents(self) -> None:
        bad_documents = [
            ["not", "an", "object"],
            {"cluster": "not a list"},
            {"cluster": ["not an object"]},
            {"cluster": [{"p": ["not an object"]}]},
            {"cluster": [{"p": [{"pos_x": "1"}]}]},
            {"cluster": [{"p": [{"landmark_id": "1"}, {"pos_x": "east"}]}]},
        ]
        for raw in bad_documents:
            with self.assertRaises(TopologyFileError, msg=repr(raw)):
                parse_topology(raw)


class LoadTopologyTests(unittest.TestCase):
    def test_missing_file(self) -> None:
        with self.assertRaises(TopologyFileError) as ctx:
            load_topology(os.path.join(tempfile.gettempdir(), "does-not-exist", "topology.json"))
        self.assertIsInstance(ctx.exception.__cause__, OSError)

    def test_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "topology.json")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("{ not json")
            with self.assertRaises(TopologyFileError):
                load_topology(path)

    def test_round_trip_through_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "topology.json")
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(_SAMPLE, fh)
            self.assertEqual(sorted(load_topology(path)), ["11", "12", "21"])

    def test_bundled_sample_file_loads(self) -> None:
        poles = load_topology(os.path.join(_PROJECT_ROOT, "data", "traffic_light_mapping.json"))
        self.assertEqual(len(poles), 6)
        self.assertEqual(poles["102"].location.y, -10.0)


if __name__ == "__main__":
    unittest.main()
