#!/usr/bin/env python3
"""
Tests for spatial topology matching and the clockwise cluster ordering.
"""

from __future__ import annotations

import functools
import math
import unittest
from typing import Dict, List, Sequence

from cosim.entities import SignalGroup, SignalIndication
from cosim.geometry import CartesianPoint, rotate_about
from cosim.matcher import TopologyMatcher, clockwise_comparator
from cosim.poles import SignalInstallation
from cosim.registry import EntityRegistry

_JUNCTION = {
    "E": CartesianPoint(10.0, 0.0),
    "N": CartesianPoint(0.0, 10.0),
    "W": CartesianPoint(-10.0, 0.0),
    "S": CartesianPoint(0.0, -10.0),
}


def _cluster(points: Dict[str, CartesianPoint]) -> Dict[str, SignalInstallation]:
    members = list(points)
    return {
        pid: SignalInstallation(pid, location, cluster_members=list(members))
        for pid, location in points.items()
    }


def _group(group_id: str, lanes: Sequence[str], anchor: CartesianPoint) -> SignalGroup:
    indications = [SignalIndication(lane, anchor) for lane in lanes]
    return SignalGroup(group_id, indications)


# Two indications on edge "e", one each on "n" and "w", two on "s".
_FOUR_APPROACHES = ("e_0", "e_1", "n_0", "w_0", "s_0", "s_1")


def _is_rotation(base: List[str], other: List[str]) -> bool:
    return len(base) == len(other) and any(other == base[i:] + base[:i] for i in range(len(base)))


class ClockwiseComparatorTests(unittest.TestCase):
    def _sort(self, points: Dict[str, CartesianPoint], anchor: CartesianPoint) -> List[str]:
        compare = clockwise_comparator(anchor)
        return sorted(points, key=functools.cmp_to_key(lambda a, b: compare(points[a], points[b])))

    def test_orders_clockwise_starting_below_the_anchor(self) -> None:
        points = {
            "left_up": CartesianPoint(-1.0, 1.0),
            "right_down": CartesianPoint(1.0, -1.0),
            "left_down": CartesianPoint(-1.0, -1.0),
            "right_up": CartesianPoint(1.0, 1.0),
        }
        self.assertEqual(
            self._sort(points, CartesianPoint(0.0, 0.0)),
            ["left_down", "left_up", "right_up", "right_down"],
        )

    def test_collinear_points_compare_equal(self) -> None:
        compare = clockwise_comparator(CartesianPoint(0.0, 0.0))
        self.assertEqual(compare(CartesianPoint(2.0, 2.0), CartesianPoint(4.0, 4.0)), 0)
        self.assertEqual(compare(CartesianPoint(0.0, 2.0), CartesianPoint(0.0, -3.0)), 0)

    def test_cyclic_order_survives_rotation_about_anchor(self) -> None:
        anchor = CartesianPoint(3.0, -2.0)
        points = {}
        for name, deg, radius in (("a", 10, 5.0), ("b", 100, 8.0), ("c", 190, 3.0), ("d", 280, 6.0)):
            rad = math.radians(deg)
            points[name] = CartesianPoint(anchor.x + radius * math.cos(rad), anchor.y + radius * math.sin(rad))
        base = self._sort(points, anchor)

        for angle in (0.3, 1.0, 2.5, 4.0):
            rotated = {name: rotate_about(p, anchor, angle) for name, p in points.items()}
            self.assertTrue(
                _is_rotation(base, self._sort(rotated, anchor)),
                msg=f"angle={angle}: {base} vs {self._sort(rotated, anchor)}",
            )


class EdgeCountingTests(unittest.TestCase):
    def test_edge_is_lane_up_to_last_underscore(self) -> None:
        self.assertEqual(SignalIndication("a_b_2", CartesianPoint(0, 0)).incoming_edge, "a_b")
        self.assertEqual(SignalIndication("plain", CartesianPoint(0, 0)).incoming_edge, "plain")

    def test_edge_indices_count_changes(self) -> None:
        group = _group("G", _FOUR_APPROACHES, CartesianPoint(0, 0))
        self.assertEqual(group.edge_indices(), [1, 1, 2, 3, 4, 4])
        self.assertEqual(group.approach_count(), 4)

    def test_revisited_edge_counts_once_as_approach(self) -> None:
        group = _group("G", ("e_0", "w_0", "e_1"), CartesianPoint(0, 0))
        self.assertEqual(group.edge_indices(), [1, 2, 3])
        self.assertEqual(group.approach_count(), 2)


class TopologyMatcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = EntityRegistry(_cluster(_JUNCTION))
        self.matcher = TopologyMatcher(self.registry, match_radius_m=15.0)

    def test_successful_match_orders_cluster_and_counts_indications(self) -> None:
        assignment = self.matcher.match_group(_group("G0", _FOUR_APPROACHES, CartesianPoint(9.0, 1.0)))

        self.assertIsNotNone(assignment)
        self.assertEqual(assignment.installation_ids, ("S", "W", "N", "E"))
        counts = [self.registry.installations[i].number_of_indications for i in assignment.installation_ids]
        self.assertEqual(counts, [2, 1, 1, 2])
        for pole in self.registry.installations.values():
            self.assertTrue(pole.matched)
            self.assertEqual(pole.cluster_members, ["S", "W", "N", "E"])
        self.assertIn("G0", self.registry.assignments)

    def test_out_of_radius_is_unmatched(self) -> None:
        self.assertIsNone(self.matcher.match_group(_group("far", _FOUR_APPROACHES, CartesianPoint(100.0, 100.0))))
        self.assertEqual(self.registry.unmatched_installations(), 4)

    def test_radius_is_inclusive(self) -> None:
        registry = EntityRegistry(_cluster({"solo": CartesianPoint(15.0, 0.0)}))
        matcher = TopologyMatcher(registry, match_radius_m=15.0)
        self.assertIsNotNone(matcher.match_group(_group("G", ("x_0",), CartesianPoint(0.0, 0.0))))

    def test_cardinality_mismatch_is_dropped_whole(self) -> None:
        three = ("e_0", "n_0", "w_0")
        self.assertIsNone(self.matcher.match_group(_group("G3", three, CartesianPoint(9.0, 1.0))))
        self.assertEqual(self.registry.assignments, {})
        self.assertFalse(any(p.matched for p in self.registry.installations.values()))

    def test_conflicting_group_loses_to_first_announced(self) -> None:
        first = self.matcher.match_all([_group("G0", _FOUR_APPROACHES, CartesianPoint(9.0, 1.0))])
        self.assertEqual(first.matched_groups, ["G0"])

        before = dict(self.registry.assignments)
        second = self.matcher.match_all([_group("G1", _FOUR_APPROACHES, CartesianPoint(-9.0, -1.0))])

        self.assertEqual(second.matched_groups, [])
        self.assertEqual(second.unmatched_groups, ["G1"])
        self.assertEqual(self.registry.assignments, before)
        self.assertIs(self.registry.last_match, second)

    def test_assignments_stay_injective(self) -> None:
        second_junction = {
            "E2": CartesianPoint(110.0, 0.0),
            "W2": CartesianPoint(90.0, 0.0),
        }
        installations = dict(_cluster(_JUNCTION))
        installations.update(_cluster(second_junction))
        registry = EntityRegistry(installations)
        matcher = TopologyMatcher(registry, match_radius_m=15.0)

        report = matcher.match_all([
            _group("G0", _FOUR_APPROACHES, CartesianPoint(9.0, 1.0)),
            _group("G1", ("a_0", "b_0"), CartesianPoint(108.0, 1.0)),
            _group("G2", ("a_0", "b_0"), CartesianPoint(92.0, -1.0)),
            _group("G0", _FOUR_APPROACHES, CartesianPoint(9.0, 1.0)),
        ])

        self.assertEqual(report.matched_groups, ["G0", "G1"])
        seen = [iid for a in registry.assignments.values() for iid in a.installation_ids]
        self.assertEqual(len(seen), len(set(seen)))
        self.assertFalse(report.full_coverage)
        self.assertEqual(report.unmatched_installations, 0)

    def test_non_contiguous_lanes_match_by_distinct_edges(self) -> None:
        registry = EntityRegistry(_cluster({"E": CartesianPoint(10.0, 0.0), "W": CartesianPoint(-10.0, 0.0)}))
        matcher = TopologyMatcher(registry, match_radius_m=15.0)

        assignment = matcher.match_group(_group("G", ("e_0", "w_0", "e_1"), CartesianPoint(9.0, 1.0)))

        self.assertIsNotNone(assignment)
        self.assertEqual(assignment.installation_ids, ("W", "E"))
        counts = [registry.installations[i].number_of_indications for i in assignment.installation_ids]
        self.assertEqual(counts, [1, 1])

    def test_group_without_indications_is_ignored(self) -> None:
        self.assertIsNone(self.matcher.match_group(SignalGroup("empty", ())))

    def test_comparator_is_injectable(self) -> None:
        def descending_x(anchor):
            return lambda a, b: (a.x < b.x) - (a.x > b.x)

        matcher = TopologyMatcher(self.registry, 15.0, comparator_factory=descending_x)
        assignment = matcher.match_group(_group("G0", _FOUR_APPROACHES, CartesianPoint(9.0, 1.0)))
        xs = [self.registry.installations[i].location.x for i in assignment.installation_ids]
        self.assertEqual(xs, sorted(xs, reverse=True))


if __name__ == "__main__":
    unittest.main()
