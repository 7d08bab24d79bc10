#!/usr/bin/env python3
"""
cosim/matcher.py
================
Spatial topology matching between Sim-A signal groups and Sim-B signal
installations.

No id mapping exists between the two simulators, so each announced
:class:`~cosim.entities.SignalGroup` is matched in three steps:

1. **Proximity**: the installation nearest to the group's anchor must
   lie within the match radius.
2. **Cardinality**: the group's number of incoming approaches must equal
   the size of that installation's landmark cluster.
3. **Conflict**: no cluster member may already belong to another group.

A successful cluster is sorted clockwise around the anchor, which
reproduces Sim-A's per-approach indication order, and every pole learns
how many indications it displays.

The clockwise ordering is a strategy (:data:`ComparatorFactory`): junction
layouts where signal heads sit on the far side of the junction need a
different ordering and can inject their own.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, List, Optional, Sequence

import numpy as np

from cosim.entities import SignalGroup
from cosim.geometry import CartesianPoint, planar_distances
from cosim.registry import EntityRegistry, GroupAssignment, MatchReport

log = logging.getLogger("matcher")

PointComparator = Callable[[CartesianPoint, CartesianPoint], int]
ComparatorFactory = Callable[[CartesianPoint], PointComparator]


def clockwise_comparator(anchor: CartesianPoint) -> PointComparator:
    """Return a ``cmp``-style comparator ordering points clockwise around *anchor*.

    Points left of the anchor (``dx < 0``) come before points right of it;
    within a half-plane the sign of the 2D cross product of the two offset
    vectors decides.  Collinear offsets compare equal.
    """

    def compare(a: CartesianPoint, b: CartesianPoint) -> int:
        ax, ay = a.x - anchor.x, a.y - anchor.y
        bx, by = b.x - anchor.x, b.y - anchor.y
        if ax >= 0 and bx < 0:
            return 1
        if ax < 0 and bx >= 0:
            return -1
        if ax == 0 and bx == 0:
            return 0
        cross = ax * by - bx * ay
        if cross < 0:
            return -1
        if cross > 0:
            return 1
        return 0

    return compare


class TopologyMatcher:
    """Assigns Sim-A signal groups to Sim-B installation clusters.

    Parameters
    ----------
    registry : EntityRegistry
        Source of installations and sink of :class:`GroupAssignment`\\ s.
    match_radius_m : float
        Maximum anchor → nearest installation distance.
    comparator_factory : ComparatorFactory
        Builds the ordering used to sort a matched cluster.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        match_radius_m: float,
        comparator_factory: ComparatorFactory = clockwise_comparator,
    ) -> None:
        self._registry = registry
        self.match_radius_m = match_radius_m
        self._comparator_factory = comparator_factory

    # ── queries ───────────────────────────────────────────────────────────

    def nearest_installation(self, anchor: CartesianPoint) -> Optional[str]:
        """Id of the installation closest to *anchor*, or ``None`` if out of range."""
        poles = self._registry.installations
        if not poles:
            return None
        ids = list(poles)
        distances = planar_distances(anchor, (poles[i].location for i in ids))
        best = int(np.argmin(distances))
        if distances[best] > self.match_radius_m:
            log.debug(
                "Distance exceeded during matching for (%.2f, %.2f): %.2f > %.2f",
                anchor.x, anchor.y, distances[best], self.match_radius_m,
            )
            return None
        return ids[best]

    def sort_cluster(self, members: Sequence[str], anchor: CartesianPoint) -> List[str]:
        compare = self._comparator_factory(anchor)
        poles = self._registry.installations
        return sorted(
            members,
            key=functools.cmp_to_key(lambda a, b: compare(poles[a].location, poles[b].location)),
        )

    @staticmethod
    def indications_per_member(group: SignalGroup, member_count: int) -> List[int]:
        """Number of indications shown by the installation at each cluster position."""
        counts = [0] * member_count
        for edge_index in group.edge_indices():
            if 1 <= edge_index <= member_count:
                counts[edge_index - 1] += 1
        return counts

    # ── matching ──────────────────────────────────────────────────────────

    def match_group(self, group: SignalGroup) -> Optional[GroupAssignment]:
        """Try to match one group; returns ``None`` (and logs why) on failure."""
        registry = self._registry
        gid = group.group_id

        if not group.indications:
            log.debug("Signal group %s has no indications. Ignoring.", gid)
            return None
        if gid in registry.assignments:
            log.debug("Signal group %s is already matched. Ignoring re-registration.", gid)
            return None

        anchor = group.anchor
        nearest = self.nearest_installation(anchor)
        if nearest is None:
            log.debug("Could not match signal group %s with any known installation. Ignoring.", gid)
            return None
        members = registry.installations[nearest].cluster_members

        approaches = group.approach_count()
        if approaches != len(members):
            log.debug(
                "Number of approaches in group %s (%d) and installations in cluster (%d) "
                "does not match. Ignoring.", gid, approaches, len(members),
            )
            return None

        unknown = [m for m in members if m not in registry.installations]
        if unknown:
            log.debug("Cluster of %s references unknown installations %s. Ignoring.", nearest, unknown)
            return None
        if any(registry.installations[m].matched for m in members):
            log.debug(
                "Installations %s have already been matched to another signal group. "
                "Ignoring signal group %s.", members, gid,
            )
            return None

        ordered = self.sort_cluster(members, anchor)
        counts = self.indications_per_member(group, len(ordered))
        assignment = GroupAssignment(group_id=gid, installation_ids=tuple(ordered))
        registry.add_assignment(assignment)
        for installation_id, count in zip(ordered, counts):
            registry.installations[installation_id].assign(ordered, count)
        log.debug("Matching signal group %s with installations %s", gid, ordered)
        return assignment

    def match_all(self, groups: Sequence[SignalGroup]) -> MatchReport:
        """Match *groups* in announcement order and log the coverage diagnostics."""
        report = MatchReport()
        for group in groups:
            if self.match_group(group) is None:
                report.unmatched_groups.append(group.group_id)
            else:
                report.matched_groups.append(group.group_id)
        report.unmatched_installations = self._registry.unmatched_installations()

        if report.unmatched_groups:
            log.warning("Unmatched signal groups: %d", len(report.unmatched_groups))
        if report.unmatched_installations:
            log.warning("Unmatched signal installations: %d", report.unmatched_installations)
        if report.full_coverage:
            log.info("All known traffic signals matched between Sim-A and Sim-B.")
        self._registry.last_match = report
        return report
