#!/usr/bin/env python3
"""
cosim/poles.py
==============
:class:`SignalInstallation`, one Sim-B traffic-signal head ("pole").

A pole keeps its current indication in both vocabularies.  Which side is
written depends on who manages signals:

* Sim-A manages → :meth:`SignalInstallation.apply_fine` (reduced to coarse).
* Sim-B manages → :meth:`SignalInstallation.apply_coarse` (expanded to fine).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from cosim.geometry import CartesianPoint
from cosim.reducer import (
    CoarseIndication,
    ConversionPolicy,
    FineIndication,
    expand_to_fine,
    reduce_to_coarse,
)


@dataclass
class SignalInstallation:
    """A signal head published in Sim-B's static topology.

    Attributes
    ----------
    installation_id : str
        Sim-B landmark id.
    location : CartesianPoint
        Position in the shared planar frame.
    cluster_members : list[str]
        Ids of every installation in the same landmark cluster, this one
        included.  Reordered clockwise once the cluster is matched.
    number_of_indications : int
        How many Sim-A indications this pole displays; set by the matcher.
    matched : bool
        True once the pole belongs to a :class:`~cosim.registry.GroupAssignment`.
    """

    installation_id: str
    location: CartesianPoint
    cluster_members: List[str] = field(default_factory=list)
    policy: ConversionPolicy = ConversionPolicy.STRICT
    number_of_indications: int = 0
    matched: bool = False
    fine_state: List[FineIndication] = field(default_factory=list)
    coarse_state: CoarseIndication = CoarseIndication.OFF

    @property
    def cluster_size(self) -> int:
        return len(self.cluster_members)

    def assign(self, ordered_members: Sequence[str], number_of_indications: int) -> None:
        """Record the matcher's result.  Happens exactly once per pole."""
        if self.matched:
            raise ValueError(f"installation {self.installation_id} is already matched")
        self.cluster_members = list(ordered_members)
        self.number_of_indications = number_of_indications
        self.matched = True
        self.fine_state = expand_to_fine(self.coarse_state, number_of_indications)

    def apply_fine(self, states: Sequence[FineIndication]) -> CoarseIndication:
        self.fine_state = list(states)
        self.coarse_state = reduce_to_coarse(self.fine_state, self.policy)
        return self.coarse_state

    def apply_coarse(self, coarse: CoarseIndication) -> List[FineIndication]:
        self.coarse_state = coarse
        self.fine_state = expand_to_fine(coarse, self.number_of_indications)
        return self.fine_state

    def __str__(self) -> str:
        return (
            f"SignalInstallation {self.installation_id}: x={self.location.x:.2f} "
            f"y={self.location.y:.2f} members={self.cluster_members}"
        )
