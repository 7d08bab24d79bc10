#!/usr/bin/env python3
"""
cosim/registry.py
=================
:class:`EntityRegistry` is the single owned store of everything the bridge
knows about both simulators.

The registry is created by the coordinator and handed by reference to
every component that needs it.  It does no locking of its own: callers
only touch it while the coordinator holds its step lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from cosim.entities import Owner, VehicleRecord, VehicleType
from cosim.poles import SignalInstallation

log = logging.getLogger("registry")


@dataclass(frozen=True)
class GroupAssignment:
    """Sim-A signal group ↔ clockwise-ordered Sim-B installation ids."""

    group_id: str
    installation_ids: Tuple[str, ...]


@dataclass
class MatchReport:
    """Diagnostics of one topology matching pass."""

    matched_groups: List[str] = field(default_factory=list)
    unmatched_groups: List[str] = field(default_factory=list)
    unmatched_installations: int = 0

    @property
    def full_coverage(self) -> bool:
        return not self.unmatched_groups and self.unmatched_installations == 0


class EntityRegistry:
    """Mutable maps of vehicle types, vehicles, signal assignments and sensors."""

    def __init__(self, installations: Optional[Dict[str, SignalInstallation]] = None) -> None:
        self.vehicle_types: Dict[str, VehicleType] = {}
        self.vehicles: Dict[str, VehicleRecord] = {}
        self.installations: Dict[str, SignalInstallation] = dict(installations or {})
        self.assignments: Dict[str, GroupAssignment] = {}
        self.sensors: Dict[str, str] = {}
        self.spawn_edge: Optional[str] = None
        self.signals_enabled: bool = installations is not None
        self.last_match: Optional[MatchReport] = None

    # ── vehicle types ─────────────────────────────────────────────────────

    def register_type(self, vehicle_type: VehicleType) -> VehicleType:
        """Store *vehicle_type* unless a type of that name is already known."""
        return self.vehicle_types.setdefault(vehicle_type.name, vehicle_type)

    # ── vehicles ──────────────────────────────────────────────────────────

    def register_vehicle(self, vehicle_id: str, vehicle_type: VehicleType, owner: Owner) -> VehicleRecord:
        existing = self.vehicles.get(vehicle_id)
        if existing is not None:
            if existing.owner is not owner:
                log.warning(
                    "Vehicle %s already controlled by %s, ignoring registration from %s",
                    vehicle_id, existing.owner.value, owner.value,
                )
            return existing
        shared_type = self.register_type(vehicle_type)
        record = VehicleRecord(id=vehicle_id, vehicle_type=shared_type, owner=owner)
        self.vehicles[vehicle_id] = record
        return record

    def vehicle(self, vehicle_id: str, owner: Optional[Owner] = None) -> Optional[VehicleRecord]:
        """Look up a vehicle, optionally requiring a specific owner."""
        record = self.vehicles.get(vehicle_id)
        if record is None or (owner is not None and record.owner is not owner):
            return None
        return record

    def remove_vehicle(self, vehicle_id: str) -> Optional[VehicleRecord]:
        record = self.vehicles.pop(vehicle_id, None)
        if record is not None:
            for sensor_id in self.sensors_of(vehicle_id):
                del self.sensors[sensor_id]
        return record

    def count(self, owner: Owner) -> int:
        return sum(1 for v in self.vehicles.values() if v.owner is owner)

    # ── signals ───────────────────────────────────────────────────────────

    def add_assignment(self, assignment: GroupAssignment) -> None:
        """Record a group assignment; installation ids must be unassigned."""
        if assignment.group_id in self.assignments:
            raise ValueError(f"signal group {assignment.group_id} is already assigned")
        taken = self.assigned_installations()
        overlap = taken.intersection(assignment.installation_ids)
        if overlap:
            raise ValueError(f"installations {sorted(overlap)} are already assigned")
        self.assignments[assignment.group_id] = assignment

    def assigned_installations(self) -> set:
        return {iid for a in self.assignments.values() for iid in a.installation_ids}

    def unmatched_installations(self) -> int:
        return sum(1 for pole in self.installations.values() if not pole.matched)

    def groups_of(self, installation_ids: Sequence[str]) -> List[str]:
        """Assigned group ids containing any of *installation_ids*, in assignment order."""
        wanted = set(installation_ids)
        return [gid for gid, a in self.assignments.items() if wanted.intersection(a.installation_ids)]

    # ── sensors ───────────────────────────────────────────────────────────

    def bind_sensor(self, sensor_id: str, vehicle_id: str) -> None:
        self.sensors[sensor_id] = vehicle_id

    def unbind_sensor(self, sensor_id: str) -> Optional[str]:
        return self.sensors.pop(sensor_id, None)

    def sensors_of(self, vehicle_id: str) -> List[str]:
        return [sid for sid, vid in self.sensors.items() if vid == vehicle_id]

    # ── diagnostics ───────────────────────────────────────────────────────

    def summary(self) -> Dict[str, int]:
        return {
            "vehicle_types": len(self.vehicle_types),
            "vehicles_sim_a": self.count(Owner.SIM_A),
            "vehicles_sim_b": self.count(Owner.SIM_B),
            "installations": len(self.installations),
            "unmatched_installations": self.unmatched_installations(),
            "assignments": len(self.assignments),
            "sensors": len(self.sensors),
        }
