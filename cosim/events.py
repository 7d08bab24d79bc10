#!/usr/bin/env python3
"""
cosim/events.py
===============
Host-runtime events exchanged with Sim-A.

Inbound
-------
Every inbound kind is a frozen dataclass carrying ``time`` (ms) and
``sender_id``.  :data:`InboundEvent` is the tagged union the coordinator
matches on at replay.

Outbound
--------
Payloads published on the interaction bus, one topic each (see
:data:`TOPIC_*`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Union

from cosim.entities import SignalGroup, VehicleData, VehicleRoute, VehicleType
from cosim.reducer import FineIndication


# ── Inbound ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VehicleUpdates:
    """Batch of vehicle movements simulated by Sim-A."""

    time: int
    sender_id: str
    added: Sequence[VehicleData] = ()
    updated: Sequence[VehicleData] = ()
    removed: Sequence[str] = ()


@dataclass(frozen=True)
class VehicleRegistration:
    time: int
    sender_id: str
    vehicle_id: str
    vehicle_type: VehicleType


@dataclass(frozen=True)
class VehicleTypesRegistration:
    time: int
    sender_id: str
    types: Mapping[str, VehicleType] = field(default_factory=dict)


@dataclass(frozen=True)
class RouteRegistration:
    time: int
    sender_id: str
    routes: Mapping[str, VehicleRoute] = field(default_factory=dict)


@dataclass(frozen=True)
class TopologyRegistration:
    """Sim-A announces its signal groups."""

    time: int
    sender_id: str
    groups: Sequence[SignalGroup] = ()


@dataclass(frozen=True)
class SignalUpdates:
    """Current fine indications per Sim-A signal group."""

    time: int
    sender_id: str
    updated: Mapping[str, Sequence[FineIndication]] = field(default_factory=dict)


@dataclass(frozen=True)
class SensorActivation:
    """Request to attach (``activate=True``) or detach a Sim-B sensor."""

    time: int
    sender_id: str
    vehicle_id: str
    sensor_type: str = "LiDAR"
    activate: bool = True


InboundEvent = Union[
    VehicleUpdates,
    VehicleRegistration,
    VehicleTypesRegistration,
    RouteRegistration,
    TopologyRegistration,
    SignalUpdates,
    SensorActivation,
]


# ── Outbound ─────────────────────────────────────────────────────────────────

TOPIC_VEHICLE_UPDATES = "vehicle.updates"
TOPIC_VEHICLE_REGISTRATION = "vehicle.registration"
TOPIC_ROUTE_REGISTRATION = "route.registration"
TOPIC_FEDERATE_ASSIGNMENT = "federate.assignment"
TOPIC_SIGNAL_STATE_CHANGE = "signal.state_change"
TOPIC_SIGNAL_SUBSCRIPTION = "signal.subscription"
TOPIC_TIME_ADVANCE = "time.advance_request"


@dataclass(frozen=True)
class OutboundVehicleUpdates:
    time: int
    updated: List[VehicleData] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class OutboundVehicleRegistration:
    time: int
    vehicle_id: str
    group: str
    route_id: str
    vehicle_type: VehicleType
    departure_speed: float = 0.0


@dataclass(frozen=True)
class OutboundRouteRegistration:
    time: int
    route: VehicleRoute


@dataclass(frozen=True)
class FederateAssignment:
    """Declares ``vehicle_id`` as controlled by ``federate_id``."""

    time: int
    vehicle_id: str
    federate_id: str
    update_interval_ms: int


@dataclass(frozen=True)
class SignalStateChange:
    time: int
    group_id: str
    states: List[FineIndication] = field(default_factory=list)


@dataclass(frozen=True)
class SignalSubscription:
    time: int
    group_id: str


@dataclass(frozen=True)
class TimeAdvanceRequest:
    time: int


def describe(event: InboundEvent) -> str:
    """Short log label for an inbound event."""
    return f"{type(event).__name__}@{event.time}ms from {event.sender_id}"


def group_states(update: SignalUpdates) -> Dict[str, List[FineIndication]]:
    return {gid: [FineIndication(*s) for s in states] for gid, states in update.updated.items()}
