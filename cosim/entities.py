#!/usr/bin/env python3
"""
cosim/entities.py
=================
Plain data records shared by the bridge components.

Vehicles
--------
:class:`VehicleType`, :class:`VehicleRecord`, :class:`VehicleData`,
:class:`VehicleRoute`, :class:`LidarFrame`.

Signals
-------
:class:`SignalIndication` and :class:`SignalGroup`: Sim-A's view of a
signalised junction as announced at topology registration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from cosim.geometry import CartesianPoint, GeoPoint
from cosim.translator import VehicleClass, VehicleSignals


class Owner(Enum):
    """Which simulator currently controls a vehicle."""

    SIM_A = "sim_a"
    SIM_B = "sim_b"


class DriveDirection(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


# ── Vehicles ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VehicleType:
    """Immutable vehicle type, shared by every vehicle of that type."""

    name: str
    length: float = 5.0
    width: float = 1.8
    height: float = 1.5
    vehicle_class: VehicleClass = VehicleClass.CAR
    color: Optional[str] = None


@dataclass(frozen=True)
class Position:
    """Dual representation of a vehicle position."""

    cartesian: CartesianPoint
    geo: GeoPoint


@dataclass
class VehicleRecord:
    """Registry entry of a known vehicle."""

    id: str
    vehicle_type: VehicleType
    owner: Owner
    position: Optional[Position] = None
    heading: float = 0.0
    slope: float = 0.0
    signals: VehicleSignals = field(default_factory=VehicleSignals)


@dataclass
class LidarFrame:
    """One point cloud relayed from a Sim-B sensor.

    ``points`` is an ``(N, 3)`` array already expressed in Sim-A axes.
    """

    rotation: np.ndarray
    reference: CartesianPoint
    points: np.ndarray
    timestamp: int
    min_range: float
    max_range: float


@dataclass
class VehicleData:
    """State of one vehicle at ``time``, inbound from Sim-A or outbound to it."""

    time: int
    name: str
    position: Optional[Position] = None
    heading: float = 0.0
    slope: float = 0.0
    signals: VehicleSignals = field(default_factory=VehicleSignals)
    drive_direction: DriveDirection = DriveDirection.FORWARD
    stopped: bool = False
    lidar: Optional[LidarFrame] = None


@dataclass(frozen=True)
class VehicleRoute:
    """An edge list Sim-A can route a vehicle over."""

    id: str
    edges: Sequence[str] = ()
    length: float = 0.1

    @property
    def last_edge(self) -> Optional[str]:
        return self.edges[-1] if self.edges else None


# ── Signals ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SignalIndication:
    """One Sim-A indication and the lane it controls (``<edge>_<lane index>``)."""

    incoming_lane: str
    position: CartesianPoint

    @property
    def incoming_edge(self) -> str:
        lane = self.incoming_lane
        cut = lane.rfind("_")
        return lane[:cut] if cut > 0 else lane


@dataclass(frozen=True)
class SignalGroup:
    """Sim-A's unit of signal control, as announced at topology registration."""

    group_id: str
    indications: Sequence[SignalIndication]

    @property
    def anchor(self) -> CartesianPoint:
        """Position of the first member indication."""
        return self.indications[0].position

    def edge_indices(self) -> List[int]:
        """1-based incoming-edge index of each indication, in encounter order.

        The index increments whenever the incoming edge differs from the
        previous indication's edge.
        """
        indices: List[int] = []
        current = None
        counter = 0
        for indication in self.indications:
            edge = indication.incoming_edge
            if edge != current:
                current = edge
                counter += 1
            indices.append(counter)
        return indices

    def approach_count(self) -> int:
        """Number of distinct incoming edges, wherever they appear in the group."""
        return len({indication.incoming_edge for indication in self.indications})
