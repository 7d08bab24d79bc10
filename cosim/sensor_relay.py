#!/usr/bin/env python3
"""
cosim/sensor_relay.py
=====================
Turns Sim-B point-cloud frames into Sim-A vehicle updates.

Sim-B reports LiDAR points in its own left-handed, z-up frame; Sim-A
expects ``(x, z, -y)``.  Frames whose sensor id is not bound to a vehicle
(for instance a sensor removed while its frame was in flight) are
dropped without error.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence

import numpy as np

from cosim.entities import LidarFrame, VehicleData
from cosim.geometry import CartesianPoint
from cosim.wire import SensorFrame

log = logging.getLogger("sensor_relay")


def transform_points(frame: SensorFrame) -> np.ndarray:
    """Return the frame's points as an ``(N, 3)`` array in Sim-A axes."""
    if not frame.lidar_points:
        return np.zeros((0, 3), dtype=float)
    raw = np.array([(p.x, p.y, p.z) for p in frame.lidar_points], dtype=float)
    return np.column_stack((raw[:, 0], raw[:, 2], -raw[:, 1]))


def build_frame(frame: SensorFrame, timestamp: int) -> LidarFrame:
    return LidarFrame(
        rotation=np.eye(3),
        reference=CartesianPoint(frame.location.x, frame.location.y, frame.location.z),
        points=transform_points(frame),
        timestamp=timestamp,
        min_range=frame.min_range,
        max_range=frame.max_range,
    )


def relay_frame(frame: SensorFrame, bindings: Mapping[str, str], timestamp: int) -> Optional[VehicleData]:
    """Build the vehicle update carrying *frame*, or ``None`` if its sensor is unbound."""
    vehicle_id = bindings.get(frame.id)
    if vehicle_id is None:
        log.debug("Dropping frame of unbound sensor %s", frame.id)
        return None
    return VehicleData(time=timestamp, name=vehicle_id, lidar=build_frame(frame, timestamp))


def relay_frames(frames: Sequence[SensorFrame], bindings: Mapping[str, str], timestamp: int) -> List[VehicleData]:
    updates = []
    for frame in frames:
        update = relay_frame(frame, bindings, timestamp)
        if update is not None:
            updates.append(update)
    return updates
