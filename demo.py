#!/usr/bin/env python3
"""
Quick demo: runs the bridge against an in-memory Sim-B stand-in so you
can watch the lockstep protocol without a real 3D simulator.

Usage:
    python3 demo.py
"""

import logging
from typing import Dict, List

from cosim.entities import Position, SignalGroup, SignalIndication, VehicleData, VehicleRoute, VehicleType
from cosim.events import (
    RouteRegistration,
    SensorActivation,
    SignalUpdates,
    TopologyRegistration,
    VehicleRegistration,
    VehicleTypesRegistration,
    VehicleUpdates,
)
from cosim.geometry import CartesianPoint, GeoPoint
from cosim.reducer import FINE_GREEN, FINE_RED, FINE_YELLOW
from cosim.remote import SENSOR_ID_ATTRIBUTE, RemoteStub
from cosim.wire import SensorDescriptor, SignalCommand, VehicleDescriptor

SIM_A_ID = "sim-a"
DEMO_VEHICLE = "veh_0"


class LoopbackStub(RemoteStub):
    """Fake Sim-B that spawns one vehicle, cycles its signals and echoes LiDAR."""

    # Step at which the Sim-B vehicle appears, and for how many steps it drives.
    _SPAWN_AT_STEP = 2
    _LIFETIME_STEPS = 5
    _SIGNAL_CYCLE = ("G", "y", "r")

    def __init__(self):
        self.step_count = 0
        self.vehicles: Dict[str, VehicleDescriptor] = {}
        self.lights: Dict[str, str] = {}
        self.sensors: Dict[str, str] = {}
        self.closed = False

    def simulation_step(self):
        self.step_count += 1
        n = self.step_count
        result = {
            "spawn_requests": [],
            "destroy_requests": [],
            "move_requests": [],
            "signal_updates": [],
            "sensor_frames": [],
        }

        first, last = self._SPAWN_AT_STEP, self._SPAWN_AT_STEP + self._LIFETIME_STEPS
        if n == first:
            result["spawn_requests"].append({
                "actor_id": "simb_1", "route": "simb_route_1", "type_id": "simb.sedan",
                "class_id": "passenger", "color": "200,20,20,255",
                "length": 4.5, "width": 1.9, "height": 1.4,
            })
        if first <= n < last:
            result["move_requests"].append({
                "actor_id": "simb_1", "loc_x": -50.0 + 5.0 * (n - first), "loc_y": -3.5,
                "yaw": 90.0, "signals": 0b1000 if n == last - 1 else 0,
            })
        if n == last:
            result["destroy_requests"].append({"actor_id": "simb_1"})

        state = self._SIGNAL_CYCLE[n % len(self._SIGNAL_CYCLE)]
        for landmark_id in ("101", "103"):
            result["signal_updates"].append({"landmark_id": landmark_id, "state": state})

        for sensor_id in self.sensors:
            result["sensor_frames"].append({
                "id": sensor_id, "min_range": 0.5, "max_range": 10.0,
                "location": {"x": 1.0, "y": 2.0, "z": 1.8},
                "lidar_points": [{"x": 3.0, "y": 0.5, "z": 0.1}, {"x": 4.0, "y": -1.0, "z": 0.2}],
            })
        return result

    def add_vehicle(self, vehicle):
        self.vehicles[vehicle.id] = vehicle

    def update_vehicle(self, vehicle):
        self.vehicles[vehicle.id] = vehicle

    def remove_vehicle(self, vehicle):
        self.vehicles.pop(vehicle.id, None)

    def update_traffic_light(self, command: SignalCommand):
        self.lights[command.landmark_id] = command.state

    def add_sensor(self, sensor: SensorDescriptor):
        sensor_id = f"lidar_{len(self.sensors) + 1}"
        self.sensors[sensor_id] = sensor.attached
        return SensorDescriptor(id=sensor_id, type_id=sensor.type_id, attributes={SENSOR_ID_ATTRIBUTE: sensor_id})

    def remove_sensor(self, sensor: SensorDescriptor):
        self.sensors.pop(sensor.id, None)

    def close(self):
        self.closed = True


def _indication(lane: str, x: float, y: float) -> SignalIndication:
    return SignalIndication(incoming_lane=lane, position=CartesianPoint(x, y))


def demo_groups() -> List[SignalGroup]:
    """One four-approach junction near the origin, one group nothing matches."""
    junction = SignalGroup(
        group_id="J1",
        indications=(
            _indication("east_in_0", 9.0, 1.0),
            _indication("east_in_1", 9.0, 2.0),
            _indication("north_in_0", 1.0, 9.0),
            _indication("west_in_0", -9.0, -1.0),
            _indication("south_in_0", -1.0, -9.0),
            _indication("south_in_1", -2.0, -9.0),
        ),
    )
    lonely = SignalGroup(group_id="J2", indications=(_indication("far_in_0", 196.0, 0.0),))
    return [junction, lonely]


def demo_scenario(t: int):
    """Sim-A side of the demo: what it announces right before time *t* is granted."""
    events = []
    car = VehicleType(name="car")
    if t == 0:
        events.append(VehicleTypesRegistration(time=t, sender_id=SIM_A_ID, types={"car": car}))
        events.append(RouteRegistration(
            time=t, sender_id=SIM_A_ID,
            routes={"r0": VehicleRoute(id="r0", edges=("west_in", "east_out"))},
        ))
        events.append(TopologyRegistration(time=t, sender_id=SIM_A_ID, groups=demo_groups()))
        events.append(VehicleRegistration(time=t, sender_id=SIM_A_ID, vehicle_id=DEMO_VEHICLE, vehicle_type=car))
        return events

    x = -60.0 + t / 100.0
    data = VehicleData(
        time=t, name=DEMO_VEHICLE,
        position=Position(cartesian=CartesianPoint(x, 3.5), geo=GeoPoint(0.0, 0.0)),
        heading=270.0,
    )
    if t == 1000:
        events.append(VehicleUpdates(time=t, sender_id=SIM_A_ID, added=(data,)))
    elif t < 8000:
        events.append(VehicleUpdates(time=t, sender_id=SIM_A_ID, updated=(data,)))
    elif t == 8000:
        events.append(VehicleUpdates(time=t, sender_id=SIM_A_ID, removed=(DEMO_VEHICLE,)))

    green_east_west = (t // 3000) % 2 == 0
    main_road = FINE_GREEN if green_east_west else FINE_RED
    side_road = FINE_RED if green_east_west else FINE_GREEN
    if t % 3000 == 2000:
        main_road = FINE_YELLOW if green_east_west else main_road
    events.append(SignalUpdates(
        time=t, sender_id=SIM_A_ID,
        updated={"J1": [main_road, main_road, side_road, main_road, side_road, side_road]},
    ))

    if t == 2000:
        events.append(SensorActivation(time=t, sender_id=SIM_A_ID, vehicle_id=DEMO_VEHICLE))
    if t == 6000:
        events.append(SensorActivation(time=t, sender_id=SIM_A_ID, vehicle_id=DEMO_VEHICLE, activate=False))
    return events


if __name__ == "__main__":
    import main
    main.main(end_time_ms=10_000, log_level=logging.DEBUG)
