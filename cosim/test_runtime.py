#!/usr/bin/env python3
"""
Tests for the host-facing federate, the lockstep runtime and the bundled
loopback demo.
"""

from __future__ import annotations

import os
import unittest

import config
from bus import InteractionBus
from cosim import events as ev
from cosim.coordinator import CoordinatorState
from cosim.entities import VehicleType
from cosim.errors import RemoteStepError, TemporalOrderingViolation
from cosim.federate import BridgeFederate, FederateFailure, build_bridge
from cosim.remote import RemoteStub
from cosim.runtime import LockstepRuntime
from cosim.settings import BridgeSettings
from demo import DEMO_VEHICLE, LoopbackStub, demo_scenario

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_TOPOLOGY = os.path.join(_PROJECT_ROOT, config.TOPOLOGY_REL_PATH)


class CountingStub(RemoteStub):
    def __init__(self):
        self.steps = 0
        self.closed = False

    def simulation_step(self):
        self.steps += 1
        return {}

    def close(self):
        self.closed = True


class BuildBridgeTests(unittest.TestCase):
    def test_bundled_topology_enables_signals(self) -> None:
        federate = build_bridge(BridgeSettings(topology_path=_TOPOLOGY), CountingStub())
        registry = federate.coordinator.registry
        self.assertTrue(registry.signals_enabled)
        self.assertEqual(len(registry.installations), 6)

    def test_missing_topology_disables_signals(self) -> None:
        federate = build_bridge(BridgeSettings(topology_path="/nonexistent/topology.json"), CountingStub())
        registry = federate.coordinator.registry
        self.assertFalse(registry.signals_enabled)
        self.assertEqual(registry.installations, {})


class FederateTests(unittest.TestCase):
    def test_fatal_error_surfaces_as_federate_failure(self) -> None:
        federate = build_bridge(BridgeSettings(topology_path=_TOPOLOGY), CountingStub())
        federate.initialize(0)
        federate.process_interaction(ev.VehicleRegistration(
            time=5000, sender_id="sim-a", vehicle_id="v1", vehicle_type=VehicleType(name="car"),
        ))

        with self.assertRaises(FederateFailure) as ctx:
            federate.process_time_advance_grant(4000)

        self.assertIsInstance(ctx.exception.__cause__, TemporalOrderingViolation)
        self.assertTrue(federate.failed)
        self.assertEqual(federate.federate_id, config.FEDERATE_ID)

    def test_malformed_sensor_answer_surfaces_as_federate_failure(self) -> None:
        class GarbledStub(CountingStub):
            def add_sensor(self, sensor):
                return {"attributes": 5}

        federate = build_bridge(BridgeSettings(topology_path=_TOPOLOGY), GarbledStub())
        federate.initialize(0)
        federate.process_interaction(ev.SensorActivation(time=0, sender_id="sim-a", vehicle_id="v1"))

        with self.assertRaises(FederateFailure) as ctx:
            federate.process_time_advance_grant(0)

        self.assertIsInstance(ctx.exception.__cause__, RemoteStepError)
        self.assertIs(federate.coordinator.state, CoordinatorState.FAILED)


class LockstepRuntimeTests(unittest.TestCase):
    def test_grants_every_step_until_end_time(self) -> None:
        stub = CountingStub()
        bus = InteractionBus()
        federate = build_bridge(BridgeSettings(topology_path=_TOPOLOGY), stub, bus)
        runtime = LockstepRuntime(federate, bus, start_time=0, end_time=3000)

        runtime.run()

        self.assertEqual(stub.steps, 4)
        self.assertEqual(runtime.current_time, 3000)
        self.assertTrue(runtime.finished)
        self.assertIsNone(runtime.failure)
        self.assertTrue(stub.closed)
        self.assertIs(federate.coordinator.state, CoordinatorState.CLOSED)
        requested = [m.time for m in runtime.delivered(ev.TOPIC_TIME_ADVANCE)]
        self.assertEqual(requested, [0, 1000, 2000, 3000, 4000])

    def test_failure_stops_the_run(self) -> None:
        stub = CountingStub()
        bus = InteractionBus()
        federate = build_bridge(BridgeSettings(topology_path=_TOPOLOGY), stub, bus)

        def late_event(t):
            if t == 1000:
                yield ev.VehicleRegistration(
                    time=9000, sender_id="sim-a", vehicle_id="v1", vehicle_type=VehicleType(name="car"),
                )

        runtime = LockstepRuntime(federate, bus, start_time=0, end_time=5000, scenario=late_event)
        runtime.run()

        self.assertIsInstance(runtime.failure, FederateFailure)
        self.assertEqual(stub.steps, 1)
        self.assertEqual(runtime.current_time, 0)
        self.assertTrue(stub.closed)

    def test_background_thread(self) -> None:
        stub = CountingStub()
        bus = InteractionBus()
        runtime = LockstepRuntime(
            build_bridge(BridgeSettings(topology_path=_TOPOLOGY), stub, bus), bus,
            start_time=0, end_time=2000,
        )
        runtime.start()
        runtime.join(timeout=5.0)
        self.assertTrue(runtime.finished)
        self.assertEqual(stub.steps, 3)


class LoopbackDemoTests(unittest.TestCase):
    def setUp(self) -> None:
        self.stub = LoopbackStub()
        self.bus = InteractionBus()
        self.federate: BridgeFederate = build_bridge(
            BridgeSettings(topology_path=_TOPOLOGY), self.stub, self.bus,
        )
        self.runtime = LockstepRuntime(
            self.federate, self.bus, start_time=0, end_time=10_000, scenario=demo_scenario,
        )
        self.runtime.run()

    def test_runs_to_completion(self) -> None:
        self.assertIsNone(self.runtime.failure)
        self.assertEqual(self.runtime.current_time, 10_000)
        self.assertTrue(self.stub.closed)

    def test_signals_are_matched_and_pushed(self) -> None:
        registry = self.federate.coordinator.registry
        self.assertEqual(list(registry.assignments), ["J1"])
        self.assertEqual(registry.last_match.unmatched_groups, ["J2"])
        self.assertEqual(len(self.runtime.delivered(ev.TOPIC_SIGNAL_SUBSCRIPTION)), 1)
        self.assertEqual(sorted(self.stub.lights), ["101", "102", "103", "104"])

    def test_remote_vehicle_is_announced_and_removed(self) -> None:
        (registration,) = self.runtime.delivered(ev.TOPIC_VEHICLE_REGISTRATION)
        self.assertEqual(registration.payload.vehicle_id, "simb_1")
        self.assertEqual(registration.payload.route_id, "simb_route_1")
        self.assertEqual(len(self.runtime.delivered(ev.TOPIC_FEDERATE_ASSIGNMENT)), 1)

        removed = [vid for m in self.runtime.delivered(ev.TOPIC_VEHICLE_UPDATES) for vid in m.payload.removed]
        self.assertEqual(removed, ["simb_1"])

    def test_local_vehicle_and_sensor_lifecycle(self) -> None:
        self.assertNotIn(DEMO_VEHICLE, self.stub.vehicles)
        self.assertEqual(self.stub.sensors, {})
        lidar = [
            u for m in self.runtime.delivered(ev.TOPIC_VEHICLE_UPDATES)
            for u in m.payload.updated if u.lidar is not None
        ]
        self.assertTrue(lidar)
        self.assertTrue(all(u.name == DEMO_VEHICLE for u in lidar))
        self.assertEqual(lidar[0].lidar.points.shape, (2, 3))


if __name__ == "__main__":
    unittest.main()
