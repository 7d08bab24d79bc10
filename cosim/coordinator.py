#!/usr/bin/env python3
"""
cosim/coordinator.py
====================
:class:`TimeAdvanceCoordinator` keeps Sim-A and Sim-B in lockstep.

Inbound events are buffered by :meth:`~TimeAdvanceCoordinator.submit`
and replayed, in arrival order, on the next
:meth:`~TimeAdvanceCoordinator.grant`.  Once the granted time reaches
the next step boundary exactly one remote step is run and its results
are published on the :class:`~bus.InteractionBus`.

Lifecycle
---------
::

    CREATED ──initialize──▶ READY ──grant──▶ STEPPING ──▶ READY
                                                 │
                                   fatal error   ▼
                                               FAILED
    any state ──shutdown──▶ CLOSED

Locking
-------
* ``_pending_lock`` guards only the pending queue, so :meth:`submit`
  never waits for an in-flight step.
* ``_step_lock`` serialises replay-then-step; two steps are never in
  flight at once.
* :meth:`shutdown` waits up to ``shutdown_grace_s`` for ``_step_lock``
  before closing the remote; :meth:`snapshot` never waits for it.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

import config
from bus import InteractionBus
from cosim import events as ev
from cosim.entities import (
    DriveDirection,
    Owner,
    Position,
    VehicleData,
    VehicleRoute,
    VehicleType,
)
from cosim.errors import (
    CoordinatorStateError,
    FatalBridgeError,
    InvalidRouteError,
    TemporalOrderingViolation,
)
from cosim.geometry import CartesianPoint, LocalProjection
from cosim.matcher import TopologyMatcher
from cosim.reducer import CoarseIndication
from cosim.registry import EntityRegistry
from cosim.remote import RemoteSimClient
from cosim.sensor_relay import relay_frames
from cosim.settings import BridgeSettings
from cosim.translator import decode_signals, to_local_class
from cosim.wire import DestroyRequest, MoveRequest, SignalUpdate, SpawnRequest, StepResult

log = logging.getLogger("coordinator")


class CoordinatorState(Enum):
    CREATED = "created"
    READY = "ready"
    STEPPING = "stepping"
    FAILED = "failed"
    CLOSED = "closed"


class TimeAdvanceCoordinator:
    """Buffers host events and drives one remote step per granted interval.

    Parameters
    ----------
    settings : BridgeSettings
        Validated bridge parameters.
    registry : EntityRegistry
        Shared entity store; installations must already be loaded.
    remote : RemoteSimClient
        Blocking client of Sim-B.
    bus : InteractionBus
        Sink of every outbound interaction.
    matcher : TopologyMatcher or None
        Defaults to a clockwise matcher over *registry*.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        registry: EntityRegistry,
        remote: RemoteSimClient,
        bus: InteractionBus,
        matcher: Optional[TopologyMatcher] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self._remote = remote
        self._bus = bus
        self._matcher = matcher or TopologyMatcher(registry, settings.match_radius_m)
        self._projection = LocalProjection(settings.geo_origin_lat, settings.geo_origin_lon)

        self._pending: Deque[ev.InboundEvent] = deque()
        self._pending_lock = threading.Lock()
        self._step_lock = threading.Lock()

        self._state = CoordinatorState.CREATED
        self.next_step_time: int = 0
        self.steps_run: int = 0
        self.last_granted_time: Optional[int] = None
        self.failure: Optional[FatalBridgeError] = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> CoordinatorState:
        return self._state

    def initialize(self, start_time: int) -> None:
        """Fix the first step boundary and request the first time advance."""
        if self._state is not CoordinatorState.CREATED:
            raise CoordinatorStateError(f"initialize() called in state {self._state.value}")
        self.next_step_time = start_time
        self._state = CoordinatorState.READY
        log.info(
            "Coordinator ready: start=%d ms, step=%d ms, signals=%s (%s)",
            start_time, self.settings.step_interval_ms, self.settings.signals_manager,
            "enabled" if self.registry.signals_enabled else "disabled",
        )
        self._publish(ev.TOPIC_TIME_ADVANCE, start_time, ev.TimeAdvanceRequest(time=start_time))

    def submit(self, event: ev.InboundEvent) -> None:
        """Queue *event* for replay at the next grant.  Never blocks on a step."""
        if self._state is CoordinatorState.CLOSED:
            log.debug("Coordinator closed, discarding %s", ev.describe(event))
            return
        with self._pending_lock:
            self._pending.append(event)

    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def grant(self, granted_time: int) -> bool:
        """Replay queued events up to *granted_time* and step Sim-B if due.

        Vehicles spawned, moved or removed by the step are published at
        *granted_time*; signal changes and sensor frames at the new step
        boundary.

        Returns
        -------
        bool
            True if a remote step was run.

        Raises
        ------
        TemporalOrderingViolation
            A queued event is stamped later than *granted_time*.
        RemoteStepError
            The remote step failed, timed out or returned garbage.
        InvalidRouteError
            A route registration carried no usable edge.
        FatalBridgeError
            Any other error while replaying or applying the step.
        """
        self._check_grantable(granted_time)

        with self._step_lock:
            self._check_grantable(granted_time)
            self._state = CoordinatorState.STEPPING
            self.last_granted_time = granted_time
            try:
                for event in self._drain():
                    self._replay(event, granted_time)

                if granted_time < self.next_step_time:
                    return False

                result = self._remote.step()
                if self._state is CoordinatorState.CLOSED:
                    log.info("Discarding step result received after shutdown")
                    return False
                self.next_step_time += self.settings.step_interval_ms
                self._apply_step(result, granted_time)
                self.steps_run += 1
                self._publish(
                    ev.TOPIC_TIME_ADVANCE, self.next_step_time,
                    ev.TimeAdvanceRequest(time=self.next_step_time),
                )
                return True
            except FatalBridgeError as exc:
                self._fail(exc, granted_time)
                raise
            except Exception as exc:
                failure = FatalBridgeError(f"Unexpected error during time advance to {granted_time} ms: {exc}")
                self._fail(failure, granted_time)
                raise failure from exc
            finally:
                if self._state is CoordinatorState.STEPPING:
                    self._state = CoordinatorState.READY

    def shutdown(self) -> None:
        """Discard queued events, let an in-flight step drain, release the remote channel."""
        if self._state is CoordinatorState.CLOSED:
            return
        with self._pending_lock:
            dropped = len(self._pending)
            self._pending.clear()
        self._state = CoordinatorState.CLOSED
        log.info("Closing remote resources (%d queued events discarded)", dropped)

        grace_s = self.settings.shutdown_grace_s
        idle = self._step_lock.acquire(timeout=grace_s)
        if not idle:
            log.warning("Remote step still in flight after %.1f s, closing anyway", grace_s)
        try:
            self._remote.close(grace_s if idle else 0.0)
        finally:
            if idle:
                self._step_lock.release()
        log.info("Finished simulation after %d steps", self.steps_run)

    def _check_grantable(self, granted_time: int) -> None:
        if self._state in (CoordinatorState.CREATED, CoordinatorState.FAILED, CoordinatorState.CLOSED):
            raise CoordinatorStateError(f"grant({granted_time}) called in state {self._state.value}")

    def _fail(self, exc: FatalBridgeError, granted_time: int) -> None:
        if self._state is not CoordinatorState.CLOSED:
            self._state = CoordinatorState.FAILED
        self.failure = exc
        log.error("Error during time advance to %d ms", granted_time, exc_info=True)

    # ── Replay ────────────────────────────────────────────────────────────────

    def _drain(self) -> List[ev.InboundEvent]:
        with self._pending_lock:
            events = list(self._pending)
            self._pending.clear()
        return events

    def _replay(self, event: ev.InboundEvent, granted_time: int) -> None:
        if event.time > granted_time:
            raise TemporalOrderingViolation(event.time, granted_time)
        if event.sender_id == self.settings.federate_id:
            log.debug("Skipping own %s", ev.describe(event))
            return

        if isinstance(event, ev.VehicleUpdates):
            self._on_vehicle_updates(event)
        elif isinstance(event, ev.VehicleRegistration):
            self.registry.register_vehicle(event.vehicle_id, event.vehicle_type, Owner.SIM_A)
        elif isinstance(event, ev.VehicleTypesRegistration):
            for vehicle_type in event.types.values():
                self.registry.register_type(vehicle_type)
        elif isinstance(event, ev.RouteRegistration):
            self._on_route_registration(event)
        elif isinstance(event, ev.TopologyRegistration):
            self._on_topology_registration(event)
        elif isinstance(event, ev.SignalUpdates):
            self._on_signal_updates(event)
        elif isinstance(event, ev.SensorActivation):
            self._on_sensor_activation(event)
        else:
            log.info("Unused event %s", ev.describe(event))

    def _on_vehicle_updates(self, event: ev.VehicleUpdates) -> None:
        for data in event.updated:
            record = self._track_sim_a_vehicle(data)
            if record is not None:
                self._remote.update_vehicle(data, record.vehicle_type)

        for vehicle_id in event.removed:
            record = self.registry.vehicle(vehicle_id, Owner.SIM_A)
            if record is None:
                log.info("Removal of unregistered vehicle %s received. Ignoring.", vehicle_id)
                continue
            self._remote.remove_vehicle(vehicle_id)
            self.registry.remove_vehicle(vehicle_id)

        for data in event.added:
            record = self._track_sim_a_vehicle(data)
            if record is not None:
                self._remote.add_vehicle(data, record.vehicle_type)

    def _track_sim_a_vehicle(self, data: VehicleData):
        record = self.registry.vehicle(data.name, Owner.SIM_A)
        if record is None:
            log.info("Update for unregistered vehicle %s received. Ignoring.", data.name)
            return None
        record.position = data.position
        record.heading = data.heading
        record.slope = data.slope
        record.signals = data.signals
        return record

    def _on_route_registration(self, event: ev.RouteRegistration) -> None:
        for route in event.routes.values():
            if route.last_edge is not None:
                self.registry.spawn_edge = route.last_edge
                log.debug("Spawn edge for Sim-B vehicles: %s (route %s)", route.last_edge, route.id)
                return
        if self.registry.spawn_edge is None:
            raise InvalidRouteError("No valid edge given in route registration")

    def _on_topology_registration(self, event: ev.TopologyRegistration) -> None:
        if not self.registry.signals_enabled:
            log.info("Signal synchronisation disabled, ignoring %d signal groups", len(event.groups))
            return
        report = self._matcher.match_all(event.groups)
        for group_id in report.matched_groups:
            self._publish(
                ev.TOPIC_SIGNAL_SUBSCRIPTION, self.next_step_time,
                ev.SignalSubscription(time=self.next_step_time, group_id=group_id),
            )

    def _on_signal_updates(self, event: ev.SignalUpdates) -> None:
        if not (self.settings.local_manages_signals and self.registry.signals_enabled):
            return
        for group_id, states in ev.group_states(event).items():
            assignment = self.registry.assignments.get(group_id)
            if assignment is None:
                log.debug("State update for unmatched signal group %s. Ignoring.", group_id)
                continue
            offset = 0
            for installation_id in assignment.installation_ids:
                pole = self.registry.installations[installation_id]
                chunk = states[offset:offset + pole.number_of_indications]
                offset += pole.number_of_indications
                coarse = pole.apply_fine(chunk)
                self._remote.update_signal(installation_id, coarse)

    def _on_sensor_activation(self, event: ev.SensorActivation) -> None:
        vehicle_id = event.vehicle_id
        if event.activate:
            sensor_id = self._remote.spawn_sensor(
                vehicle_id, event.sensor_type, self.settings.lidar.to_attributes()
            )
            if sensor_id is None:
                log.warning(
                    "%s sensor spawn request for vehicle %s failed: no sensor id was returned",
                    event.sensor_type, vehicle_id,
                )
                return
            self.registry.bind_sensor(sensor_id, vehicle_id)
            log.info("%s sensor spawned for vehicle %s. Sensor id: %s", event.sensor_type, vehicle_id, sensor_id)
            return

        for sensor_id in self.registry.sensors_of(vehicle_id):
            log.info("Removing sensor %s for vehicle %s", sensor_id, vehicle_id)
            self._remote.remove_sensor(sensor_id, event.sensor_type)
            self.registry.unbind_sensor(sensor_id)

    # ── Step results ──────────────────────────────────────────────────────────

    def _apply_step(self, result: StepResult, granted_time: int) -> None:
        if result.spawn_requests:
            self._spawn_vehicles(result.spawn_requests, granted_time)
        if result.move_requests or result.destroy_requests:
            self._update_vehicles(result.move_requests, result.destroy_requests, granted_time)

        boundary = self.next_step_time
        if result.signal_updates and self.settings.remote_manages_signals and self.registry.signals_enabled:
            self._update_signals(result.signal_updates, boundary)
        if result.sensor_frames:
            lidar_updates = relay_frames(result.sensor_frames, self.registry.sensors, boundary)
            if lidar_updates:
                self._publish(
                    ev.TOPIC_VEHICLE_UPDATES, boundary,
                    ev.OutboundVehicleUpdates(time=boundary, updated=lidar_updates),
                )

    def _resolve_type(self, request: SpawnRequest) -> VehicleType:
        known = self.registry.vehicle_types.get(request.type_id)
        if known is not None:
            return known
        return self.registry.register_type(VehicleType(
            name=request.type_id,
            length=request.length,
            width=request.width,
            height=request.height,
            vehicle_class=to_local_class(request.class_id),
            color=request.color or None,
        ))

    def _spawn_vehicles(self, requests: List[SpawnRequest], t: int) -> None:
        log.debug("Adding %d Sim-B controlled vehicle(s) to the simulation", len(requests))
        spawn_edge = self.registry.spawn_edge
        for request in requests:
            vehicle_id = request.actor_id
            if spawn_edge is None:
                log.warning("No spawn edge known yet, cannot add Sim-B vehicle %s", vehicle_id)
                continue
            if vehicle_id in self.registry.vehicles:
                log.debug("Vehicle %s already registered, ignoring spawn request", vehicle_id)
                continue

            vehicle_type = self._resolve_type(request)
            route = VehicleRoute(
                id=request.route or vehicle_id + config.FALLBACK_ROUTE_SUFFIX,
                edges=(spawn_edge,),
            )
            self.registry.register_vehicle(vehicle_id, vehicle_type, Owner.SIM_B)

            self._publish(ev.TOPIC_ROUTE_REGISTRATION, t, ev.OutboundRouteRegistration(time=t, route=route))
            self._publish(ev.TOPIC_VEHICLE_REGISTRATION, t, ev.OutboundVehicleRegistration(
                time=t,
                vehicle_id=vehicle_id,
                group=self.settings.remote_vehicle_group,
                route_id=route.id,
                vehicle_type=vehicle_type,
            ))
            self._publish(ev.TOPIC_FEDERATE_ASSIGNMENT, t, ev.FederateAssignment(
                time=t,
                vehicle_id=vehicle_id,
                federate_id=self.settings.federate_id,
                update_interval_ms=config.FEDERATE_UPDATE_INTERVAL_MS,
            ))

    def _update_vehicles(self, moves: List[MoveRequest], destroys: List[DestroyRequest], t: int) -> None:
        updated: List[VehicleData] = []
        for move in moves:
            record = self.registry.vehicle(move.actor_id, Owner.SIM_B)
            if record is None:
                log.info("Move for unregistered vehicle %s received. Ignoring.", move.actor_id)
                continue
            cartesian = CartesianPoint(move.loc_x, move.loc_y, move.loc_z)
            signals = decode_signals(move.signals)
            data = VehicleData(
                time=t,
                name=move.actor_id,
                position=Position(cartesian=cartesian, geo=self._projection.to_geo(cartesian)),
                heading=move.yaw,
                slope=move.slope,
                signals=signals,
                drive_direction=DriveDirection.BACKWARD if signals.reverse_drive else DriveDirection.FORWARD,
            )
            record.position = data.position
            record.heading = data.heading
            record.slope = data.slope
            record.signals = signals
            updated.append(data)

        removed: List[str] = []
        for destroy in destroys:
            if self.registry.vehicle(destroy.actor_id, Owner.SIM_B) is None:
                log.info("Destroy for unregistered vehicle %s received. Ignoring.", destroy.actor_id)
                continue
            self.registry.remove_vehicle(destroy.actor_id)
            removed.append(destroy.actor_id)

        if updated or removed:
            self._publish(
                ev.TOPIC_VEHICLE_UPDATES, t,
                ev.OutboundVehicleUpdates(time=t, updated=updated, removed=removed),
            )

    def _update_signals(self, updates: List[SignalUpdate], t: int) -> None:
        touched: List[str] = []
        for update in updates:
            pole = self.registry.installations.get(update.landmark_id)
            if pole is None or not pole.matched:
                log.debug("State for unmatched installation %s. Ignoring.", update.landmark_id)
                continue
            pole.apply_coarse(CoarseIndication.from_code(update.state))
            touched.append(update.landmark_id)

        for group_id in self.registry.groups_of(touched):
            states = []
            for installation_id in self.registry.assignments[group_id].installation_ids:
                states.extend(self.registry.installations[installation_id].fine_state)
            self._publish(
                ev.TOPIC_SIGNAL_STATE_CHANGE, t,
                ev.SignalStateChange(time=t, group_id=group_id, states=states),
            )

    # ── Diagnostics ───────────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """Copy of coordinator state for diagnostics.

        Never waits for a running step: while one is in flight only the
        counters are reported and ``registry_available`` is False.
        """
        counters = {
            "state": self._state.value,
            "next_step_time": self.next_step_time,
            "last_granted_time": self.last_granted_time,
            "steps_run": self.steps_run,
            "pending_events": self.pending_count(),
            "signals_manager": self.settings.signals_manager,
            "signals_enabled": self.registry.signals_enabled,
            "failure": str(self.failure) if self.failure else None,
        }
        if not self._step_lock.acquire(blocking=False):
            return dict(counters, registry_available=False)
        try:
            registry = self.registry
            report = registry.last_match
            return {
                **counters,
                "registry_available": True,
                "spawn_edge": registry.spawn_edge,
                "summary": registry.summary(),
                "vehicles": [
                    {
                        "id": v.id,
                        "owner": v.owner.value,
                        "vehicle_type": v.vehicle_type.name,
                        "x": v.position.cartesian.x if v.position else None,
                        "y": v.position.cartesian.y if v.position else None,
                        "heading": v.heading,
                        "sensors": registry.sensors_of(v.id),
                    }
                    for v in registry.vehicles.values()
                ],
                "installations": [
                    {
                        "installation_id": p.installation_id,
                        "x": p.location.x,
                        "y": p.location.y,
                        "matched": p.matched,
                        "number_of_indications": p.number_of_indications,
                        "coarse_state": p.coarse_state.name,
                        "cluster_members": list(p.cluster_members),
                    }
                    for p in registry.installations.values()
                ],
                "assignments": {gid: list(a.installation_ids) for gid, a in registry.assignments.items()},
                "unmatched_groups": list(report.unmatched_groups) if report else [],
            }
        finally:
            self._step_lock.release()

    # ── helpers ───────────────────────────────────────────────────────────────

    def _publish(self, topic: str, t: int, payload: object) -> None:
        self._bus.publish(topic, self.settings.federate_id, t, payload)
