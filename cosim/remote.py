#!/usr/bin/env python3
"""
cosim/remote.py
===============
Client side of the remote-step protocol.

:class:`RemoteStub` is the seam to the RPC transport: a real deployment
plugs a generated RPC stub behind it, tests and :mod:`demo` plug an
in-memory one.  :class:`RemoteSimClient` builds the wire descriptors,
enforces the optional step timeout and turns transport failures into
:class:`~cosim.errors.RemoteStepError`\\ s.
"""

from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, Callable, Dict, Optional

import config
from cosim.entities import VehicleData, VehicleType
from cosim.errors import RemoteStepError, RemoteStepTimeout, RemoteUnavailable
from cosim.reducer import CoarseIndication
from cosim.translator import encode_signals, to_remote_class
from cosim.wire import (
    Location,
    Rotation,
    SensorDescriptor,
    SignalCommand,
    StepResult,
    VehicleDescriptor,
)

log = logging.getLogger("remote")

SENSOR_ID_ATTRIBUTE = "sensor_id"


class RemoteStub:
    """Blocking request/response calls offered by Sim-B."""

    def simulation_step(self) -> Any:
        raise NotImplementedError

    def add_vehicle(self, vehicle: VehicleDescriptor) -> None:
        raise NotImplementedError

    def update_vehicle(self, vehicle: VehicleDescriptor) -> None:
        raise NotImplementedError

    def remove_vehicle(self, vehicle: VehicleDescriptor) -> None:
        raise NotImplementedError

    def update_traffic_light(self, command: SignalCommand) -> None:
        raise NotImplementedError

    def add_sensor(self, sensor: SensorDescriptor) -> Any:
        raise NotImplementedError

    def remove_sensor(self, sensor: SensorDescriptor) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release the underlying channel."""


def vehicle_descriptor(data: VehicleData, vehicle_type: VehicleType) -> VehicleDescriptor:
    """Translate Sim-A vehicle state into the descriptor Sim-B expects."""
    location = Location()
    if data.position is not None:
        p = data.position.cartesian
        location = Location(x=p.x, y=p.y, z=p.z)
    return VehicleDescriptor(
        id=data.name,
        type_id=vehicle_type.name,
        vclass=to_remote_class(vehicle_type.vehicle_class),
        color=vehicle_type.color or config.DEFAULT_VEHICLE_COLOR,
        length=str(vehicle_type.length),
        width=str(vehicle_type.width),
        height=str(vehicle_type.height),
        location=location,
        rotation=Rotation(slope=data.slope, angle=data.heading),
        signals=encode_signals(data.signals),
    )


class RemoteSimClient:
    """Blocking client for one Sim-B instance.

    Parameters
    ----------
    stub : RemoteStub or None
        Transport; ``None`` means the channel is not connected yet.
    step_timeout_s : float or None
        Bound on :meth:`step`.  ``None`` waits forever.
    """

    def __init__(self, stub: Optional[RemoteStub], step_timeout_s: Optional[float] = None) -> None:
        self._stub = stub
        self._step_timeout_s = step_timeout_s
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._inflight: Optional[concurrent.futures.Future] = None

    @property
    def connected(self) -> bool:
        return self._stub is not None

    def connect(self, stub: RemoteStub) -> None:
        self._stub = stub

    # ── internal ──────────────────────────────────────────────────────────

    def _call(self, name: str, fn: Callable[..., Any], *args: Any) -> Any:
        if self._stub is None:
            raise RemoteUnavailable(f"{name}: remote channel not connected")
        try:
            return fn(*args)
        except (ConnectionError, OSError) as exc:
            raise RemoteUnavailable(f"{name}: remote channel unreachable") from exc
        except RemoteStepError:
            raise
        except Exception as exc:
            raise RemoteStepError(f"{name} failed: {exc}") from exc

    def _step_with_timeout(self) -> Any:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="RemoteStep"
            )
        self._inflight = self._executor.submit(self._stub.simulation_step)
        try:
            return self._inflight.result(timeout=self._step_timeout_s)
        except concurrent.futures.TimeoutError as exc:
            raise RemoteStepTimeout(
                f"Remote step did not answer within {self._step_timeout_s:.1f} s"
            ) from exc
        finally:
            if self._inflight.done():
                self._inflight = None

    # ── protocol ──────────────────────────────────────────────────────────

    def step(self) -> StepResult:
        """Run exactly one remote simulation step and validate its result."""
        if self._step_timeout_s is None:
            raw = self._call("Step", lambda: self._stub.simulation_step())
        else:
            raw = self._call("Step", self._step_with_timeout)
        return StepResult.parse(raw)

    def add_vehicle(self, data: VehicleData, vehicle_type: VehicleType) -> None:
        self._call("AddVehicle", lambda: self._stub.add_vehicle(vehicle_descriptor(data, vehicle_type)))

    def update_vehicle(self, data: VehicleData, vehicle_type: VehicleType) -> None:
        self._call("UpdateVehicle", lambda: self._stub.update_vehicle(vehicle_descriptor(data, vehicle_type)))

    def remove_vehicle(self, vehicle_id: str) -> None:
        self._call("RemoveVehicle", lambda: self._stub.remove_vehicle(VehicleDescriptor(id=vehicle_id)))

    def update_signal(self, installation_id: str, coarse: CoarseIndication) -> None:
        command = SignalCommand(landmark_id=installation_id, state=coarse.value)
        self._call("UpdateSignal", lambda: self._stub.update_traffic_light(command))

    def spawn_sensor(self, vehicle_id: str, sensor_type: str, attributes: Dict[str, str]) -> Optional[str]:
        """Attach a sensor to *vehicle_id*; returns the id Sim-B assigned, if any."""
        request = SensorDescriptor(type_id=sensor_type, attached=vehicle_id, attributes=dict(attributes))

        def add_sensor() -> Optional[SensorDescriptor]:
            response = self._stub.add_sensor(request)
            if response is None or isinstance(response, SensorDescriptor):
                return response
            return SensorDescriptor.model_validate(response)

        response = self._call("AddSensor", add_sensor)
        if response is None:
            return None
        return response.attributes.get(SENSOR_ID_ATTRIBUTE)

    def remove_sensor(self, sensor_id: str, sensor_type: str) -> None:
        request = SensorDescriptor(id=sensor_id, type_id=sensor_type)
        self._call("RemoveSensor", lambda: self._stub.remove_sensor(request))

    def close(self, grace_s: float) -> None:
        """Give an in-flight step *grace_s* seconds to drain, then drop the channel."""
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            done, _ = concurrent.futures.wait([inflight], timeout=grace_s)
            if not done:
                log.warning("Remote step still in flight after %.1f s, terminating", grace_s)
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        if self._stub is not None:
            self._stub.close()
            self._stub = None
