#!/usr/bin/env python3
"""
cosim/federate.py
=================
Thin host-runtime adapter around :class:`~cosim.coordinator.TimeAdvanceCoordinator`.

The host runtime only sees four calls (initialize, process_interaction,
process_time_advance_grant, finish_simulation) and one exception type,
:class:`FederateFailure`.  :func:`build_bridge` wires settings, topology,
registry, remote client and coordinator together.
"""

from __future__ import annotations

import logging
from typing import Optional

from bus import InteractionBus
from cosim.coordinator import CoordinatorState, TimeAdvanceCoordinator
from cosim.errors import FatalBridgeError, TopologyFileError
from cosim.events import InboundEvent
from cosim.registry import EntityRegistry
from cosim.remote import RemoteSimClient, RemoteStub
from cosim.settings import BridgeSettings
from cosim.topology import load_topology

log = logging.getLogger("federate")


class FederateFailure(Exception):
    """Fatal error reported to the host runtime; ``__cause__`` holds the bridge error."""


class BridgeFederate:
    """Host-facing federate wrapping one coordinator."""

    def __init__(self, coordinator: TimeAdvanceCoordinator) -> None:
        self.coordinator = coordinator

    @property
    def federate_id(self) -> str:
        return self.coordinator.settings.federate_id

    def initialize(self, start_time: int) -> None:
        self.coordinator.initialize(start_time)

    def process_interaction(self, event: InboundEvent) -> None:
        self.coordinator.submit(event)

    def process_time_advance_grant(self, time: int) -> None:
        try:
            self.coordinator.grant(time)
        except FatalBridgeError as exc:
            raise FederateFailure(f"Error during advance time ({time}): {exc}") from exc

    def finish_simulation(self) -> None:
        self.coordinator.shutdown()

    @property
    def failed(self) -> bool:
        return self.coordinator.state is CoordinatorState.FAILED


def build_bridge(
    settings: BridgeSettings,
    stub: Optional[RemoteStub],
    bus: Optional[InteractionBus] = None,
) -> BridgeFederate:
    """Assemble a ready-to-initialize federate.

    A missing or unreadable topology file disables signal synchronisation
    for the run; vehicles are unaffected.
    """
    settings.validate()
    try:
        installations = load_topology(settings.topology_path, settings.conversion_policy)
    except TopologyFileError as exc:
        log.error("%s: %s. Traffic signal synchronisation disabled.", exc, exc.__cause__ or "invalid content")
        installations = None

    registry = EntityRegistry(installations)
    remote = RemoteSimClient(stub, step_timeout_s=settings.step_timeout_s)
    coordinator = TimeAdvanceCoordinator(settings, registry, remote, bus or InteractionBus())
    return BridgeFederate(coordinator)
