"""
cosim/runtime.py
================
In-process host runtime that drives a :class:`~cosim.federate.BridgeFederate`
in lockstep.  The runtime grants every time advance the bridge requests,
until ``end_time`` is passed, and collects every other interaction the
bridge publishes so callers (``main.py``, the status API, tests) can
inspect them without blocking.

Public API
----------
* ``inject(event)``        → queue an inbound event for the next grant
* ``run()``                → drive the federation to completion on this thread
* ``start()`` / ``stop()`` → same loop on a background thread
* ``current_time``         → last granted time (ms)
* ``delivered(topic)``     → interactions published on *topic* so far
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from bus import Interaction, InteractionBus
from cosim.events import TOPIC_TIME_ADVANCE, InboundEvent
from cosim.federate import BridgeFederate, FederateFailure

log = logging.getLogger("runtime")

# Scripted source of inbound events, asked once per grant.
ScenarioFn = Callable[[int], Iterable[InboundEvent]]


class LockstepRuntime:
    """Grants every requested time advance of one federate.

    Parameters
    ----------
    federate : BridgeFederate
        The bridge under control.
    bus : InteractionBus
        The bus the federate publishes on.
    start_time : int
        First granted time (ms).
    end_time : int
        Last time (ms) that may be granted.
    scenario : callable or None
        ``scenario(t)`` yields events injected right before granting *t*.
    real_time_factor : float
        0 runs as fast as possible; 1.0 sleeps so one simulated second
        takes one wall-clock second.
    """

    def __init__(
        self,
        federate: BridgeFederate,
        bus: InteractionBus,
        start_time: int,
        end_time: int,
        scenario: Optional[ScenarioFn] = None,
        real_time_factor: float = 0.0,
    ) -> None:
        self._federate = federate
        self._bus = bus
        self.start_time = start_time
        self.end_time = end_time
        self._scenario = scenario
        self._real_time_factor = real_time_factor

        self._lock = threading.Lock()
        self._delivered: Dict[str, List[Interaction]] = defaultdict(list)
        self.current_time: Optional[int] = None
        self.failure: Optional[FederateFailure] = None

        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._initialized = False

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Spawn the background runtime thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._loop, daemon=True, name="LockstepRuntime")
        self._thread.start()
        log.info("LockstepRuntime started (%d → %d ms)", self.start_time, self.end_time)

    def stop(self) -> None:
        """Signal the thread to stop and wait for it to join."""
        self._running = False
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        log.info("LockstepRuntime stopped")

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout=timeout)

    def run(self) -> None:
        """Drive the federation to ``end_time`` (or failure) on the calling thread."""
        self._running = True
        self._loop()

    # ── Host API ──────────────────────────────────────────────────────────────

    def inject(self, event: InboundEvent) -> None:
        self._federate.process_interaction(event)

    def delivered(self, topic: str) -> List[Interaction]:
        with self._lock:
            return list(self._delivered.get(topic, []))

    def delivered_counts(self) -> Dict[str, int]:
        with self._lock:
            return {topic: len(msgs) for topic, msgs in self._delivered.items()}

    @property
    def finished(self) -> bool:
        return self._initialized and not self._running

    # ── Loop ──────────────────────────────────────────────────────────────────

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self._federate.initialize(self.start_time)
            self._initialized = True

    def _loop(self) -> None:
        try:
            self._ensure_initialized()
            while self._running:
                t0 = time.perf_counter()
                previous = self.current_time
                if not self._advance():
                    break
                if self._real_time_factor > 0 and previous is not None:
                    dt = (self.current_time - previous) / 1000.0 * self._real_time_factor
                    time.sleep(max(0.0, dt - (time.perf_counter() - t0)))
        except FederateFailure as exc:
            self.failure = exc
            log.error("Federate failed: %s", exc)
        finally:
            self._running = False
            self._collect()
            self._federate.finish_simulation()

    def _advance(self) -> bool:
        """Grant the next requested time; False once nothing is left to grant."""
        requested = self._collect()
        if not requested:
            log.warning("Federate did not request a time advance, finishing")
            return False
        t = max(requested)
        if t > self.end_time:
            log.info("Reached end time %d ms", self.end_time)
            return False
        if self._scenario is not None:
            for event in self._scenario(t):
                self._federate.process_interaction(event)
        self._federate.process_time_advance_grant(t)
        self.current_time = t
        return True

    def _collect(self) -> List[int]:
        """Drain the bus; returns the requested advance times."""
        requested: List[int] = []
        msgs = self._bus.poll_all()
        with self._lock:
            for msg in msgs:
                self._delivered[msg.topic].append(msg)
                if msg.topic == TOPIC_TIME_ADVANCE:
                    requested.append(msg.time)
        return requested
