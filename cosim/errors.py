"""
cosim/errors.py
===============
Exception taxonomy for the bridge.

* :class:`FatalBridgeError` subclasses abort the current step; the
  coordinator moves to ``FAILED`` and the host adapter reports a
  federate failure.
* :class:`TopologyFileError` is a configuration problem: signal
  synchronisation is disabled, vehicles keep working.
* Recoverable data problems (unknown vehicle, unbound sensor, unmatched
  signal group) are *not* exceptions: they are logged and skipped.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Root of every error raised by the bridge core."""


# ── Fatal / protocol ─────────────────────────────────────────────────────────

class FatalBridgeError(BridgeError):
    """Simulation time consistency can no longer be guaranteed."""


class TemporalOrderingViolation(FatalBridgeError):
    """A buffered event is stamped later than the granted time."""

    def __init__(self, event_time: int, granted_time: int) -> None:
        super().__init__(
            f"Event time lies in the future: {event_time} ms, granted time: {granted_time} ms"
        )
        self.event_time = event_time
        self.granted_time = granted_time


class RemoteStepError(FatalBridgeError):
    """The remote simulation step call failed."""


class RemoteUnavailable(RemoteStepError):
    """The remote channel is not connected or unreachable."""


class RemoteStepTimeout(RemoteStepError):
    """The remote step did not answer within the configured timeout."""


class MalformedStepResult(RemoteStepError):
    """The remote step answered with a missing or invalid result."""


class InvalidRouteError(FatalBridgeError):
    """A route registration did not contain a single usable edge."""


# ── Configuration ────────────────────────────────────────────────────────────

class TopologyFileError(BridgeError):
    """The static signal topology file is missing or cannot be parsed."""


class ConfigurationError(BridgeError):
    """A bridge setting is out of range."""


# ── State machine misuse ─────────────────────────────────────────────────────

class CoordinatorStateError(BridgeError):
    """An operation was attempted in a state that does not allow it."""
