#!/usr/bin/env python3
"""
main.py
=======
Runs the co-simulation bridge in-process: the lockstep runtime plays
the host, :class:`demo.LoopbackStub` plays Sim-B.

Environment overrides
---------------------
``BRIDGE_STEP_MS``          step interval in ms
``BRIDGE_SIGNALS_MANAGER``  ``local`` or ``remote``
``BRIDGE_POLICY``           ``STRICT`` or ``PERMISSIVE``
``BRIDGE_MATCH_RADIUS_M``   topology match radius in metres
``BRIDGE_TOPOLOGY``         path of the static signal topology file
``BRIDGE_END_MS``           last granted time in ms
``BRIDGE_API``              ``1`` to serve the status API while running
"""

import logging
import os
from typing import Optional

import config
from logging_setup import setup_logging
from bus import InteractionBus
from cosim.errors import ConfigurationError
from cosim.federate import build_bridge
from cosim.reducer import ConversionPolicy
from cosim.runtime import LockstepRuntime
from cosim.settings import BridgeSettings

project_root = os.path.abspath(os.path.dirname(__file__))


def settings_from_env(env=os.environ) -> BridgeSettings:
    """Defaults from :mod:`config`, overridden by ``BRIDGE_*`` variables."""
    policy_name = env.get("BRIDGE_POLICY", config.DEFAULT_REDUCTION_POLICY).upper()
    try:
        policy = ConversionPolicy[policy_name]
    except KeyError as exc:
        raise ConfigurationError(f"BRIDGE_POLICY must be STRICT or PERMISSIVE, got {policy_name!r}") from exc

    topology = env.get("BRIDGE_TOPOLOGY", os.path.join(project_root, config.TOPOLOGY_REL_PATH))
    timeout = float(env.get("BRIDGE_STEP_TIMEOUT_S", config.DEFAULT_STEP_TIMEOUT_S))
    return BridgeSettings(
        step_interval_ms=int(env.get("BRIDGE_STEP_MS", config.DEFAULT_STEP_INTERVAL_MS)),
        step_timeout_s=timeout if timeout > 0 else None,
        signals_manager=env.get("BRIDGE_SIGNALS_MANAGER", config.DEFAULT_SIGNALS_MANAGER).lower(),
        conversion_policy=policy,
        match_radius_m=float(env.get("BRIDGE_MATCH_RADIUS_M", config.DEFAULT_MATCH_RADIUS_M)),
        topology_path=topology,
    ).validate()


def main(end_time_ms: Optional[int] = None, log_level: int = logging.INFO) -> int:
    setup_logging(log_level)
    log = logging.getLogger("main")

    # Loopback Sim-B lives in demo.py
    from demo import LoopbackStub, demo_scenario

    settings = settings_from_env()
    end_time = end_time_ms if end_time_ms is not None else int(
        os.environ.get("BRIDGE_END_MS", config.DEFAULT_END_TIME_MS)
    )
    log.info("Starting bridge %s: %s", settings.federate_id, settings)

    bus = InteractionBus()
    federate = build_bridge(settings, LoopbackStub(), bus)
    runtime = LockstepRuntime(
        federate, bus,
        start_time=config.DEFAULT_START_TIME_MS,
        end_time=end_time,
        scenario=demo_scenario,
    )

    if os.environ.get("BRIDGE_API") == "1":
        from cosim.status_api import create_app, serve_in_background
        serve_in_background(create_app(federate.coordinator, bus))

    try:
        runtime.run()
    except KeyboardInterrupt:
        log.info("Shutting down...")
        runtime.stop()

    for topic, count in sorted(runtime.delivered_counts().items()):
        log.info("delivered topic=%s count=%d", topic, count)
    log.info("bus metrics: %s", bus.metrics.report())

    if runtime.failure is not None:
        log.error("Bridge failed: %s", runtime.failure)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
