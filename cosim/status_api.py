"""
cosim/status_api.py
===================
Optional FastAPI server exposing bridge diagnostics.

Start alongside a run::

    BRIDGE_API=1 python main.py          # → http://localhost:8000/status

Endpoints
---------
``GET /status``   coordinator state, step counters, registry counts, bus metrics
                  (counters only while a remote step is running)
``GET /signals``  installations, group assignments, matching diagnostics
``GET /vehicles`` known vehicles and their owner

``/signals`` and ``/vehicles`` answer 503 while a remote step is running.

.. note::

   This server is **not** required to run the bridge.
   It exists for external monitoring and testing.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

import config
from bus import InteractionBus
from cosim.coordinator import TimeAdvanceCoordinator

log = logging.getLogger("status_api")

# ── Pydantic response schemas ────────────────────────────────────────────────


class StatusResponse(BaseModel):
    """Coordinator lifecycle and counters."""
    state: str
    next_step_time: int
    last_granted_time: Optional[int] = None
    steps_run: int
    pending_events: int
    signals_manager: str
    signals_enabled: bool
    spawn_edge: Optional[str] = None
    failure: Optional[str] = None
    registry_available: bool = True
    summary: Dict[str, int] = {}
    bus: Dict[str, Any] = {}


class InstallationModel(BaseModel):
    installation_id: str
    x: float
    y: float
    matched: bool
    number_of_indications: int
    coarse_state: str
    cluster_members: List[str]


class SignalsResponse(BaseModel):
    """Matching result and current pole states."""
    installations: List[InstallationModel]
    assignments: Dict[str, List[str]]
    unmatched_groups: List[str]
    unmatched_installations: int


class VehicleModel(BaseModel):
    id: str
    owner: str
    vehicle_type: str
    x: Optional[float] = None
    y: Optional[float] = None
    heading: float
    sensors: List[str]


# ── FastAPI application ──────────────────────────────────────────────────────


def _require_registry(snap: Dict[str, Any]) -> None:
    if not snap["registry_available"]:
        raise HTTPException(status_code=503, detail="Remote step in progress, retry shortly")


def create_app(coordinator: TimeAdvanceCoordinator, bus: Optional[InteractionBus] = None) -> FastAPI:
    """Build the diagnostics app for one coordinator."""
    app = FastAPI(
        title="Co-simulation Bridge Status API",
        description="Read-only view of the Sim-A ⇄ Sim-B bridge.",
        version="1.0",
    )

    @app.get("/status", response_model=StatusResponse)
    def status():
        snap = coordinator.snapshot()
        return StatusResponse(
            bus=bus.metrics.report() if bus is not None else {},
            **{k: snap[k] for k in StatusResponse.model_fields if k in snap},
        )

    @app.get("/signals", response_model=SignalsResponse)
    def signals():
        snap = coordinator.snapshot()
        _require_registry(snap)
        return SignalsResponse(
            installations=snap["installations"],
            assignments=snap["assignments"],
            unmatched_groups=snap["unmatched_groups"],
            unmatched_installations=snap["summary"]["unmatched_installations"],
        )

    @app.get("/vehicles", response_model=List[VehicleModel])
    def vehicles():
        snap = coordinator.snapshot()
        _require_registry(snap)
        return snap["vehicles"]

    return app


# ── Background server ────────────────────────────────────────────────────────


def serve_in_background(app: FastAPI, host: str = config.API_HOST, port: int = config.API_PORT) -> threading.Thread:
    """Run *app* with uvicorn on a daemon thread."""
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, daemon=True, name="StatusAPI")
    thread.start()
    log.info("Status API listening on http://%s:%d", host, port)
    return thread
