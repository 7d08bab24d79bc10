#!/usr/bin/env python3
"""
config.py
=========
Application-wide configuration constants.

Values can be overridden via environment variables (see :mod:`main`).
This module is a thin, import-safe leaf; it never imports from
other project packages.
"""

# ── Federation defaults ──────────────────────────────────────────────────────
FEDERATE_ID: str = "simb-bridge"
DEFAULT_START_TIME_MS: int = 0
DEFAULT_END_TIME_MS: int = 60_000

# ── Time-advance defaults ────────────────────────────────────────────────────
DEFAULT_STEP_INTERVAL_MS: int = 1000
MIN_STEP_INTERVAL_MS: int = 100
DEFAULT_STEP_TIMEOUT_S: float = 0.0          # 0 → wait for the remote forever
DEFAULT_SHUTDOWN_GRACE_S: float = 5.0

# ── Traffic-signal defaults ──────────────────────────────────────────────────
DEFAULT_SIGNALS_MANAGER: str = "local"       # "local" (Sim-A) or "remote" (Sim-B)
DEFAULT_REDUCTION_POLICY: str = "STRICT"     # "STRICT" or "PERMISSIVE"
DEFAULT_MATCH_RADIUS_M: float = 15.0

# ── Remote simulator ─────────────────────────────────────────────────────────
REMOTE_TARGET: str = "localhost:50051"
DEFAULT_VEHICLE_COLOR: str = "255,255,255,100"
REMOTE_VEHICLE_GROUP: str = "simb-controlled"
FEDERATE_UPDATE_INTERVAL_MS: int = 10          # declared for Sim-B controlled vehicles
FALLBACK_ROUTE_SUFFIX: str = "_route"

# ── Static topology file (relative to project root) ──────────────────────────
TOPOLOGY_REL_PATH: str = "data/traffic_light_mapping.json"

# ── Geodetic origin of the shared planar frame ───────────────────────────────
GEO_ORIGIN_LAT: float = 52.5130
GEO_ORIGIN_LON: float = 13.3270

# ── Diagnostics API ──────────────────────────────────────────────────────────
API_HOST: str = "0.0.0.0"
API_PORT: int = 8000
