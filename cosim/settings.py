#!/usr/bin/env python3
"""
cosim/settings.py
=================
Tunable bridge parameters.  Every value lives in a frozen dataclass so
that experiments can swap settings without touching code.

:class:`BridgeSettings` groups time advance, signal synchronisation,
matching and remote-channel parameters; :class:`LidarSettings` holds the
sensor parameter defaults sent along with each sensor spawn request.

:meth:`BridgeSettings.from_mapping` accepts the camelCase keys of the
JSON configuration file used by the host runtime (``updateInterval``,
``tlsManager``, ``tlsStrictConversion``, ``lidarChannels`` …).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional

import config
from cosim.errors import ConfigurationError
from cosim.reducer import ConversionPolicy

SIGNALS_MANAGER_LOCAL = "local"
SIGNALS_MANAGER_REMOTE = "remote"
_SIGNALS_MANAGERS = (SIGNALS_MANAGER_LOCAL, SIGNALS_MANAGER_REMOTE)

# Host configuration key → (LidarSettings field, cast)
_LIDAR_KEYS = {
    "lidarChannels": ("channels", int),
    "lidarRange": ("range", float),
    "lidarPointsPerSecond": ("points_per_second", int),
    "lidarRotationFrequency": ("rotation_frequency", float),
    "lidarUpperFov": ("upper_fov", float),
    "lidarLowerFov": ("lower_fov", float),
    "lidarAtmosphereAttenuationRate": ("atmosphere_attenuation_rate", float),
    "lidarDropoffGeneralRate": ("dropoff_general_rate", float),
    "lidarDropoffIntensityLimit": ("dropoff_intensity_limit", float),
    "lidarDropoffZeroIntensity": ("dropoff_zero_intensity", float),
    "lidarNoiseStdDev": ("noise_stddev", float),
}


@dataclass(frozen=True)
class LidarSettings:
    """LiDAR parameters forwarded to Sim-B as string attributes."""

    channels: int = 32
    """Number of lasers."""

    range: float = 10.0
    """Maximum distance to measure / raycast in metres."""

    points_per_second: int = 56000
    """Points generated by all lasers per second."""

    rotation_frequency: float = 10.0
    """LiDAR rotation frequency (Hz)."""

    upper_fov: float = 10.0
    """Angle in degrees of the highest laser."""

    lower_fov: float = -30.0
    """Angle in degrees of the lowest laser."""

    atmosphere_attenuation_rate: float = 0.004
    """Intensity loss per metre."""

    dropoff_general_rate: float = 0.45
    """Proportion of points that are randomly dropped."""

    dropoff_intensity_limit: float = 0.8
    """Intensity above which no points are dropped."""

    dropoff_zero_intensity: float = 0.4
    """Drop probability of points with zero intensity."""

    noise_stddev: float = 0.0
    """Standard deviation of the noise along each raycast."""

    def to_attributes(self) -> Dict[str, str]:
        """Return the parameters as the string map expected by ``AddSensor``."""
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class BridgeSettings:
    """Immutable bag of every tunable bridge parameter."""

    # ── Federation ────────────────────────────────────────────────────────
    federate_id: str = config.FEDERATE_ID
    """Sender id of every interaction this bridge publishes."""

    # ── Time advance ──────────────────────────────────────────────────────
    step_interval_ms: int = config.DEFAULT_STEP_INTERVAL_MS
    """Size of one remote simulation step (ms)."""

    step_timeout_s: Optional[float] = None
    """Upper bound on one remote step call; ``None`` waits forever."""

    shutdown_grace_s: float = config.DEFAULT_SHUTDOWN_GRACE_S
    """Time given to in-flight remote calls to drain on shutdown."""

    # ── Traffic signals ───────────────────────────────────────────────────
    signals_manager: str = config.DEFAULT_SIGNALS_MANAGER
    """``"local"``: Sim-A drives signals.  ``"remote"``: Sim-B drives them."""

    conversion_policy: ConversionPolicy = ConversionPolicy.STRICT
    """How N fine indications are reduced to one coarse indication."""

    match_radius_m: float = config.DEFAULT_MATCH_RADIUS_M
    """Max anchor → nearest installation distance for a valid match."""

    topology_path: str = config.TOPOLOGY_REL_PATH
    """Static signal topology published by Sim-B."""

    # ── Vehicles / geometry ───────────────────────────────────────────────
    remote_vehicle_group: str = config.REMOTE_VEHICLE_GROUP
    """Group name used when registering Sim-B controlled vehicles."""

    geo_origin_lat: float = config.GEO_ORIGIN_LAT
    geo_origin_lon: float = config.GEO_ORIGIN_LON

    # ── Sensors ───────────────────────────────────────────────────────────
    lidar: LidarSettings = field(default_factory=LidarSettings)

    @property
    def local_manages_signals(self) -> bool:
        return self.signals_manager == SIGNALS_MANAGER_LOCAL

    @property
    def remote_manages_signals(self) -> bool:
        return self.signals_manager == SIGNALS_MANAGER_REMOTE

    def validate(self) -> "BridgeSettings":
        """Raise :class:`ConfigurationError` for out-of-range values."""
        if self.step_interval_ms < config.MIN_STEP_INTERVAL_MS:
            raise ConfigurationError(
                f"step_interval_ms must be >= {config.MIN_STEP_INTERVAL_MS}, "
                f"got {self.step_interval_ms}"
            )
        if self.signals_manager not in _SIGNALS_MANAGERS:
            raise ConfigurationError(
                f"signals_manager must be one of {_SIGNALS_MANAGERS}, got {self.signals_manager!r}"
            )
        if self.match_radius_m <= 0.0:
            raise ConfigurationError("match_radius_m must be positive")
        if self.step_timeout_s is not None and self.step_timeout_s <= 0.0:
            raise ConfigurationError("step_timeout_s must be positive or None")
        return self

    def with_overrides(self, **changes: Any) -> "BridgeSettings":
        return replace(self, **changes).validate()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "BridgeSettings":
        """Build settings from a host configuration mapping.

        Unknown keys are ignored.  ``tlsManager`` accepts ``"mosaic"`` /
        ``"carla"`` as aliases of ``"local"`` / ``"remote"``.
        """
        kwargs: Dict[str, Any] = {}
        if "updateInterval" in raw:
            kwargs["step_interval_ms"] = int(raw["updateInterval"])
        if "stepTimeout" in raw:
            timeout = float(raw["stepTimeout"])
            kwargs["step_timeout_s"] = timeout if timeout > 0 else None
        if "tlsManager" in raw:
            manager = str(raw["tlsManager"]).lower()
            kwargs["signals_manager"] = {
                "mosaic": SIGNALS_MANAGER_LOCAL,
                "carla": SIGNALS_MANAGER_REMOTE,
            }.get(manager, manager)
        if "tlsStrictConversion" in raw:
            kwargs["conversion_policy"] = (
                ConversionPolicy.STRICT if bool(raw["tlsStrictConversion"])
                else ConversionPolicy.PERMISSIVE
            )
        if "matchRadius" in raw:
            kwargs["match_radius_m"] = float(raw["matchRadius"])
        if "topologyPath" in raw:
            kwargs["topology_path"] = str(raw["topologyPath"])

        lidar: Dict[str, Any] = {}
        for key, (name, cast) in _LIDAR_KEYS.items():
            if key in raw:
                lidar[name] = cast(raw[key])
        if lidar:
            kwargs["lidar"] = LidarSettings(**lidar)

        return cls(**kwargs).validate()
