"""
cosim/wire.py
=============
Pydantic schemas of the remote-step protocol spoken with Sim-B.

The transport stub (see :mod:`cosim.remote`) may hand back either these
models or plain dicts with the same field names; :meth:`StepResult.parse`
validates both, so a malformed answer is detected before anything in
the registry is touched.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field, ValidationError, field_validator

from cosim.errors import MalformedStepResult
from cosim.reducer import CoarseIndication

# ── Shared ───────────────────────────────────────────────────────────────────


class Location(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Rotation(BaseModel):
    slope: float = 0.0
    angle: float = 0.0


# ── Requests sent to Sim-B ───────────────────────────────────────────────────


class VehicleDescriptor(BaseModel):
    """Vehicle as ``AddVehicle`` / ``UpdateVehicle`` / ``RemoveVehicle`` expect it."""
    id: str
    type_id: str = ""
    vclass: str = ""
    color: str = ""
    length: str = ""
    width: str = ""
    height: str = ""
    location: Location = Field(default_factory=Location)
    rotation: Rotation = Field(default_factory=Rotation)
    signals: int = 0


class SignalCommand(BaseModel):
    """``UpdateSignal`` request."""
    landmark_id: str
    state: str

    @field_validator("state")
    @classmethod
    def _known_code(cls, value: str) -> str:
        CoarseIndication(value)
        return value


class SensorDescriptor(BaseModel):
    """``AddSensor`` / ``RemoveSensor`` request and ``AddSensor`` response."""
    id: str = ""
    type_id: str = ""
    attached: str = ""
    location: Location = Field(default_factory=Location)
    rotation: Rotation = Field(default_factory=Rotation)
    attributes: Dict[str, str] = Field(default_factory=dict)


# ── Step result ──────────────────────────────────────────────────────────────


class SpawnRequest(BaseModel):
    actor_id: str
    route: str = ""
    type_id: str = ""
    class_id: str = ""
    color: str = ""
    length: float = 0.0
    width: float = 0.0
    height: float = 0.0


class DestroyRequest(BaseModel):
    actor_id: str


class MoveRequest(BaseModel):
    actor_id: str
    loc_x: float
    loc_y: float
    loc_z: float = 0.0
    yaw: float = 0.0
    slope: float = 0.0
    keep_route: int = 0
    signals: int = 0


class SignalUpdate(BaseModel):
    """Sim-B reports the coarse state of one installation."""
    landmark_id: str
    state: str


class SensorFrame(BaseModel):
    id: str
    timestamp: str = ""
    min_range: float = 0.0
    max_range: float = 0.0
    location: Location = Field(default_factory=Location)
    rotation_matrix: List[float] = Field(default_factory=list)
    lidar_points: List[Location] = Field(default_factory=list)


class StepResult(BaseModel):
    """Everything Sim-B reports for one simulation step."""
    spawn_requests: List[SpawnRequest] = Field(default_factory=list)
    destroy_requests: List[DestroyRequest] = Field(default_factory=list)
    move_requests: List[MoveRequest] = Field(default_factory=list)
    signal_updates: List[SignalUpdate] = Field(default_factory=list)
    sensor_frames: List[SensorFrame] = Field(default_factory=list)

    @classmethod
    def parse(cls, raw: Any) -> "StepResult":
        """Validate a raw step answer, raising :class:`MalformedStepResult`."""
        if raw is None:
            raise MalformedStepResult("Remote step returned no result")
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise MalformedStepResult(f"Remote step returned a malformed result: {exc}") from exc
