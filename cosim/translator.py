#!/usr/bin/env python3
"""
cosim/translator.py
===================
Stateless translation tables between Sim-A and Sim-B vocabularies.

* Vehicle classes: Sim-A's :class:`VehicleClass` enum ⇄ Sim-B's
  lower-case class strings.  Anything without a counterpart maps to the
  explicit sentinels :data:`IGNORED_CLASS` / ``VehicleClass.UNKNOWN``.
* Vehicle light signals: :class:`VehicleSignals` ⇄ bit mask.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class VehicleClass(Enum):
    """Sim-A vehicle classes."""

    UNKNOWN = "Unknown"
    CAR = "Car"
    AUTOMATED_VEHICLE = "AutomatedVehicle"
    LIGHT_GOODS_VEHICLE = "LightGoodsVehicle"
    WORKS_VEHICLE = "WorksVehicle"
    HEAVY_GOODS_VEHICLE = "HeavyGoodsVehicle"
    PUBLIC_TRANSPORT_VEHICLE = "PublicTransportVehicle"
    EMERGENCY_VEHICLE = "EmergencyVehicle"
    VEHICLE_WITH_TRAILER = "VehicleWithTrailer"
    MINI_BUS = "MiniBus"
    TAXI = "Taxi"
    ELECTRIC_VEHICLE = "ElectricVehicle"
    BICYCLE = "Bicycle"
    MOTORCYCLE = "Motorcycle"
    HIGH_OCCUPANCY_VEHICLE = "HighOccupancyVehicle"
    EXCEPTIONAL_SIZE_VEHICLE = "ExceptionalSizeVehicle"
    HIGH_SIDE_VEHICLE = "HighSideVehicle"


IGNORED_CLASS = "ignoring"

_TO_REMOTE_CLASS: Dict[VehicleClass, str] = {
    VehicleClass.CAR: "passenger",
    VehicleClass.AUTOMATED_VEHICLE: "passenger",
    VehicleClass.LIGHT_GOODS_VEHICLE: "delivery",
    VehicleClass.WORKS_VEHICLE: "delivery",
    VehicleClass.HEAVY_GOODS_VEHICLE: "truck",
    VehicleClass.PUBLIC_TRANSPORT_VEHICLE: "bus",
    VehicleClass.EMERGENCY_VEHICLE: "emergency",
    VehicleClass.VEHICLE_WITH_TRAILER: "trailer",
    VehicleClass.MINI_BUS: "coach",
    VehicleClass.TAXI: "taxi",
    VehicleClass.ELECTRIC_VEHICLE: "evehicle",
    VehicleClass.BICYCLE: "bicycle",
    VehicleClass.MOTORCYCLE: "motorcycle",
    VehicleClass.HIGH_OCCUPANCY_VEHICLE: "hov",
}

_TO_LOCAL_CLASS: Dict[str, VehicleClass] = {
    "passenger": VehicleClass.CAR,
    "delivery": VehicleClass.LIGHT_GOODS_VEHICLE,
    "truck": VehicleClass.HEAVY_GOODS_VEHICLE,
    "bus": VehicleClass.PUBLIC_TRANSPORT_VEHICLE,
    "emergency": VehicleClass.EMERGENCY_VEHICLE,
    "trailer": VehicleClass.VEHICLE_WITH_TRAILER,
    "coach": VehicleClass.MINI_BUS,
    "taxi": VehicleClass.TAXI,
    "evehicle": VehicleClass.ELECTRIC_VEHICLE,
    "bicycle": VehicleClass.BICYCLE,
    "motorcycle": VehicleClass.MOTORCYCLE,
    "hov": VehicleClass.HIGH_OCCUPANCY_VEHICLE,
}


def to_remote_class(vehicle_class: VehicleClass) -> str:
    """Sim-A class → Sim-B class string (``"ignoring"`` when unmapped)."""
    return _TO_REMOTE_CLASS.get(vehicle_class, IGNORED_CLASS)


def to_local_class(remote_class: str) -> VehicleClass:
    """Sim-B class string → Sim-A class (``UNKNOWN`` when unmapped)."""
    return _TO_LOCAL_CLASS.get(remote_class, VehicleClass.UNKNOWN)


# ── Vehicle light signals ────────────────────────────────────────────────────

BIT_BLINKER_RIGHT = 0
BIT_BLINKER_LEFT = 1
BIT_BLINKER_EMERGENCY = 2
BIT_BRAKE_LIGHT = 3
BIT_REVERSE_DRIVE = 7


@dataclass(frozen=True)
class VehicleSignals:
    """Light and turn-signal flags of one vehicle."""

    blinker_left: bool = False
    blinker_right: bool = False
    blinker_emergency: bool = False
    brake_light: bool = False
    reverse_drive: bool = False


def encode_signals(signals: VehicleSignals) -> int:
    """Pack *signals* into the Sim-B bit mask."""
    mask = 0
    if signals.blinker_right:
        mask += 2 ** BIT_BLINKER_RIGHT
    if signals.blinker_left:
        mask += 2 ** BIT_BLINKER_LEFT
    if signals.blinker_emergency:
        mask += 2 ** BIT_BLINKER_EMERGENCY
    if signals.brake_light:
        mask += 2 ** BIT_BRAKE_LIGHT
    if signals.reverse_drive:
        mask += 2 ** BIT_REVERSE_DRIVE
    return mask


def decode_signals(mask: int) -> VehicleSignals:
    """Unpack a Sim-B bit mask; bits outside the five known positions are ignored."""
    return VehicleSignals(
        blinker_left=bool(mask & (1 << BIT_BLINKER_LEFT)),
        blinker_right=bool(mask & (1 << BIT_BLINKER_RIGHT)),
        blinker_emergency=bool(mask & (1 << BIT_BLINKER_EMERGENCY)),
        brake_light=bool(mask & (1 << BIT_BRAKE_LIGHT)),
        reverse_drive=bool(mask & (1 << BIT_REVERSE_DRIVE)),
    )
