#!/usr/bin/env python3
"""
cosim/geometry.py
=================
Low-level geometry helpers used by :mod:`cosim.matcher`,
:mod:`cosim.coordinator` and :mod:`cosim.sensor_relay`.

Keeping these in a separate module avoids circular imports and makes unit
testing straightforward.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np

_EARTH_RADIUS_M = 6_378_137.0


@dataclass(frozen=True)
class CartesianPoint:
    """Point in the shared planar frame (metres, right-handed, z up)."""

    x: float
    y: float
    z: float = 0.0

    def distance_to(self, other: "CartesianPoint") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class GeoPoint:
    """WGS84 position (degrees, metres)."""

    lat: float
    lon: float
    alt: float = 0.0


def planar_distances(anchor: CartesianPoint, points: Iterable[CartesianPoint]) -> np.ndarray:
    """Euclidean distances from *anchor* to each of *points* in the x/y plane."""
    xy = np.array([(p.x, p.y) for p in points], dtype=float).reshape(-1, 2)
    return np.hypot(xy[:, 0] - anchor.x, xy[:, 1] - anchor.y)


class LocalProjection:
    """Equirectangular projection around a fixed geodetic origin.

    Keeps the geodetic half of a vehicle's dual position in sync with
    the planar half.

    Parameters
    ----------
    origin_lat, origin_lon : float
        Geodetic coordinates of the planar frame's ``(0, 0)``.
    """

    def __init__(self, origin_lat: float, origin_lon: float) -> None:
        self.origin_lat = origin_lat
        self.origin_lon = origin_lon
        self._cos_lat = math.cos(math.radians(origin_lat))

    def to_geo(self, point: CartesianPoint) -> GeoPoint:
        lat = self.origin_lat + math.degrees(point.y / _EARTH_RADIUS_M)
        lon = self.origin_lon + math.degrees(point.x / (_EARTH_RADIUS_M * self._cos_lat))
        return GeoPoint(lat=lat, lon=lon, alt=point.z)

    def to_cartesian(self, geo: GeoPoint) -> CartesianPoint:
        y = math.radians(geo.lat - self.origin_lat) * _EARTH_RADIUS_M
        x = math.radians(geo.lon - self.origin_lon) * _EARTH_RADIUS_M * self._cos_lat
        return CartesianPoint(x=x, y=y, z=geo.alt)


def rotate_about(point: CartesianPoint, anchor: CartesianPoint, angle_rad: float) -> CartesianPoint:
    """Rotate *point* counter-clockwise by *angle_rad* around *anchor*."""
    dx, dy = point.x - anchor.x, point.y - anchor.y
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    return CartesianPoint(anchor.x + c * dx - s * dy, anchor.y + s * dx + c * dy, point.z)
