#!/usr/bin/env python3
"""
Tests for LiDAR frame relaying.
"""

from __future__ import annotations

import unittest

import numpy as np

from cosim.sensor_relay import relay_frame, relay_frames, transform_points
from cosim.wire import SensorFrame


def _frame(sensor_id: str, points=()) -> SensorFrame:
    return SensorFrame.model_validate({
        "id": sensor_id,
        "min_range": 0.5,
        "max_range": 25.0,
        "location": {"x": 1.0, "y": 2.0, "z": 3.0},
        "lidar_points": [{"x": x, "y": y, "z": z} for x, y, z in points],
    })


class SensorRelayTests(unittest.TestCase):
    def test_points_are_swapped_into_local_axes(self) -> None:
        pts = transform_points(_frame("s1", [(1.0, 2.0, 3.0), (-4.0, 5.0, 0.5)]))
        np.testing.assert_allclose(pts, [[1.0, 3.0, -2.0], [-4.0, 0.5, -5.0]])

    def test_empty_frame_gives_empty_array(self) -> None:
        self.assertEqual(transform_points(_frame("s1")).shape, (0, 3))

    def test_bound_frame_becomes_vehicle_update(self) -> None:
        data = relay_frame(_frame("s1", [(1.0, 0.0, 0.0)]), {"s1": "veh_7"}, 4000)

        self.assertEqual(data.name, "veh_7")
        self.assertEqual(data.time, 4000)
        self.assertEqual(data.lidar.timestamp, 4000)
        self.assertEqual((data.lidar.min_range, data.lidar.max_range), (0.5, 25.0))
        self.assertEqual((data.lidar.reference.x, data.lidar.reference.y, data.lidar.reference.z), (1.0, 2.0, 3.0))
        np.testing.assert_array_equal(data.lidar.rotation, np.eye(3))

    def test_unbound_frames_are_dropped(self) -> None:
        self.assertIsNone(relay_frame(_frame("ghost"), {"s1": "veh_7"}, 0))
        updates = relay_frames([_frame("ghost"), _frame("s1")], {"s1": "veh_7"}, 0)
        self.assertEqual([u.name for u in updates], ["veh_7"])


if __name__ == "__main__":
    unittest.main()
