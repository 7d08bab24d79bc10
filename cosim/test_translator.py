#!/usr/bin/env python3
"""
Tests for vehicle class tables and the light-signal bit mask.
"""

from __future__ import annotations

import itertools
import unittest

from cosim.translator import (
    IGNORED_CLASS,
    VehicleClass,
    VehicleSignals,
    decode_signals,
    encode_signals,
    to_local_class,
    to_remote_class,
)


class VehicleClassTests(unittest.TestCase):
    def test_known_classes_map_both_ways(self) -> None:
        self.assertEqual(to_remote_class(VehicleClass.CAR), "passenger")
        self.assertEqual(to_remote_class(VehicleClass.HEAVY_GOODS_VEHICLE), "truck")
        self.assertEqual(to_local_class("bus"), VehicleClass.PUBLIC_TRANSPORT_VEHICLE)
        self.assertEqual(to_local_class("coach"), VehicleClass.MINI_BUS)

    def test_unmapped_local_class_is_ignored_not_passenger(self) -> None:
        self.assertEqual(to_remote_class(VehicleClass.UNKNOWN), IGNORED_CLASS)
        self.assertEqual(to_remote_class(VehicleClass.HIGH_SIDE_VEHICLE), IGNORED_CLASS)

    def test_unmapped_remote_class_is_unknown(self) -> None:
        self.assertIs(to_local_class("hovercraft"), VehicleClass.UNKNOWN)
        self.assertIs(to_local_class(IGNORED_CLASS), VehicleClass.UNKNOWN)
        self.assertIs(to_local_class(""), VehicleClass.UNKNOWN)


class SignalMaskTests(unittest.TestCase):
    def test_bit_positions(self) -> None:
        self.assertEqual(encode_signals(VehicleSignals(blinker_right=True)), 1)
        self.assertEqual(encode_signals(VehicleSignals(blinker_left=True)), 2)
        self.assertEqual(encode_signals(VehicleSignals(blinker_emergency=True)), 4)
        self.assertEqual(encode_signals(VehicleSignals(brake_light=True)), 8)
        self.assertEqual(encode_signals(VehicleSignals(reverse_drive=True)), 128)

    def test_every_combination_round_trips(self) -> None:
        for flags in itertools.product((False, True), repeat=5):
            signals = VehicleSignals(*flags)
            self.assertEqual(decode_signals(encode_signals(signals)), signals, msg=str(flags))

    def test_unknown_bits_are_ignored(self) -> None:
        decoded = decode_signals(0b0111_0000 | 0b1000)
        self.assertEqual(decoded, VehicleSignals(brake_light=True))


if __name__ == "__main__":
    unittest.main()
