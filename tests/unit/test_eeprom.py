# SPDX-License-Identifier: BSD-3-Clause
#
# Relax style and documentation requirements for unit tests.
# pylint: disable=missing-function-docstring,missing-class-docstring
#

"""
Unit tests for fruprog.eeprom
"""

from unittest import TestCase

from fruprog.eeprom import Eeprom
from fruprog.operation import ArgumentError


class TestEeprom(TestCase):

    def test_default_address_width(self):
        for i2c_addr in (0x50, 0x51, 0x52, 0x53):
            self.assertEqual(Eeprom(i2c_addr).default_address_width, 1)

        for i2c_addr in (0x54, 0x55, 0x56, 0x57):
            self.assertEqual(Eeprom(i2c_addr).default_address_width, 2)

    def test_default_capacity(self):
        self.assertEqual(Eeprom.default_capacity(1), 256)
        self.assertEqual(Eeprom.default_capacity(2), 4096)

        with self.assertRaises(ArgumentError):
            Eeprom.default_capacity(0)

    def test_resolve(self):
        eeprom = Eeprom(0x56)
        self.assertEqual(eeprom.resolve(need_capacity=False), (2, 0))
        self.assertEqual(eeprom.resolve(), (2, 4096))

        eeprom = Eeprom(0x50, capacity=128)
        self.assertEqual(eeprom.resolve(), (1, 128))

        eeprom = Eeprom(0x50, address_width=2)
        self.assertEqual(eeprom.resolve(), (2, 4096))

    def test_model(self):
        models = {
            0:     'unknown',
            128:   '24C01',
            256:   '24C02',
            2048:  '24C16',
            4096:  '24C32',
            65536: '24C512',
        }

        for capacity, model in models.items():
            self.assertEqual(Eeprom(0x50, capacity=capacity).model, model)

    def test_max_size(self):
        self.assertEqual(Eeprom(0x50).max_size(), 256)
        self.assertEqual(Eeprom(0x54).max_size(), 65536)
        self.assertEqual(Eeprom(0x54, capacity=8192).max_size(), 8192)
        self.assertEqual(Eeprom(0x50, 1, 1024).max_size(), 256)

    def test_invalid_parameters(self):
        with self.assertRaises(ArgumentError):
            Eeprom(0x80)

        with self.assertRaises(ArgumentError):
            Eeprom(0x50, address_width=3)

        for capacity in (64, 384, 131072):
            with self.assertRaises(ArgumentError):
                Eeprom(0x50, capacity=capacity)

        eeprom = Eeprom(0x50)
        with self.assertRaises(ValueError):
            eeprom.capacity = 1000

    def test_scan_range(self):
        self.assertTrue(Eeprom(0x57).in_scan_range)
        self.assertFalse(Eeprom(0x58).in_scan_range)

    def test_str(self):
        self.assertEqual(str(Eeprom(0x54, 2, 4096)),
                         '24C32 @ 0x54 (2-byte addressing, 4096 bytes)')
        self.assertEqual(str(Eeprom(0x50)),
                         'unknown @ 0x50 (unknown addressing, unknown size)')
