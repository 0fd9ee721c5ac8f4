# SPDX-License-Identifier: BSD-3-Clause
#
# Relax style and documentation requirements for unit tests.
# pylint: disable=missing-function-docstring,missing-class-docstring
#

"""
Unit tests for fruprog.programmer, run against the simulated programmer
"""

from unittest import TestCase

from fruprog.firmware import SimulatedPins
from fruprog.operation import (ArgumentError, DeviceNotFound, TargetNotFound,
                               TransportTimeout)
from fruprog.programmer import Programmer
from fruprog.protocol import READ_BURSTS, Response

from .test_utils import make_session, random_data


class TestProgrammer(TestCase):

    def setUp(self):
        self.data = random_data(256, seed=7, ret_bytes=True)
        self.prog, self.board, self.eeprom = make_session(data=self.data)

    def test_firmware_version(self):
        self.assertEqual(self.prog.firmware_version(), '1.1.1')

    def test_echo(self):
        self.assertTrue(self.prog.echo())

    def test_stale_input_is_discarded(self):
        self.board.serial.tx.extend(b'\x06\x06\x3f')
        self.assertEqual(self.prog.firmware_version(), '1.1.1')

    def test_read_burst(self):
        self.assertEqual(self.prog.read_burst(), 8)

        for value in READ_BURSTS:
            self.assertEqual(self.prog.set_read_burst(value), value)
            self.assertEqual(self.prog.read_burst(), value)
            self.assertEqual(self.prog.expected_read_burst, value)
            self.assertEqual(self.board.dispatcher.read_burst, value)

    def test_rejected_read_burst_resets_device(self):
        self.prog.set_read_burst(32)

        self.prog.send('read_burst', bytes([100]))
        resp = self.prog.expect_write_ack()
        self.assertEqual(resp.status, Response.NACKED)

        self.assertEqual(self.prog.read_burst(), 8)

    def test_illegal_read_burst_uses_default(self):
        self.prog.set_read_burst(32)
        with self.assertLogs('fruprog', level='WARNING'):
            self.assertEqual(self.prog.set_read_burst(12), 8)
        self.assertEqual(self.board.dispatcher.read_burst, 8)

    def test_illegal_burst_arguments(self):
        with self.assertLogs('fruprog', level='WARNING'):
            prog = Programmer(self.prog.transport, read_burst=7, write_burst=64)
        self.assertEqual(prog.expected_read_burst, 8)
        self.assertEqual(prog.write_burst, 8)

        prog.write_burst = 32
        self.assertEqual(prog.write_burst, 32)

    def test_pins(self):
        self.assertEqual(self.prog.address_select(), 0)
        self.assertTrue(self.prog.module_present())
        self.assertEqual(self.prog.write_protect_polarity(), 0)

        pins = SimulatedPins(ga=3, present=False, wr_pol=1)
        prog, _, _ = make_session(pins=pins)
        self.assertEqual(prog.address_select(), 3)
        self.assertFalse(prog.module_present())
        self.assertEqual(prog.write_protect_polarity(), 1)

    def test_scan(self):
        self.assertEqual(self.prog.scan(), [0x50])

        self.board.attach_eeprom(0x56, 4096, 2)
        self.assertEqual(self.prog.scan(), [0x50, 0x56])

    def test_find_eeprom(self):
        eeprom = self.prog.find_eeprom()
        self.assertEqual(eeprom.i2c_addr, 0x50)
        self.assertEqual(eeprom.address_width, 0)
        self.assertEqual(eeprom.capacity, 0)

    def test_find_eeprom_uses_last_address(self):
        self.board.attach_eeprom(0x54, 4096, 2)
        with self.assertLogs('fruprog', level='WARNING'):
            eeprom = self.prog.find_eeprom()
        self.assertEqual(eeprom.i2c_addr, 0x54)

    def test_find_eeprom_none(self):
        self.board.twi.devices.clear()
        with self.assertRaises(TargetNotFound):
            self.prog.find_eeprom()

    def test_read(self):
        self.assertEqual(self.prog.read(0x50, 0x40, 1), self.data[0x40:0x48])

        self.prog.set_read_burst(16)
        self.assertEqual(self.prog.read(0x50, 0xf8, 1), self.data[0xf8:] + self.data[:8])

    def test_read_wide(self):
        data = random_data(4096, seed=8, ret_bytes=True)
        prog, _, _ = make_session(4096, 2, 0x54, data=data)
        prog.set_read_burst(64)
        self.assertEqual(prog.read(0x54, 0x0800, 2), data[0x800:0x840])

    def test_write(self):
        self.prog.write(0x50, 0x80, b'\xde\xad\xbe\xef', 1)
        self.assertEqual(self.eeprom.memory[0x80:0x84], b'\xde\xad\xbe\xef')
        self.assertEqual(self.prog.read(0x50, 0x80, 1)[:4], b'\xde\xad\xbe\xef')

    def test_write_limits(self):
        writes = self.prog.transport.writes

        with self.assertRaises(ArgumentError):
            self.prog.write(0x50, 0, b'', 1)

        with self.assertRaises(ArgumentError):
            self.prog.write(0x50, 0, b'\x00' * 65, 1)

        with self.assertRaises(ArgumentError):
            self.prog.write(0x50, 0x100, b'\x00', 1)

        with self.assertRaises(ArgumentError):
            self.prog.read(0x50, 0, 3)

        self.assertEqual(self.prog.transport.writes, writes)

        self.prog.write(0x50, 0, b'\x5a' * 64, 1)
        self.assertEqual(self.eeprom.memory[:64], b'\x5a' * 64)

    def test_write_absent_device(self):
        with self.assertRaises(ArgumentError):
            self.prog.write(0x57, 0, b'\x00', 1)

    def test_read_absent_device(self):
        with self.assertRaises(ArgumentError):
            self.prog.read(0x57, 0, 1)

    def test_stalled_bus(self):
        self.board.twi.stalled = True
        with self.assertRaises(ArgumentError):
            self.prog.read(0x50, 0, 1)

        self.board.twi.stalled = False
        self.assertEqual(self.prog.read(0x50, 0, 1), self.data[:8])

    def test_lost_response(self):
        prog, _, _ = make_session(drop_at=1)
        with self.assertRaises(TransportTimeout):
            prog.firmware_version()

        # The session is still usable
        self.assertEqual(prog.firmware_version(), '1.1.1')

    def test_context_manager(self):
        with self.prog as prog:
            self.assertTrue(prog.echo())


class TestFindProgrammer(TestCase):

    def test_no_ports(self):
        with self.assertRaises(DeviceNotFound):
            Programmer.find(ports=[])

    def test_missing_port(self):
        with self.assertRaises(DeviceNotFound):
            Programmer.find(ports=['/dev/fruprog-test-does-not-exist'])
