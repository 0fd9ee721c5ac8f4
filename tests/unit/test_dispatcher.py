# SPDX-License-Identifier: BSD-3-Clause
#
# Relax style and documentation requirements for unit tests.
# pylint: disable=missing-function-docstring,missing-class-docstring
#

"""
Unit tests for fruprog.firmware.dispatcher
"""

from unittest import TestCase

from fruprog.firmware import SimulatedProgrammer, SimulatedPins
from fruprog.firmware.dispatcher import State
from fruprog.protocol import ACK, NACK, END

from .test_utils import random_data, stepping_clock


class TestCommandDispatcher(TestCase):

    def setUp(self):
        self.pins = SimulatedPins(ga=2, present=True, wr_pol=0)
        self.board = SimulatedProgrammer(pins=self.pins, clock=stepping_clock())
        self.eeprom = self.board.attach_eeprom(0x50, 256, 1,
                                               data=random_data(256, seed=3, ret_bytes=True))

    def request(self, data: bytes) -> bytes:
        self.board.serial.feed(data)
        self.assertTrue(self.board.dispatcher.poll())
        self.assertEqual(self.board.dispatcher.state, State.IDLE)
        self.assertEqual(self.board.serial.available(), 0)
        return self.board.serial.drain()

    def test_idle_poll(self):
        self.assertFalse(self.board.dispatcher.poll())
        self.assertEqual(self.board.serial.drain(), b'')

    def test_version(self):
        self.assertEqual(self.request(b'v'), bytes([1, 1, 1, END]))

    def test_echo(self):
        self.assertEqual(self.request(b'f'), bytes([END]))

    def test_pins(self):
        self.assertEqual(self.request(b'g'), b'\x02')
        self.assertEqual(self.request(b'p'), b'\x01')
        self.assertEqual(self.request(b'P'), b'\x00')

        self.pins.present = False
        self.pins.wr_pol = 1
        self.assertEqual(self.request(b'p'), b'\x00')
        self.assertEqual(self.request(b'P'), b'\x01')

    def test_status_commands_ignore_extra_bytes(self):
        self.assertEqual(self.request(b'f\x00'), bytes([END]))
        self.assertEqual(self.request(b'g\x00\x01'), b'\x02')
        self.assertEqual(self.request(b'p\xff'), b'\x01')
        self.assertEqual(self.request(b'P\x00'), b'\x00')
        self.assertEqual(self.request(b's\x50'), bytes([0x50, END]))
        self.assertEqual(self.request(b'v\x00\x00\x00'), bytes([1, 1, 1, END]))

    def test_unknown_opcode(self):
        self.assertEqual(self.request(b'x\x50\x00'), b'')
        self.assertEqual(self.request(b'\x00'), b'')

    def test_scan(self):
        self.board.attach_eeprom(0x54, 4096, 2)
        self.assertEqual(self.request(b's'), bytes([0x50, 0x54, END]))

    def test_scan_empty(self):
        self.board.twi.devices.clear()
        self.assertEqual(self.request(b's'), bytes([END]))

    def test_read_burst(self):
        self.assertEqual(self.request(b'b'), b'\x08')

        for value in (1, 16, 33, 64):
            self.assertEqual(self.request(bytes([ord('b'), value])), bytes([ACK, value]))
            self.assertEqual(self.request(b'b'), bytes([value]))

    def test_read_burst_out_of_range(self):
        for value in (0, 65, 100):
            self.request(b'b\x20')
            self.assertEqual(self.request(bytes([ord('b'), value])), bytes([NACK]))
            self.assertEqual(self.request(b'b'), b'\x08')

        self.request(b'b\x20')
        self.assertEqual(self.request(b'b\x10\x10'), bytes([NACK]))
        self.assertEqual(self.request(b'b'), b'\x08')

    def test_read(self):
        resp = self.request(b'r\x50\x10')
        self.assertEqual(resp, bytes([ACK]) + self.eeprom.memory[0x10:0x18])

        self.request(b'b\x01')
        self.assertEqual(self.request(b'r\x50\xff'), bytes([ACK, self.eeprom.memory[0xff]]))

    def test_read_wide(self):
        wide = self.board.attach_eeprom(0x54, 4096, 2, data=random_data(4096, ret_bytes=True))
        self.request(b'b\x40')
        resp = self.request(b'R\x54\x0f\xc0')
        self.assertEqual(resp, bytes([ACK]) + wide.memory[0xfc0:0x1000])

    def test_read_argument_count(self):
        transactions = self.board.twi.transactions

        self.assertEqual(self.request(b'r\x50'), bytes([NACK]))
        self.assertEqual(self.request(b'r'), bytes([NACK]))
        self.assertEqual(self.request(b'r\x50\x00\x00'), bytes([NACK]))
        self.assertEqual(self.request(b'R\x50\x00'), bytes([NACK]))

        self.assertEqual(self.board.twi.transactions, transactions)

    def test_read_timeout(self):
        self.board.twi.stalled = True
        self.assertEqual(self.request(b'r\x50\x00'), bytes([NACK]))

        self.board.twi.stalled = False
        self.assertEqual(self.request(b'r\x50\x00')[0], ACK)

    def test_write(self):
        self.assertEqual(self.request(b'w\x50\x20\xaa\xbb\xcc'), bytes([ACK]))
        self.assertEqual(self.eeprom.memory[0x20:0x23], b'\xaa\xbb\xcc')

        # The write cycle has completed by the time the ACK is sent
        self.assertEqual(self.eeprom.busy, 0)

    def test_write_wide(self):
        wide = self.board.attach_eeprom(0x54, 4096, 2)
        self.assertEqual(self.request(b'W\x54\x0a\x00' + bytes(range(32))), bytes([ACK]))
        self.assertEqual(wide.memory[0xa00:0xa20], bytes(range(32)))

    def test_write_payload_limits(self):
        before = bytes(self.eeprom.memory)

        self.assertEqual(self.request(b'w\x50\x00'), bytes([NACK]))
        self.assertEqual(self.request(b'W\x50\x00\x00'), bytes([NACK]))
        self.assertEqual(self.request(b'w\x50\x00' + b'\x00' * 65), bytes([NACK]))
        self.assertEqual(self.eeprom.memory, before)

        self.assertEqual(self.request(b'w\x50\x00' + b'\x00' * 64), bytes([ACK]))
        self.assertEqual(self.eeprom.memory[0:64], b'\x00' * 64)

    def test_write_absent_device(self):
        self.assertEqual(self.request(b'w\x57\x00\x00'), bytes([NACK]))

    def test_read_absent_device(self):
        self.assertEqual(self.request(b'r\x57\x00'), bytes([NACK]))
        self.assertEqual(self.request(b'R\x57\x00\x00'), bytes([NACK]))

        # A present but erased device still returns data
        self.board.attach_eeprom(0x57, 4096, 2)
        self.assertEqual(self.request(b'R\x57\x00\x00'), bytes([ACK]) + b'\xff' * 8)

    def test_write_pin_levels(self):
        # WR_POL low: WRITE idles high (protected) and is driven low for writes
        self.assertEqual(self.pins.write_pin, 1)

        self.pins.history.clear()
        self.request(b'w\x50\x00\x12')
        self.assertEqual(self.pins.history, [0, 1])

        self.pins.history.clear()
        self.request(b'r\x50\x00')
        self.assertEqual(self.pins.history, [1, 1])
        self.assertEqual(self.pins.write_pin, 1)

    def test_write_pin_levels_inverted(self):
        pins = SimulatedPins(wr_pol=1)
        board = SimulatedProgrammer(pins=pins, clock=stepping_clock())
        eeprom = board.attach_eeprom()
        self.assertEqual(pins.write_pin, 0)

        board.serial.feed(b'w\x50\x05\x77')
        board.dispatcher.poll()
        self.assertEqual(board.serial.drain(), bytes([ACK]))
        self.assertEqual(eeprom.memory[5], 0x77)
        self.assertEqual(pins.history[-2:], [1, 0])

    def test_reads_do_not_write(self):
        # A 2-byte read on a 1-byte device carries a stray data byte, which
        # the write protection discards
        before = bytes(self.eeprom.memory)
        self.assertEqual(self.request(b'R\x50\x00\x00')[0], ACK)
        self.assertEqual(self.eeprom.memory, before)
        self.assertEqual(self.eeprom.write_count, 0)
