# SPDX-License-Identifier: BSD-3-Clause
"""
Programmer firmware command loop.

The :py:class:`CommandDispatcher` waits for an opcode on the device's serial
port, collects the argument bytes that arrived with it, performs the command
on the two-wire bus and writes exactly one response. Input left over once a
command has been serviced is discarded, so the host always starts from a
clean slate.

Errors on the device side never escape the dispatcher. They are reported to
the host as a NACK byte or, for unknown opcodes, as silence.
"""

from enum import Enum

from .. import log
from ..operation import BusTimeout
from ..protocol import (ACK, NACK, END, EEPROM_SCAN_RANGE,
                        DEFAULT_READ_BURST, MAX_READ_BURST, MAX_WRITE_PAYLOAD)

FIRMWARE_VERSION = (1, 1, 1)


class SerialBuffer:
    """
    Device-side view of the USB serial link: a receive FIFO filled by the
    host and a transmit FIFO drained by it.
    """

    def __init__(self):
        self.rx = bytearray()
        self.tx = bytearray()

    def available(self) -> int:
        return len(self.rx)

    def getchar(self) -> int:
        ret = self.rx[0]
        del self.rx[0]
        return ret

    def putchar(self, value: int):
        self.tx.append(value & 0xff)

    def flush_input(self):
        self.rx.clear()

    def feed(self, data: bytes):
        """
        Host side: deliver *data* to the device.
        """
        self.rx.extend(data)

    def drain(self, count=None) -> bytes:
        """
        Host side: take up to *count* bytes (default: all) the device sent.
        """
        if count is None:
            count = len(self.tx)
        ret = bytes(self.tx[:count])
        del self.tx[:count]
        return ret


class State(Enum):
    IDLE       = 0
    SERVICING  = 1


class CommandDispatcher:
    """
    Command loop of the programmer firmware.

    *serial* is a :py:class:`SerialBuffer`, *bus* a
    :py:class:`~fruprog.firmware.bus.TwoWireBus`, and *pins* provides the
    board's ``ga``, ``present`` and ``wr_pol`` inputs along with
    ``set_write_pin(level)`` for the EEPROM's write-protect line.
    """

    def __init__(self, serial, bus, pins):
        self._serial = serial
        self._bus = bus
        self._pins = pins

        self.state = State.IDLE
        self.read_burst = DEFAULT_READ_BURST
        self.write_level = self._protect_level()

        self._handlers = {
            ord('b'): self._read_burst,
            ord('f'): self._echo,
            ord('g'): self._address_select,
            ord('p'): self._present,
            ord('P'): self._wp_polarity,
            ord('r'): self._read,
            ord('R'): self._read_wide,
            ord('s'): self._scan,
            ord('v'): self._version,
            ord('w'): self._write,
            ord('W'): self._write_wide,
        }

        self._set_write_level(self.write_level)

    def _protect_level(self) -> int:
        # WR_POL low: WRITE is active-low, so it idles high
        return 0 if self._pins.wr_pol else 1

    def _set_write_level(self, level: int):
        self.write_level = level
        self._pins.set_write_pin(level)

    def _reply(self, *values):
        for value in values:
            self._serial.putchar(value)

    def poll(self) -> bool:
        """
        Service at most one command. Returns ``True`` if a command byte was
        consumed.
        """
        if self._serial.available() == 0:
            return False

        self.state = State.SERVICING
        try:
            opcode = self._serial.getchar()
            args = bytearray()
            while self._serial.available():
                args.append(self._serial.getchar())

            handler = self._handlers.get(opcode)
            if handler is None:
                log.debug('Firmware: ignoring unknown opcode 0x{:02x}'.format(opcode))
            else:
                handler(bytes(args))
        finally:
            self._serial.flush_input()
            self.state = State.IDLE

        return True

    def run(self, stop=None):
        """
        Service commands until the *stop* callable returns ``True``, or
        until no input is pending if *stop* is ``None``.
        """
        while True:
            if stop is not None:
                if stop():
                    return
                self.poll()
            elif not self.poll():
                return

    def _read_burst(self, args: bytes):
        if len(args) == 0:
            self._reply(self.read_burst)
        elif len(args) == 1 and 1 <= args[0] <= MAX_READ_BURST:
            self.read_burst = args[0]
            self._reply(ACK, self.read_burst)
        else:
            self.read_burst = DEFAULT_READ_BURST
            self._reply(NACK)

    def _nargs_ok(self, args: bytes, count: int) -> bool:
        if len(args) != count:
            self._reply(NACK)
            return False
        return True

    # Status commands take no arguments. Any extra bytes are left for the
    # post-command flush.

    def _echo(self, _args: bytes):
        self._reply(END)

    def _address_select(self, _args: bytes):
        self._reply(self._pins.ga & 0x03)

    def _present(self, _args: bytes):
        self._reply(1 if self._pins.present else 0)

    def _wp_polarity(self, _args: bytes):
        self._reply(1 if self._pins.wr_pol else 0)

    def _scan(self, _args: bytes):
        for address in EEPROM_SCAN_RANGE:
            if self._bus.scan(address):
                self._reply(address)
        self._reply(END)

    def _version(self, _args: bytes):
        self._reply(*FIRMWARE_VERSION, END)

    def _do_read(self, args: bytes, width: int):
        if not self._nargs_ok(args, 1 + width):
            return

        address = args[0]
        prev_level = self.write_level
        self._set_write_level(self._protect_level())
        try:
            # Wait out a write cycle left over from an earlier command, then
            # set the pointer and read back to back.
            if not (self._bus.wait_ready(address) and
                    self._bus.transaction_write(address, args[1:])):
                log.debug('Firmware: no acknowledge from 0x{:02x}'.format(address))
                self._reply(NACK)
                return

            data = self._bus.transaction_read(address, self.read_burst)
        except BusTimeout as error:
            log.debug('Firmware: ' + str(error))
            self._reply(NACK)
            return
        finally:
            self._set_write_level(prev_level)

        self._reply(ACK, *data)

    def _do_write(self, args: bytes, width: int):
        if len(args) < 2 + width or len(args) - 1 - width > MAX_WRITE_PAYLOAD:
            self._reply(NACK)
            return

        address = args[0]
        prev_level = self.write_level
        self._set_write_level(1 - self._protect_level())
        try:
            ok = (self._bus.wait_ready(address) and
                  self._bus.transaction_write(address, args[1:]) and
                  self._bus.wait_ready(address))
        finally:
            self._set_write_level(prev_level)

        self._reply(ACK if ok else NACK)

    def _read(self, args: bytes):
        self._do_read(args, 1)

    def _read_wide(self, args: bytes):
        self._do_read(args, 2)

    def _write(self, args: bytes):
        self._do_write(args, 1)

    def _write_wide(self, args: bytes):
        self._do_write(args, 2)
