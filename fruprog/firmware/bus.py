# SPDX-License-Identifier: BSD-3-Clause
"""
Two-wire bus (I2C/TWI) transaction driver used by the programmer firmware.

The driver is written against a small peripheral interface, modelled on a
microcontroller TWI block:

    ``start()``           Issue a (repeated) start condition
    ``transmit(byte)``    Shift out one byte, return ``True`` if ACKed
    ``request(ack)``      Begin receiving one byte, ACKing it if *ack*
    ``ready()``           ``True`` once a requested byte has arrived
    ``data()``            The received byte
    ``stop()``            Issue a stop condition

Waits on the peripheral are bounded by a monotonic-clock deadline. A read
that overruns it is abandoned with a
:py:exc:`~fruprog.operation.BusTimeout`, so the command loop
never hangs on a stuck bus.
"""

import time

from ..operation import BusTimeout


class TwoWireBus:
    """
    Bus transaction driver on top of a TWI peripheral (*twi*).

    *timeout* is the time, in seconds, allowed for each received byte.
    *ready_timeout* bounds :py:meth:`wait_ready()`, which covers an EEPROM's
    internal write cycle (5 ms for typical 24Cxx parts).
    """

    def __init__(self, twi, timeout=0.030, ready_timeout=0.020, clock=time.monotonic):
        self._twi = twi
        self._timeout = timeout
        self._ready_timeout = ready_timeout
        self._clock = clock

    def transaction_write(self, address: int, data: bytes) -> bool:
        """
        Write *data* to the device at 7-bit *address* in a single transaction.

        Returns ``True`` if the address and every byte were acknowledged.
        The transfer itself is not bounded; the peripheral is trusted to
        complete each byte.
        """
        self._twi.start()
        acked = self._twi.transmit((address << 1) & 0xfe)

        for byte in data:
            acked &= self._twi.transmit(byte)

        self._twi.stop()
        return acked

    def transaction_read(self, address: int, count: int):
        """
        Read *count* bytes from the device at 7-bit *address*.

        Every byte but the last is ACKed; the last is NACKed to end the
        transfer. Returns the data as ``bytes``. Raises
        :py:exc:`~fruprog.operation.BusTimeout` if any byte did not arrive
        before its deadline.

        The address acknowledge is not checked. A target that is busy with a
        write cycle leaves the bus released and the data reads back as 0xff.
        """
        self._twi.start()
        self._twi.transmit(((address << 1) | 1) & 0xff)

        ret = bytearray()
        for i in range(count):
            self._twi.request(ack=(i != count - 1))

            deadline = self._clock() + self._timeout
            while not self._twi.ready():
                if self._clock() > deadline:
                    self._twi.stop()
                    msg = 'Bus read from 0x{:02x} timed out at byte {:d}/{:d}'
                    raise BusTimeout(msg.format(address, i, count))

            ret.append(self._twi.data())

        self._twi.stop()
        return bytes(ret)

    def scan(self, address: int) -> bool:
        """
        Check whether a device acknowledges 7-bit *address*.
        """
        self._twi.start()
        acked = self._twi.transmit((address << 1) & 0xfe)
        self._twi.stop()
        return acked

    def wait_ready(self, address: int) -> bool:
        """
        Poll *address* until the device acknowledges, e.g. after it finished
        an internal write cycle. Returns ``False`` if it never answers
        within the ready timeout.
        """
        deadline = self._clock() + self._ready_timeout
        while not self.scan(address):
            if self._clock() > deadline:
                return False
        return True
