# SPDX-License-Identifier: BSD-3-Clause
"""
FRU EEPROM device record.
"""

from .operation import ArgumentError
from .protocol import EEPROM_SCAN_RANGE, is_valid_capacity


class Eeprom:
    """
    An FRU EEPROM on the programmer's bus.

    *i2c_addr* is the 7-bit bus address. *address_width* is the number of
    memory address bytes (1 or 2) and *capacity* the size in bytes. Either
    may be left as 0 while still unknown, i.e. before autodetection or
    explicit configuration.
    """

    def __init__(self, i2c_addr: int, address_width=0, capacity=0):
        if not 0 <= i2c_addr <= 0x7f:
            raise ArgumentError('Invalid I2C address: 0x{:02x}'.format(i2c_addr))

        self.i2c_addr = i2c_addr
        self.address_width = address_width
        self.capacity = capacity

    @property
    def address_width(self) -> int:
        """
        Memory address width in bytes (0 if unknown).
        """
        return self._address_width

    @address_width.setter
    def address_width(self, value: int):
        if value not in (0, 1, 2):
            raise ArgumentError('Invalid address width: {} (1 or 2 bytes supported)'.format(value))
        self._address_width = value

    @property
    def capacity(self) -> int:
        """
        Device size in bytes (0 if unknown).
        """
        return self._capacity

    @capacity.setter
    def capacity(self, value: int):
        if value != 0 and not is_valid_capacity(value):
            msg = 'Invalid capacity: {} (power of two from 128 to 65536 bytes required)'
            raise ArgumentError(msg.format(value))
        self._capacity = value

    @property
    def default_address_width(self) -> int:
        """
        Address width implied by the bus address. FMC modules strap larger
        (2-byte addressed) EEPROMs with A2 set.
        """
        return ((self.i2c_addr & 0x04) >> 2) + 1

    @staticmethod
    def default_capacity(address_width: int) -> int:
        """
        Capacity to assume for *address_width* when none is known, per
        ANSI/VITA 57.1 recommendation 5.7-2.
        """
        if address_width == 1:
            return 256
        if address_width == 2:
            return 4096
        raise ArgumentError('Unsupported address width: {}'.format(address_width))

    @property
    def in_scan_range(self) -> bool:
        return self.i2c_addr in EEPROM_SCAN_RANGE

    @property
    def model(self) -> str:
        """
        24Cxx model name matching the capacity, e.g. ``24C02`` for 256 bytes.
        """
        if self.capacity == 0:
            return 'unknown'
        return '24C{:02d}'.format(self.capacity * 8 // 1024)

    def resolve(self, need_capacity=True):
        """
        Fill in unknown parameters with their defaults and return the
        resulting ``(address_width, capacity)``.

        The capacity is only defaulted when *need_capacity* is ``True``.
        """
        if self.address_width == 0:
            self.address_width = self.default_address_width

        if need_capacity and self.capacity == 0:
            self.capacity = self.default_capacity(self.address_width)

        return (self.address_width, self.capacity)

    def max_size(self) -> int:
        """
        Largest image that can be written: the capacity if known, otherwise
        the address range of the address width.
        """
        addr_range = 1 << (8 * (self.address_width or self.default_address_width))
        if self.capacity:
            return min(self.capacity, addr_range)
        return addr_range

    def __repr__(self):
        return 'Eeprom(0x{:02x}, address_width={:d}, capacity={:d})'.format(
                self.i2c_addr, self.address_width, self.capacity)

    def __str__(self):
        width = '{:d}-byte'.format(self.address_width) if self.address_width else 'unknown'
        size = '{:d} bytes'.format(self.capacity) if self.capacity else 'unknown size'
        return '{:s} @ 0x{:02x} ({:s} addressing, {:s})'.format(
                self.model, self.i2c_addr, width, size)
