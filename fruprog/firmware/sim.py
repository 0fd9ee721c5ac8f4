# SPDX-License-Identifier: BSD-3-Clause
"""
Simulated programmer hardware.

This provides stand-ins for everything the programmer firmware touches: a
TWI peripheral with AT24-style EEPROMs attached, and the board's switch,
presence and write-protect pins. Together with
:py:class:`~fruprog.transport.LoopbackTransport` this lets the host code run
against the real firmware command loop without a board attached.

The EEPROM model reproduces the behaviors that autodetection depends on:

* The address pointer wraps at the device capacity, so address *capacity*
  aliases address 0.
* A 1-byte-addressed device treats the second byte of a 2-byte address as
  data, writing it and starting a write cycle.
* During a write cycle the device does not acknowledge its address. Each
  addressing attempt shortens the cycle by one, standing in for elapsed time.
"""

from .bus import TwoWireBus
from .dispatcher import CommandDispatcher, SerialBuffer


class SimulatedEeprom:
    """
    An AT24-style serial EEPROM of *capacity* bytes with *address_width*
    (1 or 2) memory address bytes.

    *data* optionally provides the initial contents (default: erased, 0xff).
    *write_cycle* is the number of addressing attempts the device ignores
    after committing a write. *write_protect* is an optional callable; data
    bytes are discarded while it returns ``True``.
    """

    def __init__(self, capacity=256, address_width=1, data=None, write_cycle=2, write_protect=None):
        if address_width not in (1, 2):
            raise ValueError('Invalid address width: {}'.format(address_width))

        if address_width == 1 and capacity > 256:
            raise ValueError('1-byte addressed devices are limited to 256 bytes')

        if capacity & (capacity - 1) != 0:
            raise ValueError('Capacity must be a power of two')

        if data is None:
            self.memory = bytearray(b'\xff' * capacity)
        elif len(data) != capacity:
            raise ValueError('Initial data must be exactly {:d} bytes'.format(capacity))
        else:
            self.memory = bytearray(data)

        self.capacity = capacity
        self.address_width = address_width
        self.write_cycle = write_cycle
        self.write_protect = write_protect

        self.pointer = 0
        self.busy = 0
        self.write_count = 0

        self._addr_bytes = []
        self._data = bytearray()

    def select(self) -> bool:
        """
        Called when the device's bus address is transmitted. Returns whether
        it is acknowledged.
        """
        self._addr_bytes = []
        self._data = bytearray()
        if self.busy > 0:
            self.busy -= 1
            return False
        return True

    def receive(self, byte: int) -> bool:
        """
        Accept one byte of a write transaction.
        """
        if len(self._addr_bytes) < self.address_width:
            self._addr_bytes.append(byte)
        else:
            self._data.append(byte)
        return True

    def finish_write(self):
        """
        Called on the stop condition of a write transaction: latch the
        address pointer and commit any data bytes.
        """
        if len(self._addr_bytes) == 0:
            return

        addr = 0
        for byte in self._addr_bytes:
            addr = (addr << 8) | byte
        addr <<= 8 * (self.address_width - len(self._addr_bytes))
        self.pointer = addr % self.capacity

        if len(self._data) == 0:
            return

        if self.write_protect is not None and self.write_protect():
            return

        for byte in self._data:
            self.memory[self.pointer] = byte
            self.pointer = (self.pointer + 1) % self.capacity

        self.write_count += 1
        self.busy = self.write_cycle

    def transmit(self) -> int:
        """
        Return the byte at the address pointer and advance it.
        """
        value = self.memory[self.pointer]
        self.pointer = (self.pointer + 1) % self.capacity
        return value


class SimulatedTwi:
    """
    A TWI peripheral connected to a bus of simulated devices.

    Setting *stalled* makes received bytes never arrive, as with a target
    holding the clock line low.
    """

    def __init__(self):
        self.devices = {}
        self.stalled = False
        self.transactions = 0

        self._target = None
        self._reading = False
        self._addressed = False
        self._byte = 0xff

    def attach(self, address: int, device):
        """
        Attach *device* at 7-bit bus *address*.
        """
        self.devices[address] = device

    def start(self):
        self.transactions += 1
        self._target = None
        self._addressed = False

    def transmit(self, byte: int) -> bool:
        if not self._addressed:
            self._addressed = True
            self._reading = bool(byte & 1)
            device = self.devices.get(byte >> 1)
            if device is not None and device.select():
                self._target = device
                return True
            return False

        if self._target is None or self._reading:
            return False

        return self._target.receive(byte)

    def request(self, ack=True):
        if self._target is not None and self._reading:
            self._byte = self._target.transmit()
        else:
            # Released bus
            self._byte = 0xff

    def ready(self) -> bool:
        return not self.stalled

    def data(self) -> int:
        return self._byte

    def stop(self):
        if self._target is not None and not self._reading:
            self._target.finish_write()
        self._target = None
        self._addressed = False


class SimulatedPins:
    """
    Board inputs and the WRITE output pin.

    *ga* is the 2-bit GA switch value, *present* is ``True`` when an FMC
    module is plugged in, and *wr_pol* is the WR_POL switch (0: WRITE pin is
    high while idle, 1: low while idle).
    """

    def __init__(self, ga=0, present=True, wr_pol=0):
        self.ga = ga
        self.present = present
        self.wr_pol = wr_pol
        self.write_pin = 0
        self.history = []

    def set_write_pin(self, level: int):
        self.write_pin = level
        self.history.append(level)

    @property
    def protect_level(self) -> int:
        """
        WRITE pin level at which the EEPROM is write protected.
        """
        return 1 if self.wr_pol == 0 else 0

    def write_protected(self) -> bool:
        return self.write_pin == self.protect_level


class SimulatedProgrammer:
    """
    A complete simulated programmer board: serial buffer, pins, TWI bus with
    attached EEPROMs, and the firmware command dispatcher.

    Pass this to :py:class:`~fruprog.transport.LoopbackTransport` to talk
    to it from the host side.
    """

    def __init__(self, pins=None, **kwargs):
        self.serial = SerialBuffer()
        self.pins = pins if pins is not None else SimulatedPins()
        self.twi = SimulatedTwi()
        self.bus = TwoWireBus(self.twi, **kwargs)
        self.dispatcher = CommandDispatcher(self.serial, self.bus, self.pins)

    def attach_eeprom(self, address=0x50, capacity=256, address_width=1, **kwargs) -> SimulatedEeprom:
        """
        Create a :py:class:`SimulatedEeprom` wired to this board's WRITE pin
        and attach it at *address*.
        """
        kwargs.setdefault('write_protect', self.pins.write_protected)
        eeprom = SimulatedEeprom(capacity, address_width, **kwargs)
        self.twi.attach(address, eeprom)
        return eeprom
