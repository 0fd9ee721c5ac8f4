# SPDX-License-Identifier: BSD-3-Clause
"""
Memory autodetection: determine an EEPROM's address width and capacity by
probing it, without losing its contents.

**Address width**

A read with a 1-byte address is a pure pointer-setting operation on any
device, so the values at addresses 0x00 and 0x01 are saved first. Next the
value at 2-byte address 0x0000 is saved, and 0x01 is written to it. On a
2-byte device this lands at address 0, and reads back as 0x01. A 1-byte
device instead takes the second address byte as data, so 0x00 and 0x01 land
at addresses 0x00 and 0x01, and the read-back of address 0 does not return
the marker. The saved values are then written back accordingly.

**Capacity**

Candidate sizes *n* from 128 bytes up to the address range of the width
(256 bytes for 1-byte, 65536 for 2-byte addressing) are tried in turn.
Address *n* aliases address 0 on an *n*-byte device, because the address
pointer wraps. The first candidate for which a change to address 0 shows up
at address *n* is the capacity.
"""

from enum import Enum

from .operation import Operation, OperationFailed
from .protocol import MIN_CAPACITY, MAX_CAPACITY


class State(Enum):
    """
    Autodetection progress, in order.
    """
    READ_ORIGINALS      = 1
    READ_WIDE_ORIGINAL  = 2
    WRITE_MARKER        = 3
    READ_MARKER         = 4
    RESOLVE_WIDTH       = 5
    SIZE_SEARCH         = 6
    DONE                = 7


class AutodetectResult:
    """
    Outcome of :py:meth:`MemoryAutodetect.run()`.

    On failure, *state* is the step that failed and *address_width* holds
    the default derived from the bus address.
    """

    def __init__(self, ok: bool, state: State, address_width=0, capacity=0):
        self.ok = ok
        self.state = state
        self.address_width = address_width
        self.capacity = capacity

    def __bool__(self):
        return self.ok

    def __eq__(self, other):
        if not isinstance(other, AutodetectResult):
            return NotImplemented
        return (self.ok, self.state, self.address_width, self.capacity) == \
               (other.ok, other.state, other.address_width, other.capacity)

    def __repr__(self):
        return 'AutodetectResult(ok={}, state={:s}, address_width={:d}, capacity={:d})'.format(
                self.ok, self.state.name, self.address_width, self.capacity)


class MemoryAutodetect(Operation):
    """
    Runs the autodetection procedure on an :py:class:`~fruprog.Eeprom`
    through an open :py:class:`~fruprog.Programmer`.

    The programmer's read burst is set to 1 byte for the duration of the
    probe.
    """

    def __init__(self, programmer, **kwargs):
        super().__init__(programmer, **kwargs)
        self._eeprom = None
        self._width = 0
        self._orig_narrow = []
        self._orig_wide = None
        self._readback = None
        self._state = State.READ_ORIGINALS
        self._prev_burst = None

    def _read_byte(self, mem_addr: int, width: int) -> int:
        return self._prog.read(self._eeprom.i2c_addr, mem_addr, width)[0]

    def _write_byte(self, mem_addr: int, value: int, width: int):
        self._prog.write(self._eeprom.i2c_addr, mem_addr, bytes([value]), width)

    def _read_originals(self):
        self._prev_burst = self._prog.expected_read_burst
        self._prog.set_read_burst(1)
        for addr in (0x00, 0x01):
            self._orig_narrow.append(self._read_byte(addr, 1))
        self.log.debug('1-byte @ 0x00, 0x01: {:02x} {:02x}'.format(*self._orig_narrow))
        return State.READ_WIDE_ORIGINAL

    def _read_wide_original(self):
        self._orig_wide = self._read_byte(0x0000, 2)
        self.log.debug('2-byte @ 0x0000: {:02x}'.format(self._orig_wide))
        return State.WRITE_MARKER

    def _write_marker(self):
        self._write_byte(0x0000, 0x01, 2)
        return State.READ_MARKER

    def _read_marker(self):
        self._readback = self._read_byte(0x0000, 2)
        self.log.debug('2-byte @ 0x0000 after marker write: {:02x}'.format(self._readback))
        return State.RESOLVE_WIDTH

    def _resolve_width(self):
        if self._readback == 0x01:
            self._width = 2
            self._write_byte(0x0000, self._orig_wide, 2)
        else:
            self._width = 1
            for addr, value in enumerate(self._orig_narrow):
                self._write_byte(addr, value, 1)

        self._orig_narrow = []
        self._orig_wide = None
        self.log.note('Address width: {:d} byte(s)'.format(self._width))
        return State.SIZE_SEARCH

    def _size_search(self):
        # Beyond the address range the probe address would wrap to 0
        limit = min(MAX_CAPACITY, 1 << (8 * self._width))

        candidate = MIN_CAPACITY
        while candidate <= limit:
            if self._aliases(candidate):
                self._eeprom.capacity = candidate
                return State.DONE
            candidate <<= 1

        raise OperationFailed('No candidate size up to {:d} bytes matched'.format(limit))

    def _aliases(self, size: int) -> bool:
        """
        Does address *size* alias address 0?
        """
        width = self._width
        probe_addr = size % (1 << (8 * width))

        try:
            value0 = self._read_byte(0, width)
            value_n = self._read_byte(probe_addr, width)
        except OperationFailed as error:
            self.log.debug('Probe of {:d} bytes failed: {}'.format(size, error))
            return False

        if value_n != value0:
            return False

        marker = (value0 + 1) & 0xff
        try:
            self._write_byte(0, marker, width)
            value_n = self._read_byte(probe_addr, width)
        except OperationFailed as error:
            self.log.debug('Probe of {:d} bytes failed: {}'.format(size, error))
            value_n = None

        try:
            self._write_byte(0, value0, width)
        except OperationFailed as error:
            self.log.warning('Failed to restore address 0 after probing: {}'.format(error))
            return False

        return value_n == marker

    def _restore(self):
        # The 2-byte restore goes first. On a 1-byte device it clobbers
        # addresses 0x00 and 0x01, which the 1-byte restores then repair.
        if self._orig_wide is not None:
            self._try_restore(0x0000, self._orig_wide, 2)

        for addr, value in enumerate(self._orig_narrow):
            self._try_restore(addr, value, 1)

    def _try_restore(self, mem_addr, value, width):
        try:
            self._write_byte(mem_addr, value, width)
        except OperationFailed as error:
            msg = 'Failed to restore 0x{:02x} @ 0x{:04x} ({:d}-byte addressing): {}'
            self.log.error(msg.format(value, mem_addr, width, error))

    def run(self, eeprom) -> AutodetectResult:
        """
        Detect the address width and capacity of *eeprom*, updating it
        in place.

        Failures are not raised. The probed locations are restored, the
        EEPROM's address width is set to its default, and a failed
        :py:class:`AutodetectResult` is returned.
        """
        self._eeprom = eeprom
        self._width = 0
        self._orig_narrow = []
        self._orig_wide = None
        self._state = State.READ_ORIGINALS
        self._prev_burst = None

        steps = {
            State.READ_ORIGINALS:       self._read_originals,
            State.READ_WIDE_ORIGINAL:   self._read_wide_original,
            State.WRITE_MARKER:         self._write_marker,
            State.READ_MARKER:          self._read_marker,
            State.RESOLVE_WIDTH:        self._resolve_width,
            State.SIZE_SEARCH:          self._size_search,
        }

        self.log.note('Detecting memory parameters of device @ 0x{:02x}'.format(eeprom.i2c_addr))

        try:
            while self._state != State.DONE:
                self._state = steps[self._state]()
        except OperationFailed as error:
            self.log.error('Autodetection failed in {:s}: {}'.format(self._state.name, error))
            self._restore()
            eeprom.address_width = eeprom.default_address_width
            return AutodetectResult(False, self._state, eeprom.address_width, eeprom.capacity)
        finally:
            self._restore_read_burst()

        eeprom.address_width = self._width
        self.log.info('Detected {:s}'.format(str(eeprom)))
        return AutodetectResult(True, State.DONE, eeprom.address_width, eeprom.capacity)

    def _restore_read_burst(self):
        if self._prev_burst is None:
            return

        try:
            self._prog.set_read_burst(self._prev_burst)
        except OperationFailed as error:
            self.log.warning('Failed to restore read burst: {}'.format(error))
