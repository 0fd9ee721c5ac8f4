# SPDX-License-Identifier: BSD-3-Clause
"""
Burst transfers between EEPROM contents and flat binary images.

Image files are raw: one byte per EEPROM address, starting at address 0,
with no header.
"""

import os

from .operation import Operation, ArgumentError, FileIOError, OperationFailed
from .progress import Progress
from .protocol import next_power_of_two


class EepromReader(Operation):
    """
    Reads the entire contents of an EEPROM, one read burst at a time.

    The constructor takes an open :py:class:`~fruprog.Programmer` and the
    :py:class:`~fruprog.Eeprom` to read. An unknown address width is taken
    from the bus address, and an unknown capacity from the address width.

    The read burst programmed into the device defaults to the session's
    expected read burst and may be overridden with a *read_burst* keyword
    argument.
    """

    def __init__(self, programmer, eeprom, **kwargs):
        super().__init__(programmer, **kwargs)
        self._eeprom = eeprom
        self._burst = kwargs.get('read_burst', programmer.expected_read_burst)

    def _setup(self):
        width, capacity = self._eeprom.resolve()
        if capacity > self._eeprom.max_size():
            msg = '{:d} bytes cannot be addressed with {:d}-byte addresses'
            raise ArgumentError(msg.format(capacity, width))

        self.log.note('Reading {:s}'.format(str(self._eeprom)))
        self._burst = self._prog.set_read_burst(self._burst)

    def _read(self, handle_data):
        eeprom = self._eeprom
        size = eeprom.capacity

        for offset in range(0, size, self._burst):
            try:
                data = self._prog.read(eeprom.i2c_addr, offset, eeprom.address_width)
            except OperationFailed as error:
                msg = 'Read failed at 0x{:04x} ({:d} / {:d} bytes read): {}'
                raise OperationFailed(msg.format(offset, offset, size, error)) from error

            handle_data(data[:size - offset])

    def read(self, **kwargs) -> bytes:
        """
        Read the EEPROM and return its contents as ``bytes``.

        Specify a *show_progress=False* keyword argument to disable the
        progress bar.

        If interrupted by a *KeyboardInterrupt*, the partial contents are
        returned with a warning.
        """
        ret = bytearray()
        self._setup()

        show = kwargs.get('show_progress', True)
        progress = Progress.create(self._eeprom.capacity, 'Reading', show=show)

        def _update_progress(data: bytes):
            ret.extend(data)
            progress.update(len(data))

        try:
            self._read(_update_progress)
        except KeyboardInterrupt:
            msg = 'Read operation interrupted. {:d} / {:d} bytes read.'
            self.log.warning(msg.format(len(ret), self._eeprom.capacity))
        finally:
            progress.close()

        return bytes(ret)

    def read_to_file(self, filename: str, **kwargs):
        """
        Read the EEPROM and stream its contents to *filename*.

        On failure the file is left holding the data read so far and the
        error is raised. Returns the number of bytes written.
        """
        self._setup()

        show = kwargs.get('show_progress', True)
        progress = Progress.create(self._eeprom.capacity, 'Reading', show=show)

        try:
            outfile = open(filename, 'wb')
        except OSError as error:
            progress.close()
            raise FileIOError('Cannot open {:s} for writing: {}'.format(filename, error)) from error

        try:
            with outfile:
                def _update_progress(data: bytes):
                    outfile.write(data)
                    progress.update(len(data))

                try:
                    self._read(_update_progress)
                except KeyboardInterrupt:
                    outfile.flush()
                    num_written = os.fstat(outfile.fileno()).st_size
                    msg = 'Read operation interrupted. {:d} / {:d} bytes read.'
                    self.log.warning(msg.format(num_written, self._eeprom.capacity))
        finally:
            progress.close()

        return progress.count


class EepromWriter(Operation):
    """
    Writes an image to an EEPROM, starting at address 0.

    The data is written in groups of the session's write burst. Any bytes
    left over after the last full group are written one at a time. There is
    no rollback: a failed transfer leaves the EEPROM partially written.
    """

    def __init__(self, programmer, eeprom, **kwargs):
        super().__init__(programmer, **kwargs)
        self._eeprom = eeprom
        self._burst = programmer.write_burst

    def _setup(self, size: int):
        width, _ = self._eeprom.resolve(need_capacity=False)

        if size > self._eeprom.max_size():
            msg = 'Image of {:d} bytes does not fit {:s}'
            raise ArgumentError(msg.format(size, str(self._eeprom)))

        hint = next_power_of_two(size)
        self.log.note('Writing {:d} bytes ({:d}-byte addressing, {:d}-byte device or larger)'.format(
                      size, width, hint))

    def _write_chunk(self, offset: int, chunk: bytes, size: int):
        eeprom = self._eeprom
        try:
            self._prog.write(eeprom.i2c_addr, offset, chunk, eeprom.address_width)
        except OperationFailed as error:
            msg = 'Write failed at 0x{:04x} ({:d} / {:d} bytes written): {}'
            raise OperationFailed(msg.format(offset, offset, size, error)) from error

    def _write(self, data: bytes, progress):
        size = len(data)
        burst = self._burst
        full = size - (size % burst)

        for offset in range(0, full, burst):
            self._write_chunk(offset, data[offset:offset + burst], size)
            progress.update(burst)

        for offset in range(full, size):
            self._write_chunk(offset, data[offset:offset + 1], size)
            progress.update(1)

    def write(self, data: bytes, **kwargs):
        """
        Write *data* to the EEPROM.

        Specify a *show_progress=False* keyword argument to disable the
        progress bar.
        """
        data = bytes(data)
        if len(data) == 0:
            self.log.warning('Nothing to write')
            return

        self._setup(len(data))

        show = kwargs.get('show_progress', True)
        progress = Progress.create(len(data), 'Writing', show=show)

        try:
            self._write(data, progress)
        except KeyboardInterrupt:
            msg = 'Write operation interrupted. {:d} / {:d} bytes written.'
            self.log.warning(msg.format(progress.count, len(data)))
        finally:
            progress.close()

    def write_from_file(self, filename: str, **kwargs):
        """
        Write the contents of *filename* to the EEPROM.
        """
        try:
            with open(filename, 'rb') as infile:
                data = infile.read()
        except OSError as error:
            raise FileIOError('Cannot open {:s} for reading: {}'.format(filename, error)) from error

        self.write(data, **kwargs)
