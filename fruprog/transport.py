# SPDX-License-Identifier: BSD-3-Clause
"""
Byte transports between the host and a programmer.

The programmer enumerates as a USB CDC serial device, which
:py:class:`SerialTransport` drives through pyserial. The
:py:class:`LoopbackTransport` instead delivers requests straight to an
in-process firmware model (see :py:mod:`fruprog.firmware.sim`).

Reads never block indefinitely. A read returns whatever arrived before the
transport's timeout expired, which may be fewer bytes than requested.
"""

import os

import serial
import serial.tools.list_ports

from . import log
from .monitor import Monitor
from .protocol import END


class Transport:
    """
    Base class for programmer transports.

    If a :py:class:`~fruprog.monitor.Monitor` is provided as *monitor*, all
    traffic is recorded through it.
    """

    def __init__(self, monitor=None):
        self.monitor = monitor if monitor is not None else Monitor()

    @property
    def name(self) -> str:
        """
        Name of the underlying device.
        """
        raise NotImplementedError

    def _write(self, data: bytes):
        raise NotImplementedError

    def _read(self, count: int) -> bytes:
        raise NotImplementedError

    def _read_until(self, terminator: bytes, size) -> bytes:
        raise NotImplementedError

    def write(self, data: bytes):
        """
        Write *data* to the programmer in a single transfer.
        """
        self.monitor.write(data)
        self._write(data)

    def read(self, count: int) -> bytes:
        """
        Read up to *count* bytes, returning early only on timeout.
        """
        ret = self._read(count)
        self.monitor.read(ret)
        return ret

    def read_until(self, terminator=bytes([END]), size=None) -> bytes:
        """
        Read until *terminator* has been received (and include it), *size*
        bytes have been read, or the read timed out.
        """
        ret = self._read_until(terminator, size)
        self.monitor.read(ret)
        return ret

    def flush_input(self):
        """
        Discard any pending input, e.g. a stale reply to an earlier request.
        """

    def close(self):
        """
        Release the transport and close its monitor.
        """
        self.monitor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class SerialTransport(Transport):
    """
    A programmer attached as a serial device (e.g. ``/dev/ttyACM0`` or
    ``COM3``), opened at 115200 baud, 8N1.

    The read timeout defaults to 80 ms. It can be changed with a *timeout*
    keyword argument (in seconds) or the *FRUPROG_SERIAL_TIMEOUT* environment
    variable. The latter takes precedence.

    Remaining keyword arguments are passed to :py:class:`serial.Serial`.
    """

    def __init__(self, device: str, baudrate=115200, monitor=None, **kwargs):
        super().__init__(monitor)

        kwargs.setdefault('timeout', 0.080)
        kwargs.setdefault('write_timeout', 0.010)

        timeout_env = os.getenv('FRUPROG_SERIAL_TIMEOUT')
        if timeout_env is not None:
            kwargs['timeout'] = float(timeout_env)

        # Store Serial constructor arguments for reopen()
        self._dev = device
        self._kwargs = dict(kwargs, baudrate=baudrate)

        self._ser = serial.Serial(port=device, **self._kwargs)

    @property
    def name(self) -> str:
        return self._dev

    @property
    def timeout(self) -> float:
        """
        Read timeout, in seconds.
        """
        return self._ser.timeout

    def _write(self, data: bytes):
        self._ser.write(data)
        self._ser.flush()

    def _read(self, count: int) -> bytes:
        return self._ser.read(count)

    def _read_until(self, terminator: bytes, size) -> bytes:
        return self._ser.read_until(terminator, size)

    def flush_input(self):
        self._ser.reset_input_buffer()

    def reopen(self):
        """
        Close and re-open the serial device with the same settings.
        """
        self._ser.close()
        self._ser = serial.Serial(port=self._dev, **self._kwargs)

    def close(self):
        self._ser.close()
        super().close()


class LoopbackTransport(Transport):
    """
    A transport connected to an in-process
    :py:class:`~fruprog.firmware.sim.SimulatedProgrammer` (*board*).

    Each write is delivered to the board's serial buffer and the firmware
    command loop is run until it has serviced it. The reply is then
    available to subsequent reads.
    """

    def __init__(self, board, monitor=None):
        super().__init__(monitor)
        self.board = board
        self.writes = 0

    @property
    def name(self) -> str:
        return 'loopback'

    def _write(self, data: bytes):
        self.writes += 1
        self.board.serial.feed(data)
        self.board.dispatcher.run()

    def _read(self, count: int) -> bytes:
        return self.board.serial.drain(count)

    def _read_until(self, terminator: bytes, size) -> bytes:
        pending = bytes(self.board.serial.tx)
        end = pending.find(terminator)
        end = len(pending) if end < 0 else end + len(terminator)
        if size is not None:
            end = min(end, size)
        return self.board.serial.drain(end)

    def flush_input(self):
        self.board.serial.tx.clear()


def list_ports() -> list:
    """
    Return the device names of all serial ports on the system.
    """
    ports = [p.device for p in serial.tools.list_ports.comports()]
    log.debug('Serial ports: ' + (', '.join(ports) or '(none)'))
    return ports
