# SPDX-License-Identifier: BSD-3-Clause
"""
Host-side client for the FMC FRU EEPROM programmer.
"""

import serial

from . import log
from .eeprom import Eeprom
from .monitor import Monitor
from .operation import ArgumentError, DeviceNotFound, OperationFailed, TargetNotFound
from .protocol import (Command, Response, Shape, get_command, read_command, write_command,
                       encode_mem_addr, classify_ack_data, classify_write_ack,
                       classify_sentinel, classify_raw, legal_read_burst, legal_write_burst,
                       END, DEFAULT_READ_BURST, DEFAULT_WRITE_BURST, MAX_WRITE_PAYLOAD)
from .transport import SerialTransport, list_ports


class Programmer:
    """
    A session with one programmer, over an exclusively owned *transport*
    (see :py:mod:`fruprog.transport`).

    The session is strictly request-then-response: each command is written
    in one transfer and its complete reply is read before the next command
    is sent. Nothing is retried; a failed exchange is reported to the caller.

    **Constructor Keyword Arguments**

    * *read_burst* - Number of bytes returned per read command. This is only
      the host's expectation until :py:meth:`set_read_burst()` programs it
      into the device. Default: 8

    * *write_burst* - Number of bytes written per write command during
      uploads. Must be one of 1, 8, 16, or 32. Default: 8

    Illegal burst lengths are replaced by the default, with a warning.
    """

    def __init__(self, transport, read_burst=DEFAULT_READ_BURST, write_burst=DEFAULT_WRITE_BURST):
        self._transport = transport
        self._read_burst = self._legal_read_burst(read_burst)
        self._write_burst = DEFAULT_WRITE_BURST
        self.write_burst = write_burst
        self._command = None

    @classmethod
    def open(cls, device: str, monitor=None, **kwargs):
        """
        Open a session with the programmer attached as serial *device*.
        """
        session_args = {}
        for key in ('read_burst', 'write_burst'):
            if key in kwargs:
                session_args[key] = kwargs.pop(key)

        transport = SerialTransport(device, monitor=monitor, **kwargs)
        return cls(transport, **session_args)

    @classmethod
    def find(cls, ports=None, **kwargs):
        """
        Search serial ports for a programmer and return a session with the
        first one that answers the version query.

        All ports on the system are tried unless a list of device names is
        given as *ports*. Raises :py:exc:`~fruprog.operation.DeviceNotFound`
        if no programmer responds.
        """
        if ports is None:
            ports = list_ports()

        for port in ports:
            try:
                prog = cls.open(port, **kwargs)
            except (serial.SerialException, OSError) as error:
                log.debug('Skipping {:s}: {}'.format(port, error))
                continue

            try:
                version = prog.firmware_version()
                log.info('Found programmer (firmware {:s}) on {:s}'.format(version, port))
                return prog
            except (OperationFailed, serial.SerialException) as error:
                log.debug('No programmer on {:s}: {}'.format(port, error))
                # Leave the caller's monitor open for the next port
                prog.transport.monitor = Monitor()
                prog.close()

        raise DeviceNotFound('No FMC FRU EEPROM programmer found')

    @property
    def transport(self):
        return self._transport

    @staticmethod
    def _legal_read_burst(value) -> int:
        if not legal_read_burst(value):
            msg = 'Read burst {} is not supported; using the default of {:d} bytes'
            log.warning(msg.format(value, DEFAULT_READ_BURST))
            return DEFAULT_READ_BURST
        return value

    @property
    def write_burst(self) -> int:
        """
        Write burst length used by uploads.
        """
        return self._write_burst

    @write_burst.setter
    def write_burst(self, value):
        if not legal_write_burst(value):
            msg = 'Write burst {} is not supported; using the default of {:d} bytes'
            log.warning(msg.format(value, DEFAULT_WRITE_BURST))
            value = DEFAULT_WRITE_BURST
        self._write_burst = value

    @property
    def expected_read_burst(self) -> int:
        """
        Number of data bytes the host expects in each read reply.
        """
        return self._read_burst

    def send(self, command, args=b''):
        """
        Write *command* (a :py:class:`~fruprog.protocol.Command` or command
        name) followed by *args* to the programmer, in a single transfer.

        Stale input left over from an earlier exchange is discarded first.
        """
        if not isinstance(command, Command):
            command = get_command(command)

        request = command.encode(args)
        log.debug('Sending {:s}: {:s}'.format(command.name, request.hex()))

        self._transport.flush_input()
        self._transport.write(request)
        self._command = command

    def expect_ack_then(self, count: int) -> Response:
        """
        Read a reply of ACK followed by *count* data bytes.
        """
        raw = self._transport.read(count + 1)
        return self._classified(classify_ack_data(raw, count, self._command))

    def expect_write_ack(self) -> Response:
        """
        Read a single-byte ACK reply.
        """
        raw = self._transport.read(1)
        return self._classified(classify_write_ack(raw, self._command))

    def expect_sentinel_terminated(self, limit=64) -> Response:
        """
        Read a reply terminated by END (0xff), of at most *limit* bytes.
        """
        raw = self._transport.read_until(bytes([END]), limit)
        return self._classified(classify_sentinel(raw, self._command))

    def expect_bytes(self, count: int) -> Response:
        """
        Read a reply of exactly *count* raw bytes.
        """
        raw = self._transport.read(count)
        return self._classified(classify_raw(raw, count, self._command))

    @staticmethod
    def _classified(resp: Response) -> Response:
        if not resp.ok:
            log.debug('Response: {} (raw: {:s})'.format(resp.status, resp.raw.hex() or '-'))
        return resp

    def transact(self, name: str, args=b'', count=1) -> Response:
        """
        Send command *name* and read the reply of the shape the command
        table lists for it. *count* is the number of data bytes for
        fixed-size replies.
        """
        command = get_command(name)
        self.send(command, args)

        if command.shape == Shape.RAW:
            return self.expect_bytes(count)
        if command.shape == Shape.ACK:
            return self.expect_write_ack()
        if command.shape == Shape.ACK_DATA:
            return self.expect_ack_then(count)
        if command.shape == Shape.SENTINEL:
            return self.expect_sentinel_terminated()
        return Response(Response.OK, command=command)

    def firmware_version(self) -> str:
        """
        Query the programmer firmware version, e.g. ``'1.1.1'``.
        """
        resp = self.transact('version').check()
        if len(resp.payload) != 3:
            raise OperationFailed('Unexpected version response: ' + resp.raw.hex())
        return '{:d}.{:d}.{:d}'.format(*resp.payload)

    def read_burst(self) -> int:
        """
        Query the read burst length currently configured on the programmer.
        """
        value = self.transact('read_burst').check().payload[0]
        self._read_burst = value
        return value

    def set_read_burst(self, value: int) -> int:
        """
        Program the read burst length. An illegal *value* is replaced by
        the default (with a warning). Returns the length now in effect.
        """
        value = self._legal_read_burst(value)

        log.note('Setting read burst to {:d} bytes'.format(value))
        self.send('read_burst', bytes([value]))
        resp = self.expect_ack_then(1)
        if resp.status == Response.NACKED:
            self._read_burst = DEFAULT_READ_BURST
        resp.check()

        if resp.payload[0] != value:
            msg = 'Programmer confirmed read burst {:d}, expected {:d}'
            raise OperationFailed(msg.format(resp.payload[0], value))

        self._read_burst = value
        return value

    def echo(self) -> bool:
        """
        Check that the programmer is responsive.
        """
        resp = self.transact('echo')
        return resp.ok and resp.payload[0] == END

    def address_select(self) -> int:
        """
        State of the programmer's GA switches (0-3).
        """
        return self.transact('address_select').check().payload[0]

    def module_present(self) -> bool:
        """
        State of the FMC module's PRSNT pin.
        """
        return self.transact('present').check().payload[0] == 1

    def write_protect_polarity(self) -> int:
        """
        State of the programmer's WR_POL switch (0 or 1).
        """
        return self.transact('wp_polarity').check().payload[0]

    def scan(self) -> list:
        """
        Return the bus addresses, in the EEPROM range 0x50-0x57, that
        acknowledged.
        """
        return list(self.transact('scan').check().payload)

    def find_eeprom(self) -> Eeprom:
        """
        Scan for an EEPROM and return a record for it. If more than one
        address answers, the last one is used.
        """
        found = self.scan()
        if len(found) == 0:
            raise TargetNotFound('No EEPROM found on the I2C bus')

        for addr in found:
            log.note('EEPROM found @ 0x{:02x}'.format(addr))

        if len(found) > 1:
            log.warning('Multiple devices found; using 0x{:02x}'.format(found[-1]))

        return Eeprom(found[-1])

    def read(self, i2c_addr: int, mem_addr: int, address_width: int) -> bytes:
        """
        Read one burst from *mem_addr* of the device at *i2c_addr*.

        Raises :py:exc:`~fruprog.operation.OperationFailed` (or a subclass)
        if the exchange fails.
        """
        command = read_command(address_width)
        self.send(command, bytes([i2c_addr]) + encode_mem_addr(mem_addr, address_width))
        return self.expect_ack_then(self._read_burst).check().payload

    def write(self, i2c_addr: int, mem_addr: int, data: bytes, address_width: int):
        """
        Write *data* (1 to 64 bytes) to *mem_addr* of the device at
        *i2c_addr*. The programmer waits for the write cycle to complete
        before acknowledging.
        """
        if not 0 < len(data) <= MAX_WRITE_PAYLOAD:
            raise ArgumentError('Write payload must be 1 to {:d} bytes, got {:d}'.format(
                                MAX_WRITE_PAYLOAD, len(data)))

        command = write_command(address_width)
        args = bytes([i2c_addr]) + encode_mem_addr(mem_addr, address_width) + bytes(data)
        self.send(command, args)
        self.expect_write_ack().check()

    def close(self):
        """
        Close the session and its transport.
        """
        self._transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
