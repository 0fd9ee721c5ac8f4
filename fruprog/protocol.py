# SPDX-License-Identifier: BSD-3-Clause

"""
Wire protocol shared by the programmer firmware and the host.

Each command is a single opcode byte, optionally followed by argument bytes,
written in one transfer. The programmer answers with one of a few response
shapes. This table is the whole contract between the two sides; it must
match the firmware on existing programmer boards byte for byte.
"""

from enum import Enum

from .operation import ArgumentError, OperationFailed, TransportTimeout

ACK  = 0x06
NACK = 0x3f   # '?'
END  = 0xff

# Fixed bus address of FRU EEPROMs. The low three bits depend on the
# device size and the module's GA pins.
EEPROM_BASE_ADDR = 0x50
EEPROM_SCAN_RANGE = range(EEPROM_BASE_ADDR, EEPROM_BASE_ADDR + 8)

DEFAULT_READ_BURST  = 8
DEFAULT_WRITE_BURST = 8
MAX_READ_BURST      = 64

# The programmer's bus buffer holds 1 device address, 2 memory address
# bytes and 64 data bytes.
MAX_WRITE_PAYLOAD = 64

READ_BURSTS  = (1,) + tuple(range(8, MAX_READ_BURST + 1, 8))
WRITE_BURSTS = (1, 8, 16, 32)

MIN_CAPACITY = 128
MAX_CAPACITY = 65536


class Shape(Enum):
    """
    Shape of the programmer's reply to a command.
    """
    NONE     = 0
    RAW      = 1    # Fixed number of bytes, no ACK
    ACK      = 2    # Single ACK byte
    ACK_DATA = 3    # ACK, then a fixed number of data bytes
    SENTINEL = 4    # Zero or more bytes, terminated by END


class Command:
    """
    One entry of the command table.

    *nargs* is the number of argument bytes for fixed-arity commands. For
    commands carrying a data payload it is the minimum count, and
    *variadic* is ``True``.
    """

    def __init__(self, name: str, opcode: str, nargs: int, shape: Shape, variadic=False):
        self.name = name
        self.opcode = ord(opcode)
        self.nargs = nargs
        self.shape = shape
        self.variadic = variadic

    def encode(self, args=b'') -> bytes:
        """
        Return the request bytes for this command and *args*.
        """
        args = bytes(args)
        if self.variadic:
            if len(args) < self.nargs:
                msg = '{:s} requires at least {:d} argument bytes, got {:d}'
                raise ArgumentError(msg.format(self.name, self.nargs, len(args)))
        elif self.nargs is not None and len(args) > self.nargs:
            msg = '{:s} takes at most {:d} argument bytes, got {:d}'
            raise ArgumentError(msg.format(self.name, self.nargs, len(args)))

        return bytes([self.opcode]) + args

    def __repr__(self):
        return 'Command({:s}, {!r})'.format(self.name, chr(self.opcode))


_COMMANDS = (
    # 'b' takes either zero arguments (query) or one (set). Its reply shape
    # depends on which, so it is listed with the query shape.
    Command('read_burst',     'b', 1, Shape.RAW),
    Command('echo',           'f', 0, Shape.RAW),
    Command('address_select', 'g', 0, Shape.RAW),
    Command('present',        'p', 0, Shape.RAW),
    Command('wp_polarity',    'P', 0, Shape.RAW),
    Command('read',           'r', 2, Shape.ACK_DATA),
    Command('read_wide',      'R', 3, Shape.ACK_DATA),
    Command('scan',           's', 0, Shape.SENTINEL),
    Command('version',        'v', 0, Shape.SENTINEL),
    Command('write',          'w', 3, Shape.ACK, variadic=True),
    Command('write_wide',     'W', 4, Shape.ACK, variadic=True),
)

COMMANDS = {cmd.name: cmd for cmd in _COMMANDS}
OPCODES  = {cmd.opcode: cmd for cmd in _COMMANDS}


def get_command(name: str) -> Command:
    """
    Look up a command by name.
    """
    try:
        return COMMANDS[name]
    except KeyError:
        raise ValueError('Invalid command: ' + name)


def read_command(address_width: int) -> Command:
    """
    Return the read command for the given address width (1 or 2 bytes).
    """
    if address_width == 1:
        return COMMANDS['read']
    if address_width == 2:
        return COMMANDS['read_wide']
    raise ArgumentError('Unsupported address width: {}'.format(address_width))


def write_command(address_width: int) -> Command:
    """
    Return the write command for the given address width (1 or 2 bytes).
    """
    if address_width == 1:
        return COMMANDS['write']
    if address_width == 2:
        return COMMANDS['write_wide']
    raise ArgumentError('Unsupported address width: {}'.format(address_width))


def encode_mem_addr(mem_addr: int, address_width: int) -> bytes:
    """
    Encode an EEPROM memory address as 1 byte, or 2 bytes MSB first.
    """
    if address_width == 1:
        if not 0 <= mem_addr <= 0xff:
            raise ArgumentError('Address 0x{:x} exceeds 1-byte addressing'.format(mem_addr))
        return bytes([mem_addr])

    if address_width == 2:
        if not 0 <= mem_addr <= 0xffff:
            raise ArgumentError('Address 0x{:x} exceeds 2-byte addressing'.format(mem_addr))
        return mem_addr.to_bytes(2, 'big')

    raise ArgumentError('Unsupported address width: {}'.format(address_width))


def legal_read_burst(value) -> bool:
    """
    Is *value* one of the read burst lengths the host will request?
    """
    return value in READ_BURSTS


def legal_write_burst(value) -> bool:
    """
    Is *value* one of the write burst lengths the host will use?
    """
    return value in WRITE_BURSTS


def next_power_of_two(value: int, minimum=MIN_CAPACITY) -> int:
    """
    Smallest power of two that is >= *value* and >= *minimum*.
    """
    ret = minimum
    while ret < value:
        ret <<= 1
    return ret


def is_valid_capacity(value: int) -> bool:
    """
    Capacities are powers of two from 128 to 65536 bytes.
    """
    return MIN_CAPACITY <= value <= MAX_CAPACITY and (value & (value - 1)) == 0


class Response:
    """
    A classified programmer response.

    *status* is one of ``'ok'``, ``'nack'``, ``'timeout'`` (short or empty
    read), or ``'unexpected'`` (a complete reply of the wrong form).
    *payload* holds the data bytes, without any leading ACK or trailing
    END byte. *raw* is exactly what was read from the transport.
    """

    OK         = 'ok'
    NACKED     = 'nack'
    TIMEOUT    = 'timeout'
    UNEXPECTED = 'unexpected'

    def __init__(self, status: str, payload=b'', raw=b'', command=None):
        self.status  = status
        self.payload = bytes(payload)
        self.raw     = bytes(raw)
        self.command = command

    @property
    def ok(self) -> bool:
        """
        ``True`` if the programmer acknowledged the command and returned a
        complete response.
        """
        return self.status == self.OK

    def __bool__(self):
        return self.ok

    def __repr__(self):
        return 'Response({:s}, payload={:s})'.format(self.status, self.payload.hex())

    def check(self):
        """
        Return *self* if the response is ok, otherwise raise the exception
        matching the failure.
        """
        if self.ok:
            return self

        name = self.command.name if self.command is not None else 'command'
        raw = self.raw.hex() or '(nothing)'

        if self.status == self.NACKED:
            raise ArgumentError(name + ' rejected by programmer (NACK)')

        if self.status == self.TIMEOUT:
            raise TransportTimeout(name + ' / incomplete response: ' + raw)

        raise OperationFailed(name + ' / unexpected response: ' + raw)


def classify_ack_data(raw: bytes, count: int, command=None) -> Response:
    """
    Classify a reply expected to be ACK followed by *count* data bytes.
    """
    if len(raw) > 0 and raw[0] == NACK:
        return Response(Response.NACKED, raw=raw, command=command)

    if len(raw) < count + 1:
        return Response(Response.TIMEOUT, raw=raw, command=command)

    if raw[0] != ACK or len(raw) != count + 1:
        return Response(Response.UNEXPECTED, raw=raw, command=command)

    return Response(Response.OK, raw[1:], raw, command)


def classify_write_ack(raw: bytes, command=None) -> Response:
    """
    Classify a reply expected to be a single ACK.
    """
    if len(raw) == 0:
        return Response(Response.TIMEOUT, raw=raw, command=command)

    if raw == bytes([ACK]):
        return Response(Response.OK, b'', raw, command)

    if raw == bytes([NACK]):
        return Response(Response.NACKED, raw=raw, command=command)

    return Response(Response.UNEXPECTED, raw=raw, command=command)


def classify_sentinel(raw: bytes, command=None) -> Response:
    """
    Classify a reply expected to be terminated by END.
    """
    if len(raw) == 0 or raw[-1] != END:
        return Response(Response.TIMEOUT, raw=raw, command=command)

    return Response(Response.OK, raw[:-1], raw, command)


def classify_raw(raw: bytes, count: int, command=None) -> Response:
    """
    Classify a reply expected to be exactly *count* bytes, with no ACK.
    """
    if len(raw) < count:
        return Response(Response.TIMEOUT, raw=raw, command=command)

    if len(raw) != count:
        return Response(Response.UNEXPECTED, raw=raw, command=command)

    return Response(Response.OK, raw, raw, command)
