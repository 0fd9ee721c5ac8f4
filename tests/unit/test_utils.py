# SPDX-License-Identifier: BSD-3-Clause
"""
Miscellaneous utility functions and fixtures for unit tests.
"""
import itertools
import random
import sys

from fruprog.firmware import SimulatedProgrammer, SimulatedPins
from fruprog.programmer import Programmer
from fruprog.transport import LoopbackTransport


def random_data(size: int, seed=0, ret_bytes=False):
    """
    Return `size` pseudorandom bytes from the random module, seeded by `seed`.

    By default, a `bytearray` is returned. If `ret_bytes=True`,
    `bytes` are returned.
    """
    random.seed(seed)
    ret = random.getrandbits(size * 8).to_bytes(size, sys.byteorder)
    if ret_bytes:
        return ret

    return bytearray(ret)


def stepping_clock(step=0.001):
    """
    Return a clock function that advances by `step` seconds on every call,
    so that bounded waits expire without real delays.
    """
    counter = itertools.count(start=0.0, step=step)
    return lambda: next(counter)


class FaultyLoopbackTransport(LoopbackTransport):
    """
    Loopback transport that loses the programmer's reply to the
    `drop_at`-th request (1-based). The programmer still executes it.
    """

    def __init__(self, board, drop_at=None, monitor=None):
        super().__init__(board, monitor=monitor)
        self.drop_at = drop_at

    def _write(self, data: bytes):
        super()._write(data)
        if self.writes == self.drop_at:
            self.board.serial.tx.clear()


def make_session(capacity=256, address_width=1, i2c_addr=0x50, data=None,
                 drop_at=None, pins=None, **kwargs):
    """
    Build a simulated programmer with one EEPROM attached, and a
    :py:class:`Programmer` session connected to it.

    Returns `(programmer, board, eeprom)`.
    """
    board = SimulatedProgrammer(pins=pins or SimulatedPins(), clock=stepping_clock())
    eeprom = board.attach_eeprom(i2c_addr, capacity, address_width, data=data)
    transport = FaultyLoopbackTransport(board, drop_at=drop_at)
    return (Programmer(transport, **kwargs), board, eeprom)
