# SPDX-License-Identifier: BSD-3-Clause

"""
This module provides the :py:class:`Operation` base class for multi-command
tasks performed through a :py:class:`~fruprog.Programmer` (transfers,
autodetection), along with the exceptions raised by fruprog.
"""

from .log import FruprogLog


class OperationFailed(Exception):
    """
    Raised when an operation did not complete successfully.

    The exception message should further explain the nature and circumstances
    of the failure.
    """


class ArgumentError(OperationFailed, ValueError):
    """
    Raised when a command argument is malformed or out of range, including
    when the programmer rejects a command with a NACK.
    """


class BusTimeout(OperationFailed):
    """
    Raised by the firmware bus driver when a byte did not arrive within its
    bounded wait. The command dispatcher answers such a command with a NACK,
    which the host sees as :py:exc:`ArgumentError`.
    """


class TransportTimeout(OperationFailed):
    """
    Raised when the programmer's response was short or missing when the
    transport read timed out.
    """


class DeviceNotFound(OperationFailed):
    """
    Raised when no programmer answered the version query on any port.
    """


class TargetNotFound(OperationFailed):
    """
    Raised when no EEPROM acknowledged any address in the scan range.
    """


class FileIOError(OperationFailed, OSError):
    """
    Raised when an input or output image file cannot be opened.
    """


class Operation:
    """
    Common base for tasks that drive a sequence of programmer commands.

    The *programmer* argument is an open :py:class:`~fruprog.Programmer`
    session, which the operation uses exclusively until it returns.
    """

    def __init__(self, programmer, **_kwargs):
        self._prog = programmer
        self.log = FruprogLog('(' + self.name + ')')

    @property
    def name(self) -> str:
        """
        Operation name (string)
        """
        return self.__class__.__name__

    @property
    def programmer(self):
        """
        The :py:class:`~fruprog.Programmer` session this operation uses.
        """
        return self._prog
