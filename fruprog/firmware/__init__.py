# SPDX-License-Identifier: BSD-3-Clause
#
# flake8: noqa=F401
"""
The programmer firmware, modelled in Python.

:py:class:`CommandDispatcher` and :py:class:`TwoWireBus` implement the
command loop and bus transactions of the programmer. The
:py:mod:`fruprog.firmware.sim` module supplies simulated hardware for them
to run against.
"""

from .bus        import TwoWireBus
from .dispatcher import CommandDispatcher, SerialBuffer, FIRMWARE_VERSION
from .sim        import SimulatedEeprom, SimulatedTwi, SimulatedPins, SimulatedProgrammer
