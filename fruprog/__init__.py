# SPDX-License-Identifier: BSD-3-Clause
#
# flake8: noqa=F401
"""
fruprog: FMC FRU EEPROM programmer toolkit

Host-side driver for the USB-attached FMC FRU EEPROM programmer, along with
an in-process model of the programmer firmware for use without hardware.
"""

from .version import __version__

# Expose items from the various submodules to the top-level namespace

from . import log
from . import protocol
from . import firmware

from .operation import (Operation,
                        OperationFailed,
                        ArgumentError,
                        BusTimeout,
                        TransportTimeout,
                        DeviceNotFound,
                        TargetNotFound,
                        FileIOError)

from .eeprom     import Eeprom
from .programmer import Programmer
from .transport  import Transport, SerialTransport, LoopbackTransport
from .transfer   import EepromReader, EepromWriter
from .autodetect import MemoryAutodetect, AutodetectResult

from .monitor    import Monitor
from .progress   import Progress, ProgressBar
