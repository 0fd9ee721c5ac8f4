# flake8: noqa=E401
# pylint: disable=missing-module-docstring

from .test_autodetect import TestMemoryAutodetect

from .test_bus import TestTwoWireBus, TestSimulatedEeprom

from .test_cmdline import TestArgumentParser, TestMain

from .test_dispatcher import TestCommandDispatcher

from .test_eeprom import TestEeprom

from .test_monitor import TestMonitor, TestProgress

from .test_programmer import TestProgrammer, TestFindProgrammer

from .test_protocol import (
    TestCommandTable,
    TestMemoryAddress,
    TestBurstLengths,
    TestResponse
)

from .test_transfer import TestEepromReader, TestEepromWriter
