# SPDX-License-Identifier: BSD-3-Clause

"""
fruprog logging, layered atop of Python's ``logging`` module.

The initial level is taken from the ``FRUPROG_LOG_LEVEL`` environment variable
(a level name, see below). When it is not set, the ``'note'`` level is used.

+----------------+-------------+---------------------------------------------------------------+
|   Level Name   | Msg. Prefix | Used for                                                      |
+================+=============+===============================================================+
| debug          |   ``[#]``   | Wire-level detail: commands sent, raw responses, probe values |
+----------------+-------------+---------------------------------------------------------------+
| note           |   ``[*]``   | Progress of a task (burst lengths, inferred defaults)         |
+----------------+-------------+---------------------------------------------------------------+
| info           |   ``[+]``   | Task results (programmer found, EEPROM found, sizes)          |
+----------------+-------------+---------------------------------------------------------------+
| warning        |   ``[!]``   | Replaced parameters, partial transfers, restore problems      |
+----------------+-------------+---------------------------------------------------------------+
| error          |   ``[X]``   | Why a task failed                                             |
+----------------+-------------+---------------------------------------------------------------+
| silent         |     N/A     | Nothing is written to stderr                                  |
+----------------+-------------+---------------------------------------------------------------+

Transfer progress bars are only drawn at the *note*, *info*, and *warning* levels.

Verbosity is never passed around as a flag. Code that wants quieter output
for a stretch of work uses :py:func:`scoped_level()`.
"""

import os
import platform
import sys
import logging

from contextlib import contextmanager

DEBUG   = logging.DEBUG
NOTE    = logging.DEBUG + (logging.INFO - logging.DEBUG) // 2
INFO    = logging.INFO
WARNING = logging.WARN
ERROR   = logging.ERROR
SILENT  = logging.CRITICAL + (logging.CRITICAL - logging.ERROR)

_ANSI = {
    DEBUG:   '\033[34m',
    NOTE:    '\033[36m',
    INFO:    '\033[32m',
    WARNING: '\033[33m',
    ERROR:   '\033[31m',
}

_SYMBOLS = {
    DEBUG:   '[#] ',
    NOTE:    '[*] ',
    INFO:    '[+] ',
    WARNING: '[!] ',
    ERROR:   '[X] ',
}


class FruprogLog:
    """
    A thin wrapper around a shared Python logger that adds level symbols
    and an optional per-instance *prefix* (e.g. the name of an operation).

    All instances created with the same *logger_name* write through the
    same underlying logger and therefore share its level.
    """

    _level_name_map = {
        'debug':    DEBUG,
        'note':     NOTE,
        'info':     INFO,
        'warn':     WARNING,
        'warning':  WARNING,
        'error':    ERROR,
        'fatal':    ERROR,
        'critical': ERROR,
        'silent':   SILENT
    }

    def __init__(self, prefix='', logger_name='fruprog'):
        color = platform.system() in ('Linux', 'Darwin') and sys.stdout.isatty()

        if prefix != '' and not prefix.endswith(' '):
            prefix += ' '

        self._prefixes = {}
        for level, symbol in _SYMBOLS.items():
            if color:
                symbol = _ANSI[level] + symbol + '\033[0m'
            self._prefixes[level] = symbol + prefix

        self.logger = logging.getLogger(logger_name)

    @property
    def level(self):
        """
        Current log level
        """
        return self.logger.level

    @level.setter
    def level(self, level):
        if isinstance(level, str):
            try:
                level = self._level_name_map[level.lower()]
            except KeyError:
                raise ValueError('Invalid log level: ' + level)

        self.logger.setLevel(level)

    def _log(self, level, args, kwargs):
        self.logger.log(level, *((self._prefixes[level] + args[0],) + args[1:]), **kwargs)

    def debug(self, *args, **kwargs):
        """
        Wire-level diagnostics that only matter when something is broken.
        """
        self._log(DEBUG, args, kwargs)

    def note(self, *args, **kwargs):
        """
        Detail about what a task is doing.
        """
        self._log(NOTE, args, kwargs)

    def info(self, *args, **kwargs):
        """
        A task started or completed successfully.
        """
        self._log(INFO, args, kwargs)

    def warning(self, *args, **kwargs):
        """
        Something undesirable happened, but the task carried on
        (e.g. an illegal burst length was replaced by the default).
        """
        self._log(WARNING, args, kwargs)

    def error(self, *args, **kwargs):
        """
        The reason a task is failing.
        """
        self._log(ERROR, args, kwargs)


_fruprog_root = FruprogLog()  # pylint: disable=invalid-name
_fruprog_root.logger.addHandler(logging.StreamHandler())
_fruprog_root.level = os.getenv('FRUPROG_LOG_LEVEL', 'note')


def debug(*args, **kwargs):
    """
    Invokes the root logger's :py:meth:`FruprogLog.debug()` method
    """
    _fruprog_root.debug(*args, **kwargs)


def note(*args, **kwargs):
    """
    Invokes the root logger's :py:meth:`FruprogLog.note()` method
    """
    _fruprog_root.note(*args, **kwargs)


def info(*args, **kwargs):
    """
    Invokes the root logger's :py:meth:`FruprogLog.info()` method
    """
    _fruprog_root.info(*args, **kwargs)


def warning(*args, **kwargs):
    """
    Invokes the root logger's :py:meth:`FruprogLog.warning()` method
    """
    _fruprog_root.warning(*args, **kwargs)


def error(*args, **kwargs):
    """
    Invokes the root logger's :py:meth:`FruprogLog.error()` method
    """
    _fruprog_root.error(*args, **kwargs)


def set_level(level):
    """
    Set the fruprog logger to the specified level, given either as one of the
    integer constants in this module or as a level name string.
    """
    _fruprog_root.level = level


def get_level() -> int:
    """
    Get the current level of the fruprog logger.
    """
    return _fruprog_root.level


@contextmanager
def scoped_level(level):
    """
    Temporarily switch to *level* for the duration of a ``with`` block.

    The command-line front end uses this to keep the programmer and EEPROM
    discovery steps quiet before running the requested task.
    """
    previous = get_level()
    set_level(level)
    try:
        yield
    finally:
        set_level(previous)
