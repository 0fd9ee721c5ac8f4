# SPDX-License-Identifier: BSD-3-Clause
"""
A monitor records the bytes written to and read from the programmer, which
helps when debugging a board that misbehaves or when learning the protocol.

Each request is recorded on its own line prefixed with ``>``, followed by
the reply on a line prefixed with ``<``. Opcodes are shown as characters,
everything else as hex::

    > v
    < 01 01 01 ff
    > r 50 00
    < 06 ff ff ff ff ff ff ff ff
"""

import os

from . import log


class Monitor:
    """
    The :py:class:`.Monitor` base class is a no-op that discards all data.
    """

    _default_file = '/tmp/fruprog-monitor.txt'

    _impls = {}

    def __init__(self):
        self._f = None
        self._reading = False

    @classmethod
    def register(cls, name: str, impl_class):
        """
        Register a :py:class:`Monitor` implementation to be returned by
        :py:meth:`Monitor.create()`.
        """
        if not issubclass(impl_class, Monitor):
            raise ValueError('Implementation must be a subclass of fruprog.monitor.Monitor')

        cls._impls[name.lower()] = impl_class

    @classmethod
    def create(cls, spec: str):
        """
        Create a monitor from a ``<type>[:arg1,...]`` string, e.g.
        ``file:/tmp/traffic.txt``. An empty or ``None`` spec yields the
        no-op base implementation.
        """
        if spec is None or len(spec) == 0:
            return Monitor()

        fields = spec.split(':', maxsplit=1)

        name = fields[0].lower()
        try:
            args = fields[1].split(',')
        except IndexError:
            args = []

        try:
            impl = cls._impls[name]
        except KeyError:
            raise ValueError('Invalid Monitor name: ' + name)

        return impl(*args)

    def _emit(self, text: str):
        if self._f is not None:
            self._f.write(text.encode('ascii'))
            self._f.flush()

    def write(self, data: bytes):
        """
        Record a request written *to* the programmer.
        """
        if len(data) == 0:
            return

        opcode = chr(data[0]) if 0x20 <= data[0] < 0x7f else '{:02x}'.format(data[0])
        fields = [opcode] + ['{:02x}'.format(b) for b in data[1:]]
        self._emit(('' if not self._reading else os.linesep) + '> ' + ' '.join(fields) + os.linesep)
        self._reading = False

    def read(self, data: bytes):
        """
        Record bytes read *from* the programmer. Consecutive reads belonging
        to the same reply are joined on one line.
        """
        if len(data) == 0:
            return

        text = ' '.join('{:02x}'.format(b) for b in data)
        if self._reading:
            self._emit(' ' + text)
        else:
            self._emit('< ' + text)
            self._reading = True

    def close(self):
        """
        Close the monitor and its underlying resources.
        """
        if self._f is not None:
            if self._reading:
                self._emit(os.linesep)
            self._f.close()
            self._f = None


class FileMonitor(Monitor):
    """
    A :py:class:`.Monitor` subclass that records programmer traffic to a file.
    """

    def __init__(self, path=Monitor._default_file):
        super().__init__()
        log.note('Recording programmer traffic to ' + path)
        self._f = open(path, 'wb')


Monitor.register('file', FileMonitor)
