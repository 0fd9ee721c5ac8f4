# SPDX-License-Identifier: BSD-3-Clause
"""
The *fruprog.cmdline* module implements the ``fruprog`` command line
interface atop of the fruprog API.

It includes fruprog's own :py:class:`ArgumentParser` class, which wraps the
standard Python :py:class:`argparse.ArgumentParser`, as well as custom
:py:class:`argparse.Action` classes for the EEPROM parameters.

Parameters (address width, size, burst lengths) are applied before any task
runs. Tasks then run in a fixed order: port scan (``-s``), presence pin
(``-p``), I2C scan (``-i``), read burst (``-r``), memory autodetect
(``-m``), download (``-d``) and upload (``-u``). Parameters found by
autodetection carry over to the transfers that follow it.
"""

import argparse
import sys

import serial

from fruprog import log
from fruprog.autodetect import MemoryAutodetect
from fruprog.firmware   import SimulatedProgrammer
from fruprog.monitor    import Monitor
from fruprog.operation  import DeviceNotFound, OperationFailed
from fruprog.programmer import Programmer
from fruprog.protocol   import is_valid_capacity, EEPROM_BASE_ADDR
from fruprog.transfer   import EepromReader, EepromWriter
from fruprog.transport  import LoopbackTransport
from fruprog.version    import __version__


def _int(value: str) -> int:
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentError(None, 'Invalid integer: ' + value)


class AddressWidthAction(argparse.Action):
    """
    ArgumentParser Action for the EEPROM address width (1 or 2 bytes).
    Any other value leaves the width unset, to be derived from the bus address.
    """
    def __call__(self, parser, namespace, width, option_string=None):
        value = _int(width)
        if value not in (1, 2):
            log.warning('Address width {} is not supported; it will be determined '
                        'from the I2C address'.format(width))
            value = 0
        setattr(namespace, self.dest, value)


class SizeAction(argparse.Action):
    """
    ArgumentParser Action for the EEPROM size, given in bits (``-l``,
    multiples of 1024) or bytes (``-L``, multiples of 128).

    Sizes that no 24Cxx part has leave the size unset.
    """
    def __call__(self, parser, namespace, size, option_string=None):
        value = _int(size)
        if option_string in ('-l', '--size-bits'):
            value = value // 8 if value % 1024 == 0 else 0

        if not is_valid_capacity(value):
            log.warning('EEPROM size {} is not supported; the default will be used'.format(size))
            value = 0
        else:
            log.note('EEPROM size: {:d} bytes ({:d} bits)'.format(value, value * 8))

        setattr(namespace, self.dest, value)


class SimulateAction(argparse.Action):
    """
    ArgumentParser Action converting ``<bytes>[,<width>[,<i2c addr>]]`` to a
    tuple for :py:func:`create_programmer()`.
    """
    def __call__(self, parser, namespace, sim_str, option_string=None):
        fields = [_int(f) for f in sim_str.split(',')]
        defaults = [256, 1, EEPROM_BASE_ADDR]
        if len(fields) > len(defaults):
            raise argparse.ArgumentError(self, 'Too many fields: ' + sim_str)
        setattr(namespace, self.dest, tuple(fields + defaults[len(fields):]))


def create_programmer(args) -> Programmer:
    """
    Create and return a :py:class:`~fruprog.Programmer` session based upon
    command-line arguments.

    The *args* Namespace must contain *port*, *simulate*, *monitor* and
    *write_burst*, even if set to their unspecified (``None``) values. The
    read burst is programmed later, by :py:func:`run_tasks()`.
    """
    monitor = Monitor.create(args.monitor)

    kwargs = {}
    if args.write_burst is not None:
        kwargs['write_burst'] = args.write_burst

    if args.simulate:
        capacity, width, i2c_addr = args.simulate
        board = SimulatedProgrammer()
        board.attach_eeprom(i2c_addr, capacity, width)
        log.note('Using simulated programmer with a {:d}-byte EEPROM @ 0x{:02x}'.format(
                 capacity, i2c_addr))
        return Programmer(LoopbackTransport(board, monitor=monitor), **kwargs)

    if args.port:
        try:
            prog = Programmer.open(args.port, monitor=monitor, **kwargs)
        except serial.SerialException as error:
            monitor.close()
            raise DeviceNotFound(str(error)) from error

        try:
            log.note('Programmer firmware {:s} on {:s}'.format(prog.firmware_version(), args.port))
        except OperationFailed:
            prog.close()
            raise
        return prog

    return Programmer.find(monitor=monitor, **kwargs)


class ArgumentParser(argparse.ArgumentParser):
    """
    This class extends Python's own :py:class:`argparse.ArgumentParser` with
    fruprog-specific argument handler initializations.

    The *init_args* parameter is a list of names, each corresponding to the
    ``<x>`` in this class's ``add_<x>_argument()`` methods, or the string
    ``'default'`` to use all of :py:attr:`DEFAULT_ARGS`.

    Any other *kwargs* items are passed to the underlying
    :py:class:`argparse.ArgumentParser`.
    """

    #: :obj:`list` :
    #: Default list used by :py:meth:`ArgumentParser.__init__()` unless
    #: otherwise overridden with a caller-provided list.
    DEFAULT_ARGS = [
        'download',
        'upload',
        'address_width',
        'size',
        'read_burst',
        'write_burst',
        'tasks',
        'port',
        'simulate',
        'monitor',
        'version',
    ]

    def __init__(self, init_args='default', **kwargs):
        if init_args == 'default':
            init_args = self.DEFAULT_ARGS
        elif init_args is None:
            init_args = []
        elif not isinstance(init_args, list):
            raise TypeError('init_args expected to be a string or list')

        super().__init__(**kwargs)
        for name in init_args:
            getattr(self, 'add_' + name + '_argument')()

        try:
            self._optionals.title = 'options'
        except AttributeError:
            pass

    def add_download_argument(self, **kwargs):
        """
        Add the EEPROM-to-file download argument.
        """
        self.add_argument('-d', '--download',
                          metavar=kwargs.pop('metavar', '<file>'),
                          help=kwargs.pop('help', 'Download EEPROM contents to a binary file.'),
                          **kwargs)

    def add_upload_argument(self, **kwargs):
        """
        Add the file-to-EEPROM upload argument.
        """
        self.add_argument('-u', '--upload',
                          metavar=kwargs.pop('metavar', '<file>'),
                          help=kwargs.pop('help', 'Upload a binary file to the EEPROM.'),
                          **kwargs)

    def add_address_width_argument(self, **kwargs):
        """
        Add the EEPROM address width argument.
        """
        help_text = ('EEPROM address width in bytes (1 or 2). '
                     'Default: determined from the I2C address.')
        self.add_argument('-a', '--address-width',
                          metavar=kwargs.pop('metavar', '<1|2>'),
                          default=kwargs.pop('default', 0),
                          action=AddressWidthAction,
                          help=kwargs.pop('help', help_text),
                          **kwargs)

    def add_size_argument(self, **kwargs):
        """
        Add the mutually exclusive EEPROM size arguments, in bits and bytes.
        """
        group = self.add_mutually_exclusive_group()
        group.add_argument('-l', '--size-bits',
                           metavar='<1024..524288>',
                           dest='capacity',
                           default=kwargs.pop('default', 0),
                           action=SizeAction,
                           help='EEPROM size in bits (multiple of 1024).')

        group.add_argument('-L', '--size',
                           metavar='<128..65536>',
                           dest='capacity',
                           action=SizeAction,
                           help=('EEPROM size in bytes (multiple of 128). '
                                 'Default: 256 for 1-byte, 4096 for 2-byte addressing.'))

    def add_read_burst_argument(self, **kwargs):
        """
        Add the read burst length argument.
        """
        self.add_argument('-r', '--read-burst',
                          metavar='<1,8,16,..64>',
                          type=_int,
                          default=kwargs.pop('default', None),
                          help='Set the programmer\'s read burst length in bytes. Default: 8')

    def add_write_burst_argument(self, **kwargs):
        """
        Add the write burst length argument.
        """
        self.add_argument('-w', '--write-burst',
                          metavar='<1,8,16,32>',
                          type=_int,
                          default=kwargs.pop('default', None),
                          help='Write burst length in bytes. Default: 8')

    def add_tasks_argument(self):
        """
        Add the flags for the miscellaneous tasks.
        """
        self.add_argument('-i', '--i2c-scan', action='store_true',
                          help='Scan the I2C bus for EEPROM devices.')

        self.add_argument('-m', '--autodetect', action='store_true',
                          help='Detect EEPROM address width and size.')

        self.add_argument('-p', '--present', action='store_true',
                          help='Read the FMC module\'s present pin.')

        self.add_argument('-s', '--port-scan', action='store_true',
                          help='Scan serial ports for an FMC FRU programmer.')

    def add_port_argument(self, **kwargs):
        """
        Add the serial port argument, which skips programmer discovery.
        """
        self.add_argument('--port',
                          metavar=kwargs.pop('metavar', '<device>'),
                          default=kwargs.pop('default', None),
                          help=kwargs.pop('help', 'Serial port of the programmer. '
                                                  'Default: search all ports.'),
                          **kwargs)

    def add_simulate_argument(self, **kwargs):
        """
        Add an argument to run against a simulated programmer and EEPROM.
        """
        help_text = ('Use a simulated programmer with an erased EEPROM. '
                     'Default: 256,1,0x50')
        self.add_argument('--simulate',
                          metavar=kwargs.pop('metavar', '<bytes>[,<width>[,<addr>]]'),
                          nargs='?',
                          const='256',
                          default=None,
                          action=SimulateAction,
                          help=kwargs.pop('help', help_text),
                          **kwargs)

    def add_monitor_argument(self, **kwargs):
        """
        Add a programmer traffic monitor argument.
        """
        self.add_argument('--monitor',
                          metavar='<type>[:options,...]',
                          default=kwargs.pop('default', None),
                          help=kwargs.pop('help', 'Record programmer traffic. Valid types: file'),
                          **kwargs)

    def add_version_argument(self):
        """
        Add the program version argument.
        """
        self.add_argument('--version', action='version', version='%(prog)s ' + __version__)


_TASK_FLAGS = ('port_scan', 'present', 'i2c_scan', 'autodetect', 'download', 'upload')


def _task_level(visible: bool) -> int:
    # Discovery steps stay quiet unless their output was asked for
    level = log.get_level()
    if visible:
        return min(level, log.INFO)
    return level if level <= log.DEBUG else max(level, log.WARNING)


def run_tasks(args, prog) -> int:
    """
    Run the tasks requested in *args* using the *prog* session.
    Returns a process exit status.
    """
    if args.port_scan:
        log.info('FMC FRU programmer (firmware {:s}) on {:s}'.format(
                 prog.firmware_version(), prog.transport.name))

    if args.present:
        if prog.module_present():
            log.info('FMC module is present (pin H2 PRSNT_M2C_L is LOW)')
        else:
            log.info('FMC module is not attached (pin H2 PRSNT_M2C_L is HIGH)')

    if args.read_burst is not None:
        value = prog.set_read_burst(args.read_burst)
        log.info('Read burst length: {:d}'.format(value))

    needs_eeprom = args.i2c_scan or args.autodetect or args.download or args.upload
    if not needs_eeprom:
        return 0

    with log.scoped_level(_task_level(args.i2c_scan)):
        eeprom = prog.find_eeprom()

    eeprom.address_width = args.address_width
    eeprom.capacity = args.capacity

    if args.autodetect:
        result = MemoryAutodetect(prog).run(eeprom)
        if not result:
            log.error('Memory autodetection failed. Check the write protection of the EEPROM, '
                      'or specify the address width with -a.')
            return 1
        log.info('{:s}: {:d}-byte addressing, {:d} bytes'.format(
                 eeprom.model, eeprom.address_width, eeprom.capacity))

    if args.download:
        count = EepromReader(prog, eeprom).read_to_file(args.download)
        log.info('Downloaded {:d} bytes to {:s}'.format(count, args.download))

    if args.upload:
        EepromWriter(prog, eeprom).write_from_file(args.upload)
        log.info('Uploaded {:s}'.format(args.upload))

    return 0


def main(argv=None) -> int:
    """
    Entry point of the ``fruprog`` script.
    """
    parser = ArgumentParser(
        prog='fruprog',
        description='Read, write and size FMC FRU EEPROMs with the USB FRU programmer.',
    )

    args = parser.parse_args(argv)

    if args.read_burst is None and not any(getattr(args, flag) for flag in _TASK_FLAGS):
        parser.print_help()
        return 0

    try:
        with log.scoped_level(_task_level(args.port_scan)):
            prog = create_programmer(args)
    except OperationFailed as error:
        log.error(str(error))
        return 1

    with prog:
        try:
            return run_tasks(args, prog)
        except OperationFailed as error:
            log.error(str(error))
            return 1
        except KeyboardInterrupt:
            log.warning('Interrupted')
            return 1


if __name__ == '__main__':
    sys.exit(main())
