# SPDX-License-Identifier: BSD-3-Clause

"""
Progress reporting for long running transfers.

Uploads and downloads report their byte offset against the total through a
:py:class:`Progress` handle. Whether that handle draws a tqdm progress bar
or silently records counts is decided by :py:meth:`Progress.create()`.
"""

from tqdm import tqdm

from . import log


class Progress:
    """
    No-op progress tracker.

    This is used in place of a :py:class:`ProgressBar` when the log level
    makes a bar inappropriate, or when the caller passed ``show=False``.
    Counts are still kept so that :py:attr:`percent` can be reported in
    log messages.
    """

    @staticmethod
    def create(total: int, desc: str, **kwargs):
        """
        Create either a :py:class:`ProgressBar` or a :py:class:`Progress`.

        A bar is drawn only at the NOTE, INFO, and WARNING log levels.
        DEBUG output would tear the bar apart, and ERROR or SILENT imply the
        user does not want to see it.

        *total* is the number of units (bytes, for transfers) that makes up
        100%. *desc* is a few words shown next to the bar.
        """
        show  = kwargs.pop('show', True)
        show &= log.get_level() in (log.NOTE, log.INFO, log.WARNING)

        if show:
            cls = ProgressBar
        else:
            cls = Progress
            log.debug(desc)

        return cls(total, desc, **kwargs)

    def __init__(self, total: int, desc: str, **_kwargs):
        self._desc  = desc
        self._total = total
        self._count = 0

    def update(self, count=1):
        """
        Record *count* more completed units. This is relative to the
        previous call, not a running total.
        """
        self._count += count

    @property
    def count(self) -> int:
        """
        Units completed so far
        """
        return self._count

    @property
    def total(self) -> int:
        """
        Units that make up 100%
        """
        return self._total

    @property
    def percent(self) -> float:
        """
        Completion percentage, 0.0 when *total* is zero.
        """
        if not self._total:
            return 0.0
        return 100.0 * self._count / self._total

    def close(self):
        """
        Close and clean up.
        """


class ProgressBar(Progress):
    """
    A :py:class:`Progress` that draws a tqdm bar on stderr.

    Use :py:meth:`Progress.create()` rather than instantiating this directly.
    """

    def __init__(self, total, desc=None, unit='B', **kwargs):
        if not unit.startswith(' '):
            unit = ' ' + unit
        super().__init__(total, desc, **kwargs)
        self._pbar = tqdm(total=total, desc=desc, unit=unit, leave=False, **kwargs)

    def update(self, count=1):
        super().update(count)
        self._pbar.update(n=count)

    def close(self):
        self._pbar.close()
