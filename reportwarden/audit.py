# -*- coding: utf-8 -*-

"""Append-only audit trail of report file changes. The trail is a
comma-separated file with a header row:

    File,User,Timestamp
    sales_20240115.xml,alice,2024-01-15 16:42:07

The file is created on the first record and immediately made read-only, so
the trail keeps its handle open for later records."""

from collections import namedtuple
import csv
import logging
import os


logger = logging.getLogger(__name__)

HEADER = ('File', 'User', 'Timestamp')


ChangeEvent = namedtuple('ChangeEvent', 'file_name user timestamp')
ChangeEvent.__doc__ = """One observed modification of a report file. The
`timestamp` is already formatted for display."""


class AuditTrail:
    """Usage::

        with AuditTrail(settings.paths.change_log) as trail:
            trail.record(ChangeEvent('sales_20240115.xml', 'alice', '...'))
    """

    def __init__(self, path, mode=0o444):
        self.path = path
        self.mode = mode
        self._file = None
        self._writer = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None

    def record(self, event):
        """Append one row for `event`."""
        if self._file is None:
            self._open()
        self._writer.writerow(event)
        self._file.flush()

    def _open(self):
        """Open for append, writing the header and locking down the mode if
        this call created the file."""
        created = not self.path.exists()
        self._file = self.path.open('a', newline='')
        self._writer = csv.writer(self._file, lineterminator='\n')
        if created:
            self._writer.writerow(HEADER)
            self._file.flush()
            os.chmod(self.path, self.mode)
            logger.info('created change log %s', self.path)

    def read_events(self):
        """Return every recorded `ChangeEvent`, oldest first."""
        if not self.path.exists():
            return []
        with self.path.open(newline='') as fin:
            rows = list(csv.reader(fin))
        return [ChangeEvent(*row) for row in rows[1:] if row]
