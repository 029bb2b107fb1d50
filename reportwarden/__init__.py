# -*- coding: utf-8 -*-

"""Report warden: a daemon that keeps watch over departmental XML reports.

Departments drop report files such as `sales_20240115.xml` into an intake
directory. The lifecycle of a report:

1. A submitter writes the report into the intake directory.
2. Every poll interval, the daemon logs each report modified since the
   last poll, with its owner, to the change log.
3. Nightly at 01:00, the daemon:
    a. Warns about each department with no report for the previous day.
    b. Snapshots the publish directory into a new timestamped directory
       under the backup root.
    c. Transfers every intake report into the publish directory and
       removes it from intake.
4. Downstream consumers read reports from the publish directory.

Transfers and backups run inside the directory guard, which makes intake
and publish read-only for the duration. A backup and transfer can also be
requested at any time with `reportwardend backup` (SIGUSR1).
"""

from .engine import DaemonRunState, Engine
from .settings import Settings


__version__ = '0.1.0'

__all__ = ['__version__', 'DaemonRunState', 'Engine', 'Settings']
