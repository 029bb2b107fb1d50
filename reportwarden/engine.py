# -*- coding: utf-8 -*-

"""The daemon's polling loop. Once per tick the engine decides whether to
run the nightly job, a manually requested backup, and the change poll.

Nightly job, at `nightly_time` (01:00 by default), at most once per day:

1. completeness audit of the previous day
2. backup
3. transfer

The audit comes first so it sees intake before transfer empties it. A
manual request (SIGUSR1) runs backup then transfer, independently of the
nightly job; both may run in the same tick."""

import logging
import time
from datetime import datetime

from .audit import AuditTrail
from .completeness import CompletenessAuditor
from .fsfacts import ensure_directory
from .guard import DirectoryGuard
from .tasks import BackupTask, TransferTask
from .watcher import ChangeWatcher


logger = logging.getLogger(__name__)


class DaemonRunState:
    """Flags shared between signal handlers and the loop. `stop` and
    `request_backup` may be called from a signal handler at any time, so
    they only assign attributes and never take a lock.

    A backup request is consumed by `take_backup_request`, which clears the
    flag before the caller starts work, so a request raised while a backup
    is already running is kept for the next tick."""

    def __init__(self):
        self.running = True
        self.backup_requested = False
        self.last_nightly_day = None

    def stop(self):
        self.running = False

    def request_backup(self):
        self.backup_requested = True

    def take_backup_request(self):
        """Return True, and clear the flag, if a backup was requested."""
        if not self.backup_requested:
            return False
        self.backup_requested = False
        return True


class Engine:
    """Object responsible for the schedule, and owner of the components it
    drives."""

    def __init__(self, settings, state=None, clock=datetime.now,
                 sleep=time.sleep):
        self.settings = settings
        self.state = state if state is not None else DaemonRunState()
        self.clock = clock
        self.sleep = sleep
        self.guard = DirectoryGuard(settings)
        self.trail = AuditTrail(settings.paths.change_log,
                                settings.modes.change_log)
        self.auditor = CompletenessAuditor(settings)
        self.backup = BackupTask(settings, self.guard)
        self.transfer = TransferTask(settings, self.guard)
        self.watcher = ChangeWatcher(settings, self.trail)
        self.last_poll = None  # Seconds since the epoch

    def prepare(self):
        """Create any missing directories, break a guard lock left by a
        daemon that died, and apply the unlocked permission profile. Runs
        after the PID file check, so no other daemon holds the guard.
        Raises `OSError` if a directory cannot be created."""
        paths = self.settings.paths
        for directory in (paths.intake, paths.publish, paths.backup_root,
                          paths.log_dir):
            ensure_directory(directory)
        self.guard.break_stale_lock()
        self.guard.release()

    def run(self):
        """Tick until `state.running` goes False."""
        logger.info('daemon started')
        try:
            while self.state.running:
                self.tick()
                self.sleep(self.settings.tick_seconds)
        finally:
            self.trail.close()
        logger.info('daemon shutting down')

    def tick(self, now=None):
        """One pass of the schedule. Component failures are logged and
        absorbed."""
        if now is None:
            now = self.clock()
        if self.is_nightly_due(now):
            logger.info('scheduled backup and transfer at %02d:%02d',
                        *self.settings.nightly_time)
            self._call(self.auditor.audit_yesterday, now.date())
            self._call(self.backup.run, now)
            self._call(self.transfer.run)
            self.state.last_nightly_day = now.date()
        if self.state.take_backup_request():
            logger.info('manual backup and transfer requested')
            self._call(self.backup.run, self.clock())
            self._call(self.transfer.run)
        timestamp = now.timestamp()
        if (self.last_poll is None
                or timestamp - self.last_poll >= self.settings.poll_interval):
            self._call(self.watcher.poll_once, timestamp)
            self.last_poll = timestamp

    def is_nightly_due(self, now):
        """True during the nightly minute if the job has not run today."""
        if (now.hour, now.minute) != self.settings.nightly_time:
            return False
        return self.state.last_nightly_day != now.date()

    def _call(self, func, *args):
        try:
            return func(*args)
        except Exception:
            logger.exception('unexpected error in %s',
                             getattr(func, '__qualname__', func))
            return None
