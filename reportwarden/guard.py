# -*- coding: utf-8 -*-

"""The directory guard. Transfers and backups run inside a guarded region,
during which both the intake and publish directories are read-only and no
other guarded operation may start.

States:

    UNLOCKED --acquire()--> LOCKED --release()--> UNLOCKED

`acquire` either reaches LOCKED with both directories demoted, or leaves
everything as it found it and returns False. `release` always applies the
unlocked permission profile, whatever state the guard is in, so it can be
used to recover after a partial acquisition.

Two locks are held while LOCKED: an in-process `threading.Lock`, and a
`lockfile.LockFile` sentinel that keeps a second daemon instance working
on the same directories out of the region."""

from contextlib import contextmanager
import logging
import os
import threading

from lockfile import LockError, LockFile

from .exceptions import GuardError


logger = logging.getLogger(__name__)

UNLOCKED = 'UNLOCKED'
LOCKED = 'LOCKED'


class DirectoryGuard:
    """Guards `settings.paths.intake` and `settings.paths.publish`."""

    def __init__(self, settings):
        self.intake = settings.paths.intake
        self.publish = settings.paths.publish
        self.parent = settings.parent_dir
        self.modes = settings.modes
        self.timeout = settings.lock_timeout
        self.state = UNLOCKED
        self._mutex = threading.Lock()
        self._sentinel = LockFile(str(settings.paths.lock_file))

    @property
    def locked(self):
        return self.state == LOCKED

    def acquire(self):
        """Enter the guarded region. Returns True on success. On failure,
        logs the reason and returns False with no lock held and intake
        restored."""
        if not self._mutex.acquire(timeout=self.timeout):
            logger.error('failed to lock directories: timed out after %ss',
                         self.timeout)
            return False
        try:
            self._sentinel.acquire(timeout=self.timeout)
        except LockError as e:
            logger.error('failed to lock directories: %s', e)
            self._mutex.release()
            return False
        try:
            if not self._demote():
                self._sentinel.release()
                self._mutex.release()
                return False
        except BaseException:
            self._sentinel.release()
            self._mutex.release()
            raise
        self.state = LOCKED
        logger.info('directories locked for backup/transfer')
        return True

    def _demote(self):
        """Make intake then publish read-only. If publish fails, intake is
        put back."""
        try:
            os.chmod(self.intake, self.modes.intake_locked)
        except OSError as e:
            logger.error('failed to change upload directory permissions: %s',
                         e)
            return False
        try:
            os.chmod(self.publish, self.modes.publish_locked)
        except OSError as e:
            logger.error('failed to change report directory permissions: %s',
                         e)
            try:
                os.chmod(self.intake, self.modes.intake_unlocked)
            except OSError as e:
                logger.error('failed to restore upload directory '
                             'permissions: %s', e)
            return False
        return True

    def release(self):
        """Leave the guarded region. Every step is attempted even if an
        earlier one fails; returns True if all of them succeeded. Safe to
        call when not LOCKED."""
        ok = True
        steps = [
            (self.parent, self.modes.parent, 'parent'),
            (self.intake, self.modes.intake_unlocked, 'upload'),
            (self.publish, self.modes.publish_unlocked, 'report'),
        ]
        for path, mode, label in steps:
            try:
                os.chmod(path, mode)
            except OSError as e:
                logger.error('failed to set %s directory permissions: %s',
                             label, e)
                ok = False
        self._sweep_publish()
        if self._sentinel.i_am_locking():
            self._sentinel.release()
        if self.state == LOCKED:
            self.state = UNLOCKED
            self._mutex.release()
            logger.info('directories unlocked after backup/transfer')
        return ok

    def break_stale_lock(self):
        """Remove a sentinel left behind by a daemon that died inside the
        guarded region. Only call this once the PID file shows no other
        daemon is running. Returns True if a lock was broken."""
        if not self._sentinel.is_locked() or self._sentinel.i_am_locking():
            return False
        logger.warning('breaking stale guard lock %s',
                       self._sentinel.lock_file)
        self._sentinel.break_lock()
        return True

    def _sweep_publish(self):
        """Force every file under publish to the published file mode,
        whatever mode it was created with."""
        mode = self.modes.publish_files
        for root, dirs, files in os.walk(self.publish):
            for name in files:
                path = os.path.join(root, name)
                try:
                    os.chmod(path, mode)
                except OSError as e:
                    logger.warning('failed to set permissions on %s: %s',
                                   path, e)

    @contextmanager
    def guarded(self):
        """Context manager for a guarded region. Raises `GuardError` if the
        guard cannot be acquired; releases on every exit path."""
        if not self.acquire():
            raise GuardError('could not lock directories')
        try:
            yield self
        finally:
            self.release()
