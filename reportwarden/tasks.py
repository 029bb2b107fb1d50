# -*- coding: utf-8 -*-

"""The two guarded operations. Each runs `reportwarden.copier` as a child
process inside the directory guard, logs the child's stdout line by line,
and classifies how the child exited.

Transfer: copy every report from intake into publish, removing each source
after its copy. Backup: create a timestamped snapshot directory under the
backup root, then copy every published report into it; the child's error
output is appended to the daemon log file."""

from collections import namedtuple
from datetime import datetime
import logging
import os
from pathlib import Path
import subprocess

from .exceptions import GuardError, SnapshotExistsError
from .fsfacts import count_reports


logger = logging.getLogger(__name__)

# Task statuses
SUCCEEDED = 'SUCCEEDED'
FAILED = 'FAILED'  # Child ran and exited non-zero or was killed
NOT_STARTED = 'NOT_STARTED'  # Child could not be spawned
ABORTED = 'ABORTED'  # Guard or snapshot directory unavailable

SNAPSHOT_FORMAT = '%Y%m%d_%H%M%S'
COPIER_MODULE = 'reportwarden.copier'


TaskResult = namedtuple('TaskResult', 'status returncode snapshot')
TaskResult.__new__.__defaults__ = (None, None)


def copier_env():
    """Environment for the child, with this package importable even when it
    is not installed."""
    env = dict(os.environ)
    package_root = str(Path(__file__).resolve().parent.parent)
    python_path = env.get('PYTHONPATH')
    env['PYTHONPATH'] = (package_root + os.pathsep + python_path
                         if python_path else package_root)
    return env


def run_copier(executable, arguments, stderr=None):
    """Run the copier with `arguments` and return its exit status, logging
    each stdout line at INFO as it arrives. Raises `OSError` if the child
    cannot be spawned."""
    command = [executable, '-m', COPIER_MODULE] + [str(a) for a in arguments]
    logger.debug('running %r', command)
    with subprocess.Popen(command, stdout=subprocess.PIPE, stderr=stderr,
                          env=copier_env(),
                          universal_newlines=True) as proc:
        for line in proc.stdout:
            line = line.rstrip('\n')
            if line:
                logger.info('%s', line)
        return proc.wait()


def classify(label, returncode):
    """Log and return the status for a child that exited with
    `returncode`."""
    if returncode == 0:
        logger.info('%s completed successfully', label)
        return SUCCEEDED
    if returncode < 0:
        logger.error('%s process terminated abnormally (signal %d)', label,
                     -returncode)
    else:
        logger.error('%s failed with status %d', label, returncode)
    return FAILED


class TransferTask:
    """Promotes intake reports into publish."""

    def __init__(self, settings, guard):
        self.settings = settings
        self.guard = guard

    def run(self):
        """Returns a `TaskResult`. Never raises for environment errors."""
        paths = self.settings.paths
        arguments = [paths.intake, paths.publish, '--move',
                     '--extension', self.settings.report_extension]
        try:
            with self.guard.guarded():
                try:
                    returncode = run_copier(self.settings.copier_executable,
                                            arguments,
                                            stderr=subprocess.STDOUT)
                except OSError as e:
                    logger.error('failed to start transfer: %s', e)
                    return TaskResult(NOT_STARTED)
                status = classify('transfer', returncode)
        except GuardError as e:
            logger.error('transfer aborted: %s', e)
            return TaskResult(ABORTED)
        logger.info('%d report(s) published',
                    count_reports(paths.publish,
                                  self.settings.report_extension))
        return TaskResult(status, returncode)


class BackupTask:
    """Snapshots the published reports."""

    def __init__(self, settings, guard):
        self.settings = settings
        self.guard = guard

    def create_snapshot(self, now):
        """Create and return the snapshot directory for `now`. Raises
        `SnapshotExistsError` rather than reuse a directory."""
        snapshot = self.settings.paths.backup_root / now.strftime(
            SNAPSHOT_FORMAT)
        try:
            snapshot.mkdir(mode=0o755)
        except FileExistsError:
            raise SnapshotExistsError(
                f'backup directory {snapshot} already exists') from None
        return snapshot

    def run(self, now=None):
        """Returns a `TaskResult` naming the snapshot directory. Never raises
        for environment errors."""
        if now is None:
            now = datetime.now()
        try:
            snapshot = self.create_snapshot(now)
        except OSError as e:
            logger.error('failed to create backup directory: %s', e)
            return TaskResult(ABORTED)
        arguments = [self.settings.paths.publish, snapshot,
                     '--extension', self.settings.report_extension]
        try:
            with self.guard.guarded():
                try:
                    with self.settings.paths.log_file.open('a') as errlog:
                        returncode = run_copier(
                            self.settings.copier_executable, arguments,
                            stderr=errlog)
                except OSError as e:
                    logger.error('failed to start backup: %s', e)
                    return TaskResult(NOT_STARTED, snapshot=snapshot)
                status = classify('backup', returncode)
        except GuardError as e:
            logger.error('backup aborted: %s', e)
            return TaskResult(ABORTED, snapshot=snapshot)
        if status == SUCCEEDED:
            logger.info('backup stored in %s', snapshot)
        return TaskResult(status, returncode, snapshot)
