import os
import signal
import subprocess
import sys

import pytest

from reportwarden.settings import Settings


def make_settings(tmp_path, **overrides):
    """Settings rooted in tmp_path, with the directory layout created. The
    locked modes stay writable by the owner so that transfers work without
    root."""
    reports = tmp_path / 'reports'
    intake = reports / 'upload'
    publish = reports / 'dashboard'
    backup_root = tmp_path / 'backups'
    log_dir = tmp_path / 'log'
    for directory in (intake, publish, backup_root, log_dir):
        directory.mkdir(parents=True)
    mapping = {
        'paths': {
            'intake': str(intake),
            'publish': str(publish),
            'backup_root': str(backup_root),
            'log_dir': str(log_dir),
        },
        'modes': {
            'intake_locked': 0o755,
            'publish_locked': 0o755,
        },
        'lock_timeout': 0.5,
    }
    for key, value in overrides.items():
        if isinstance(value, dict):
            mapping.setdefault(key, {}).update(value)
        else:
            mapping[key] = value
    return Settings(mapping)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


KILLED_HOLDER = '''
import os, signal, sys
from lockfile import LockFile
LockFile(sys.argv[1]).acquire()
os.kill(os.getpid(), signal.SIGKILL)
'''


def leave_stale_sentinel(settings):
    """Run a child that takes the guard sentinel and is killed while
    holding it."""
    proc = subprocess.run(
        [sys.executable, '-c', KILLED_HOLDER, str(settings.paths.lock_file)])
    assert proc.returncode == -signal.SIGKILL
    assert os.path.exists(f'{settings.paths.lock_file}.lock')
