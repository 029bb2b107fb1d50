# -*- coding: utf-8 -*-

"""Filesystem facts: directory listings, per-file metadata, and owner
names. Everything else in the package reads the filesystem through here."""

from collections import namedtuple
from datetime import datetime
import logging
import pwd
import stat


logger = logging.getLogger(__name__)

TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
UNKNOWN_USER = 'unknown'


ReportFile = namedtuple('ReportFile', 'name path mtime uid')
ReportFile.__doc__ = """A report file as seen in a directory listing. The
`name` is the identity; `mtime` is seconds since the epoch."""


def list_reports(directory, extension):
    """Return a list of `ReportFile` for the regular files in `directory`
    whose names contain `extension`, sorted by name. Raises `OSError` if the
    directory cannot be read. Entries that vanish between listing and
    `stat` are skipped."""
    reports = []
    for path in directory.iterdir():
        if extension not in path.name:
            continue
        try:
            st = path.stat()
        except FileNotFoundError:
            continue
        if not stat.S_ISREG(st.st_mode):
            continue
        reports.append(ReportFile(path.name, path, st.st_mtime, st.st_uid))
    reports.sort(key=lambda x: x.name)
    return reports


def count_reports(directory, extension):
    """Number of report files in `directory`, or -1 if it cannot be read."""
    try:
        return len(list_reports(directory, extension))
    except OSError as e:
        logger.error('failed to open directory %s: %s', directory, e)
        return -1


def user_name(uid):
    """Login name for `uid`, or 'unknown' if there is no such user."""
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        logger.warning('failed to get username for UID %s', uid)
        return UNKNOWN_USER


def format_time(timestamp):
    """Local time string for seconds since the epoch."""
    return datetime.fromtimestamp(timestamp).strftime(TIME_FORMAT)


def ensure_directory(path, mode=0o755):
    """Create `path` if missing. Raises `NotADirectoryError` if something
    other than a directory is already there."""
    if path.exists():
        if not path.is_dir():
            raise NotADirectoryError(f'{path} exists but is not a directory')
        return False
    path.mkdir(mode=mode, parents=True)
    logger.info('created directory %s', path)
    return True
