# -*- coding: utf-8 -*-

"""Settings for the report warden. The YAML config file has a
`reportwarden` section that looks like this (all keys optional):

    reportwarden:
      paths:
        intake: /var/reports/upload
        publish: /var/reports/dashboard
        backup_root: /var/backups/reports
        log_dir: /var/log/report_daemon
      modes:
        intake_locked: 0444
        publish_locked: 0444
      report_extension: .xml
      poll_interval: 60
      nightly_time: '01:00'
      departments: [warehouse, manufacturing, sales, distribution]

Missing values are filled in from `DEFAULTS`. Paths that are derived from
`log_dir` (`log_file`, `change_log`, `lock_file`) follow `log_dir` unless
given explicitly."""

import copy
import sys
from pathlib import Path

from .exceptions import ConfigError


DEFAULTS = {
    'paths': {
        'intake': '/var/reports/upload',
        'publish': '/var/reports/dashboard',
        'backup_root': '/var/backups/reports',
        'log_dir': '/var/log/report_daemon',
        'log_file': None,  # log_dir/report_daemon.log
        'change_log': None,  # log_dir/changes.log
        'lock_file': None,  # log_dir/report_daemon(.lock)
    },
    'modes': {
        'intake_locked': 0o444,
        'publish_locked': 0o444,
        'intake_unlocked': 0o775,
        'publish_unlocked': 0o755,
        'publish_files': 0o644,
        'parent': 0o755,
        'change_log': 0o444,
    },
    'report_extension': '.xml',
    'poll_interval': 60,
    'tick_seconds': 1,
    'nightly_time': '01:00',
    'departments': ['warehouse', 'manufacturing', 'sales', 'distribution'],
    'lock_timeout': 10,
    'copier_executable': None,  # sys.executable
}

DERIVED_PATHS = {
    'log_file': 'report_daemon.log',
    'change_log': 'changes.log',
    'lock_file': 'report_daemon',
}


class DictProxy:
    """A class that links its state to an existing dict; a flyweight facade
    wrapping a dict. Any changes to the object are changes to the dict."""
    def __init__(self, mapping):
        self.__dict__ = mapping

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.__dict__)


class Settings(DictProxy):
    """Attribute access to the merged settings. `paths` and `modes` are
    themselves `DictProxy` objects, so `settings.paths.intake` is a `Path`
    and `settings.modes.parent` is an `int`."""

    def __init__(self, mapping=None):
        merged = merge_settings(DEFAULTS, mapping or {})
        merged['paths'] = DictProxy(resolve_paths(merged['paths']))
        merged['modes'] = DictProxy(
            {k: parse_mode(k, v) for k, v in merged['modes'].items()})
        merged['nightly_time'] = parse_clock(merged['nightly_time'])
        merged['poll_interval'] = float(merged['poll_interval'])
        merged['tick_seconds'] = float(merged['tick_seconds'])
        merged['lock_timeout'] = float(merged['lock_timeout'])
        merged['departments'] = [str(d) for d in merged['departments']]
        if merged['copier_executable'] is None:
            merged['copier_executable'] = sys.executable
        super().__init__(merged)

    @property
    def parent_dir(self):
        """The directory holding both intake and publish, whose traversal
        bits are widened on unlock."""
        return self.paths.intake.parent


def merge_settings(defaults, overrides, prefix=''):
    """Return a deep copy of `defaults` updated from `overrides`. Raises
    `ConfigError` for keys not present in `defaults`."""
    result = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if key not in defaults:
            raise ConfigError(f'unknown setting: {prefix}{key}')
        if isinstance(defaults[key], dict):
            if not isinstance(value, dict):
                raise ConfigError(f'{prefix}{key} must be a mapping')
            result[key] = merge_settings(defaults[key], value,
                                         prefix=f'{prefix}{key}.')
        else:
            result[key] = value
    return result


def resolve_paths(paths):
    """Convert every entry to a `Path`, deriving the log files from
    `log_dir` where they were not set."""
    result = {k: Path(v) for k, v in paths.items() if v is not None}
    for key, file_name in DERIVED_PATHS.items():
        if key not in result:
            result[key] = result['log_dir'] / file_name
    return result


def parse_mode(name, value):
    """Permission bits from an int (YAML reads 0755 as octal) or an octal
    string such as '0755' or '0o755'."""
    if isinstance(value, bool):
        raise ConfigError(f'bad mode for {name}: {value!r}')
    if isinstance(value, int):
        mode = value
    else:
        try:
            mode = int(str(value), 8)
        except ValueError:
            raise ConfigError(f'bad mode for {name}: {value!r}') from None
    if not 0 <= mode <= 0o7777:
        raise ConfigError(f'bad mode for {name}: {value!r}')
    return mode


def parse_clock(value):
    """Return (hour, minute) for a 'HH:MM' string."""
    try:
        hour, minute = (int(part) for part in str(value).split(':'))
    except ValueError:
        raise ConfigError(f'bad nightly_time: {value!r}') from None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ConfigError(f'bad nightly_time: {value!r}')
    return hour, minute
