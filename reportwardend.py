# -*- coding: utf-8 -*-

"""Daemon control script. The report warden daemon watches the report
intake directory, and each night audits, backs up, and publishes the
reports that departments have submitted.

commands:
  start   start the daemon
  stop    stop the daemon
  status  check if the daemon is running
  backup  signal the running daemon to perform a backup and transfer now
"""


import argparse
import logging
import logging.config
import os
import signal
import sys
import syslog
import time

from daemon import DaemonContext
from lockfile.pidlockfile import PIDLockFile
import yaml

from reportwarden import DaemonRunState, Engine, Settings
from reportwarden.exceptions import ConfigError
from reportwarden.fsfacts import ensure_directory


logger = logging.getLogger('reportwardend')
run_state = DaemonRunState()  # Flipped by the signal handlers.

COMMANDS = ('start', 'stop', 'status', 'backup')
CONFIG_ENV_VAR = 'REPORTWARDEN_CONFIG'
DEFAULT_CONFIG_FILE = '/etc/reportwarden/reportwarden.yaml'
DEFAULT_PIDFILE = '/var/run/report_daemon.pid'
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
STOP_TIMEOUT = 10  # Seconds to wait for the daemon to exit on stop


class UsageError(Exception):
    pass


class ArgumentParser(argparse.ArgumentParser):
    """Exits with status 1, not 2, on bad arguments."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f'{self.prog}: error: {message}\n')


def main(argv=None):
    args = parse_args(argv)
    try:
        config = load_config_file(args.config_file)
        logging_config = config.pop('logging', None)
        daemon_config = config.pop('daemon', None) or {}
        settings = Settings(config.pop('reportwarden', None))
        if config:
            raise ConfigError(f'unknown config sections: {sorted(config)}')
        pidfile, daemon_kwds = check_daemon_options(daemon_config)
    except (UsageError, ConfigError, yaml.YAMLError) as e:
        err_output(f'error: {e}')
        return 1
    try:
        if args.daemon_command == 'start':
            return start(logging_config, pidfile, daemon_kwds, settings)
        elif args.daemon_command == 'stop':
            return stop(pidfile)
        elif args.daemon_command == 'status':
            return status(pidfile)
        else:
            return backup(pidfile)
    finally:
        logging.shutdown()


def parse_args(argv=None):
    parser = ArgumentParser(
        description=__doc__.split('\n\n')[0],
        epilog=__doc__.split('\n\n')[1],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '-c', '--config', dest='config_file', default=None,
        help=f'path to YAML file (default: ${CONFIG_ENV_VAR} or '
             f'{DEFAULT_CONFIG_FILE})')
    parser.add_argument('daemon_command', nargs='?', metavar='command')
    args = parser.parse_args(argv)
    if args.daemon_command not in COMMANDS:
        parser.error('command must be one of: ' + ', '.join(COMMANDS))
    return args


def load_config_file(config_file=None):
    """Return the parsed YAML config. With no explicit file, falls back to
    the environment variable, then the default path; a missing default
    file means an empty config."""
    if config_file is None:
        config_file = os.environ.get(CONFIG_ENV_VAR)
    if config_file is None:
        if not os.path.exists(DEFAULT_CONFIG_FILE):
            return {}
        config_file = DEFAULT_CONFIG_FILE
    try:
        with open(config_file) as fin:
            config = yaml.safe_load(fin)
    except OSError as e:
        raise UsageError(f'cannot read config file: {e}') from None
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f'{config_file} must contain a mapping')
    return config


def start(logging_config, pidfile, daemon_kwds, settings):
    syslog.openlog('reportwarden', 0, syslog.LOG_USER)
    pid = running_pid(pidfile)
    if pid is not None:
        err_output(f'Daemon already running with PID {pid}')
        return 1
    if pidfile.is_locked():
        syslog.syslog(syslog.LOG_NOTICE, 'breaking stale PID file')
        pidfile.break_lock()
    # The remaining entries in daemon_kwds will be passed as-is to
    # daemon.DaemonContext.
    context = DaemonContext(pidfile=pidfile, **daemon_kwds)
    context.signal_map = make_signal_map()
    syslog.syslog(syslog.LOG_NOTICE, 'starting daemon context')
    try:
        with context:
            pid = os.getpid()
            syslog.syslog(syslog.LOG_NOTICE, 'daemon running as: %s' % pid)
            config_logging(logging_config, settings)
            logger.debug('========================================')
            logger.info('daemon running pid=%s', pid)
            logger.debug('args: %r', sys.argv)
            logger.debug('daemon_kwds: %r', daemon_kwds)
            logger.debug('settings: %r', settings)
            engine = Engine(settings, state=run_state)
            engine.prepare()
            engine.run()
    except Exception as e:
        syslog.syslog(syslog.LOG_ERR, str(e))
        logger.exception(repr(e))
        return 1
    finally:
        syslog.syslog(syslog.LOG_NOTICE, 'exiting')
        logger.info('exiting')
    return 0


def stop(pidfile):
    """Send SIGTERM to the daemon, wait for it to exit, and make sure the
    PID file is gone."""
    pid = pidfile.read_pid()
    if pid is None:
        err_output(f'Failed to read PID from {pidfile.path}: '
                   'daemon not running?')
        return 1
    try:
        os.kill(pid, signal.SIGTERM)
    except OSError as e:
        err_output(f'Failed to terminate daemon with PID {pid}: {e}')
        return 1
    deadline = time.monotonic() + STOP_TIMEOUT
    while pid_alive(pid) and time.monotonic() < deadline:
        time.sleep(0.1)
    if os.path.exists(pidfile.path):
        pidfile.break_lock()
    print(f'Daemon with PID {pid} terminated')
    return 0


def status(pidfile):
    pid = running_pid(pidfile)
    if pid is None:
        print('Daemon is not running')
    else:
        print(f'Daemon is running (PID {pid})')
    return 0


def backup(pidfile):
    """Send SIGUSR1 to the daemon, which runs a backup and transfer on its
    next tick."""
    pid = pidfile.read_pid()
    if pid is None:
        err_output(f'Failed to read PID from {pidfile.path}: '
                   'daemon not running?')
        return 1
    try:
        os.kill(pid, signal.SIGUSR1)
    except OSError as e:
        err_output(f'Failed to send signal to daemon: {e}')
        return 1
    print('Signal sent to daemon for immediate backup and transfer')
    return 0


def running_pid(pidfile):
    """The PID recorded in `pidfile` if that process is alive, else None."""
    pid = pidfile.read_pid()
    if pid is None or not pid_alive(pid):
        return None
    return pid


def pid_alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Exists, but belongs to someone else
    return True


def check_daemon_options(daemon_config):
    """Returns the pidfile object and non-default daemon settings;
    raises `ConfigError` if there are any illegal settings."""
    check_for_illegal_daemon_options(daemon_config)
    daemon_kwds = {k: v for k, v in daemon_config.items() if v is not None}
    pidfile_path = daemon_kwds.pop('pidfile', DEFAULT_PIDFILE)
    pidfile = PIDLockFile(pidfile_path)
    return pidfile, daemon_kwds


def check_for_illegal_daemon_options(daemon_config):
    """Error out if any illegal options."""
    LEGAL_DAEMON_OPTIONS = set('''
        pidfile
        working_directory
        chroot_directory
        umask
        detach_process
        uid
        gid
        prevent_core
    '''.split())
    illegal_options = set(daemon_config) - LEGAL_DAEMON_OPTIONS
    if illegal_options:
        logger.critical('illegal daemon options in YAML config file: %r',
                        sorted(illegal_options))
        raise ConfigError(
            f'illegal daemon options: {sorted(illegal_options)}')


def make_signal_map():
    result = {
        signal.SIGTERM: trigger_shutdown,
        signal.SIGINT: trigger_shutdown,
        signal.SIGUSR1: trigger_backup,
        signal.SIGHUP: None,
        signal.SIGTTIN: None,
        signal.SIGTTOU: None,
        signal.SIGTSTP: None,
    }
    return result


def config_logging(logging_config_dict, settings):
    if logging_config_dict:
        config = dict(logging_config_dict,
                      version=1,
                      disable_existing_loggers=False)
        logging.config.dictConfig(config)
    else:
        ensure_directory(settings.paths.log_dir)
        logging.basicConfig(filename=str(settings.paths.log_file),
                            level=logging.INFO,
                            format=LOG_FORMAT,
                            datefmt=LOG_DATE_FORMAT)


def trigger_shutdown(signum, frame):
    """Clear `run_state.running`, to trigger shutdown. The loop finishes
    any transfer or backup in progress first."""
    syslog.syslog(syslog.LOG_NOTICE, 'term signal')
    run_state.stop()


def trigger_backup(signum, frame):
    """Raise the manual backup flag for the loop's next tick."""
    syslog.syslog(syslog.LOG_NOTICE, 'manual backup signal')
    run_state.request_backup()


def err_output(*args):
    """Send args to sys.stderr."""
    print(*args, file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
