# -*- coding: utf-8 -*-

"""Copies report files between directories. Runs as the child process of a
transfer or backup:

    python -m reportwarden.copier SOURCE DEST [--extension .xml] [--move]

One line per file goes to stdout ('Transferred: NAME' with --move,
'Copied: NAME' without); one line per failure goes to stderr. A failure on
one file does not stop the others. Exit status is 0 if every file
succeeded, 1 if any failed or SOURCE could not be read, 2 for usage
errors."""

import argparse
from collections import namedtuple
import os
import shutil
import sys
from pathlib import Path

from .fsfacts import list_reports


PARTIAL_PREFIX = '.partial-'


CopyResult = namedtuple('CopyResult', 'name destination error')
CopyResult.__doc__ = """Outcome for one file. `destination` is None if the
copy failed; `error` is None on success."""


def main(argv=None):
    args = parse_args(argv)
    try:
        results = copy_reports(args.source, args.dest, args.extension,
                               remove_source=args.move)
    except OSError as e:
        print(f'Failed to read {args.source}: {e}', file=sys.stderr,
              flush=True)
        return 1
    verb = 'Transferred' if args.move else 'Copied'
    failed = 0
    for result in results:
        if result.error is None:
            print(f'{verb}: {result.name}', flush=True)
        else:
            failed += 1
            print(f'Failed: {result.name}: {result.error}', file=sys.stderr,
                  flush=True)
    return 1 if failed else 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.split('\n\n')[0])
    parser.add_argument('source', type=Path)
    parser.add_argument('dest', type=Path)
    parser.add_argument('--extension', default='.xml')
    parser.add_argument('--move', action='store_true',
                        help='remove each source file after it is copied')
    return parser.parse_args(argv)


def copy_reports(source_dir, dest_dir, extension, remove_source=False):
    """Copy every report in `source_dir` into `dest_dir`, returning a list of
    `CopyResult`. With `remove_source`, each source file is unlinked only
    after its copy is complete. Raises `OSError` only if `source_dir` cannot
    be listed."""
    results = []
    for report in list_reports(source_dir, extension):
        if report.name.startswith(PARTIAL_PREFIX):
            continue
        try:
            destination = copy_report(report.path, dest_dir)
        except OSError as e:
            results.append(CopyResult(report.name, None, e))
            continue
        if remove_source:
            try:
                report.path.unlink()
            except OSError as e:
                results.append(CopyResult(report.name, destination, e))
                continue
        results.append(CopyResult(report.name, destination, None))
    return results


def copy_report(source, dest_dir):
    """Copy `source` into `dest_dir` under the same name. The data is first
    written to a hidden partial file, which is renamed into place, so the
    destination never holds a truncated report."""
    destination = dest_dir / source.name
    partial = dest_dir / (PARTIAL_PREFIX + source.name)
    try:
        shutil.copy2(source, partial)
        os.replace(partial, destination)
    except OSError:
        try:
            partial.unlink()
        except OSError:
            pass
        raise
    return destination


if __name__ == '__main__':
    sys.exit(main())
