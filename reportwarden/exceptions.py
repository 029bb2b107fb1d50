# -*- coding: utf-8 -*-

"""Exceptions raised by the report warden."""


class ReportWardenError(Exception):
    """Base class for all report warden errors."""
    pass


class ConfigError(ReportWardenError, ValueError):
    """The configuration contained unknown keys or bad values."""
    pass


class GuardError(ReportWardenError):
    """The directory guard could not be acquired."""
    pass


class SnapshotExistsError(ReportWardenError, FileExistsError):
    """A backup snapshot directory with the same timestamp already exists.
    Two backups within the same second are not supported."""
    pass
