# -*- coding: utf-8 -*-

"""Polls the intake directory for recently modified reports."""

import logging
import time

from .audit import ChangeEvent
from .fsfacts import format_time, list_reports, user_name


logger = logging.getLogger(__name__)


class ChangeWatcher:
    """Each poll reports every report whose modification time falls within
    the last `poll_interval` seconds. A file that keeps being modified is
    reported again on every poll."""

    def __init__(self, settings, trail):
        self.intake = settings.paths.intake
        self.extension = settings.report_extension
        self.interval = settings.poll_interval
        self.trail = trail

    def poll_once(self, now=None):
        """Return the list of `ChangeEvent`s recorded. A missing or
        unreadable intake directory is logged and yields no events."""
        if now is None:
            now = time.time()
        try:
            reports = list_reports(self.intake, self.extension)
        except OSError as e:
            logger.error('failed to open upload directory: %s', e)
            return []
        events = []
        for report in reports:
            if now - report.mtime >= self.interval:
                continue
            event = ChangeEvent(report.name, user_name(report.uid),
                                format_time(report.mtime))
            logger.info('XML file modified: %s by %s at %s', *event)
            try:
                self.trail.record(event)
            except OSError as e:
                logger.error('failed to write change log: %s', e)
            events.append(event)
        return events
