# -*- coding: utf-8 -*-

"""Daily check that every department submitted a report. A department's
report for a day is any intake file whose name contains both the
department token and the day as YYYYMMDD, e.g. `sales_20240115.xml`."""

from datetime import date, timedelta
import logging

from .fsfacts import list_reports


logger = logging.getLogger(__name__)

DATE_KEY_FORMAT = '%Y%m%d'


class CompletenessAuditor:

    def __init__(self, settings):
        self.intake = settings.paths.intake
        self.extension = settings.report_extension
        self.departments = settings.departments

    def audit(self, day):
        """Return a dict mapping each department to whether its report for
        `day` is present, warning about each one that is missing. Returns
        None if intake cannot be read."""
        date_key = day.strftime(DATE_KEY_FORMAT)
        try:
            reports = list_reports(self.intake, self.extension)
        except OSError as e:
            logger.error('failed to open upload directory: %s', e)
            return None
        found = dict.fromkeys(self.departments, False)
        for report in reports:
            if date_key not in report.name:
                continue
            for department in self.departments:
                if department in report.name:
                    found[department] = True
        for department, present in found.items():
            if not present:
                logger.warning('Missing %s report for %s', department,
                               date_key)
        return found

    def audit_yesterday(self, today=None):
        """Audit the calendar day before `today` (default: the local
        date)."""
        if today is None:
            today = date.today()
        return self.audit(today - timedelta(days=1))
