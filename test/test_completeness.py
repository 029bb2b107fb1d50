from datetime import date
import logging

from reportwarden.completeness import CompletenessAuditor

from conftest import make_settings


def make_reports(directory, *names):
    for name in names:
        (directory / name).write_text('<report/>')


def test_missing_warehouse_present_sales(settings, caplog):
    make_reports(settings.paths.intake, 'sales_20240115.xml',
                 'warehouse_20240114.xml')
    found = CompletenessAuditor(settings).audit_yesterday(date(2024, 1, 16))
    assert found == {
        'warehouse': False,
        'manufacturing': False,
        'sales': True,
        'distribution': False,
    }
    warnings = [r.getMessage() for r in caplog.records
                if r.levelno == logging.WARNING]
    assert warnings == [
        'Missing warehouse report for 20240115',
        'Missing manufacturing report for 20240115',
        'Missing distribution report for 20240115',
    ]


def test_all_present(settings, caplog):
    make_reports(settings.paths.intake, 'warehouse_20240115.xml',
                 'manufacturing-20240115-final.xml',
                 'SALES_20240115.xml', 'sales_20240115.xml',
                 'distribution_20240115_v2.xml')
    found = CompletenessAuditor(settings).audit(date(2024, 1, 15))
    assert all(found.values())
    assert 'Missing' not in caplog.text


def test_one_file_can_satisfy_several_departments(settings):
    make_reports(settings.paths.intake,
                 'warehouse_and_distribution_20240115.xml')
    found = CompletenessAuditor(settings).audit(date(2024, 1, 15))
    assert found['warehouse'] and found['distribution']


def test_year_boundary(settings):
    make_reports(settings.paths.intake, 'sales_20231231.xml')
    found = CompletenessAuditor(settings).audit_yesterday(date(2024, 1, 1))
    assert found['sales']


def test_configured_departments(tmp_path):
    settings = make_settings(tmp_path, departments=['hr', 'finance'])
    make_reports(settings.paths.intake, 'finance_20240115.xml')
    found = CompletenessAuditor(settings).audit(date(2024, 1, 15))
    assert found == {'hr': False, 'finance': True}


def test_unreadable_intake(settings, caplog):
    settings.paths.intake.rmdir()
    assert CompletenessAuditor(settings).audit(date(2024, 1, 15)) is None
    assert 'failed to open upload directory' in caplog.text
