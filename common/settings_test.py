"""Unit tests for common/settings.py."""

import importlib
import os
import unittest

import common.settings


class TestSettings(unittest.TestCase):
    """Tests for shared application settings."""

    def _reload_with(self, name: str, value: str | None) -> None:
        """Reload settings with one environment variable set or removed."""
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value
        importlib.reload(common.settings)

    def _restore(self, name: str, backup: str | None) -> None:
        if backup is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = backup
        importlib.reload(common.settings)

    def test_database_url_defaults_to_data_dir(self) -> None:
        """DATABASE_URL points at location_groups.db inside DATA_DIR."""
        url_backup = os.environ.pop('DATABASE_URL', None)
        dir_backup = os.environ.get('DATA_DIR')
        try:
            self._reload_with('DATA_DIR', '/tmp/groups-data')
            self.assertEqual(
                common.settings.DATABASE_URL,
                'sqlite:////tmp/groups-data/location_groups.db',
            )
        finally:
            if url_backup is not None:
                os.environ['DATABASE_URL'] = url_backup
            self._restore('DATA_DIR', dir_backup)

    def test_is_production_reads_environment(self) -> None:
        """IS_PRODUCTION is True only when ENVIRONMENT is production."""
        backup = os.environ.get('ENVIRONMENT')
        try:
            self._reload_with('ENVIRONMENT', 'production')
            self.assertTrue(common.settings.IS_PRODUCTION)
            self._reload_with('ENVIRONMENT', 'development')
            self.assertFalse(common.settings.IS_PRODUCTION)
        finally:
            self._restore('ENVIRONMENT', backup)

    def test_allowed_origins_split_on_commas(self) -> None:
        """ALLOWED_ORIGINS is a trimmed list split on commas."""
        backup = os.environ.get('ALLOWED_ORIGINS')
        try:
            self._reload_with(
                'ALLOWED_ORIGINS', 'https://a.example.com, https://b.example.com,'
            )
            self.assertEqual(
                common.settings.ALLOWED_ORIGINS,
                ['https://a.example.com', 'https://b.example.com'],
            )
        finally:
            self._restore('ALLOWED_ORIGINS', backup)

    def test_bulk_delay_defaults_to_half_second(self) -> None:
        """BULK_IMPORT_DELAY_SECONDS defaults to 0.5."""
        backup = os.environ.get('BULK_IMPORT_DELAY_SECONDS')
        try:
            self._reload_with('BULK_IMPORT_DELAY_SECONDS', None)
            self.assertEqual(common.settings.BULK_IMPORT_DELAY_SECONDS, 0.5)
        finally:
            self._restore('BULK_IMPORT_DELAY_SECONDS', backup)

    def test_job_retention_read_from_environment(self) -> None:
        """BULK_JOB_RETENTION_SECONDS defaults to an hour and can be overridden."""
        backup = os.environ.get('BULK_JOB_RETENTION_SECONDS')
        try:
            self._reload_with('BULK_JOB_RETENTION_SECONDS', None)
            self.assertEqual(common.settings.BULK_JOB_RETENTION_SECONDS, 3600)
            self._reload_with('BULK_JOB_RETENTION_SECONDS', '120')
            self.assertEqual(common.settings.BULK_JOB_RETENTION_SECONDS, 120)
        finally:
            self._restore('BULK_JOB_RETENTION_SECONDS', backup)

    def test_log_level_is_upper_cased(self) -> None:
        """LOG_LEVEL is normalised to upper case."""
        backup = os.environ.get('LOG_LEVEL')
        try:
            self._reload_with('LOG_LEVEL', 'debug')
            self.assertEqual(common.settings.LOG_LEVEL, 'DEBUG')
        finally:
            self._restore('LOG_LEVEL', backup)


if __name__ == '__main__':
    unittest.main()
