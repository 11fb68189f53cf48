"""
Tests for the LOGGING configuration and the request context log filter.
"""
import logging
import os
import subprocess
import sys

import pytest
from django.conf import settings

from apps.core.logging import (
    RequestContextLogFilter,
    clear_request_context,
    get_current_request_id,
    set_request_context,
)


def _run_setup(**extra_env):
    env = {**os.environ, 'DJANGO_SETTINGS_MODULE': 'config.settings', **extra_env}
    return subprocess.run(
        [sys.executable, '-c', 'import django; django.setup(); print("ready")'],
        cwd=settings.BASE_DIR,
        env=env,
        capture_output=True,
        text=True,
        timeout=120,
    )


class TestDjangoStartup:
    """The real settings must configure logging before any app is loaded."""

    def test_setup_with_real_logging_config(self):
        result = _run_setup()

        assert result.returncode == 0, result.stderr
        assert 'ready' in result.stdout

    def test_setup_with_json_logs(self):
        result = _run_setup(JSON_LOGS='true')

        assert result.returncode == 0, result.stderr

    def test_log_filters_are_importable_without_models(self):
        for name, config in settings.LOGGING['filters'].items():
            assert not config['()'].startswith('apps.tenants'), name


class TestRequestContextLogFilter:

    @pytest.fixture(autouse=True)
    def _clean_context(self):
        clear_request_context()
        yield
        clear_request_context()

    def _record(self, **extra):
        record = logging.LogRecord('test', logging.INFO, __file__, 1, 'hello', None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_copies_current_ids(self):
        set_request_context(request_id='req-1')
        set_request_context(store_id='store-9')

        record = self._record()
        assert RequestContextLogFilter().filter(record) is True
        assert record.request_id == 'req-1'
        assert record.store_id == 'store-9'

    def test_explicit_extra_wins(self):
        set_request_context(request_id='req-1')

        record = self._record(request_id='task-7')
        RequestContextLogFilter().filter(record)

        assert record.request_id == 'task-7'

    def test_clear_resets_ids(self):
        set_request_context(request_id='req-1', store_id='s')
        clear_request_context()

        assert get_current_request_id() is None
        record = self._record()
        RequestContextLogFilter().filter(record)
        assert record.store_id is None
