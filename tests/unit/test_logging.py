"""
Unit tests for correlation context and structured logging.
"""
import json
import logging

import pytest
from structlog.testing import capture_logs

from logging_layer import (
    ContextPrefixProcessor, CorrelationContext, CorrelationIDProcessor, FrameworkLogger,
    TimestampProcessor, configure_logging, generate_correlation_id
)


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way it was after configure_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCorrelationContext:
    """Test cases for CorrelationContext."""

    def test_generated_ids_are_short_and_unique(self):
        ids = {generate_correlation_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(len(cid) == 8 for cid in ids)

    def test_start(self):
        context = CorrelationContext.start('test_login')
        assert context.test_name == 'test_login'
        assert context.step_name is None
        assert len(context.correlation_id) == 8

    def test_with_step_returns_new_context(self):
        context = CorrelationContext('abc12345', 'test_login')
        stepped = context.with_step('open page')

        assert stepped.step_name == 'open page'
        assert stepped.correlation_id == 'abc12345'
        assert context.step_name is None

    def test_full_context(self):
        context = CorrelationContext('abc12345', 'test_login', 'submit')
        assert context.full_context() == 'Test=test_login, CorrelationId=abc12345, Step=submit'

    def test_full_context_without_names(self):
        assert CorrelationContext('abc12345').full_context() == 'Test=None, CorrelationId=abc12345, Step=None'

    def test_log_fields_skip_unset_names(self):
        assert CorrelationContext('abc12345').as_log_fields() == {'correlation_id': 'abc12345'}
        assert CorrelationContext('abc12345', 't', 's').as_log_fields() == {
            'correlation_id': 'abc12345', 'test': 't', 'step': 's'
        }


class TestFrameworkLogger:
    """Test cases for FrameworkLogger."""

    def test_untagged_events(self):
        with capture_logs() as logs:
            FrameworkLogger('tests.plain').info('hello', count=2)

        assert logs == [{'event': 'hello', 'count': 2, 'log_level': 'info'}]

    def test_context_fields_bound(self):
        context = CorrelationContext('abc12345', 'test_login')

        with capture_logs() as logs:
            FrameworkLogger('tests.tagged', context).warning('slow response')

        assert logs[0]['correlation_id'] == 'abc12345'
        assert logs[0]['test'] == 'test_login'
        assert logs[0]['log_level'] == 'warning'

    def test_with_context(self):
        log = FrameworkLogger('tests.ctx')
        context = CorrelationContext('abc12345')

        assert log.with_context(None) is log
        tagged = log.with_context(context)
        assert tagged is not log
        assert tagged.with_context(context) is tagged
        assert tagged.name == 'tests.ctx'

    def test_step_and_api_helpers(self):
        log = FrameworkLogger('tests.api')

        with capture_logs() as logs:
            log.step('Login as admin')
            log.api_call('GET', '/api/users')
            log.api_response(200, 12.5)

        assert [entry['event'] for entry in logs] == ['STEP: Login as admin', 'API CALL', 'API RESPONSE']
        assert logs[1]['method'] == 'GET'
        assert logs[1]['endpoint'] == '/api/users'
        assert logs[2]['status_code'] == 200
        assert logs[2]['response_time_ms'] == 12.5


class TestProcessors:
    """Test cases for custom structlog processors."""

    def test_correlation_defaults_filled_once_tagged(self):
        processor = CorrelationIDProcessor()

        assert processor(None, 'info', {'event': 'x'}) == {'event': 'x'}
        assert processor(None, 'info', {'event': 'x', 'correlation_id': 'abc'}) == {
            'event': 'x', 'correlation_id': 'abc', 'test': 'N/A'
        }

    def test_context_prefix(self):
        processor = ContextPrefixProcessor()
        event = processor(None, 'info', {'event': 'hello', 'test': 't1', 'correlation_id': 'abc'})

        assert event == {'event': '[t1][abc] hello'}

    def test_prefix_skipped_without_correlation(self):
        assert ContextPrefixProcessor()(None, 'info', {'event': 'hello'}) == {'event': 'hello'}

    def test_timestamp(self):
        event = TimestampProcessor()(None, 'info', {'event': 'x'})
        assert 'T' in event['timestamp']


@pytest.mark.usefixtures('restore_root_logger')
class TestConfigureLogging:
    """Test cases for configure_logging."""

    def test_json_file_output(self, tmp_path):
        log_file = tmp_path / 'logs' / 'framework.log'
        configure_logging(level='INFO', fmt='json', log_file=str(log_file))

        context = CorrelationContext('abc12345', 'test_login')
        FrameworkLogger('tests.json', context).info('Configuration loaded', keys=3)
        FrameworkLogger('tests.json').debug('filtered out')
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding='utf-8').splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record['event'] == 'Configuration loaded'
        assert record['keys'] == 3
        assert record['level'] == 'info'
        assert record['logger'] == 'tests.json'
        assert record['correlation_id'] == 'abc12345'
        assert record['test'] == 'test_login'
        assert 'timestamp' in record

    def test_console_output_prefixed(self, tmp_path):
        log_file = tmp_path / 'console.log'
        configure_logging(level='DEBUG', fmt='console', log_file=str(log_file))

        FrameworkLogger('tests.console', CorrelationContext('abc12345', 't1')).info('hello')
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert '[t1][abc12345] hello' in log_file.read_text(encoding='utf-8')

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            configure_logging(fmt='xml')
