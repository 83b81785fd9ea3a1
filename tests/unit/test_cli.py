"""
Unit tests for the autoconf command line interface.
"""
import json
import logging

import pytest
import yaml
from click.testing import CliRunner

from config_layer.cli import build_engine, cli


@pytest.fixture(autouse=True)
def isolated_process(monkeypatch):
    """Keep vault settings and logging handlers from leaking in or out."""
    for name in ('VAULT_URL', 'VAULT_ENABLED', 'SECRETS_FILE', 'SECRETS_MASTER_KEY'):
        monkeypatch.delenv(name, raising=False)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, config_dir):
    def _invoke(*args):
        return runner.invoke(cli, ['--config-dir', str(config_dir), *args])
    return _invoke


class TestBuildEngine:
    """Test cases for engine construction from options."""

    def test_env_option_sets_override(self, config_dir):
        engine = build_engine(str(config_dir), ['env=qa'], env='staging')
        assert engine.get_environment_name() == 'staging'

    def test_defines_become_overrides(self, config_dir):
        engine = build_engine(str(config_dir), ['suite.name=smoke'])
        assert engine.environment.get_override('suite.name') == 'smoke'

    def test_invalid_define(self, config_dir):
        with pytest.raises(ValueError):
            build_engine(str(config_dir), ['nonsense'])


class TestGetCommand:
    """Test cases for `autoconf get`."""

    def test_resolves_from_source(self, invoke, write_source):
        write_source('default.properties', 'suite.name=regression\n')

        result = invoke('get', 'suite.name')

        assert result.exit_code == 0
        assert result.output.strip() == 'regression'

    def test_environment_source_overlays_default(self, invoke, write_source):
        write_source('default.properties', 'suite.name=regression\n')
        write_source('qa.yaml', 'suite:\n  name: qa-regression\n')

        result = invoke('--env', 'qa', 'get', 'suite.name')

        assert result.output.strip() == 'qa-regression'

    def test_define_wins(self, invoke, write_source):
        write_source('default.properties', 'suite.name=regression\n')

        result = invoke('-D', 'suite.name=smoke', 'get', 'suite.name')

        assert result.output.strip() == 'smoke'

    def test_missing_key(self, invoke):
        result = invoke('get', 'suite.absent')

        assert result.exit_code == 1
        assert '[-] Configuration key not found: suite.absent' in result.output

    def test_missing_key_with_default(self, invoke):
        result = invoke('get', 'suite.absent', '--default', 'fallback')

        assert result.exit_code == 0
        assert result.output.strip() == 'fallback'

    def test_bad_define_is_usage_error(self, invoke):
        result = invoke('-D', 'nonsense', 'get', 'suite.name')
        assert result.exit_code == 2


class TestOtherCommands:
    """Test cases for env, dump, status and secret-check."""

    def test_env_default(self, invoke):
        result = invoke('env')
        assert result.output.strip() == 'dev'

    def test_env_from_define(self, invoke):
        result = invoke('-D', 'env=prod', 'env')
        assert result.output.strip() == 'prod'

    def test_dump_redacts_sensitive_keys(self, invoke, write_source):
        write_source('default.properties', 'suite.name=regression\nsuite.password=hunter2\n')

        result = invoke('dump')

        assert result.exit_code == 0
        assert yaml.safe_load(result.output) == {
            'suite.name': 'regression',
            'suite.password': '***REDACTED***',
        }

    def test_dump_json_include_sensitive(self, invoke, write_source):
        write_source('default.properties', 'suite.password=hunter2\n')

        result = invoke('dump', '--format', 'json', '--include-sensitive')

        assert json.loads(result.output) == {'suite.password': 'hunter2'}

    def test_status(self, invoke, write_source):
        write_source('default.properties', 'suite.name=regression\n')

        result = invoke('status')

        status = json.loads(result.output)
        assert status['initialized'] is True
        assert status['loaded_environment'] == 'dev'
        assert [source['name'] for source in status['sources']] == ['default', 'dev', 'overrides']
        assert status['sources'][1]['is_valid'] is False

    def test_secret_check_found(self, invoke, monkeypatch):
        monkeypatch.setenv('SECRET_AUTOCONF_PROBE_TOKEN', 'value-never-printed')

        result = invoke('secret-check', 'autoconf.probe.token')

        assert result.exit_code == 0
        assert '[+] Secret available: autoconf.probe.token' in result.output
        assert 'value-never-printed' not in result.output

    def test_secret_check_missing(self, invoke):
        result = invoke('secret-check', 'autoconf.absent.token')

        assert result.exit_code == 1
        assert '[-] Secret not found: autoconf.absent.token' in result.output

    def test_info_logs_kept_off_stdout_by_default(self, invoke, write_source):
        write_source('default.properties', 'suite.name=regression\n')
        result = invoke('get', 'suite.name')
        assert 'Configuration loaded' not in result.output
