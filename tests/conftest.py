"""
Pytest configuration and shared fixtures for the configuration layer test suite.
"""
import pytest
import structlog

from config_layer import ConfigEngine, FilesystemPropertyLoader, ProcessEnvironment


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep structlog configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def config_dir(tmp_path):
    """Empty directory for property sources."""
    directory = tmp_path / 'config'
    directory.mkdir()
    return directory


@pytest.fixture
def write_source(config_dir):
    """Write a property source file into the config directory."""
    def _write(filename, content):
        path = config_dir / filename
        path.write_text(content, encoding='utf-8')
        return path
    return _write


@pytest.fixture
def environ():
    """Isolated OS environment mapping."""
    return {}


@pytest.fixture
def environment(environ):
    """Process environment backed by the isolated mapping."""
    return ProcessEnvironment(environ=environ)


@pytest.fixture
def make_engine(config_dir, environment):
    """Build engines over the test config directory and environment."""
    def _make(**kwargs):
        kwargs.setdefault('loader', FilesystemPropertyLoader(config_dir))
        kwargs.setdefault('environment', environment)
        return ConfigEngine(**kwargs)
    return _make
