"""
Configuration resolution package for the automation framework.
"""
from .engine import ConfigEngine, EngineState, is_sensitive, REDACTED, SENSITIVE_MARKERS
from .environment import (
    ProcessEnvironment, env_key, secret_key_from_env, parse_override_args,
    DEFAULT_ENVIRONMENT, ENVIRONMENT_OVERRIDE_KEY, OVERRIDE_PREFIXES, SECRET_ENV_PREFIX
)
from .errors import (
    ConfigError, ConfigKeyNotFoundError, ConfigParseError,
    SourceLoadWarning, VaultUnavailableError
)
from .secrets import SecretResolver
from .sources import (
    ConfigSource, RawSource, PropertySourceLoader, FilesystemPropertyLoader,
    MappingPropertyLoader, parse_properties, flatten_yaml, parse_source
)
from .vault import (
    VaultCapability, NullVault, HashiCorpVault, EncryptedFileVault, vault_from_environment
)

__all__ = [
    'ConfigEngine', 'EngineState', 'is_sensitive', 'REDACTED', 'SENSITIVE_MARKERS',
    'ProcessEnvironment', 'env_key', 'secret_key_from_env', 'parse_override_args',
    'DEFAULT_ENVIRONMENT', 'ENVIRONMENT_OVERRIDE_KEY', 'OVERRIDE_PREFIXES', 'SECRET_ENV_PREFIX',
    'ConfigError', 'ConfigKeyNotFoundError', 'ConfigParseError',
    'SourceLoadWarning', 'VaultUnavailableError',
    'SecretResolver',
    'ConfigSource', 'RawSource', 'PropertySourceLoader', 'FilesystemPropertyLoader',
    'MappingPropertyLoader', 'parse_properties', 'flatten_yaml', 'parse_source',
    'VaultCapability', 'NullVault', 'HashiCorpVault', 'EncryptedFileVault', 'vault_from_environment'
]
