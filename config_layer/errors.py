"""
Error taxonomy for the configuration layer.
"""


class ConfigError(Exception):
    """Base class for configuration layer errors."""


class ConfigKeyNotFoundError(ConfigError, LookupError):
    """Raised when no precedence stage yields a non-empty value."""

    def __init__(self, key: str):
        super().__init__(f"Configuration key not found: {key}")
        self.key = key


class ConfigParseError(ConfigError, ValueError):
    """Raised when a resolved value cannot be converted to the requested type."""

    def __init__(self, key: str, value: str, expected: str):
        super().__init__(f"Configuration key {key!r} is not a valid {expected}: {value!r}")
        self.key = key
        self.value = value
        self.expected = expected


class SourceLoadWarning(ConfigError):
    """Raised by a source loader when a property source exists but cannot be read."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Failed to load config source {source}: {reason}")
        self.source = source
        self.reason = reason


class VaultUnavailableError(ConfigError):
    """Raised by a vault capability when the backend cannot answer."""
