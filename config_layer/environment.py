"""
Environment accessor: process-level overrides and OS environment variables.
"""
import os
import threading
from typing import Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple

ENVIRONMENT_OVERRIDE_KEY = 'env'
DEFAULT_ENVIRONMENT = 'dev'
OVERRIDE_PREFIXES = ('app.', 'db.', 'api.')
SECRET_ENV_PREFIX = 'SECRET_'
VAULT_ENABLED_ENV = 'VAULT_ENABLED'


def env_key(key: str) -> str:
    """Transform a dotted config key into its environment variable name."""
    return key.replace('.', '_').upper()


def secret_key_from_env(name: str, prefix: str = SECRET_ENV_PREFIX) -> str:
    """Transform a prefixed environment variable name into a dotted secret key."""
    if name.startswith(prefix):
        name = name[len(prefix):]
    return name.lower().replace('_', '.')


def parse_override_args(args: Iterable[str]) -> Dict[str, str]:
    """Parse ``key=value`` pairs as given on a command line."""
    overrides = {}
    for arg in args:
        if '=' not in arg:
            raise ValueError(f"Override must be in key=value form: {arg!r}")
        key, value = arg.split('=', 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Override has an empty key: {arg!r}")
        overrides[key] = value
    return overrides


class ProcessEnvironment:
    """Process-level overrides plus a live view of the OS environment."""

    def __init__(self, overrides: Optional[Mapping[str, str]] = None,
                 environ: Optional[MutableMapping[str, str]] = None):
        self._overrides: Dict[str, str] = dict(overrides or {})
        self._environ = environ if environ is not None else os.environ
        self.lock = threading.Lock()

    # Process-level overrides

    def get_override(self, key: str) -> Optional[str]:
        # Reads take no lock; only writers and snapshots hold it
        return self._overrides.get(key)

    def set_override(self, key: str, value: str):
        with self.lock:
            self._overrides[key] = value

    def clear_override(self, key: str):
        with self.lock:
            self._overrides.pop(key, None)

    def iter_overrides(self) -> List[Tuple[str, str]]:
        """Snapshot of all override pairs."""
        with self.lock:
            return list(self._overrides.items())

    # OS environment

    def get_env(self, name: str) -> Optional[str]:
        return self._environ.get(name)

    def iter_env(self) -> List[Tuple[str, str]]:
        """Snapshot of all environment variable pairs."""
        return list(self._environ.items())

    def get_environment_name(self) -> str:
        return self.get_override(ENVIRONMENT_OVERRIDE_KEY) or DEFAULT_ENVIRONMENT
