"""
Layered configuration engine.

Sources are merged into a single property table at initialization
(defaults, then the environment-specific source, then process overrides under
the recognised namespaces). Every lookup then walks a fixed precedence chain:

    1. process-level override
    2. OS environment variable (``db.url`` -> ``DB_URL``)
    3. SecretResolver, for sensitive keys only
    4. merged property table

The first stage yielding a non-empty string wins. The merged table is built in
a scratch dict and published as an immutable EngineState with one attribute
assignment, so readers never see a half-merged table.
"""
import json
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import yaml

from logging_layer import CorrelationContext, FrameworkLogger

from .environment import OVERRIDE_PREFIXES, ProcessEnvironment, env_key
from .errors import ConfigKeyNotFoundError, ConfigParseError
from .secrets import SecretResolver
from .sources import ConfigSource, FilesystemPropertyLoader, PropertySourceLoader, parse_source
from .vault import VaultCapability

logger = FrameworkLogger(__name__)

SENSITIVE_MARKERS = ('password', 'token', 'secret', 'apikey', 'credential')
REDACTED = '***REDACTED***'
DEFAULT_SOURCE = 'default'

_MISSING = object()
_INT_PATTERN = re.compile(r'[+-]?[0-9]+')
_TRUE_VALUES = frozenset(('true', 'yes', 'on', '1'))
_FALSE_VALUES = frozenset(('false', 'no', 'off', '0'))


def is_sensitive(key: str) -> bool:
    """Check if key represents sensitive data."""
    lower_key = key.lower()
    return any(marker in lower_key for marker in SENSITIVE_MARKERS)


def _parse_int(key: str, value: str) -> int:
    if not _INT_PATTERN.fullmatch(value):
        raise ConfigParseError(key, value, 'int')
    return int(value)


def _parse_float(key: str, value: str) -> float:
    try:
        return float(value.strip())
    except ValueError as e:
        raise ConfigParseError(key, value, 'float') from e


def _parse_bool(key: str, value: str) -> bool:
    text = value.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigParseError(key, value, 'bool')


@dataclass(frozen=True)
class EngineState:
    """A fully loaded, immutable snapshot of the merged configuration."""
    environment: str
    properties: Mapping[str, str]
    sources: Tuple[ConfigSource, ...]
    loaded_at: datetime
    generation: int


class ConfigEngine:
    """Single source of truth for resolved configuration values."""

    def __init__(self, loader: Optional[PropertySourceLoader] = None,
                 environment: Optional[ProcessEnvironment] = None,
                 secret_resolver: Optional[SecretResolver] = None,
                 vault: Optional[VaultCapability] = None):
        self.loader = loader or FilesystemPropertyLoader()
        self.environment = environment or ProcessEnvironment()
        self.secret_resolver = secret_resolver or SecretResolver(self.environment, vault=vault)
        self.reload_callbacks: List[Callable[[EngineState], Any]] = []
        self.lock = threading.Lock()
        self.callback_lock = threading.RLock()
        self._state: Optional[EngineState] = None
        self._generation = 0

    @property
    def state(self) -> Optional[EngineState]:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    # Lifecycle

    def initialize(self, context: Optional[CorrelationContext] = None) -> EngineState:
        """Load and merge sources once; later calls return the published state."""
        state = self._state
        if state is not None:
            return state

        with self.lock:
            if self._state is None:
                self._state = self._build_state(logger.with_context(context))
            return self._state

    def reload(self, context: Optional[CorrelationContext] = None) -> EngineState:
        """Rebuild the merged table from scratch and publish it atomically.

        The secret cache is not touched; it belongs to the SecretResolver.
        Callbacks see states in publish order; a state superseded before its
        callbacks ran is skipped.
        """
        log = logger.with_context(context)
        log.info("Reloading configuration")
        with self.lock:
            state = self._build_state(log)
            self._state = state

        self._notify_reload(state, log)
        return state

    def _notify_reload(self, state: EngineState, log: FrameworkLogger):
        """Run reload callbacks for ``state`` unless a newer state was published meanwhile."""
        with self.callback_lock:
            if state is not self._state:
                log.debug("Skipping reload callbacks for superseded state", generation=state.generation)
                return
            for callback in list(self.reload_callbacks):
                try:
                    callback(state)
                except Exception as e:
                    log.error("Configuration reload callback failed", callback=repr(callback), error=str(e))

    def dispose(self):
        """Drop the merged table and the secret cache; the next lookup initializes again."""
        with self.lock:
            self._state = None
        self.secret_resolver.clear_cache()
        logger.info("Configuration engine disposed")

    def add_reload_callback(self, callback: Callable[[EngineState], Any]):
        """Add callback to be called with the new state after each reload."""
        self.reload_callbacks.append(callback)

    def _load_source(self, name: str, priority: int, log: FrameworkLogger) -> ConfigSource:
        source = ConfigSource(name=name, priority=priority)
        try:
            raw = self.loader.open(name)
            if raw is None:
                source.is_valid = False
                source.error_message = 'not found'
                log.info("Config file not found (skipping)", source=name, location=self.loader.describe())
                return source

            source.path = raw.path
            source.last_modified = raw.last_modified
            source.data = parse_source(raw)
            log.info("Config file loaded", source=name, path=raw.path, keys=len(source.data))
        except Exception as e:
            source.is_valid = False
            source.error_message = str(e)
            source.data = {}
            log.warning("Failed to load config", source=name, error=str(e))
        return source

    def _build_state(self, log: FrameworkLogger) -> EngineState:
        environment = self.environment.get_environment_name()
        table: Dict[str, str] = {}
        sources = []

        for priority, name in enumerate((DEFAULT_SOURCE, environment)):
            source = self._load_source(name, priority * 100, log)
            sources.append(source)
            table.update(source.data)

        promoted = {
            key: value
            for key, value in self.environment.iter_overrides()
            if key.startswith(OVERRIDE_PREFIXES)
        }
        table.update(promoted)
        sources.append(ConfigSource(name='overrides', priority=200, data=promoted))

        self._generation += 1
        log.info("Configuration loaded for environment", environment=environment,
                 keys=len(table), generation=self._generation)
        return EngineState(
            environment=environment,
            properties=MappingProxyType(table),
            sources=tuple(sources),
            loaded_at=datetime.now(),
            generation=self._generation,
        )

    # Lookups

    def is_sensitive(self, key: str) -> bool:
        return is_sensitive(key)

    def _resolve(self, key: str, context: Optional[CorrelationContext]) -> Optional[str]:
        state = self.initialize(context)

        value = self.environment.get_override(key)
        if value:
            return value

        value = self.environment.get_env(env_key(key))
        if value:
            return value

        if is_sensitive(key):
            value = self.secret_resolver.get_secret(key, context=context)
            if value:
                return value

        value = state.properties.get(key)
        if value:
            return value
        return None

    def get(self, key: str, default: Any = _MISSING,
            context: Optional[CorrelationContext] = None) -> Any:
        """Get configuration value with priority resolution.

        Raises ConfigKeyNotFoundError when no stage yields a non-empty value
        and no default is given.
        """
        value = self._resolve(key, context)
        if value is not None:
            return value
        if default is not _MISSING:
            return default
        logger.with_context(context).debug("Configuration key not found", key=key)
        raise ConfigKeyNotFoundError(key)

    def _get_typed(self, key, default, context, parser):
        try:
            return parser(key, self.get(key, context=context))
        except (ConfigKeyNotFoundError, ConfigParseError):
            if default is _MISSING:
                raise
            return default

    def get_int(self, key: str, default: Any = _MISSING,
                context: Optional[CorrelationContext] = None) -> int:
        return self._get_typed(key, default, context, _parse_int)

    def get_float(self, key: str, default: Any = _MISSING,
                  context: Optional[CorrelationContext] = None) -> float:
        return self._get_typed(key, default, context, _parse_float)

    def get_bool(self, key: str, default: Any = _MISSING,
                 context: Optional[CorrelationContext] = None) -> bool:
        return self._get_typed(key, default, context, _parse_bool)

    def get_environment_name(self) -> str:
        """Active environment name, re-read from the override on every call.

        This can differ from ``state.environment`` when the override changed
        after initialization without a reload; ``get_status`` reports it as
        ``environment_drift``.
        """
        return self.environment.get_environment_name()

    # Introspection

    def get_status(self) -> Dict[str, Any]:
        """Get configuration engine status."""
        state = self._state
        active = self.get_environment_name()
        status = {
            'initialized': state is not None,
            'active_environment': active,
            'loaded_environment': state.environment if state else None,
            'environment_drift': state is not None and state.environment != active,
            'generation': state.generation if state else 0,
            'loaded_at': state.loaded_at.isoformat() if state else None,
            'keys_count': len(state.properties) if state else 0,
            'sources': [],
            'secrets': self.secret_resolver.get_status(),
            'reload_callbacks': len(self.reload_callbacks),
        }
        if state is not None:
            status['sources'] = [
                {
                    'name': source.name,
                    'path': source.path,
                    'priority': source.priority,
                    'is_valid': source.is_valid,
                    'error_message': source.error_message,
                    'last_modified': source.last_modified.isoformat() if source.last_modified else None,
                    'keys_count': len(source.data)
                }
                for source in state.sources
            ]
        return status

    def export_config(self, format: str = 'yaml', include_sensitive: bool = False) -> str:
        """Export the merged property table, redacting sensitive keys by default."""
        state = self.initialize()
        table = {
            key: (value if include_sensitive or not is_sensitive(key) else REDACTED)
            for key, value in sorted(state.properties.items())
        }

        if format.lower() == 'yaml':
            return yaml.safe_dump(table, default_flow_style=False, indent=2)
        elif format.lower() == 'json':
            return json.dumps(table, indent=2)
        else:
            raise ValueError(f"Unsupported export format: {format}")
