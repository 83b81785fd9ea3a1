"""
Secret resolution for sensitive configuration keys.

Lookup order for a key: in-memory cache, then the vault capability (when
enabled), then the OS environment variable derived from the key. Values found
by the vault or the environment are cached until ``clear_cache`` is called.
"""
import threading
from typing import Any, Dict, Optional

from logging_layer import CorrelationContext, FrameworkLogger

from .environment import (
    ProcessEnvironment, SECRET_ENV_PREFIX, VAULT_ENABLED_ENV, env_key, secret_key_from_env
)
from .vault import NullVault, VaultCapability

logger = FrameworkLogger(__name__)


class SecretResolver:
    """Resolves sensitive keys through a cache-first, vault-second, environment-third chain."""

    def __init__(self, environment: Optional[ProcessEnvironment] = None,
                 vault: Optional[VaultCapability] = None,
                 vault_enabled: Optional[bool] = None,
                 prefix: str = SECRET_ENV_PREFIX):
        self.environment = environment or ProcessEnvironment()
        self.vault = vault or NullVault()
        self.prefix = prefix
        self.cache: Dict[str, str] = {}
        self.lock = threading.Lock()

        if vault_enabled is None:
            vault_enabled = (self.environment.get_env(VAULT_ENABLED_ENV) or '').lower() == 'true'
        self.vault_enabled = vault_enabled

        self._load_from_environment()

    def _load_from_environment(self):
        """Cache every ``SECRET_*`` environment variable under its dotted key."""
        prefetched = {
            secret_key_from_env(name, self.prefix): value
            for name, value in self.environment.iter_env()
            if name.startswith(self.prefix)
        }
        with self.lock:
            self.cache.update(prefetched)
        if prefetched:
            logger.debug("Prefetched secrets from environment", count=len(prefetched))

    def _cached(self, key: str) -> Optional[str]:
        # Reads take no lock; only writers hold it
        return self.cache.get(key)

    def _store(self, key: str, value: str):
        with self.lock:
            self.cache[key] = value

    def _fetch_from_vault(self, key: str, log: FrameworkLogger) -> Optional[str]:
        try:
            return self.vault.fetch(key)
        except Exception as e:
            log.warning("Vault fetch failed", key=key, vault=self.vault.name, error=str(e))
            return None

    def get_secret(self, key: str, context: Optional[CorrelationContext] = None) -> Optional[str]:
        """Get secret value by key; None when no stage knows it."""
        log = logger.with_context(context)

        cached = self._cached(key)
        if cached is not None:
            return cached

        if self.vault_enabled:
            value = self._fetch_from_vault(key, log)
            if value is not None:
                self._store(key, value)
                log.debug("Secret resolved from vault", key=key, vault=self.vault.name)
                return value

        value = self.environment.get_env(env_key(key))
        if value is not None:
            self._store(key, value)
            log.debug("Secret resolved from environment", key=key)
            return value

        return None

    def has_secret(self, key: str, context: Optional[CorrelationContext] = None) -> bool:
        return self.get_secret(key, context=context) is not None

    def clear_cache(self):
        """Clear the secrets cache. Environment variables are not rescanned."""
        with self.lock:
            self.cache.clear()
        logger.info("Secrets cache cleared")

    def get_status(self) -> Dict[str, Any]:
        """Get resolver status. Never includes secret values."""
        with self.lock:
            cached = len(self.cache)
        return {
            'vault_enabled': self.vault_enabled,
            'vault': self.vault.name,
            'cached_secrets': cached,
        }
