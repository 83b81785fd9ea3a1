"""
Vault capabilities: pluggable secret backends consulted by the SecretResolver.
"""
import base64
import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import requests
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from logging_layer import FrameworkLogger

from .environment import ProcessEnvironment
from .errors import VaultUnavailableError

logger = FrameworkLogger(__name__)

DEFAULT_SALT = b'automation-config-secrets'


class VaultCapability(ABC):
    """A secret backend. ``fetch`` returns None when the key is unknown.

    Implementations raise VaultUnavailableError when the backend cannot answer.
    """

    name = 'vault'

    @abstractmethod
    def fetch(self, key: str) -> Optional[str]:
        """Fetch the secret stored under ``key``."""


class NullVault(VaultCapability):
    """Placeholder backend used until a real integration is injected."""

    name = 'null'

    def fetch(self, key: str) -> Optional[str]:
        logger.info("Vault integration not yet implemented", key=key)
        return None


class HashiCorpVault(VaultCapability):
    """HashiCorp Vault KV v2 backend; ``db.password`` is read from ``<mount>/data/db/password``."""

    name = 'hashicorp'

    def __init__(self, url: str, token: str = None, role_id: str = None, secret_id: str = None,
                 mount: str = 'secret', field: str = 'value', timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.url = url.rstrip('/')
        self.token = None
        self.role_id = role_id
        self.secret_id = secret_id
        self.mount = mount.strip('/')
        self.field = field
        self.timeout = timeout
        self.session = session or requests.Session()
        self.lock = threading.Lock()

        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        })

        if token:
            self.set_token(token)

    def set_token(self, token: str):
        """Set Vault token."""
        self.token = token
        self.session.headers['X-Vault-Token'] = token

    def authenticate_approle(self):
        """Authenticate using AppRole method."""
        auth_data = {
            'role_id': self.role_id,
            'secret_id': self.secret_id
        }
        try:
            response = self.session.post(
                f"{self.url}/v1/auth/approle/login",
                json=auth_data,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise VaultUnavailableError(f"Vault AppRole login failed: {e}") from e

        if response.status_code != 200:
            raise VaultUnavailableError(f"Vault AppRole login failed with status {response.status_code}")

        self.set_token(response.json()['auth']['client_token'])
        logger.info("Authenticated with Vault using AppRole")

    def _can_reauthenticate(self) -> bool:
        return bool(self.role_id and self.secret_id)

    def _ensure_token(self):
        with self.lock:
            if self.token:
                return
            if not self._can_reauthenticate():
                raise VaultUnavailableError("No Vault token and no AppRole credentials available")
            self.authenticate_approle()

    @staticmethod
    def secret_path(key: str) -> str:
        return key.replace('.', '/')

    def _read(self, key: str) -> requests.Response:
        url = f"{self.url}/v1/{self.mount}/data/{self.secret_path(key)}"
        try:
            return self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise VaultUnavailableError(f"Vault request failed for {key}: {e}") from e

    def fetch(self, key: str) -> Optional[str]:
        self._ensure_token()
        response = self._read(key)

        # Expired token: log in again once
        if response.status_code == 403 and self._can_reauthenticate():
            with self.lock:
                self.authenticate_approle()
            response = self._read(key)

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise VaultUnavailableError(f"Vault returned status {response.status_code} for {key}")

        data = response.json().get('data', {}).get('data', {})
        value = data.get(self.field)
        return None if value is None else str(value)


def _get_cipher(master_key: str, salt: bytes) -> Fernet:
    """Get Fernet cipher from master key."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(master_key.encode()))
    return Fernet(key)


class EncryptedFileVault(VaultCapability):
    """Local Fernet-encrypted JSON secrets file, read once on first fetch."""

    name = 'encrypted-file'

    def __init__(self, path: Union[str, Path], master_key: str, salt: bytes = DEFAULT_SALT):
        self.path = Path(path)
        self.cipher = _get_cipher(master_key, salt)
        self._secrets: Optional[Dict[str, str]] = None
        self.lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        with self.lock:
            if self._secrets is not None:
                return self._secrets

            try:
                decrypted = self.cipher.decrypt(self.path.read_bytes())
                data = json.loads(decrypted.decode('utf-8'))
            except InvalidToken as e:
                raise VaultUnavailableError(f"Secrets file could not be decrypted: {self.path}") from e
            except (OSError, ValueError) as e:
                raise VaultUnavailableError(f"Secrets file could not be read: {e}") from e

            self._secrets = {str(k): str(v) for k, v in data.get('secrets', {}).items()}
            logger.info("Loaded secrets from encrypted file", path=str(self.path), count=len(self._secrets))
            return self._secrets

    def fetch(self, key: str) -> Optional[str]:
        return self._load().get(key)

    @classmethod
    def seal(cls, path: Union[str, Path], master_key: str, secrets: Mapping[str, str],
             salt: bytes = DEFAULT_SALT) -> Path:
        """Write ``secrets`` to an encrypted file readable by this backend."""
        path = Path(path)
        payload = json.dumps({'secrets': dict(secrets)}).encode('utf-8')
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_get_cipher(master_key, salt).encrypt(payload))
        return path


def vault_from_environment(environment: ProcessEnvironment) -> VaultCapability:
    """Pick a vault backend from ``VAULT_*`` / ``SECRETS_*`` environment variables."""
    vault_url = environment.get_env('VAULT_URL')
    if vault_url:
        return HashiCorpVault(
            vault_url,
            token=environment.get_env('VAULT_TOKEN'),
            role_id=environment.get_env('VAULT_ROLE_ID'),
            secret_id=environment.get_env('VAULT_SECRET_ID'),
            mount=environment.get_env('VAULT_MOUNT') or 'secret',
        )

    secrets_file = environment.get_env('SECRETS_FILE')
    master_key = environment.get_env('SECRETS_MASTER_KEY')
    if secrets_file and master_key:
        return EncryptedFileVault(secrets_file, master_key)

    return NullVault()
