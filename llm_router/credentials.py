"""
Provider Credentials
====================

One secret per provider, looked up through a chain of backends:
1. System keyring (OS credential store)
2. Fernet-encrypted file keyed to this machine
3. Environment variables (OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY)

Keys are never logged.
"""

from __future__ import annotations

import base64
import getpass
import hashlib
import json
import logging
import os
import platform
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

import keyring
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from keyring.errors import KeyringError

from .config import CONFIG_DIR
from .models import ProviderId

logger = logging.getLogger(__name__)

SERVICE_NAME = "llm_router"
ENCRYPTED_CREDS_FILE = CONFIG_DIR / "credentials.enc"


@dataclass(frozen=True)
class APICredential:
    provider: str
    key: str = field(repr=False)

    def __repr__(self) -> str:
        return f"APICredential(provider={self.provider}, key=****)"

    __str__ = __repr__


class CredentialBackend(ABC):
    @abstractmethod
    def get(self, provider: str) -> str | None:
        pass

    @abstractmethod
    def set(self, provider: str, api_key: str) -> bool:
        pass

    @abstractmethod
    def delete(self, provider: str) -> bool:
        pass

    def list_providers(self) -> list[str]:
        return []

    @property
    @abstractmethod
    def is_available(self) -> bool:
        pass

    @property
    def is_secure(self) -> bool:
        return True


class KeyringBackend(CredentialBackend):
    """OS keychain via ``keyring``"""

    @property
    def is_available(self) -> bool:
        try:
            keyring.get_password(SERVICE_NAME, "__probe__")
        except KeyringError:
            return False
        return True

    def get(self, provider: str) -> str | None:
        try:
            return keyring.get_password(SERVICE_NAME, provider)
        except KeyringError as e:
            logger.warning(f"Keyring lookup failed for {provider}: {e}")
            return None

    def set(self, provider: str, api_key: str) -> bool:
        try:
            keyring.set_password(SERVICE_NAME, provider, api_key)
        except KeyringError as e:
            logger.error(f"Keyring store failed for {provider}: {e}")
            return False
        logger.info(f"Stored credential in keyring for: {provider}")
        return True

    def delete(self, provider: str) -> bool:
        try:
            keyring.delete_password(SERVICE_NAME, provider)
        except KeyringError:
            # Nothing stored is not an error
            return True
        return True


class EncryptedFileBackend(CredentialBackend):
    """Fernet-encrypted JSON file; key derived from a machine identifier"""

    SALT = b"llm_router_credentials_v1"

    def __init__(self, path: Path = ENCRYPTED_CREDS_FILE):
        self.path = path
        self._fernet = Fernet(self._derive_key())

    @staticmethod
    def _machine_id() -> bytes:
        parts: list[str] = []
        machine_id_file = Path("/etc/machine-id")
        if machine_id_file.exists():
            parts.append(machine_id_file.read_text(encoding="utf-8").strip())
        parts.extend([getpass.getuser(), platform.node()])
        return hashlib.sha256(":".join(parts).encode()).digest()

    def _derive_key(self) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=self.SALT,
            iterations=480000,
        )
        return base64.urlsafe_b64encode(kdf.derive(self._machine_id()))

    @property
    def is_available(self) -> bool:
        return True

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            decrypted = self._fernet.decrypt(self.path.read_bytes())
        except InvalidToken:
            logger.error(f"Credentials file {self.path} could not be decrypted")
            return {}
        return json.loads(decrypted.decode())

    def _save(self, creds: dict[str, str]) -> bool:
        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            temp_file = self.path.with_suffix(".tmp")
            temp_file.write_bytes(self._fernet.encrypt(json.dumps(creds).encode()))
            os.chmod(temp_file, 0o600)
            temp_file.replace(self.path)
        except OSError as e:
            logger.error(f"Failed to save credentials: {e}")
            return False
        return True

    def get(self, provider: str) -> str | None:
        return self._load().get(provider)

    def set(self, provider: str, api_key: str) -> bool:
        creds = self._load()
        creds[provider] = api_key
        return self._save(creds)

    def delete(self, provider: str) -> bool:
        creds = self._load()
        if provider not in creds:
            return True
        del creds[provider]
        return self._save(creds)

    def list_providers(self) -> list[str]:
        return list(self._load())


class EnvironmentBackend(CredentialBackend):
    """Environment variables. Always available, never persistent."""

    ENV_VAR_MAP = {
        ProviderId.OPENAI.value: "OPENAI_API_KEY",
        ProviderId.ANTHROPIC.value: "ANTHROPIC_API_KEY",
        ProviderId.GEMINI.value: "GEMINI_API_KEY",
    }

    @property
    def is_available(self) -> bool:
        return True

    @property
    def is_secure(self) -> bool:
        return False

    def env_var(self, provider: str) -> str:
        return self.ENV_VAR_MAP.get(provider, f"{provider.upper()}_API_KEY")

    def get(self, provider: str) -> str | None:
        return os.environ.get(self.env_var(provider)) or None

    def set(self, provider: str, api_key: str) -> bool:
        os.environ[self.env_var(provider)] = api_key
        logger.warning(f"Set API key in environment (non-persistent) for: {provider}")
        return True

    def delete(self, provider: str) -> bool:
        os.environ.pop(self.env_var(provider), None)
        return True

    def list_providers(self) -> list[str]:
        return [p for p, var in self.ENV_VAR_MAP.items() if os.environ.get(var)]


class CredentialManager:
    """Walks the backend chain in priority order and caches hits"""

    def __init__(self, backends: list[CredentialBackend] | None = None):
        if backends is None:
            backends = [KeyringBackend(), EncryptedFileBackend(), EnvironmentBackend()]
        self._backends = [b for b in backends if b.is_available]
        self._cache: dict[str, APICredential] = {}
        logger.debug(
            f"Credential backends: {[type(b).__name__ for b in self._backends]}"
        )

    def get_credential(self, provider: str) -> APICredential | None:
        provider = provider.lower()
        if provider in self._cache:
            return self._cache[provider]

        for backend in self._backends:
            api_key = backend.get(provider)
            if api_key:
                credential = APICredential(provider=provider, key=api_key)
                self._cache[provider] = credential
                logger.debug(
                    f"Retrieved credential for {provider} from {type(backend).__name__}"
                )
                return credential

        logger.debug(f"No credential found for provider: {provider}")
        return None

    def get_api_key(self, provider: str) -> str | None:
        credential = self.get_credential(provider)
        return credential.key if credential else None

    def set_credential(self, provider: str, api_key: str) -> bool:
        """Store in the first secure backend, else the environment"""
        provider = provider.lower()
        if not api_key or len(api_key) < 10:
            logger.error("Invalid API key: too short")
            return False

        self._cache.pop(provider, None)
        secure = [b for b in self._backends if b.is_secure]
        insecure = [b for b in self._backends if not b.is_secure]
        for backend in secure + insecure:
            if backend.set(provider, api_key):
                return True
        return False

    def delete_credential(self, provider: str) -> bool:
        provider = provider.lower()
        self._cache.pop(provider, None)
        results = [backend.delete(provider) for backend in self._backends]
        return all(results)

    def list_configured_providers(self) -> list[str]:
        providers: set[str] = set()
        for backend in self._backends:
            providers.update(backend.list_providers())
        return sorted(providers)

    def clear_cache(self) -> None:
        self._cache.clear()


_manager: CredentialManager | None = None


def get_credential_manager() -> CredentialManager:
    global _manager
    if _manager is None:
        _manager = CredentialManager()
    return _manager


def get_api_key(provider: str) -> str | None:
    return get_credential_manager().get_api_key(provider)


def set_api_key(provider: str, api_key: str) -> bool:
    return get_credential_manager().set_credential(provider, api_key)


def configure_credentials_interactive() -> None:
    """Prompt for each provider's API key"""
    print("\nLLM Router credential configuration\n")
    print("=" * 50)

    manager = get_credential_manager()
    labels = {
        ProviderId.OPENAI: "OpenAI (GPT-4o, GPT-4.1 mini)",
        ProviderId.ANTHROPIC: "Anthropic (Claude 3.5 Sonnet)",
        ProviderId.GEMINI: "Google (Gemini 1.5 Pro)",
    }

    for provider_id, label in labels.items():
        existing = manager.get_credential(provider_id.value)
        status = "configured" if existing else "not set"
        print(f"\n{label}: [{status}]")

        response = input(f"Configure {provider_id.value}? (y/N/clear): ").strip().lower()
        if response == "clear":
            manager.delete_credential(provider_id.value)
            print(f"  -> Cleared {provider_id.value} credentials")
        elif response == "y":
            api_key = getpass.getpass(f"  Enter API key for {provider_id.value}: ")
            if api_key and manager.set_credential(provider_id.value, api_key):
                print(f"  -> Saved {provider_id.value} credentials")
            else:
                print(f"  -> Failed to save {provider_id.value} credentials")

    print("\n" + "=" * 50)
    print(f"Configured providers: {manager.list_configured_providers()}")
