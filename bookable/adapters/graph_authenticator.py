"""
Microsoft Graph API authentication using MSAL (Device Code Flow).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

import keyring
import msal
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "bookable"

DEFAULT_CACHE_FILE = Path.home() / ".bookable_token_cache.json"


class TokenCacheStore:
    """
    Persists the serialized MSAL token cache.

    The OS keyring is preferred; when its backend fails the cache falls back
    to a file readable only by the current user.
    """

    def __init__(self, key: str, cache_file: Path = DEFAULT_CACHE_FILE):
        self.key = key
        self.cache_file = cache_file
        self.backend = "keyring"
        self.insecure_storage_warning: Optional[str] = None

    def load(self) -> Optional[str]:
        if self.backend == "keyring":
            try:
                serialized = keyring.get_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._fall_back(f"reading credentials failed: {exc}")
            else:
                if serialized is not None:
                    return serialized

        if not self.cache_file.exists():
            return None
        try:
            return self.cache_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not load token cache file %s: %s", self.cache_file, exc)
            return None

    def save(self, serialized: str) -> None:
        if self.backend == "keyring":
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self.key, serialized)
                return
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._fall_back(f"writing credentials failed: {exc}")

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def clear(self) -> None:
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.key)
        except PasswordDeleteError:
            pass  # nothing stored
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove credentials from keyring: %s", exc)

    def _fall_back(self, reason: str) -> None:
        logger.warning(
            "Secure credential storage unavailable (%s). Falling back to plaintext cache.",
            reason,
        )
        self.backend = "file"
        if self.insecure_storage_warning is None:
            self.insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext cache at {self.cache_file}."
            )


class GraphAuthenticator:
    """
    Handles authentication with Microsoft Graph API using Device Code Flow.

    The device code prompt is handed to ``prompt`` (the CLI prints it), so
    this class never writes to the terminal itself.
    """

    # Read access to the owner's and shared calendars
    SCOPES = ["Calendars.Read", "Calendars.Read.Shared"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_store: TokenCacheStore | None = None,
        prompt: Callable[[str], None] | None = None,
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            authority_url: Optional custom authority URL
            cache_store: Optional token cache persistence
            prompt: Callback receiving the device-code instructions
        """
        if not client_id or not tenant_id:
            raise AuthenticationError("client_id and tenant_id must be configured")

        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self.cache_store = cache_store or TokenCacheStore(key=f"{client_id}:{tenant_id}")
        self.prompt = prompt or (lambda message: logger.info("%s", message))

        self.cache = msal.SerializableTokenCache()
        serialized = self.cache_store.load()
        if serialized:
            try:
                self.cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)

        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache,
        )

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return self.cache_store.backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        return self.cache_store.insecure_storage_warning

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using cache or requesting new one.

        Raises:
            AuthenticationError: If authentication fails
        """
        if not force_refresh:
            token = self._acquire_silently()
            if token:
                return token

        return self._authenticate_device_code_flow()

    def _acquire_silently(self) -> Optional[str]:
        accounts: List[dict] = self.app.get_accounts()
        if not accounts:
            return None

        result = self.app.acquire_token_silent(scopes=self.SCOPES, account=accounts[0])
        if result and "access_token" in result:
            self._persist()
            return result["access_token"]

        logger.debug("Silent token acquisition failed; device code flow required")
        return None

    def _authenticate_device_code_flow(self) -> str:
        try:
            flow = self.app.initiate_device_flow(scopes=self.SCOPES)
        except Exception as exc:  # pragma: no cover - MSAL internal failure
            raise AuthenticationError(f"Failed to initiate device flow: {exc}") from exc

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', 'Unknown error')}"
            )

        self.prompt(flow["message"])

        result = self.app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            error = result.get("error_description", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        self._persist()
        return result["access_token"]

    def _persist(self) -> None:
        if self.cache.has_state_changed:
            self.cache_store.save(self.cache.serialize())

    def clear_cache(self) -> None:
        """Clear the token cache (force re-authentication next time)."""
        self.cache_store.clear()
        self.cache = msal.SerializableTokenCache()
        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache,
        )
