"""
Supabase authentication (GoTrue password grant) with a cached session.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
import pendulum
import requests
from keyring.errors import KeyringError, PasswordDeleteError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()


KEYRING_SERVICE_NAME = "salonbook"

# Refresh the session this many seconds before it actually expires
EXPIRY_MARGIN_SECONDS = 60


class SupabaseAuthenticator:
    """
    Handles signing in to Supabase and keeping the session fresh.

    1. ``sign_in`` exchanges email and password for a session
    2. The session is cached in the OS keyring (plaintext file as fallback)
    3. ``get_access_token`` returns the cached token, refreshing it with the
       refresh token when it is about to expire
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        cache_file: Path | None = None,
        timeout: float = 30,
    ):
        """
        Initialize the authenticator.

        Args:
            url: Supabase project URL
            api_key: Project anon key
            cache_file: Optional path to the session cache file
            timeout: Request timeout in seconds
        """
        self.auth_url = f"{url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.timeout = timeout

        self.cache_file = cache_file or Path.home() / ".salonbook_session.json"
        self._key_identifier = url.rstrip("/")
        self._keyring_supported = True
        self._cache_backend = "keyring"
        self._insecure_storage_warning: Optional[str] = None
        self.session = self._load_session()

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return self._cache_backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when the cache falls back to plaintext storage."""
        return self._insecure_storage_warning

    def _load_session(self) -> Optional[Dict[str, Any]]:
        """Load the cached session from keyring or disk if it exists."""
        serialized = self._load_session_from_keyring()
        if serialized is None:
            serialized = self._load_session_from_file()

        if not serialized:
            return None

        try:
            return json.loads(serialized)
        except ValueError as exc:
            logger.warning("Could not deserialize cached session: %s", exc)
            return None

    def _load_session_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None

        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_session_from_file(self) -> Optional[str]:
        if self.cache_file.exists():
            try:
                with open(self.cache_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read()
            except OSError as exc:
                logger.warning("Could not load session file %s: %s", self.cache_file, exc)
        return None

    def _save_session(self, session: Dict[str, Any]) -> None:
        """Save the session to the configured backend."""
        self.session = session
        serialized = json.dumps(session)

        if self._keyring_supported and self._save_session_to_keyring(serialized):
            return

        self._save_session_to_file(serialized)

    def _save_session_to_keyring(self, serialized: str) -> bool:
        try:
            keyring.set_password(
                KEYRING_SERVICE_NAME,
                self._key_identifier,
                serialized,
            )
            self._cache_backend = "keyring"
            return True
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_session_to_file(self, serialized: str) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save session to %s: %s", self.cache_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext cache.",
                reason,
            )
        self._keyring_supported = False
        self._cache_backend = "file"
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext cache at {self.cache_file}."
            )

    def sign_in(self, email: str, password: str) -> str:
        """
        Sign in with email and password.

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        session = self._token_request("password", {"email": email, "password": password})
        self._save_session(session)
        console.print("[bold green]✓ Signed in successfully![/bold green]")
        return session["access_token"]

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using the cache or refreshing the session.

        Args:
            force_refresh: Refresh even if the cached token is still valid

        Returns:
            Access token string

        Raises:
            AuthenticationError: If there is no session or refreshing fails
        """
        if not self.session:
            raise AuthenticationError("Not signed in. Run 'salonbook login' first.")

        if not force_refresh and not self._is_expiring(self.session):
            return self.session["access_token"]

        refresh_token = self.session.get("refresh_token")
        if not refresh_token:
            raise AuthenticationError("Session expired. Run 'salonbook login' again.")

        logger.debug("Refreshing Supabase session")
        session = self._token_request("refresh_token", {"refresh_token": refresh_token})
        self._save_session(session)
        return session["access_token"]

    def _token_request(self, grant_type: str, body: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.auth_url}/token",
                params={"grant_type": grant_type},
                headers={"apikey": self.api_key, "Content-Type": "application/json"},
                json=body,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Could not reach Supabase auth: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400 or "access_token" not in data:
            error = data.get("error_description") or data.get("msg") or f"HTTP {response.status_code}"
            raise AuthenticationError(f"Authentication failed: {error}")

        if "expires_at" not in data:
            data["expires_at"] = pendulum.now("UTC").int_timestamp + int(data.get("expires_in", 3600))

        return {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "expires_at": data["expires_at"],
        }

    @staticmethod
    def _is_expiring(session: Dict[str, Any]) -> bool:
        expires_at = session.get("expires_at")
        if expires_at is None:
            return True
        return pendulum.now("UTC").int_timestamp >= int(expires_at) - EXPIRY_MARGIN_SECONDS

    def clear_cache(self) -> None:
        """Clear the cached session (force sign-in next time)."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except PasswordDeleteError:
            logger.debug("No session stored in keyring")
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove credentials from keyring: %s", exc)
        self.session = None
        console.print("[green]Session cleared. You will need to sign in again.[/green]")
