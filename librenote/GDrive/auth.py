# auth.py
# Description: OAuth2 session and identity provider for Google Drive
#
# Imports
import json
import secrets
import time
import webbrowser
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import urlencode
#
# Third-Party Imports
import httpx
from loguru import logger
#
# Local Imports
from .callback_listener import OAuthCallbackListener
from ..Sync.errors import LocalIOError, NotAuthenticatedError, TransportError
from ..Utils.atomic_file_ops import atomic_write_json
from ..Utils.log_sanitizer import sanitize_dict
#
#######################################################################################################################
#
# Constants:

logger = logger.bind(module="gdrive_auth")

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_FILE_SCOPE = "https://www.googleapis.com/auth/drive.file"
DEFAULT_REDIRECT_PORT = 8234

#
#######################################################################################################################
#
# Classes:

class Session:
    """
    OAuth token state, owned explicitly rather than held in module globals.

    Loaded from `token_path` at construction, persisted on every update and
    removed on logout. The file is plain JSON (no encryption at rest).
    """

    def __init__(self, token_path: Union[str, Path, None] = None):
        self.token_path = Path(token_path).expanduser() if token_path else None
        self._tokens: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        self._tokens = {}
        if self.token_path is None or not self.token_path.exists():
            return
        try:
            with open(self.token_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if isinstance(data, dict):
                self._tokens = data
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable token file {self.token_path}: {e}")

    def save(self) -> None:
        if self.token_path is None:
            return
        try:
            atomic_write_json(self.token_path, self._tokens, mode=0o600)
        except OSError as e:
            raise LocalIOError(f"Could not persist OAuth tokens to {self.token_path}: {e}") from e

    def update(self, token_data: Dict[str, Any]) -> None:
        """Merge a token endpoint response. A missing refresh_token keeps the previous one."""
        updated = dict(self._tokens)
        updated.update({k: v for k, v in token_data.items() if v is not None})
        if 'expires_in' in token_data:
            try:
                updated['expires_at'] = time.time() + float(token_data['expires_in'])
            except (TypeError, ValueError):
                updated.pop('expires_at', None)
        self._tokens = updated
        self.save()

    def clear(self) -> None:
        self._tokens = {}
        if self.token_path is not None:
            try:
                self.token_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise LocalIOError(f"Could not remove token file {self.token_path}: {e}") from e

    @property
    def access_token(self) -> Optional[str]:
        return self._tokens.get('access_token')

    @property
    def refresh_token(self) -> Optional[str]:
        return self._tokens.get('refresh_token')

    @property
    def expires_at(self) -> Optional[float]:
        return self._tokens.get('expires_at')

    @property
    def token_type(self) -> str:
        return self._tokens.get('token_type', 'Bearer')

    @property
    def scope(self) -> Optional[str]:
        return self._tokens.get('scope')

    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def is_expired(self, leeway: float = 60.0) -> bool:
        if self.expires_at is None:
            return False
        return time.time() + leeway >= float(self.expires_at)


class IdentityProvider(ABC):
    """Supplies access credentials to the Drive client."""

    @abstractmethod
    async def authenticate(self) -> None:
        """Run the interactive sign-in flow."""

    @abstractmethod
    async def refresh_token(self) -> str:
        """Obtain a new access token. Raises NotAuthenticatedError when that is impossible."""

    @abstractmethod
    def is_authenticated(self) -> bool:
        ...

    @abstractmethod
    def logout(self) -> bool:
        ...

    @abstractmethod
    async def get_access_token(self) -> str:
        """Current access token. Raises NotAuthenticatedError when there is none."""


class GoogleOAuthProvider(IdentityProvider):
    """Installed-app OAuth2 flow against Google's endpoints."""

    def __init__(self,
                 session: Session,
                 client_id: str,
                 client_secret: str = "",
                 redirect_port: int = DEFAULT_REDIRECT_PORT,
                 scopes: Optional[List[str]] = None,
                 timeout: float = 30.0,
                 auth_timeout: float = 300.0,
                 browser_opener: Callable[[str], Any] = webbrowser.open,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.session = session
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_port = redirect_port
        self.scopes = scopes or [DRIVE_FILE_SCOPE]
        self.timeout = timeout
        self.auth_timeout = auth_timeout
        self.browser_opener = browser_opener
        self._client = http_client

    @classmethod
    def from_client_secret_file(cls, path: Union[str, Path], session: Session, **kwargs) -> "GoogleOAuthProvider":
        """Read client id/secret from a Google `client_secret.json` ("installed" or "web" block)."""
        path = Path(path).expanduser()
        client_id, client_secret = "", ""
        if path.exists():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    raw = json.load(f)
                creds = raw.get('installed') or raw.get('web') or {}
                client_id = creds.get('client_id', '')
                client_secret = creds.get('client_secret', '')
                logger.info(f"Loaded OAuth client from {path} (client id {client_id[:20]}...)")
            except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError) as e:
                logger.error(f"Failed to load {path}: {e}")
        else:
            logger.warning(f"OAuth client secret file not found at {path}")
        return cls(session, client_id, client_secret, **kwargs)

    @classmethod
    def from_config(cls, **kwargs) -> "GoogleOAuthProvider":
        from ..config import get_cli_setting, get_client_secret_path, get_token_path
        session = Session(get_token_path())
        kwargs.setdefault('redirect_port', int(get_cli_setting("gdrive", "redirect_port", DEFAULT_REDIRECT_PORT)))
        kwargs.setdefault('timeout', float(get_cli_setting("gdrive", "request_timeout", 30.0)))
        kwargs.setdefault('auth_timeout', float(get_cli_setting("gdrive", "auth_timeout", 300.0)))
        return cls.from_client_secret_file(get_client_secret_path(), session, **kwargs)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    def logout(self) -> bool:
        self.session.clear()
        logger.info("Signed out of Google Drive")
        return True

    def build_authorization_url(self, redirect_uri: str, state: Optional[str] = None) -> str:
        params = {
            'client_id': self.client_id,
            'redirect_uri': redirect_uri,
            'response_type': 'code',
            'scope': ' '.join(self.scopes),
            'access_type': 'offline',
            'prompt': 'consent',
        }
        if state:
            params['state'] = state
        return f"{AUTH_URL}?{urlencode(params)}"

    async def authenticate(self) -> None:
        if not self.client_id:
            raise NotAuthenticatedError("No Google OAuth client id configured. Add a client_secret.json first.")

        state = secrets.token_urlsafe(16)
        async with OAuthCallbackListener(port=self.redirect_port, expected_state=state) as listener:
            redirect_uri = listener.redirect_uri
            self.browser_opener(self.build_authorization_url(redirect_uri, state))
            logger.info("Waiting for Google sign-in in the browser...")
            code = await listener.wait_for_code(self.auth_timeout)

        await self._exchange_code(code, redirect_uri)
        logger.success("Google Drive authentication complete")

    async def _post_token(self, data: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = await self.client.post(TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach the Google token endpoint: {e}") from e
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if response.is_error:
            logger.warning(f"Token endpoint returned HTTP {response.status_code}: {sanitize_dict(payload)}")
        else:
            logger.debug(f"Token endpoint response: {sanitize_dict(payload)}")
        return payload

    async def _exchange_code(self, code: str, redirect_uri: str) -> None:
        payload = await self._post_token({
            'code': code,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'redirect_uri': redirect_uri,
            'grant_type': 'authorization_code',
        })
        if not payload.get('access_token'):
            raise NotAuthenticatedError(payload.get('error_description') or 'Token exchange failed')
        self.session.update(payload)

    async def refresh_token(self) -> str:
        if not self.session.refresh_token:
            raise NotAuthenticatedError("No refresh token available; sign in again")

        payload = await self._post_token({
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'refresh_token': self.session.refresh_token,
            'grant_type': 'refresh_token',
        })
        if not payload.get('access_token'):
            reason = payload.get('error_description') or payload.get('error') or 'no access token returned'
            raise NotAuthenticatedError(f"Token refresh failed: {reason}")

        self.session.update(payload)
        logger.debug("Access token refreshed")
        return self.session.access_token

    async def get_access_token(self) -> str:
        if not self.session.access_token:
            raise NotAuthenticatedError("Not authenticated with Google Drive")
        if self.session.is_expired() and self.session.refresh_token:
            return await self.refresh_token()
        return self.session.access_token

#
# End of auth.py
#######################################################################################################################
