"""
Auth Client - email/password accounts on the hosted auth service (GoTrue REST API).

Requests carry the restricted client-tier key. The service-role key is only
used by clients built with privileged=True and never by the admin login flow.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import requests

from folio.auth.session import Session
from folio.config import config
from folio.engine.repository import store_cursor
from folio.errors import AuthError, StoreError, ValidationError

logger = logging.getLogger(__name__)


class AuthClient:

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0, http=None):
        self.base_url = base_url.rstrip('/')
        self._api_key = api_key
        self.timeout = timeout
        self._http = http or requests.Session()

    def __repr__(self):
        return f"AuthClient({self.base_url!r})"

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {'apikey': self._api_key, 'Content-Type': 'application/json'}
        headers['Authorization'] = f"Bearer {access_token or self._api_key}"
        return headers

    def _request(self, method: str, path: str, access_token: Optional[str] = None, **kwargs) -> requests.Response:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            response = self._http.request(
                method, url, headers=self._headers(access_token), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Auth request {method} {path} failed: {e}")
            raise StoreError(f"Auth service unreachable: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            logger.error(f"Auth service error {response.status_code} on {method} {path}")
            raise StoreError(f"Auth service error ({response.status_code})")
        return response

    @staticmethod
    def _error_text(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        return (body.get('error_description') or body.get('msg') or body.get('message')
                or body.get('error') or f"HTTP {response.status_code}")

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Optional[str]:
        """Create an account. Returns the new user id, and stores a profile row when a name is given."""
        payload: Dict[str, Any] = {'email': email, 'password': password}
        if full_name:
            payload['data'] = {'full_name': full_name}

        response = self._request('POST', '/signup', json=payload)
        if response.status_code >= 400:
            raise ValidationError(self._error_text(response), field='email')

        body = response.json()
        user = body.get('user') or body
        user_id = user.get('id')
        logger.info(f"Registered user {user_id}")

        if user_id and full_name:
            with store_cursor('profiles') as cur:
                cur.execute("""
                    INSERT INTO profiles (id, full_name) VALUES (%s, %s)
                    ON CONFLICT (id) DO NOTHING
                """, (user_id, full_name))
        return user_id

    def sign_in(self, email: str, password: str) -> Session:
        response = self._request('POST', '/token', params={'grant_type': 'password'},
                                 json={'email': email, 'password': password})
        if response.status_code >= 400:
            logger.warning(f"Sign-in rejected for {email}")
            raise AuthError(self._error_text(response))

        body = response.json()
        user = body.get('user') or {}
        expires_at = None
        if body.get('expires_at'):
            expires_at = datetime.fromtimestamp(body['expires_at'], tz=timezone.utc)
        elif body.get('expires_in'):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=body['expires_in'])

        logger.info(f"Signed in user {user.get('id')}")
        return Session(
            access_token=body['access_token'],
            refresh_token=body.get('refresh_token'),
            user_id=user.get('id'),
            email=user.get('email', email),
            expires_at=expires_at,
        )

    def sign_out(self, access_token: str) -> None:
        response = self._request('POST', '/logout', access_token=access_token)
        if response.status_code >= 400 and response.status_code != 401:
            raise AuthError(self._error_text(response))
        logger.info("Signed out")

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """The user owning this token, or None if the token is no longer valid."""
        response = self._request('GET', '/user', access_token=access_token)
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            raise AuthError(self._error_text(response))
        return response.json()


_client: Optional[AuthClient] = None


def get_auth_client() -> Optional[AuthClient]:
    """Client-tier auth client, or None when the auth service is not configured."""
    global _client
    if not config.auth_configured:
        return None
    if _client is None:
        _client = AuthClient(config.SUPABASE_URL, config.SUPABASE_ANON_KEY, config.AUTH_TIMEOUT_SECONDS)
    return _client


def get_service_client() -> AuthClient:
    """Privileged client for server-side jobs. Never hand this to the admin UI."""
    if not (config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE_KEY):
        raise StoreError("Auth service URL or service role key is missing")
    return AuthClient(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY, config.AUTH_TIMEOUT_SECONDS)
