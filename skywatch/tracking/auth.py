"""
SkyWatch Upstream Credentials
Optional OAuth2 client-credentials tokens for the OpenSky REST endpoints.

Anonymous access works but is rate limited harder, so the collector and the
route resolver share one token holder when credentials are configured.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import requests

from .constants import DEFAULT_API_TIMEOUT, OPENSKY_TOKEN_URL, TOKEN_EXPIRY_BUFFER_SECONDS
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class OpenSkyAuth:
    """
    Bearer token holder for the OpenSky API.

    No token is fetched until the first request needs one; it is then reused
    until TOKEN_EXPIRY_BUFFER_SECONDS before the server says it expires.
    """

    TOKEN_URL = OPENSKY_TOKEN_URL

    def __init__(self, credentials_path: Optional[str] = None,
                 client_id: Optional[str] = None,
                 client_secret: Optional[str] = None):
        """
        Args:
            credentials_path: API client file downloaded from the OpenSky account page
            client_id: Client id, used when no file is given
            client_secret: Client secret, used when no file is given

        Raises:
            ValueError: If neither a file nor a full id/secret pair is given,
                or the file content is unusable
            FileNotFoundError: If credentials_path does not exist
        """
        self.client_id: Optional[str] = None
        self.client_secret: Optional[str] = None
        self.access_token: Optional[str] = None
        self.token_expires_at: Optional[datetime] = None
        self.token_type = "Bearer"

        if credentials_path:
            self._read_client_file(credentials_path)
        elif client_id and client_secret:
            self.client_id = client_id
            self.client_secret = client_secret
        else:
            raise ValueError(
                "Either credentials_path or both client_id and client_secret are required"
            )

    def _read_client_file(self, credentials_path: str) -> None:
        # {"clientId": "...", "clientSecret": "..."}
        try:
            with open(credentials_path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Credentials file not found: {credentials_path}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {credentials_path}: {e}")

        if not isinstance(payload, dict):
            payload = {}
        self.client_id = payload.get('clientId')
        self.client_secret = payload.get('clientSecret')

        if not self.client_id or not self.client_secret:
            raise ValueError(
                f"{credentials_path} must contain 'clientId' and 'clientSecret'"
            )

        logger.info("Using OpenSky API client %s", self.client_id)

    def _request_token(self) -> Dict[str, Any]:
        form = {
            'grant_type': 'client_credentials',
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }

        try:
            response = requests.post(self.TOKEN_URL, data=form, timeout=DEFAULT_API_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Failed to obtain access token: {e}") from e

        if response.status_code != 200:
            try:
                reason = response.json().get('error', 'unknown')
            except ValueError:
                reason = response.text[:200]
            raise AuthenticationError(
                f"Token endpoint answered {response.status_code}: {reason}"
            )

        return response.json()

    def get_token(self, force_refresh: bool = False) -> str:
        """
        Current access token, fetching a new one when missing or near expiry.

        Raises:
            AuthenticationError: If the token endpoint refuses or is unreachable
        """
        if not force_refresh and self._is_token_valid():
            return self.access_token

        granted = self._request_token()
        token = granted.get('access_token')
        if not token:
            raise AuthenticationError("Token endpoint reply has no access_token")

        lifetime = int(granted.get('expires_in', 1800))
        self.access_token = token
        self.token_type = granted.get('token_type', 'Bearer')
        self.token_expires_at = datetime.now() + timedelta(
            seconds=max(lifetime - TOKEN_EXPIRY_BUFFER_SECONDS, 0)
        )
        logger.info("New OpenSky token, valid for %ss", lifetime)
        return token

    def _is_token_valid(self) -> bool:
        if not self.access_token or not self.token_expires_at:
            return False
        return datetime.now() < self.token_expires_at

    def get_auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f'{self.token_type} {self.get_token()}'}

    def _get(self, url: str, params: Optional[Dict], timeout: float) -> requests.Response:
        return requests.get(url, headers=self.get_auth_headers(), params=params, timeout=timeout)

    def make_authenticated_request(self, url: str, params: Optional[Dict] = None,
                                   timeout: float = DEFAULT_API_TIMEOUT) -> requests.Response:
        """
        GET ``url`` with a bearer token.

        A 401 means the server dropped the token early; it is replaced and the
        request sent once more. Transport errors propagate as raised by requests.
        """
        response = self._get(url, params, timeout)

        if response.status_code == 401:
            logger.warning("OpenSky rejected the token, requesting a new one")
            self.invalidate_token()
            response = self._get(url, params, timeout)

        return response

    def invalidate_token(self) -> None:
        self.access_token = None
        self.token_expires_at = None


def create_auth_from_config(config) -> Optional[OpenSkyAuth]:
    """
    Token holder for the ``api`` config section, or None for anonymous access.

    A credentials file that cannot be read is logged and skipped; an explicit
    client_id/client_secret pair is tried next.
    """
    credentials_path = config.get('api.credentials_path')

    if credentials_path:
        try:
            return OpenSkyAuth(credentials_path=credentials_path)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring OpenSky credentials, falling back to anonymous: %s", e)

    client_id = config.get('api.client_id')
    client_secret = config.get('api.client_secret')

    if client_id and client_secret:
        return OpenSkyAuth(client_id=client_id, client_secret=client_secret)

    return None
