#!/usr/bin/env python3
"""
OAuth 2.0 client-credentials token lifecycle for the Guesty API.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests

from config import (
    GUESTY_CLIENT_ID, GUESTY_CLIENT_SECRET, GUESTY_TOKEN_URL,
    GUESTY_HTTP_TIMEOUT, TOKEN_REFRESH_MARGIN_SECONDS, DEFAULT_TOKEN_EXPIRATION
)
from sync.errors import NetworkError, ParseError, RequestTimeoutError, error_for_status
from utils.dates import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenState:
    """An access token and the instant (naive UTC) it expires."""
    access_token: str
    expires_at: datetime

    def expires_within(self, margin: timedelta, now: datetime) -> bool:
        return self.expires_at - now <= margin


class TokenManager:
    """
    Owns the access token for one set of client credentials.

    ensure_valid() guarantees a token that stays valid for at least the
    refresh margin. Refreshes are single-flight: concurrent callers wait on
    the lock and reuse the token fetched by whoever got there first.
    """

    def __init__(self, client_id: Optional[str] = None,
                 client_secret: Optional[str] = None,
                 token_url: str = GUESTY_TOKEN_URL,
                 refresh_margin: int = TOKEN_REFRESH_MARGIN_SECONDS,
                 timeout: float = GUESTY_HTTP_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], datetime] = utcnow):
        client_id = client_id or GUESTY_CLIENT_ID
        client_secret = client_secret or GUESTY_CLIENT_SECRET
        # Validate credentials when the manager is instantiated (lazy validation)
        if not client_id or not client_secret:
            raise ValueError(
                "GUESTY_CLIENT_ID and GUESTY_CLIENT_SECRET environment variables are required. "
                "Please set them in .env file or export them."
            )

        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.refresh_margin = timedelta(seconds=refresh_margin)
        self.timeout = timeout
        self.session = session or requests.Session()
        self._clock = clock
        self._state: Optional[TokenState] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> Optional[TokenState]:
        return self._state

    def _needs_refresh(self) -> bool:
        state = self._state
        return state is None or state.expires_within(self.refresh_margin, self._clock())

    def ensure_valid(self) -> TokenState:
        """
        Return a token valid for at least the refresh margin, fetching one if needed.

        Raises:
            AuthError: the token endpoint rejected the credentials (fatal).
            NetworkError: no response from the token endpoint (retryable by the caller).
            APIError: any other non-2xx response.
            ParseError: the response did not contain an access token.
        """
        if not self._needs_refresh():
            return self._state

        with self._lock:
            # Another caller may have refreshed while we were waiting
            if self._needs_refresh():
                if self._state is None:
                    logger.info("No access token held, requesting a new one")
                else:
                    logger.info(f"Access token expires at {self._state.expires_at.isoformat()}, refreshing")
                self._state = self._fetch_token()
            return self._state

    def invalidate(self) -> None:
        """Drop the held token so the next ensure_valid() fetches a new one."""
        with self._lock:
            self._state = None

    def _fetch_token(self) -> TokenState:
        headers = {
            'Content-Type': 'application/x-www-form-urlencoded',
            'Accept': 'application/json',
            'Cache-Control': 'no-cache'
        }
        data = {
            'grant_type': 'client_credentials',
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }

        try:
            response = self.session.post(self.token_url, headers=headers, data=data,
                                         timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"Timeout requesting access token: {e}")
            raise RequestTimeoutError("Timed out requesting access token", original=e) from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Network error requesting access token: {e}")
            raise NetworkError(f"Could not reach token endpoint: {e}", original=e) from e

        if response.status_code >= 400:
            error = error_for_status(response.status_code, response.text, context="token request")
            logger.error(f"Token request failed: {error.message}")
            raise error

        try:
            token_data = response.json()
        except ValueError as e:
            raise ParseError("Token endpoint returned invalid JSON", body=response.text) from e

        access_token = token_data.get('access_token') if isinstance(token_data, dict) else None
        if not access_token:
            raise ParseError("No access_token in token response", body=token_data)

        expires_in = token_data.get('expires_in') or DEFAULT_TOKEN_EXPIRATION
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError) as e:
            raise ParseError(f"Invalid expires_in in token response: {expires_in!r}",
                             body=token_data) from e
        if expires_in <= 0:
            raise ParseError(f"Invalid expires_in in token response: {expires_in!r}",
                             body=token_data)
        expires_at = self._clock() + timedelta(seconds=expires_in)
        logger.info(f"Obtained new access token, expires at {expires_at.isoformat()}")
        return TokenState(access_token=access_token, expires_at=expires_at)
