#!/usr/bin/env python3
"""
Shared Guesty API client for sync operations.
Handles bearer authentication and API requests with rate limiting.
"""

import json
import time
import logging
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from config import (
    GUESTY_BASE_URL, GUESTY_MAX_RETRIES, GUESTY_INITIAL_WAIT_SECONDS,
    GUESTY_MAX_BACKOFF_SECONDS, GUESTY_HTTP_TIMEOUT, GUESTY_CONNECT_RETRIES,
    PAGINATION_LIMIT
)
from sync.errors import (
    AuthError, NetworkError, ParseError, PMSError, RateLimitError,
    RequestTimeoutError, error_for_status
)
from sync.retry import retry_delay
from sync.token_manager import TokenManager

# Configure logging
logger = logging.getLogger(__name__)

Result = Tuple[Optional[Any], Optional[PMSError]]


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(',', ':'))


class GuestyAPIClient:
    """API client for Guesty with OAuth 2.0 authentication and rate-limit backoff."""

    def __init__(self, token_manager: TokenManager,
                 base_url: str = GUESTY_BASE_URL,
                 max_retries: int = GUESTY_MAX_RETRIES,
                 initial_wait: float = GUESTY_INITIAL_WAIT_SECONDS,
                 max_backoff: float = GUESTY_MAX_BACKOFF_SECONDS,
                 timeout: float = GUESTY_HTTP_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.token_manager = token_manager
        self.base_url = base_url.rstrip('/')
        self.max_retries = max_retries
        self.initial_wait = initial_wait
        self.max_backoff = max_backoff
        self.timeout = timeout
        self._sleep = sleep

        if session is None:
            # Only connection establishment is retried at the transport level;
            # status codes and reads are handled (or surfaced) by execute()
            retry_strategy = Retry(
                total=None,
                connect=GUESTY_CONNECT_RETRIES,
                read=0,
                status=0,
                other=0,
                backoff_factor=0.5,
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session = requests.Session()
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _attempt(self, method: str, path: str, body: Any = None,
                 params: Optional[Dict] = None) -> Result:
        """Run one authenticated request and classify its outcome."""
        context = f"{method} {path}"
        try:
            token = self.token_manager.ensure_valid()
        except PMSError as e:
            return None, e

        headers = {
            "Authorization": f"Bearer {token.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

        try:
            response = self.session.request(method, self._url(path), headers=headers,
                                            params=params, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            return None, RequestTimeoutError(f"Timeout for {context} after {self.timeout}s", original=e)
        except requests.exceptions.RequestException as e:
            return None, NetworkError(f"No response for {context}: {e}", original=e)

        if response.status_code >= 400:
            try:
                error_body = response.json()
            except ValueError:
                error_body = response.text
            error = error_for_status(response.status_code, error_body, context=context)
            if isinstance(error, AuthError):
                self.token_manager.invalidate()
            return None, error

        if not response.content:
            return {}, None

        try:
            return response.json(), None
        except ValueError:
            return None, ParseError(f"Invalid JSON in response for {context}",
                                    status_code=response.status_code, body=response.text[:500])

    def execute(self, method: str, path: str, body: Any = None,
                params: Optional[Dict] = None) -> Result:
        """
        Execute an API call, retrying rate-limited attempts with exponential backoff.

        Args:
            method: HTTP method.
            path: Endpoint path relative to the base URL.
            body: Optional JSON body.
            params: Optional query parameters.

        Returns:
            (payload, None) on success, (None, error) on failure.
        """
        retries = 0
        while True:
            payload, error = self._attempt(method, path, body, params)
            if error is None:
                if retries:
                    logger.info(f"{method} {path} succeeded after {retries} retries")
                return payload, None

            delay = retry_delay(retries + 1, error, self.max_retries,
                                self.initial_wait, self.max_backoff)
            if delay is None:
                if isinstance(error, RateLimitError):
                    error.attempts = retries + 1
                    error.exhausted = True
                    error.message = f"{error.message} (gave up after {retries + 1} attempts)"
                    error.args = (error.message,)
                    logger.error(error.message)
                elif isinstance(error, NetworkError):
                    logger.error(f"Network error for {method} {path}: {error.message}")
                else:
                    logger.error(f"{error.message}: {str(error.body)[:200]}")
                return None, error

            retries += 1
            logger.warning(
                f"Rate limit exceeded for {method} {path} (retry {retries}/{self.max_retries}), "
                f"waiting {delay}s..."
            )
            self._sleep(delay)

    def request(self, method: str, path: str, body: Any = None,
                params: Optional[Dict] = None) -> Any:
        """Raising variant of execute()."""
        payload, error = self.execute(method, path, body=body, params=params)
        if error is not None:
            raise error
        return payload

    def health_check(self) -> Dict[str, Any]:
        """Issue a minimal read call and report whether the API is reachable."""
        logger.info("Performing Guesty API health check")
        payload, error = self.execute('GET', 'listings', params={'limit': 1})
        if error is not None:
            logger.warning(f"Health check failed: {error.message}")
            return {'success': False, 'message': error.message}
        return {'success': True, 'message': 'Guesty API is healthy'}

    @staticmethod
    def _results(data: Any, context: str) -> List[Dict]:
        if not isinstance(data, dict) or not isinstance(data.get('results'), list):
            raise ParseError(f"Response for {context} has no 'results' list", body=data)
        return data['results']

    def _paginate(self, path: str, params: Dict[str, Any], limit: int) -> List[Dict]:
        all_results: List[Dict] = []
        skip = 0

        while True:
            page_params = dict(params, limit=limit, skip=skip)
            data = self.request('GET', path, params=page_params)
            results = self._results(data, path)
            all_results.extend(results)
            skip += len(results)

            # If we got fewer than the limit, we've reached the end
            if len(results) < limit:
                break
            count = data.get('count')
            if isinstance(count, int) and skip >= count:
                break

        return all_results

    def get_listings(self, limit: int = PAGINATION_LIMIT, skip: int = 0,
                     active_only: bool = True) -> List[Dict]:
        """
        Get one page of listings.

        Args:
            limit: Page size.
            skip: Number of listings to skip.
            active_only: Filter to listings with isActive=true.

        Returns:
            List of listing dictionaries.
        """
        params: Dict[str, Any] = {'limit': limit, 'skip': skip}
        if active_only:
            params['filters'] = _compact_json({'isActive': True})
        return self._results(self.request('GET', 'listings', params=params), 'listings')

    def get_all_listings(self, active_only: bool = True,
                         limit: int = PAGINATION_LIMIT) -> List[Dict]:
        """Get all listings with pagination support."""
        params: Dict[str, Any] = {}
        if active_only:
            params['filters'] = _compact_json({'isActive': True})
        return self._paginate('listings', params, limit)

    @staticmethod
    def _reservation_filters(check_in_from: Optional[date], listing_id: Optional[str]) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if listing_id:
            filters['listingId'] = listing_id
        if check_in_from:
            filters['checkIn'] = {'$gte': check_in_from.strftime('%Y-%m-%d')}
        return {'filters': _compact_json(filters)} if filters else {}

    def get_reservations(self, check_in_from: Optional[date] = None,
                         limit: int = PAGINATION_LIMIT, skip: int = 0,
                         listing_id: Optional[str] = None) -> List[Dict]:
        """
        Get one page of reservations.

        Args:
            check_in_from: Only reservations checking in on or after this date.
            limit: Page size.
            skip: Number of reservations to skip.
            listing_id: Only reservations for this listing.
        """
        params: Dict[str, Any] = {'limit': limit, 'skip': skip}
        params.update(self._reservation_filters(check_in_from, listing_id))
        return self._results(self.request('GET', 'reservations', params=params), 'reservations')

    def get_all_reservations(self, check_in_from: Optional[date] = None,
                             limit: int = PAGINATION_LIMIT,
                             listing_id: Optional[str] = None) -> List[Dict]:
        """Get all reservations (optionally filtered by check-in date and listing) with pagination support."""
        params = self._reservation_filters(check_in_from, listing_id)
        return self._paginate('reservations', params, limit)
