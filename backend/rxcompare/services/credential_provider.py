"""
Bearer-token provider for the upstream pricing API.

Performs an OAuth2 client-credentials exchange and caches the token until
five minutes before it expires. One instance is built per process and
shared by every request; concurrent callers that find the cache stale share
a single in-flight exchange instead of each starting their own.
"""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from rxcompare.errors import AuthError
from rxcompare.models.models import AuthToken

logger = logging.getLogger("rxcompare.auth")

SAFETY_MARGIN_SECONDS = 5 * 60
DEFAULT_EXPIRES_IN = 3600


class _Refresh:
    """One in-flight token exchange, awaited by every caller that needs it."""

    def __init__(self):
        self.done = threading.Event()
        self.token: Optional[AuthToken] = None
        self.error: Optional[AuthError] = None


class CredentialProvider:
    """Obtains and caches a bearer token for the pricing API."""

    def __init__(
        self,
        auth_url: str,
        client_id: str,
        client_secret: str,
        scope: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.auth_url = auth_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.timeout = timeout
        self._session = session or requests.Session()
        self._clock = clock

        self._lock = threading.Lock()
        self._token: Optional[AuthToken] = None
        self._inflight: Optional[_Refresh] = None

        self.exchange_count = 0
        self.last_error: Optional[str] = None

    def get_token(self) -> str:
        """
        Return a bearer token, exchanging credentials only when the cached
        one is missing or inside the safety margin.

        Raises AuthError if credentials are missing or the exchange fails.
        A failed exchange leaves the previous cache untouched.
        """
        with self._lock:
            if self._token and self._token.is_fresh(self._clock(), SAFETY_MARGIN_SECONDS):
                return self._token.value
            flight = self._inflight
            leader = flight is None
            if leader:
                flight = self._inflight = _Refresh()

        if not leader:
            if not flight.done.wait(self.timeout * 2):
                raise AuthError("Timed out waiting for token refresh.")
            if flight.error is not None:
                raise AuthError(str(flight.error)) from flight.error
            return flight.token.value

        try:
            token = self._exchange()
        except AuthError as exc:
            flight.error = exc
            with self._lock:
                self.last_error = str(exc)
            logger.error("Token exchange failed: %s", exc)
            raise
        else:
            flight.token = token
            with self._lock:
                self._token = token
                self.last_error = None
            logger.info("Retrieved new token (expires %s)", token.expires_at_iso)
            return token.value
        finally:
            with self._lock:
                self._inflight = None
            flight.done.set()

    def invalidate(self, token: Optional[str] = None) -> bool:
        """
        Drop the cached token so the next call re-authenticates.
        With a token value, only that token is dropped: a newer one cached by
        a concurrent refresh survives. Returns True if the cache was cleared.
        """
        with self._lock:
            if self._token is None or (token is not None and self._token.value != token):
                return False
            self._token = None
        logger.info("Cached token invalidated.")
        return True

    def status(self) -> dict:
        """Diagnostics for the token-status endpoint. Never includes the token."""
        with self._lock:
            token = self._token
            now = self._clock()
            return {
                "hasToken": token is not None,
                "tokenType": token.token_type if token else None,
                "expiresAt": token.expires_at_iso if token else None,
                "isExpired": not token.is_fresh(now, SAFETY_MARGIN_SECONDS) if token else True,
                "secondsUntilExpiry": round(token.expires_at - now, 1) if token else None,
                "exchangeCount": self.exchange_count,
                "lastError": self.last_error,
                "refreshInFlight": self._inflight is not None,
            }

    # ── exchange ────────────────────────────────────────────────────

    def _exchange(self) -> AuthToken:
        if not self.auth_url:
            raise AuthError("Missing auth URL in pricing configuration.")
        if not self.client_id or not self.client_secret:
            raise AuthError("Missing client credentials in pricing configuration.")

        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if self.scope:
            form["scope"] = self.scope

        with self._lock:
            self.exchange_count += 1
        logger.info("Requesting token from %s", self.auth_url)
        try:
            resp = self._session.post(
                self.auth_url,
                data=form,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise AuthError(f"Token request timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise AuthError(f"Token request failed: {exc}") from exc

        if resp.status_code != 200:
            raise AuthError(f"Authentication failed: {resp.status_code} - {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise AuthError("Invalid token response: body is not JSON") from exc

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise AuthError("Invalid token response: missing access_token")

        try:
            expires_in = float(data.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN

        return AuthToken(
            value=access_token,
            expires_at=self._clock() + expires_in,
            token_type=data.get("token_type") or "Bearer",
        )
