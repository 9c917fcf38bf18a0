"""OAuth2 client-credentials token cache for Sentinel Hub"""

import base64
import json
import logging
import threading
import time
from typing import Callable, Optional

import requests

from . import config
from .models import ProviderError

logger = logging.getLogger(__name__)


def expiry_from_jwt(token: str) -> float:
    """
    Read the `exp` claim (seconds since epoch) from a JWT without verifying it.

    Returns 0 when the token cannot be decoded, which makes it count as expired.
    """
    try:
        payload = token.split(".")[1]
        padded = payload + "=" * (-len(payload) % 4)
        decoded = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
        return float(decoded.get("exp", 0))
    except (IndexError, ValueError, TypeError, AttributeError):
        return 0.0


class TokenCache:
    """
    Process-wide bearer token shared by the catalog, statistics and render calls.

    A cached token is reused while more than `safety_margin` seconds of its
    lifetime remain; otherwise a new one is requested. The lock only guards
    reads and writes of the cached value. Two threads that both find the
    token stale will both fetch one, and the later write wins.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: str = config.TOKEN_URL,
        session: Optional[requests.Session] = None,
        safety_margin: float = config.TOKEN_SAFETY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id if client_id is not None else config.SENTINEL_HUB_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else config.SENTINEL_HUB_CLIENT_SECRET
        self.token_url = token_url
        self.session = session or requests.Session()
        self.safety_margin = safety_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get_token(self) -> str:
        """Return a valid access token, requesting a new one if needed."""
        now = self._clock()
        with self._lock:
            if self._token and self._expires_at > now + self.safety_margin:
                return self._token

        token, expires_at = self._request_token(now)

        with self._lock:
            self._token = token
            self._expires_at = expires_at

        return token

    def invalidate(self):
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _request_token(self, now: float) -> tuple[str, float]:
        if not self.client_id or not self.client_secret:
            raise ProviderError(
                "Missing SENTINEL_HUB_CLIENT_ID or SENTINEL_HUB_CLIENT_SECRET in environment"
            )

        logger.info("[Auth] Requesting new Sentinel Hub access token")
        try:
            response = self.session.post(
                self.token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                timeout=10,
            )
        except requests.RequestException as e:
            raise ProviderError(f"Sentinel Hub auth request failed: {e}")

        if not response.ok:
            raise ProviderError(f"Sentinel Hub auth failed ({response.status_code}): {response.text}")

        try:
            data = response.json()
            token = data["access_token"]
        except (ValueError, KeyError, TypeError):
            raise ProviderError("Sentinel Hub auth response did not contain an access token")

        expires_in = data.get("expires_in")
        if expires_in:
            expires_at = now + float(expires_in)
        else:
            expires_at = expiry_from_jwt(token)

        return token, expires_at
