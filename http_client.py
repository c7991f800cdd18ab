"""
HTTP client with connection pooling and request spacing.

Provides an HTTP session that:
- Pools connections for better performance
- Spaces requests per host so no two calls are closer than a fixed interval
- Never retries: a failed call is reported to the caller as-is
"""

import time
import threading
import logging
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from constants import REQUEST_SPACING_SECONDS, REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class MinIntervalRateLimiter:
    """
    Thread-safe minimum-spacing throttle.

    Tracks a single last-request timestamp and sleeps just long enough that
    consecutive calls are at least `min_interval` seconds apart. There is no
    burst allowance.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between two requests
            clock: Monotonic time source (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        self.min_interval = min_interval
        self.last_request: Optional[float] = None
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Block until the next request may be issued, then claim the slot.

        Returns:
            Seconds spent waiting
        """
        with self._lock:
            waited = 0.0
            if self.last_request is not None:
                elapsed = self._clock() - self.last_request
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    self._sleep(waited)
            self.last_request = self._clock()
            return waited


class RateLimitedSession:
    """
    Requests session wrapper with request spacing and pooling.

    Features:
    - Connection pooling via HTTPAdapter
    - Per-host minimum spacing, shared by every session in the process
    - Retries disabled
    - Configurable timeouts

    Usage:
        with RateLimitedSession() as session:
            response = session.get("https://api.themoviedb.org/3/...")
    """

    # Class-level rate limiters shared across all instances
    _rate_limiters: Dict[str, MinIntervalRateLimiter] = {}
    _rate_limiter_lock = threading.Lock()

    # Minimum spacing by domain pattern
    DEFAULT_SPACING: Dict[str, float] = {
        "api.themoviedb.org": REQUEST_SPACING_SECONDS,
    }

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        user_agent: str = None,
    ):
        """
        Initialize rate-limited session.

        Args:
            timeout: Default request timeout in seconds
            user_agent: Custom user agent string
        """
        self.timeout = timeout
        self.session = requests.Session()

        adapter = HTTPAdapter(
            max_retries=Retry(total=0, raise_on_status=False),
            pool_connections=4,
            pool_maxsize=4,
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            "User-Agent": user_agent or "cine2nerdle-helper/1.0",
            "Accept": "application/json",
        })

    def _get_rate_limiter(self, url: str) -> Optional[MinIntervalRateLimiter]:
        """
        Get or create rate limiter for the URL's host.

        Args:
            url: URL to get rate limiter for

        Returns:
            Rate limiter for the host, or None if no spacing configured
        """
        host = urlparse(url).netloc.lower()

        spacing = None
        for pattern, interval in self.DEFAULT_SPACING.items():
            if pattern in host:
                spacing = interval
                break

        if spacing is None:
            return None

        with self._rate_limiter_lock:
            if host not in self._rate_limiters:
                self._rate_limiters[host] = MinIntervalRateLimiter(spacing)
            return self._rate_limiters[host]

    def _apply_rate_limit(self, url: str) -> None:
        """Block until the host's spacing allows another request."""
        limiter = self._get_rate_limiter(url)
        if limiter:
            waited = limiter.wait()
            if waited:
                logger.debug(f"Throttled {urlparse(url).netloc} for {waited * 1000:.0f}ms")

    def get(self, url: str, **kwargs) -> requests.Response:
        """
        Make a rate-limited GET request.

        Args:
            url: URL to request
            **kwargs: Additional arguments passed to requests.get

        Returns:
            Response object
        """
        self._apply_rate_limit(url)
        kwargs.setdefault("timeout", self.timeout)
        return self.session.get(url, **kwargs)

    def close(self) -> None:
        """Close the session and release resources."""
        self.session.close()

    def __enter__(self) -> "RateLimitedSession":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def create_session(
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    user_agent: str = None,
) -> RateLimitedSession:
    """Create a configured rate-limited session."""
    return RateLimitedSession(timeout=timeout, user_agent=user_agent)


class SessionAwareComponent:
    """
    Mixin for components that optionally manage HTTP sessions.

    Provides standardized session ownership tracking and cleanup.

    Usage:
        class MyClient(SessionAwareComponent):
            def __init__(self, session=None):
                self.init_session(session, timeout=15.0)
    """

    session: RateLimitedSession
    _owns_session: bool

    def init_session(
        self,
        session: RateLimitedSession = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize session with ownership tracking.

        Args:
            session: Optional existing session to use
            timeout: Timeout for new session if created
        """
        self.session = session or create_session(timeout=timeout)
        self._owns_session = session is None

    def close(self) -> None:
        """Close session if we own it."""
        if self._owns_session:
            self.session.close()
