# Overview: Service-layer throttling; login lockout and per-client rate limits on the shared cache.

"""
Throttling Service

WHY: Prevent brute-force password attacks and scraping of the search
endpoint. Counters live in the cache backend so every instance sees the
same numbers when the backend is Redis.

LOGIN LOCKOUT:
- Tracks failed attempts per username/phone
- Lockout after MAX_FAILED_ATTEMPTS failures within LOCKOUT_WINDOW
- Lockout duration: LOCKOUT_DURATION
- Clears the failed count on successful login

RATE LIMITS:
- Fixed window per client: the counter expires WINDOW after the first hit
- Search: SEARCH_RATE_LIMIT requests per SEARCH_RATE_WINDOW

FAILURE POLICY:
- A cache error is logged and the request is allowed
"""

from __future__ import annotations

from datetime import timedelta

import redis
from flask import current_app

from ..extensions import cache
from ..cache import lockout_key, throttle_key
from ..errors import RateLimitedError


# Configuration constants
MAX_FAILED_ATTEMPTS = 10  # Lock after 10 failed attempts
LOCKOUT_WINDOW = timedelta(minutes=15)  # Within 15 minutes
LOCKOUT_DURATION = timedelta(minutes=15)  # Lockout for 15 minutes

SEARCH_RATE_LIMIT = 60
SEARCH_RATE_WINDOW = timedelta(minutes=1)

LOGIN_SCOPE = "login"
SEARCH_SCOPE = "search"


def _seconds(delta: timedelta) -> int:
    return int(delta.total_seconds())


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check if an account is currently locked due to too many failed attempts.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    try:
        remaining = cache.backend.ttl(lockout_key(LOGIN_SCOPE, identifier))
    except redis.exceptions.RedisError:
        current_app.logger.warning("Lockout check failed for %s", identifier, exc_info=True)
        return False, None

    if remaining:
        return True, remaining
    return False, None


def record_failed_attempt(identifier: str) -> int:
    """
    Record a failed login attempt.

    Returns the number of failures in the current window. Reaching
    MAX_FAILED_ATTEMPTS starts the lockout and resets the counter.
    """
    key = throttle_key(LOGIN_SCOPE, identifier)
    try:
        count = cache.backend.incr(key, _seconds(LOCKOUT_WINDOW))
        if count >= MAX_FAILED_ATTEMPTS:
            cache.backend.set(lockout_key(LOGIN_SCOPE, identifier), "1", ex=_seconds(LOCKOUT_DURATION))
            cache.backend.delete(key)
            current_app.logger.warning("Login locked for %s after %s failed attempts", identifier, count)
    except redis.exceptions.RedisError:
        current_app.logger.warning("Failed to record login failure for %s", identifier, exc_info=True)
        return 0

    return count


def record_successful_login(identifier: str) -> None:
    try:
        cache.backend.delete(throttle_key(LOGIN_SCOPE, identifier))
    except redis.exceptions.RedisError:
        current_app.logger.warning("Failed to clear login failures for %s", identifier, exc_info=True)


def check_rate_limit(scope: str, client_id: str, limit: int, window: timedelta) -> int:
    """
    Count one request for client_id in scope.

    Returns the requests left in the current window.

    Raises:
        RateLimitedError: limit exceeded (payload carries retry_after seconds)
    """
    key = throttle_key(scope, client_id)
    try:
        count = cache.backend.incr(key, _seconds(window))
        if count <= limit:
            return limit - count
        retry_after = cache.backend.ttl(key) or _seconds(window)
    except redis.exceptions.RedisError:
        current_app.logger.warning("Rate limit check failed for %s", key, exc_info=True)
        return limit

    current_app.logger.info("Rate limit hit: %s (%s requests)", key, count)
    raise RateLimitedError(
        "Too many requests, please try again later",
        payload={"retry_after": retry_after},
    )


def check_search_rate_limit(client_id: str) -> int:
    return check_rate_limit(SEARCH_SCOPE, client_id, SEARCH_RATE_LIMIT, SEARCH_RATE_WINDOW)
