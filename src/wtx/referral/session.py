"""Visitor-side referral attribution context.

A visitor who arrived through a referral link may fill in an unrelated form
later (a generic contact form, pages later). The code they arrived with and
a random tracking token are kept in a session store so that later action can
still be attributed. The store, its key and the TTL are explicit; nothing is
read from ambient globals.
"""

import secrets
import time
from collections.abc import Mapping
from datetime import timedelta
from typing import Callable, Protocol

from starlette.responses import Response

from wtx.referral.registry import normalize_code


class SessionStore(Protocol):
    """Key/value storage scoped to one visitor."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl: timedelta) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySessionStore:
    """In-process store with per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._values: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        self._values[key] = (value, self._clock() + ttl.total_seconds())

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class CookieSessionStore:
    """Store backed by the visitor's cookies.

    Reads come from the request cookies, writes go to the outgoing response
    and are visible to later reads in the same request.
    """

    def __init__(self, cookies: Mapping[str, str], response: Response, secure: bool = False):
        self._cookies = dict(cookies)
        self._response = response
        self._secure = secure

    def get(self, key: str) -> str | None:
        return self._cookies.get(key) or None

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        self._cookies[key] = value
        self._response.set_cookie(
            key,
            value,
            max_age=int(ttl.total_seconds()),
            httponly=True,
            samesite="lax",
            secure=self._secure,
        )

    def delete(self, key: str) -> None:
        self._cookies.pop(key, None)
        self._response.delete_cookie(key, httponly=True, samesite="lax", secure=self._secure)


class ReferralSession:
    """Referral code and tracking token of one visitor."""

    def __init__(
        self,
        store: SessionStore,
        storage_key: str = "referral_code",
        ttl: timedelta = timedelta(days=30),
        token_factory: Callable[[], str] | None = None,
    ):
        self.store = store
        self.storage_key = storage_key
        self.visitor_key = f"{storage_key}_visitor"
        self.ttl = ttl
        self.token_factory = token_factory or (lambda: secrets.token_urlsafe(24))

    @property
    def referral_code(self) -> str | None:
        return self.store.get(self.storage_key)

    @property
    def visitor_token(self) -> str | None:
        return self.store.get(self.visitor_key)

    def ensure_visitor_token(self) -> str:
        token = self.visitor_token
        if not token:
            token = self.token_factory()
            self.store.set(self.visitor_key, token, self.ttl)
        return token

    def remember(self, code: str) -> str:
        """Store the code the visitor arrived with; returns it normalized."""
        code = normalize_code(code)
        if not code:
            raise ValueError("Cannot remember an empty referral code")
        self.store.set(self.storage_key, code, self.ttl)
        self.ensure_visitor_token()
        return code

    def forget(self) -> None:
        """Drop the stored code; the tracking token stays."""
        self.store.delete(self.storage_key)

    def take(self) -> tuple[str | None, str | None]:
        """Return (code, visitor_token) and drop the code."""
        code, token = self.referral_code, self.visitor_token
        if code:
            self.forget()
        return code, token
