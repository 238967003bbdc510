"""Short-lived verification codes (phone / email OTP).

Codes live behind the ``VerificationCodeStore`` interface and expire
after a TTL.  The default implementation keeps them in the Django cache
(Redis in production), so every web worker sees the same codes and
nothing lives in module-level state.  Stores are constructed and
injected by the caller.
"""

from __future__ import annotations

import hmac
import secrets
from abc import ABC, abstractmethod
from typing import Optional

import structlog
from django.conf import settings
from django.core.cache import BaseCache, cache

logger = structlog.get_logger(__name__)

CODE_LENGTH = 6
MAX_ATTEMPTS = 5


class VerificationCodeStore(ABC):
    """Keyed store of single-use codes with TTL semantics."""

    @abstractmethod
    def issue(self, key: str, ttl: Optional[int] = None) -> str:
        """Create (or replace) the code for ``key`` and return it."""

    @abstractmethod
    def verify(self, key: str, code: str) -> bool:
        """Return ``True`` and consume the code when it matches."""

    @abstractmethod
    def revoke(self, key: str) -> None:
        """Forget any pending code for ``key``."""


class CacheVerificationCodeStore(VerificationCodeStore):
    """``VerificationCodeStore`` backed by a Django cache alias.

    After ``MAX_ATTEMPTS`` wrong guesses the code is revoked and a new
    one must be issued.
    """

    def __init__(self, backend: Optional[BaseCache] = None, prefix: str = "otp") -> None:
        self._cache = backend or cache
        self._prefix = prefix

    def issue(self, key: str, ttl: Optional[int] = None) -> str:
        ttl = ttl if ttl is not None else settings.MARKETPLACE_VERIFICATION_CODE_TTL
        code = "".join(secrets.choice("0123456789") for _ in range(CODE_LENGTH))
        self._cache.set(self._key(key), {"code": code, "attempts": 0}, ttl)
        logger.info("verification.code_issued", key_suffix=key[-4:], ttl=ttl)
        return code

    def verify(self, key: str, code: str) -> bool:
        entry = self._cache.get(self._key(key))
        if entry is None:
            logger.info("verification.code_missing", key_suffix=key[-4:])
            return False

        if hmac.compare_digest(entry["code"], str(code)):
            self.revoke(key)
            logger.info("verification.code_accepted", key_suffix=key[-4:])
            return True

        attempts = entry["attempts"] + 1
        if attempts >= MAX_ATTEMPTS:
            self.revoke(key)
            logger.warning("verification.code_locked", key_suffix=key[-4:])
        else:
            entry["attempts"] = attempts
            # preserve the original expiry where the backend exposes it
            ttl = self._remaining_ttl(key)
            self._cache.set(self._key(key), entry, ttl)
        return False

    def revoke(self, key: str) -> None:
        self._cache.delete(self._key(key))

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def _remaining_ttl(self, key: str) -> Optional[int]:
        ttl_getter = getattr(self._cache, "ttl", None)
        if ttl_getter is not None:
            remaining = ttl_getter(self._key(key))
            if remaining:
                return remaining
        return settings.MARKETPLACE_VERIFICATION_CODE_TTL
