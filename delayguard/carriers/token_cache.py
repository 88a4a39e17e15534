"""
Credential cache for carrier OAuth bearer tokens.

Tokens are reused until a fixed buffer before expiry and refreshed through
a carrier-supplied exchange callable. Concurrent refreshes of the same
carrier are tolerated; every store write is atomic, and eviction only
removes the token that was actually rejected so it cannot be lost to (or
undone by) a refresh running at the same time.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from delayguard.config import TOKEN_REFRESH_BUFFER_SECONDS
from delayguard.models.shipment import Carrier
from delayguard.models.tracking import CachedToken, TokenGrant

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenStore(Protocol):
    """Storage backend for cached carrier tokens."""

    def get(self, carrier: Carrier) -> CachedToken | None: ...

    def put(self, carrier: Carrier, token: CachedToken) -> None: ...

    def delete(self, carrier: Carrier, access_token: str | None = None) -> bool: ...


class InMemoryTokenStore:
    """Process-local token store guarded by a lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens: dict[Carrier, CachedToken] = {}

    def get(self, carrier: Carrier) -> CachedToken | None:
        with self._lock:
            return self._tokens.get(carrier)

    def put(self, carrier: Carrier, token: CachedToken) -> None:
        with self._lock:
            self._tokens[carrier] = token

    def delete(self, carrier: Carrier, access_token: str | None = None) -> bool:
        with self._lock:
            current = self._tokens.get(carrier)
            if current is None:
                return False
            if access_token is not None and current.access_token != access_token:
                return False
            del self._tokens[carrier]
            return True


class DatabaseTokenStore:
    """
    Token store backed by the carrier_tokens table.

    Shares tokens across worker instances. Each call runs in its own
    short unit of work.
    """

    def __init__(self, uow_factory: Callable | None = None):
        if uow_factory is None:
            from delayguard.db.unit_of_work import UnitOfWork

            uow_factory = UnitOfWork
        self._uow_factory = uow_factory

    def get(self, carrier: Carrier) -> CachedToken | None:
        with self._uow_factory() as uow:
            return uow.carrier_tokens.get_by_carrier(carrier)

    def put(self, carrier: Carrier, token: CachedToken) -> None:
        with self._uow_factory() as uow:
            uow.carrier_tokens.upsert(carrier, token)
            uow.commit()

    def delete(self, carrier: Carrier, access_token: str | None = None) -> bool:
        with self._uow_factory() as uow:
            deleted = uow.carrier_tokens.delete_by_carrier(carrier, access_token)
            uow.commit()
            return deleted


class CredentialCache:
    """
    Expiry-aware bearer token cache shared by the carrier adapters.

    Usage:
        cache = CredentialCache(InMemoryTokenStore())
        token = cache.get_token(Carrier.UPS, exchange=fetch_ups_token)
        ...
        cache.evict(Carrier.UPS, token)  # after the carrier answers 401
    """

    def __init__(
        self,
        store: TokenStore,
        refresh_buffer_seconds: int = TOKEN_REFRESH_BUFFER_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.refresh_buffer = timedelta(seconds=refresh_buffer_seconds)
        self._clock = clock

    def get_token(self, carrier: Carrier, exchange: Callable[[], TokenGrant]) -> str:
        """
        Return a valid bearer token for the carrier.

        Args:
            carrier: Carrier the token belongs to
            exchange: Performs the carrier's token exchange

        Returns:
            Access token

        Raises:
            Whatever the exchange raises (TokenExchangeError, requests errors)
        """
        now = self._clock()
        cached = self.store.get(carrier)
        if cached is not None and cached.expires_at > now + self.refresh_buffer:
            return cached.access_token

        grant = exchange()
        token = CachedToken(
            access_token=grant.access_token,
            expires_at=now + timedelta(seconds=grant.expires_in),
        )

        # A token that lives shorter than the buffer is used once, not cached
        if grant.expires_in > self.refresh_buffer.total_seconds():
            self.store.put(carrier, token)

        logger.info(
            "Refreshed %s access token",
            carrier,
            extra={
                "json_fields": {
                    "carrier": carrier,
                    "expires_at": token.expires_at.isoformat(),
                }
            },
        )
        return token.access_token

    def evict(self, carrier: Carrier, access_token: str | None = None) -> bool:
        """
        Remove the cached token for a carrier.

        Args:
            carrier: Carrier to evict
            access_token: The rejected token. When given, a different token
                stored by a concurrent refresh is kept.

        Returns:
            True if an entry was removed
        """
        removed = self.store.delete(carrier, access_token)
        if removed:
            logger.info("Evicted %s access token", carrier)
        return removed
