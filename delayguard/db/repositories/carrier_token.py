"""
Carrier token repository.

One row per carrier holding the current OAuth bearer token, shared by all
worker instances.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table, delete, select
from sqlalchemy.dialects.postgresql import insert

from delayguard.db.tables import carrier_tokens
from delayguard.models.shipment import Carrier
from delayguard.models.tracking import CachedToken


class CarrierTokenRepository:
    """Repository for cached carrier tokens."""

    def __init__(self, session):
        self.session = session

    @property
    def table(self) -> Table:
        return carrier_tokens

    def _row_to_model(self, row: Any) -> CachedToken:
        return CachedToken(access_token=row.access_token, expires_at=row.expires_at)

    def get_by_carrier(self, carrier: Carrier) -> CachedToken | None:
        stmt = select(self.table).where(self.table.c.carrier == carrier.value)
        row = self.session.execute(stmt).fetchone()

        if row is None:
            return None

        return self._row_to_model(row)

    def upsert(self, carrier: Carrier, token: CachedToken) -> CachedToken:
        """
        Insert or replace the token of a carrier.

        Uses carrier as unique key.
        """
        data = {
            "carrier": carrier.value,
            "access_token": token.access_token,
            "expires_at": token.expires_at,
            "updated_at": datetime.now(timezone.utc),
        }
        stmt = insert(self.table).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["carrier"],
            set_={k: v for k, v in data.items() if k != "carrier"},
        )

        row = self.session.execute(stmt.returning(self.table)).fetchone()
        return self._row_to_model(row)

    def delete_by_carrier(self, carrier: Carrier, access_token: str | None = None) -> bool:
        """
        Delete the token of a carrier.

        When access_token is given, only that exact token is removed, so a
        newer token stored by a concurrent refresh survives.

        Returns:
            True if a row was deleted
        """
        stmt = delete(self.table).where(self.table.c.carrier == carrier.value)
        if access_token is not None:
            stmt = stmt.where(self.table.c.access_token == access_token)

        result = self.session.execute(stmt)
        return result.rowcount > 0
