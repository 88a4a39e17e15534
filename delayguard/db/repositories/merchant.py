"""
Merchant repository for database operations.
"""

from typing import Any

from sqlalchemy import Table, select

from delayguard.db.repositories.base import BaseRepository, jsonb_to_model
from delayguard.db.tables import merchants
from delayguard.models.merchant import (
    BillingStatus,
    Merchant,
    MerchantSettings,
    PlanTier,
)


class MerchantRepository(BaseRepository[Merchant]):
    """Repository for merchant operations."""

    @property
    def table(self) -> Table:
        return merchants

    def _row_to_model(self, row: Any) -> Merchant:
        """Convert database row to Merchant model."""
        return Merchant(
            id=str(row.id),
            shop_domain=row.shop_domain,
            plan_tier=PlanTier(row.plan_tier),
            billing_status=BillingStatus(row.billing_status),
            installed_at=row.installed_at,
            random_poll_offset=row.random_poll_offset,
            settings=jsonb_to_model(row.settings, MerchantSettings),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def get_by_shop_domain(self, shop_domain: str) -> Merchant | None:
        stmt = select(self.table).where(self.table.c.shop_domain == shop_domain)
        row = self.session.execute(stmt).fetchone()

        if row is None:
            return None

        return self._row_to_model(row)
