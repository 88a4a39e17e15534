"""
Plan usage gate.

Usage is the number of shipments that received their first carrier scan
within the merchant's current 30-day billing cycle. The gate is checked
only at the moment a shipment's first scan would be recorded.
"""

import logging
from datetime import datetime, timedelta

from delayguard.models.billing import BillingCycle, UsageInfo
from delayguard.models.merchant import Merchant, PlanTier

logger = logging.getLogger(__name__)

BILLING_CYCLE_LENGTH = timedelta(days=30)

# First scans per billing cycle (None = unlimited)
PLAN_LIMITS: dict[PlanTier, int | None] = {
    PlanTier.STARTER: 100,
    PlanTier.PROFESSIONAL: 500,
    PlanTier.BUSINESS: 2000,
    PlanTier.ENTERPRISE: None,
}


def get_plan_limit(plan_tier: PlanTier) -> int | None:
    return PLAN_LIMITS[plan_tier]


def get_current_billing_cycle(installed_at: datetime, now: datetime) -> BillingCycle:
    """
    30-day cycle containing now, anchored to the install time.

    Times before the install fall into the first cycle.
    """
    elapsed = now - installed_at
    index = max(0, elapsed // BILLING_CYCLE_LENGTH)
    start = installed_at + index * BILLING_CYCLE_LENGTH
    return BillingCycle(start=start, end=start + BILLING_CYCLE_LENGTH)


def build_usage_info(used: int, limit: int | None, cycle: BillingCycle) -> UsageInfo:
    if limit is None:
        return UsageInfo(
            used=used,
            limit=None,
            is_at_limit=False,
            remaining=None,
            percent_used=0.0,
            billing_cycle=cycle,
        )

    percent_used = min(100.0, used / limit * 100) if limit > 0 else 100.0
    return UsageInfo(
        used=used,
        limit=limit,
        is_at_limit=used >= limit,
        remaining=max(0, limit - used),
        percent_used=round(percent_used, 1),
        billing_cycle=cycle,
    )


def get_usage(uow, merchant: Merchant, now: datetime) -> UsageInfo:
    cycle = get_current_billing_cycle(merchant.installed_at, now)
    used = uow.shipments.count_first_scanned(merchant.id, cycle.start, cycle.end)
    return build_usage_info(used, get_plan_limit(merchant.plan_tier), cycle)


def check_ceiling(uow, merchant_id: str, now: datetime) -> UsageInfo:
    """
    Usage of a merchant against its plan ceiling.

    Raises:
        ValueError: If the merchant does not exist
    """
    merchant = uow.merchants.get_by_id(merchant_id)
    if merchant is None:
        raise ValueError(f"Merchant not found: {merchant_id}")
    return get_usage(uow, merchant, now)


def can_record_first_scan(uow, merchant: Merchant, now: datetime) -> bool:
    """Whether a shipment of this merchant may be marked as scanned now."""
    usage = get_usage(uow, merchant, now)
    if usage.is_at_limit:
        logger.warning(
            "Merchant %s reached its plan limit (%s/%s), first scan not recorded",
            merchant.id,
            usage.used,
            usage.limit,
            extra={
                "json_fields": {
                    "merchant_id": merchant.id,
                    "plan_tier": str(merchant.plan_tier),
                    "used": usage.used,
                    "limit": usage.limit,
                }
            },
        )
        return False
    return True
