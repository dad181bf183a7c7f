# storefront/services/discount_service.py
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.coupon import CouponModel
from storefront.domain.errors import InvalidCoupon

CENT = Decimal("0.01")


def apply_discount(total: Decimal, percentage: int | Decimal) -> Decimal:
    """total minus percentage%, rounded to cents and never below zero."""
    discount = Decimal(total) * Decimal(percentage) / Decimal(100)
    return max(Decimal("0.00"), Decimal(total) - discount).quantize(CENT, rounding=ROUND_HALF_UP)


class CouponBook:
    def __init__(self, db: Session):
        self.db = db

    def lookup(self, code: str) -> CouponModel:
        normalized = code.strip().upper()
        coupon = self.db.execute(
            select(CouponModel).where(CouponModel.code == normalized)
        ).scalar_one_or_none()

        if not coupon or coupon.status != "active":
            raise InvalidCoupon(normalized)
        return coupon
