# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal
from storefront.data.models import CouponModel, ProductModel


def seed():
    db = SessionLocal()
    try:
        # only seed an empty catalogue
        if db.query(ProductModel).first():
            return
        db.add(
            ProductModel(
                id="101",
                name="5 Mukhi Rudraksha",
                category="Rudraksha",
                price=Decimal("501.00"),
                stock=50,
                status="active",
            )
        )
        db.add(CouponModel(code="MYSTIC10", percentage=10, status="active"))
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
