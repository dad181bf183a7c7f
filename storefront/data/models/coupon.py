from sqlalchemy import Column, Integer, String

from storefront.data.database import Base


class CouponModel(Base):
    __tablename__ = "coupons"

    code = Column(String, primary_key=True)
    percentage = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="active")
