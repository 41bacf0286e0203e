"""VendorTransaction model: one credit purchase from a vendor."""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
import uuid

from database import Base


class VendorTransaction(Base):
    """Immutable purchase event; only removed by an explicit delete."""

    __tablename__ = "vendor_transactions"
    __table_args__ = (CheckConstraint("credits > 0", name="ck_vendor_transactions_credits_positive"),)
    __mapper_args__ = {"eager_defaults": True}

    transaction_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(String, ForeignKey("vendors.vendor_id"), nullable=False, index=True)
    service_name = Column(String, nullable=False)
    credits = Column(Integer, nullable=False)
    price_usd = Column(Float, nullable=False, default=0.0)
    purchase_date = Column(Date, nullable=False, server_default=func.current_date())
    notes = Column(Text, nullable=True)
    created_date = Column(DateTime(timezone=True), server_default=func.now())
