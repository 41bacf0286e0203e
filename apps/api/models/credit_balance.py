"""CreditBalance model: running credit totals per vendor service."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from database import Base


class CreditBalance(Base):
    """
    Aggregate of every purchase and sale for one (vendor_id, service_name).

    remaining_credits == total_purchased - total_used. remaining_credits may
    go negative when stock is oversold.
    """

    __tablename__ = "credit_balances"
    __table_args__ = (UniqueConstraint("vendor_id", "service_name", name="uq_credit_balances_vendor_service"),)
    __mapper_args__ = {"eager_defaults": True}

    balance_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(String, ForeignKey("vendors.vendor_id"), nullable=False, index=True)
    service_name = Column(String, nullable=False)
    remaining_credits = Column(Integer, nullable=False, default=0)
    total_purchased = Column(Integer, nullable=False, default=0)
    total_used = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())
