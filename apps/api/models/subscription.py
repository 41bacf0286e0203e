"""Subscription model: one sold line item (a.k.a. sale)."""

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Subscription(Base):
    """Credit consumption record, optionally grouped with others by bundle_id."""

    __tablename__ = "subscriptions"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)
    service_name = Column(String, nullable=False)
    amount_paid = Column(Float, nullable=False, default=0.0)
    credits_used = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    expiration_date = Column(Date, nullable=False, index=True)
    classification = Column(String, nullable=True)
    vendor_id = Column(String, ForeignKey("vendors.vendor_id"), nullable=True, index=True)
    vendor_service_name = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="active")
    item_type = Column(String, nullable=False, default="subscription")
    bundle_id = Column(String, nullable=True, index=True)
    mac_address = Column(String, nullable=True)
    payment_type = Column(String, nullable=True, default="Cash")
    payment_status = Column(String, nullable=True, default="Paid")
    transaction_id_ref = Column(String, nullable=True)
    order_status = Column(String, nullable=True, default="Closed")
    discount_amount = Column(Float, nullable=False, default=0.0)
    created_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    customer = relationship("Customer", back_populates="subscriptions")
