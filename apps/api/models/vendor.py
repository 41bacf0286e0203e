"""Vendor and vendor service catalog models."""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Vendor(Base):
    """Upstream supplier that credits are bought from."""

    __tablename__ = "vendors"
    __mapper_args__ = {"eager_defaults": True}

    vendor_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    contact_email = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_date = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    services = relationship("VendorService", back_populates="vendor", cascade="all, delete-orphan")


class VendorService(Base):
    """A sellable service offered by a vendor."""

    __tablename__ = "vendor_services"
    __mapper_args__ = {"eager_defaults": True}

    service_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(String, ForeignKey("vendors.vendor_id", ondelete="CASCADE"), nullable=False, index=True)
    service_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    item_type = Column(String, nullable=False, default="subscription")  # subscription, hardware
    default_price = Column(Float, nullable=False, default=0.0)
    cost_price = Column(Float, nullable=False, default=0.0)
    is_available = Column(Boolean, nullable=False, default=True)
    created_date = Column(DateTime(timezone=True), server_default=func.now())

    vendor = relationship("Vendor", back_populates="services")
