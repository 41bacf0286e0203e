"""Customer model for people buying subscriptions and hardware."""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Customer(Base):
    """Customer record referenced by every sale."""

    __tablename__ = "customers"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=True, index=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    internal_notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_date = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    subscriptions = relationship("Subscription", back_populates="customer")
