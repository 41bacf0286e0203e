"""BusinessTransaction model for the cash drawer ledger."""

from sqlalchemy import Column, Date, DateTime, Float, String, Text
from sqlalchemy.sql import func
import uuid

from database import Base


class BusinessTransaction(Base):
    """Cash added to or withdrawn from the business; unrelated to credits."""

    __tablename__ = "business_transactions"
    __mapper_args__ = {"eager_defaults": True}

    business_transaction_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String, nullable=False)  # add, withdraw
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    transaction_date = Column(Date, nullable=False, server_default=func.current_date())
    created_date = Column(DateTime(timezone=True), server_default=func.now())
