# ============================================================================
# Payment & Subscription Models
# ============================================================================
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy import Text, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from app.core.database import Base
from app.models.user import SubscriptionTier

class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

class BillingInterval(str, enum.Enum):
    MONTH = "month"
    YEAR = "year"

def monthly_price(price: int, interval: "BillingInterval") -> float:
    """Normalise a plan price in minor units to a monthly amount in major units"""
    amount = (price or 0) / 100
    if interval == BillingInterval.YEAR:
        return amount / 12
    return amount

class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    tier = Column(Enum(SubscriptionTier), nullable=False)
    description = Column(Text)

    price = Column(Integer, nullable=False)  # Minor currency units
    currency = Column(String(10), nullable=False, default="USD")
    interval = Column(Enum(BillingInterval), nullable=False, default=BillingInterval.MONTH)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subscriptions = relationship("Subscription", back_populates="plan")
    payments = relationship("Payment", back_populates="plan")

    @property
    def monthly_price(self) -> float:
        return monthly_price(self.price, self.interval)

    def __repr__(self):
        return f"<SubscriptionPlan {self.name} ({self.price})>"

class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("subscription_plans.id"), nullable=True)

    tier = Column(Enum(SubscriptionTier), nullable=False, default=SubscriptionTier.BASIC)
    status = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)
    provider = Column(String(30))  # stripe, iyzico, apple, google

    current_period_start = Column(DateTime(timezone=True))
    current_period_end = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("SubscriptionPlan", back_populates="subscriptions")

    def __repr__(self):
        return f"<Subscription {self.id} ({self.status.value})>"

class Payment(Base):
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey("subscriptions.id"), nullable=True)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("subscription_plans.id"), nullable=True)

    amount = Column(Integer, nullable=False)  # Minor currency units
    currency = Column(String(10), nullable=False, default="USD")
    provider = Column(String(30))

    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, index=True)
    error_message = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="payments")
    plan = relationship("SubscriptionPlan", back_populates="payments")

    def __repr__(self):
        return f"<Payment {self.id} ({self.status.value})>"
