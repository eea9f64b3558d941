from sqlalchemy import Column, DateTime, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from insomnia_fuel.core.database import Base


class Order(Base):
    __tablename__ = "orders"
    # one order per checkout session, enforced by the database
    __table_args__ = (UniqueConstraint("stripe_session_id", name="uq_orders_stripe_session_id"),)

    id = Column(Integer, primary_key=True)

    stripe_session_id = Column(String(255), nullable=False)
    payment_intent_id = Column(String(255), index=True, nullable=True)

    # who placed it
    user_id = Column(String(128), index=True, nullable=True)
    user_name = Column(String(120), nullable=True)
    email = Column(String(255), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    service_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="aud")

    # kitchen flow: pending -> preparing -> ready -> completed / cancelled
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="unpaid")

    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )
