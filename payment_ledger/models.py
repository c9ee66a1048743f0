from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from payment_ledger.database import Base

PROVIDER = "stripe"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("provider", "provider_order_id", name="uq_orders_provider_order_id"),
        UniqueConstraint("provider", "idempotency_key", name="uq_orders_provider_idempotency_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(String, nullable=False, default=PROVIDER)
    provider_order_id = Column(String, nullable=False, index=True)   # Stripe PaymentIntent ID
    amount = Column(Integer, nullable=False)                          # minor units
    currency = Column(String, nullable=False)
    status = Column(String)                                           # as reported by Stripe
    # "metadata" is reserved on declarative classes
    order_metadata = Column("metadata", JSON, nullable=False, default=dict)
    idempotency_key = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
