"""Access to the ``orders`` table.

Writes here are best-effort relative to Stripe: the payment intent already
exists on Stripe's side by the time a row is written, so failures are rolled
back, logged and reported through :class:`LedgerWrite` instead of raised.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from payment_ledger.models import PROVIDER, Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerWrite:
    """Outcome of a best-effort ledger side effect."""

    applied: bool
    rows: int = 0
    error: Optional[str] = None

    @classmethod
    def skipped(cls) -> "LedgerWrite":
        return cls(applied=False)

    @classmethod
    def failed(cls, error: BaseException) -> "LedgerWrite":
        return cls(applied=False, error=f"{type(error).__name__}: {error}")


def find_by_idempotency_key(db: Session, idempotency_key: str) -> Optional[Order]:
    return (
        db.query(Order)
        .filter_by(provider=PROVIDER, idempotency_key=idempotency_key)
        .first()
    )


def record_intent(
    db: Session,
    intent,
    metadata: Dict[str, Any],
    idempotency_key: Optional[str] = None,
) -> LedgerWrite:
    order = Order(
        provider=PROVIDER,
        provider_order_id=intent.id,
        amount=intent.amount,
        currency=intent.currency,
        status=intent.status,
        order_metadata=metadata,
        idempotency_key=idempotency_key,
    )
    try:
        db.add(order)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "Order for payment intent %s already recorded (idempotency key %r): %s",
            intent.id, idempotency_key, exc.orig,
        )
        return LedgerWrite.failed(exc)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("DB insert error for payment intent %s", intent.id)
        return LedgerWrite.failed(exc)

    return LedgerWrite(applied=True, rows=1)


def repoint_order(db: Session, order: Order, intent) -> LedgerWrite:
    """Point an existing row at a replacement intent; metadata and key stay as recorded."""
    previous = order.provider_order_id
    order.provider_order_id = intent.id
    order.amount = intent.amount
    order.currency = intent.currency
    order.status = intent.status
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("DB update error moving order from %s to %s", previous, intent.id)
        return LedgerWrite.failed(exc)

    logger.info("Order for payment intent %s now tracks %s", previous, intent.id)
    return LedgerWrite(applied=True, rows=1)


def update_status(db: Session, provider_order_id: str, status: str) -> LedgerWrite:
    try:
        rows = (
            db.query(Order)
            .filter_by(provider=PROVIDER, provider_order_id=provider_order_id)
            .update({"status": status}, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("DB update error for payment intent %s", provider_order_id)
        return LedgerWrite.failed(exc)

    if rows == 0:
        logger.info("No order found for payment intent %s", provider_order_id)
    return LedgerWrite(applied=rows > 0, rows=rows)
