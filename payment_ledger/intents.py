import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payment_ledger import ledger
from payment_ledger.config import Settings
from payment_ledger.errors import InvalidInput, ProcessorError, ServerMisconfigured
from payment_ledger.ledger import LedgerWrite
from payment_ledger.models import Order
from payment_ledger.stripe_service import StripeGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntentResult:
    client_secret: str
    id: str
    replayed: bool = False
    ledger: LedgerWrite = field(default_factory=LedgerWrite.skipped)

    def as_response(self) -> Dict[str, str]:
        return {"clientSecret": self.client_secret, "id": self.id}


def to_minor_units(amount: Optional[float]) -> Optional[int]:
    """Round half up to whole minor units; None for unusable amounts."""
    if amount is None or isinstance(amount, bool):
        return None
    if not math.isfinite(amount):
        return None
    return int(math.floor(amount + 0.5))


class IntentCreator:
    def __init__(self, settings: Settings, gateway: StripeGateway, db: Session):
        self.settings = settings
        self.gateway = gateway
        self.db = db

    def create(
        self,
        amount: Optional[float],
        currency: str = "USD",
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> IntentResult:
        if not self.settings.stripe_secret_key:
            raise ServerMisconfigured("Stripe secret key not configured")

        minor_units = to_minor_units(amount)
        if minor_units is None or minor_units <= 0:
            raise InvalidInput("Invalid amount")

        metadata = metadata or {}

        stale = None
        if idempotency_key:
            existing = self._lookup(idempotency_key)
            if existing is not None:
                replay = self._replay(existing, idempotency_key)
                if replay is not None:
                    return replay
                stale = existing

        try:
            intent = self.gateway.create_payment(minor_units, currency, metadata, idempotency_key)
        except stripe.StripeError as exc:
            logger.exception("Stripe payment intent creation failed")
            raise ProcessorError() from exc

        if stale is not None:
            # The row keyed by this token follows the intent that replaced it.
            write = ledger.repoint_order(self.db, stale, intent)
        else:
            write = ledger.record_intent(self.db, intent, metadata, idempotency_key)
        logger.info(
            "Created payment intent %s for %s %s (ledger applied=%s)",
            intent.id, intent.amount, intent.currency, write.applied,
        )
        return IntentResult(client_secret=intent.client_secret, id=intent.id, ledger=write)

    def _lookup(self, idempotency_key: str) -> Optional[Order]:
        try:
            return ledger.find_by_idempotency_key(self.db, idempotency_key)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Ledger lookup failed for idempotency key %r", idempotency_key)
            return None

    def _replay(self, existing: Order, idempotency_key: str) -> Optional[IntentResult]:
        try:
            intent = self.gateway.retrieve_payment(existing.provider_order_id)
        except stripe.StripeError as exc:
            # Stripe's own idempotency key still guards the creation below.
            logger.warning(
                "Could not retrieve payment intent %s for replay, creating instead: %s",
                existing.provider_order_id, exc,
            )
            return None

        logger.info("Replaying payment intent %s for idempotency key %r", intent.id, idempotency_key)
        return IntentResult(client_secret=intent.client_secret, id=intent.id, replayed=True)
