import json
import logging
from dataclasses import dataclass, field
from typing import Optional

import stripe
from sqlalchemy.orm import Session

from payment_ledger import ledger
from payment_ledger.config import Settings
from payment_ledger.errors import InvalidWebhook, ServerMisconfigured
from payment_ledger.ledger import LedgerWrite
from payment_ledger.stripe_service import StripeGateway

logger = logging.getLogger(__name__)

STATUS_EVENTS = frozenset({
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
})


@dataclass(frozen=True)
class WebhookResult:
    event_type: Optional[str]
    handled: bool = False
    ledger: LedgerWrite = field(default_factory=LedgerWrite.skipped)


class WebhookReceiver:
    def __init__(self, settings: Settings, gateway: StripeGateway, db: Session):
        self.settings = settings
        self.gateway = gateway
        self.db = db

    def receive(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        event = self._decode(payload, signature)

        # The event has been accepted from here on; nothing below may fail the delivery.
        event_type = None
        try:
            event_type = event["type"]
            if event_type not in STATUS_EVENTS:
                logger.debug("Ignoring webhook event %s", event_type)
                return WebhookResult(event_type=event_type)

            intent = event["data"]["object"]
            write = ledger.update_status(self.db, intent["id"], intent["status"])
        except Exception as exc:
            logger.exception("Error handling webhook event %s", event_type)
            return WebhookResult(event_type=event_type, handled=True, ledger=LedgerWrite.failed(exc))

        logger.info("Payment intent %s is now %s (rows=%s)", intent["id"], intent["status"], write.rows)
        return WebhookResult(event_type=event_type, handled=True, ledger=write)

    def _decode(self, payload: bytes, signature: Optional[str]):
        secret = self.settings.stripe_webhook_secret
        if secret:
            try:
                return self.gateway.construct_event(payload, signature, secret)
            except (ValueError, stripe.SignatureVerificationError) as exc:
                logger.error("Webhook signature verification failed: %s", exc)
                raise InvalidWebhook(f"Webhook Error: {exc}") from exc

        if self.settings.require_webhook_signature:
            raise ServerMisconfigured("Stripe webhook secret not configured")

        logger.warning("STRIPE_WEBHOOK_SECRET is not set; accepting unsigned webhook event")
        try:
            return json.loads(payload)
        except ValueError as exc:
            logger.error("Webhook payload could not be decoded: %s", exc)
            raise InvalidWebhook(f"Webhook Error: {exc}") from exc
