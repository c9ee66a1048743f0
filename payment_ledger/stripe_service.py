from typing import Any, Dict, Optional

import stripe


class StripeGateway:
    """Thin wrapper over the Stripe SDK bound to one secret key."""

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    def create_payment(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, Any],
        idempotency_key: Optional[str] = None,
    ):
        params = dict(
            amount=amount,
            currency=currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
            api_key=self.api_key,
        )
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        return stripe.PaymentIntent.create(**params)

    def retrieve_payment(self, payment_intent_id: str):
        return stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.api_key)

    def construct_event(self, payload: bytes, signature: Optional[str], webhook_secret: str):
        # An absent header is reported by Stripe as a signature failure.
        return stripe.Webhook.construct_event(
            payload,
            signature or "",
            webhook_secret,
            api_key=self.api_key,
        )
