from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, StrictFloat, StrictInt
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from payment_ledger.config import Settings
from payment_ledger.database import get_db
from payment_ledger.errors import InvalidWebhook, ServerMisconfigured
from payment_ledger.intents import IntentCreator
from payment_ledger.stripe_service import StripeGateway
from payment_ledger.webhooks import WebhookReceiver

router = APIRouter()


class PaymentRequest(BaseModel):
    # Strict so JSON booleans and numeric strings are rejected rather than coerced
    amount: Optional[Union[StrictInt, StrictFloat]] = None
    currency: str = "USD"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    idempotency_key: Optional[str] = None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(settings: Settings = Depends(get_settings)) -> StripeGateway:
    return StripeGateway(settings.stripe_secret_key)


def get_intent_creator(
    settings: Settings = Depends(get_settings),
    gateway: StripeGateway = Depends(get_gateway),
    db: Session = Depends(get_db),
) -> IntentCreator:
    # Resolved before the request body is validated, so a missing key wins over bad input.
    if not settings.stripe_secret_key:
        raise ServerMisconfigured("Stripe secret key not configured")
    return IntentCreator(settings, gateway, db)


def get_webhook_receiver(
    settings: Settings = Depends(get_settings),
    gateway: StripeGateway = Depends(get_gateway),
    db: Session = Depends(get_db),
) -> WebhookReceiver:
    return WebhookReceiver(settings, gateway, db)


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/payments")
def create_payment_api(
    request: PaymentRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    creator: IntentCreator = Depends(get_intent_creator),
):
    result = creator.create(
        request.amount,
        currency=request.currency,
        metadata=request.metadata,
        idempotency_key=request.idempotency_key or idempotency_key,
    )
    return result.as_response()


@router.post("/webhook", response_class=PlainTextResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    receiver: WebhookReceiver = Depends(get_webhook_receiver),
):
    # Signature verification needs the exact bytes Stripe sent.
    try:
        payload = await request.body()
    except ClientDisconnect as exc:
        raise InvalidWebhook("Invalid request body") from exc

    await run_in_threadpool(receiver.receive, payload, stripe_signature)
    return "OK"
