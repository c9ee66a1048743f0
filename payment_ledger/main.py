import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from payment_ledger.config import Settings, load_settings
from payment_ledger.database import Base, make_engine, make_sessionmaker
from payment_ledger.errors import PaymentServiceError
from payment_ledger.routes import router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


async def payment_error_handler(request: Request, exc: PaymentServiceError):
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # A missing or non-object body carries no usable amount either.
    if any(
        "amount" in error.get("loc", ()) or tuple(error.get("loc", ())) == ("body",)
        for error in exc.errors()
    ):
        return PlainTextResponse("Invalid amount", status_code=400)
    return PlainTextResponse("Invalid request body", status_code=400)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)

    if not settings.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set; payment creation will fail")
    if not settings.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set; webhook signatures will not be verified")

    app = FastAPI(title="Stripe Payment Intents Service")
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = make_sessionmaker(engine)

    app.include_router(router)

    app.add_exception_handler(PaymentServiceError, payment_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    return app


def run() -> None:
    uvicorn.run("payment_ledger.main:create_app", factory=True, host="0.0.0.0", port=8000)
