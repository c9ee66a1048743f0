from typing import Optional


class PaymentServiceError(Exception):
    """Base error rendered to the client as a short plain-text message."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(PaymentServiceError):
    status_code = 400


class InvalidWebhook(PaymentServiceError):
    status_code = 400


class ServerMisconfigured(PaymentServiceError):
    status_code = 500


class ProcessorError(PaymentServiceError):
    status_code = 500

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
