from typing import Optional


class CheckoutError(Exception):
    pass


class NotFound(CheckoutError):
    pass


class ProviderError(CheckoutError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedPayload(CheckoutError):
    pass


class AuthenticationFailure(CheckoutError):
    pass


class InvalidPayment(CheckoutError):
    """Provider returned a payment resource that cannot be recorded."""
