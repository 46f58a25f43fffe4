"""
Billing error taxonomy.

Every error carries the HTTP status code routes should surface it with.
Webhook handlers catch these per event and log them instead.
"""


class BillingError(Exception):
    """Base class for billing failures."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class InvalidSignatureError(BillingError):
    """Webhook payload failed signature verification."""
    status_code = 400


class ConfigurationError(BillingError):
    """A required secret or setting is missing."""
    status_code = 500


class ValidationError(BillingError):
    """Required input is missing or malformed."""
    status_code = 400


class NotFoundError(BillingError):
    """A customer, plan, or subscription could not be resolved."""
    status_code = 404


class ProviderApiError(BillingError):
    """A call to the Stripe API failed."""
    status_code = 500
