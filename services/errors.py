"""
Error taxonomy for the entitlement service.

Every error carries the HTTP status the routers answer with, so handlers
can translate them without a lookup table.
"""


class EntitlementError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(EntitlementError):
    """Webhook secret missing or signature verification failed."""
    status_code = 400


class MalformedEvent(EntitlementError):
    """Verified event without an identity. Acknowledged so the provider stops retrying."""
    status_code = 200


class StoreUnavailable(EntitlementError):
    """Key-value store unbound or failing."""
    status_code = 500


class ValidationError(EntitlementError):
    """Required request field missing."""
    status_code = 400
