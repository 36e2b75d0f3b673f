"""
Error taxonomy and common error messages.

Components raise these exceptions; the Storefront facade converts any
StorefrontError into a failed OperationResult at its boundary.
"""

# Session errors
ERROR_SESSION_EXPIRED = "Session expired. Please login again."
ERROR_NOT_AUTHENTICATED = "Please login to continue"
ERROR_LOGIN_FAILED = "Login failed"
ERROR_REGISTRATION_FAILED = "Registration failed"

# Cart errors
ERROR_CART_EMPTY = "Cart is empty"
ERROR_NO_VALID_ITEMS = "No valid items in cart"

# Order errors
ERROR_MISSING_FIELDS = "Please fill in all required fields"
ERROR_PAYMENT_METHOD_REQUIRED = "Payment method is required"

# Generic errors
ERROR_NETWORK = "Network error. Please check your connection."
ERROR_UNEXPECTED_RESPONSE = "Unexpected response from server"


class StorefrontError(Exception):
    """Base class for all client-side failures."""

    default_message = ERROR_UNEXPECTED_RESPONSE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NetworkError(StorefrontError):
    """Transport failure: the request never produced an HTTP response."""

    default_message = ERROR_NETWORK


class SessionExpired(StorefrontError):
    """Token refresh failed; the session has been cleared."""

    default_message = ERROR_SESSION_EXPIRED


class ValidationError(StorefrontError):
    """Required input is missing; raised before any network call."""

    default_message = ERROR_MISSING_FIELDS

    def __init__(self, message: str | None = None, fields: list[str] | None = None):
        self.fields = fields or []
        super().__init__(message)


class EmptyCart(StorefrontError):
    """Order requested with no resolvable positive-quantity lines."""

    default_message = ERROR_CART_EMPTY


class RemoteError(StorefrontError):
    """Backend answered, but with a failure status or envelope."""

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
