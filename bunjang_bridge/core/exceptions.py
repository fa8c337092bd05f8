from typing import Any, List, Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class ValidationError(BaseServiceError):
    """Raised when data validation fails."""
    pass

class NotFoundError(BaseServiceError):
    """Raised when a referenced entity does not exist."""
    pass

class ServerMisconfigurationError(BaseServiceError):
    """Raised when required configuration (secrets, credentials) is missing."""
    pass

class WebhookUnauthorizedError(BaseServiceError):
    """Raised when an inbound webhook fails authentication."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

class ExternalServiceError(BaseServiceError):
    """Base exception for remote platform errors."""
    pass

class BunjangServiceError(ExternalServiceError):
    """Base exception for Bunjang-specific errors."""
    pass

class BunjangAPIError(BunjangServiceError):
    """Raised when Bunjang API calls fail."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.reason = reason
        super().__init__(message)

class ShopifyServiceError(ExternalServiceError):
    """Base exception for Shopify-specific errors."""
    pass

class ShopifyAPIError(ShopifyServiceError):
    """Raised when Shopify API calls fail."""
    pass

class ShopifyGraphQLError(ShopifyAPIError):
    """Raised when a GraphQL response carries top-level or user errors."""

    def __init__(self, errors: List[Any]):
        self.errors = errors
        super().__init__(f"GraphQL errors: {errors}")

class SyncError(BaseServiceError):
    """Raised when platform synchronization fails."""
    pass

class InventoryConflictError(SyncError):
    """Raised when a quantity update keeps losing compare-and-swap races."""
    pass

class InventoryAdjustmentError(SyncError):
    """Raised when some line items of an order could not be adjusted."""

    def __init__(self, message: str, done_line_items: List[str]):
        self.done_line_items = done_line_items
        super().__init__(message)
