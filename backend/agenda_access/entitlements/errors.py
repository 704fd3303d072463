"""
Structured error classes for access evaluation.

"Could not determine entitlement" is always an error, never a no-access state.
"""

from typing import Optional


class EntitlementError(Exception):
    """Base exception for entitlement errors."""
    pass


class EntitlementFetchError(EntitlementError):
    """
    Raised when entitlement data could not be fetched.

    Carries a machine-readable error_code for API responses.
    """

    def __init__(
        self,
        owner_id: str,
        detail: str,
        cause: Optional[Exception] = None,
    ):
        self.owner_id = owner_id
        self.detail = detail
        self.cause = cause
        self.error_code = "ENTITLEMENT_FETCH_FAILED"
        super().__init__(f"Entitlement fetch failed for {owner_id}: {detail}")

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.detail,
            "owner_id": self.owner_id,
        }


class PrincipalNotFoundError(EntitlementError):
    """Raised when no profile exists for the requested principal."""

    def __init__(self, principal_id: str):
        self.principal_id = principal_id
        super().__init__(f"No profile found for principal {principal_id}")


class InvalidProductError(EntitlementError):
    """Raised when a store receipt names a product we do not sell."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Invalid product_id: {product_id}")
