"""Exception hierarchy for the vote and ranking engine.

    TallyrankError
    ├── NoIdentityError
    ├── CooldownError(remaining_ms)
    ├── InvalidDirectionError
    ├── ProductNotFoundError(product_id)
    └── StoreUnavailableError

Each error carries a stable ``code`` and the HTTP status the API layer
answers with.
"""

from __future__ import annotations


class TallyrankError(Exception):
    """Base exception for all engine errors."""

    code = "error"
    status_code = 500


class NoIdentityError(TallyrankError):
    """Neither an account nor a valid anonymous fingerprint was supplied."""

    code = "no_identity"
    status_code = 401

    def __init__(self, message: str = "A valid voter identity is required") -> None:
        super().__init__(message)


class CooldownError(TallyrankError):
    """The identity voted too recently."""

    code = "cooldown"
    status_code = 429

    def __init__(self, remaining_ms: int) -> None:
        self.remaining_ms = max(0, int(remaining_ms))
        super().__init__(f"Please wait {self.retry_after_seconds}s before voting again")

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds to wait, rounded up."""
        return max(1, -(-self.remaining_ms // 1000))


class InvalidDirectionError(TallyrankError):
    """Direction is not ``up`` or ``down``."""

    code = "invalid_direction"
    status_code = 422

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid vote direction: {value!r}")


class ProductNotFoundError(TallyrankError):
    code = "product_not_found"
    status_code = 404

    def __init__(self, product_id: int) -> None:
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class StoreUnavailableError(TallyrankError):
    """The transactional backend failed; nothing was applied."""

    code = "store_unavailable"
    status_code = 503
