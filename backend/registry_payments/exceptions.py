"""
Registry Payments Exception Hierarchy

Stable error codes for the gift purchase and webhook flows.
All errors use the registry: prefix so clients can branch on them.
"""
from typing import Optional, Dict, Any


class RegistryPaymentError(Exception):
    """
    Base exception for all gift-registry payment errors.

    Each subclass carries the HTTP status the API layer answers with.
    """

    status_code: int = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# ============================================================================
# Fee calculation
# ============================================================================

class InvalidModalityError(RegistryPaymentError):
    """
    Fee modality is neither couple_pays nor guest_pays.

    Programmer or configuration error, never caused by a guest.
    """

    status_code = 500

    def __init__(self, modality: Any):
        super().__init__(
            "registry:fee:invalid_modality",
            f"Invalid fee modality: {modality!r}",
            {"modality": str(modality)}
        )


class InvalidFeePercentageError(RegistryPaymentError):
    """Fee percentage outside [0, 1)."""

    status_code = 500

    def __init__(self, fee_percentage: Any):
        super().__init__(
            "registry:fee:invalid_percentage",
            f"Fee percentage must be in [0, 1), got {fee_percentage!r}",
            {"fee_percentage": str(fee_percentage)}
        )


class RegistryNotConfiguredError(RegistryPaymentError):
    """Tenant has no gift registry configuration (fee modality unknown)."""

    status_code = 422

    def __init__(self, tenant_id: str):
        super().__init__(
            "registry:config:missing",
            "Gift registry is not configured for this event",
            {"tenant_id": tenant_id}
        )


# ============================================================================
# Purchase
# ============================================================================

class GiftNotFoundError(RegistryPaymentError):
    """Gift item does not exist (or belongs to another tenant)."""

    status_code = 404

    def __init__(self, gift_item_id: str):
        super().__init__(
            "registry:gift:not_found",
            "Gift not found",
            {"gift_item_id": gift_item_id}
        )


class GiftUnavailableError(RegistryPaymentError):
    """
    Purchase attempted on a disabled or sold-out gift.

    Checked before any fee computation or gateway call.
    """

    status_code = 422

    def __init__(self, gift_item_id: str):
        super().__init__(
            "registry:gift:unavailable",
            "This gift is no longer available",
            {"gift_item_id": gift_item_id}
        )


class InvalidPaymentRequestError(RegistryPaymentError):
    """Malformed purchase input (payment method, idempotency key, card token)."""

    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("registry:payment:invalid_request", message, details)


class TransactionNotFoundError(RegistryPaymentError):
    """No transaction with the given internal id."""

    status_code = 404

    def __init__(self, internal_id: str):
        super().__init__(
            "registry:transaction:not_found",
            f"No transaction found with ID: {internal_id}",
            {"internal_id": internal_id}
        )


# ============================================================================
# Gateway
# ============================================================================

class GatewayError(RegistryPaymentError):
    """
    Payment gateway failure.

    Examples:
    - Network error talking to the gateway
    - Malformed gateway response
    - Charge rejected by the gateway
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "registry:gateway:error"
    ):
        super().__init__(error_code, message, details)


class PaymentDeclinedError(GatewayError):
    """
    Gateway declined the charge.

    Examples:
    - Insufficient funds
    - Card expired
    - Fraud suspected
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, error_code="registry:gateway:declined")


class GatewayTimeoutError(GatewayError):
    """
    Gateway did not answer in time.

    The charge may still have been created, so the transaction stays pending.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, error_code="registry:gateway:timeout")


# ============================================================================
# Webhook boundary
# ============================================================================

class InvalidSignatureError(RegistryPaymentError):
    """Webhook HMAC signature missing or not matching the raw body."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__("registry:webhook:invalid_signature", message)


class InvalidPayloadError(RegistryPaymentError):
    """Webhook body is not JSON or lacks required fields."""

    def __init__(self, message: str = "Invalid webhook payload", details: Optional[Dict[str, Any]] = None):
        super().__init__("registry:webhook:invalid_payload", message, details)


# ============================================================================
# Inventory
# ============================================================================

class InventoryExhaustedError(RegistryPaymentError):
    """Confirmation arrived for a gift that has no quantity left."""

    status_code = 409

    def __init__(self, gift_item_id: str):
        super().__init__(
            "registry:inventory:exhausted",
            "Gift has no remaining quantity",
            {"gift_item_id": gift_item_id}
        )


class IllegalTransitionError(RegistryPaymentError):
    """Attempted to move a transaction out of a terminal state."""

    status_code = 409

    def __init__(self, internal_id: str, current_status: str, target_status: str):
        super().__init__(
            "registry:transaction:illegal_transition",
            f"Transaction {internal_id} cannot move from {current_status} to {target_status}",
            {"internal_id": internal_id, "from": current_status, "to": target_status}
        )
