"""
Payment gateway client interface.

Defines the contract every gateway adapter implements so the payment
service never depends on a specific provider's wire protocol. Failures are
reported by raising GatewayError (or one of its subclasses from
..exceptions): PaymentDeclinedError for a rejected charge,
GatewayTimeoutError when the outcome is unknown.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..exceptions import GatewayError


@dataclass(frozen=True)
class CreditCardCharge:
    """Gateway acknowledgement of a credit card charge request."""

    gateway_transaction_id: str
    status: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PixCharge:
    """Gateway acknowledgement of a PIX charge, with the QR code to pay it."""

    gateway_transaction_id: str
    qr_code_image: Optional[str]
    qr_code_text: str
    expires_at: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)


class GatewayClient(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def create_credit_card_charge(
        self,
        amount_cents: int,
        card_token: str,
        billing_data: Dict[str, Any],
        reference_id: str,
    ) -> CreditCardCharge:
        """Create a credit card charge for amount_cents."""
        ...

    @abstractmethod
    async def create_pix_charge(
        self,
        amount_cents: int,
        payer_data: Dict[str, Any],
        reference_id: str,
    ) -> PixCharge:
        """Create a PIX charge and return its QR code."""
        ...


def require_gateway_id(response: Dict[str, Any], key: str = "id") -> str:
    """Pull the charge id out of a gateway response or fail as malformed."""
    gateway_id = response.get(key)
    if not gateway_id:
        raise GatewayError(
            "Malformed gateway response: missing charge id",
            {"missing_field": key}
        )
    return str(gateway_id)
