"""
Mock Payment Gateway

Simulates the payment gateway for development and testing. No network calls.

Behaviour:
- Special card tokens (tok_decline*) are declined with a fixed reason
- configure() switches the whole gateway to decline, error or timeout
- Every call is recorded in .calls so tests can assert how often the
  gateway was hit
- Charges are only acknowledged (status WAITING); payment confirmation
  arrives later through the webhook, like the real gateway
"""
import asyncio
import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from ..config import settings
from ..exceptions import GatewayError, GatewayTimeoutError, PaymentDeclinedError
from ..services.gateway_client import CreditCardCharge, GatewayClient, PixCharge, require_gateway_id


# Test tokens that trigger specific behaviors
DECLINE_TOKENS = {
    "tok_decline": "insufficient_funds",
    "tok_decline_fraud": "fraud_suspected",
    "tok_decline_expired": "card_expired",
    "tok_decline_invalid": "invalid_card",
}

MockMode = Literal["accept", "decline", "error", "timeout"]


class MockGatewayClient(GatewayClient):
    """Configurable in-process gateway."""

    def __init__(self, mode: MockMode = "accept", delay_seconds: float = 0.0):
        self.mode: MockMode = mode
        self.delay_seconds = delay_seconds
        self.failure_reason: str = "Card declined"
        self.calls: List[Dict[str, Any]] = []

    def configure(
        self,
        mode: MockMode,
        failure_reason: str = "Card declined",
        delay_seconds: Optional[float] = None
    ) -> None:
        """Change gateway behaviour at runtime."""
        self.mode = mode
        self.failure_reason = failure_reason
        if delay_seconds is not None:
            self.delay_seconds = delay_seconds

    async def _simulate(self) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.mode == "decline":
            raise PaymentDeclinedError(self.failure_reason)
        if self.mode == "error":
            raise GatewayError(f"Gateway unavailable: {self.failure_reason}")
        if self.mode == "timeout":
            raise GatewayTimeoutError("Gateway did not respond in time")

    @staticmethod
    def _charge_id(reference_id: str) -> str:
        digest = hashlib.sha256(f"{reference_id}:{uuid.uuid4().hex}".encode()).hexdigest()[:16]
        return f"CHAR_{digest.upper()}"

    async def create_credit_card_charge(
        self,
        amount_cents: int,
        card_token: str,
        billing_data: Dict[str, Any],
        reference_id: str,
    ) -> CreditCardCharge:
        self.calls.append({
            "method": "create_credit_card_charge",
            "amount_cents": amount_cents,
            "card_token": card_token,
            "reference_id": reference_id,
        })
        await self._simulate()

        if card_token in DECLINE_TOKENS:
            raise PaymentDeclinedError(
                DECLINE_TOKENS[card_token],
                {"decline_reason": DECLINE_TOKENS[card_token]}
            )

        response = {
            "id": self._charge_id(reference_id),
            "reference_id": reference_id,
            "status": "WAITING",
            "amount": {"value": amount_cents, "currency": "BRL"},
            "payment_method": {
                "type": "CREDIT_CARD",
                "installments": billing_data.get("installments", 1),
            },
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        return CreditCardCharge(
            gateway_transaction_id=require_gateway_id(response),
            status=response["status"],
            raw=response,
        )

    async def create_pix_charge(
        self,
        amount_cents: int,
        payer_data: Dict[str, Any],
        reference_id: str,
    ) -> PixCharge:
        self.calls.append({
            "method": "create_pix_charge",
            "amount_cents": amount_cents,
            "reference_id": reference_id,
        })
        await self._simulate()

        charge_id = self._charge_id(reference_id)
        expires_at = (
            datetime.now(timezone.utc) + timedelta(minutes=settings.pix_expiration_minutes)
        ).isoformat()
        qr_text = f"00020126580014br.gov.bcb.pix0136{charge_id.lower()}5204000053039865405{amount_cents / 100:.2f}"
        response = {
            "id": charge_id,
            "reference_id": reference_id,
            "status": "WAITING",
            "qr_codes": [{
                "text": qr_text,
                "expiration_date": expires_at,
                "links": [{"href": f"https://sandbox.gateway.local/qrcode/{charge_id}/png"}],
            }],
        }
        return PixCharge(
            gateway_transaction_id=require_gateway_id(response),
            qr_code_image=response["qr_codes"][0]["links"][0]["href"],
            qr_code_text=qr_text,
            expires_at=expires_at,
            raw=response,
        )


# ============================================================================
# Gateway factory
# ============================================================================

_current_gateway: Optional[GatewayClient] = None


def get_gateway() -> GatewayClient:
    """Return the active gateway client. Defaults to MockGatewayClient."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = MockGatewayClient()
    return _current_gateway


def set_gateway(gateway: Optional[GatewayClient]) -> None:
    """Override the active gateway client (None resets to the default)."""
    global _current_gateway
    _current_gateway = gateway
