"""Tests for the in-process mock gateway and the gateway factory."""

import pytest

from registry_payments.exceptions import GatewayError, GatewayTimeoutError, PaymentDeclinedError
from registry_payments.mocks.payment_gateway import DECLINE_TOKENS, MockGatewayClient, get_gateway, set_gateway
from registry_payments.services.gateway_client import CreditCardCharge, PixCharge, require_gateway_id


class TestMockGatewayClient:
    async def test_credit_card_charge_is_waiting(self):
        gateway = MockGatewayClient()
        charge = await gateway.create_credit_card_charge(10000, "tok_visa", {"installments": 2}, "TXN-1")

        assert isinstance(charge, CreditCardCharge)
        assert charge.gateway_transaction_id.startswith("CHAR_")
        assert charge.status == "WAITING"
        assert charge.raw["payment_method"]["installments"] == 2

    async def test_pix_charge_has_qr_code(self):
        gateway = MockGatewayClient()
        charge = await gateway.create_pix_charge(10526, {}, "TXN-2")

        assert isinstance(charge, PixCharge)
        assert "105.26" in charge.qr_code_text
        assert charge.expires_at

    async def test_charge_ids_are_unique(self):
        gateway = MockGatewayClient()
        first = await gateway.create_pix_charge(100, {}, "TXN-3")
        second = await gateway.create_pix_charge(100, {}, "TXN-3")
        assert first.gateway_transaction_id != second.gateway_transaction_id

    @pytest.mark.parametrize("token", sorted(DECLINE_TOKENS))
    async def test_decline_tokens(self, token):
        gateway = MockGatewayClient()
        with pytest.raises(PaymentDeclinedError) as exc_info:
            await gateway.create_credit_card_charge(100, token, {}, "TXN-4")
        assert exc_info.value.details["decline_reason"] == DECLINE_TOKENS[token]

    async def test_configured_modes(self):
        gateway = MockGatewayClient()

        gateway.configure("error")
        with pytest.raises(GatewayError):
            await gateway.create_pix_charge(100, {}, "TXN-5")

        gateway.configure("timeout")
        with pytest.raises(GatewayTimeoutError):
            await gateway.create_pix_charge(100, {}, "TXN-6")

        gateway.configure("accept")
        await gateway.create_pix_charge(100, {}, "TXN-7")

        assert [call["reference_id"] for call in gateway.calls] == ["TXN-5", "TXN-6", "TXN-7"]


class TestRequireGatewayId:
    def test_missing_id_is_gateway_error(self):
        with pytest.raises(GatewayError) as exc_info:
            require_gateway_id({"status": "WAITING"})
        assert exc_info.value.details == {"missing_field": "id"}

    def test_id_is_stringified(self):
        assert require_gateway_id({"id": 42}) == "42"


class TestGatewayFactory:
    def test_default_is_mock(self):
        set_gateway(None)
        assert isinstance(get_gateway(), MockGatewayClient)

    def test_override(self):
        custom = MockGatewayClient(mode="decline")
        set_gateway(custom)
        try:
            assert get_gateway() is custom
        finally:
            set_gateway(None)
