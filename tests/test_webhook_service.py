"""Tests for webhook verification, parsing and reconciliation."""

import json

import pytest

from registry_payments.exceptions import InvalidPayloadError, InvalidSignatureError, TransactionNotFoundError
from registry_payments.services.payment_service import create_charge
from registry_payments.services.signature_service import sign_webhook_payload
from registry_payments.services.webhook_service import (
    DEFAULT_DECLINE_MESSAGE,
    WebhookOutcome,
    confirm_transaction,
    handle_webhook,
    parse_webhook_payload,
    resolve_action,
)

from conftest import PAYER, WEBHOOK_SECRET


@pytest.fixture
def pending_charge(session_factory, gateway, make_gift, couple_pays):
    """Create a gift and a pending PIX charge for it; returns (gift_id, transaction)."""

    async def _pending_charge(quantity=1, key="idem-webhook-000001", gift_id=None):
        if gift_id is None:
            gift_id = await make_gift(quantity=quantity)
        async with session_factory() as session:
            transaction = await create_charge(session, gateway, gift_id, "pix", PAYER, key, couple_pays)
        return gift_id, transaction

    return _pending_charge


async def _deliver(session_factory, body, signature, secret=WEBHOOK_SECRET):
    async with session_factory() as session:
        return await handle_webhook(session, body, signature, secret, source_ip="198.51.100.4")


class TestParseWebhookPayload:
    def test_valid_payload(self):
        payload = parse_webhook_payload(b'{"event_type": "CHARGE.PAID", "data": {"id": "CHAR_1", "status": "PAID"}}')
        assert payload.event_type == "CHARGE.PAID"
        assert payload.data.id == "CHAR_1"
        assert payload.data.error_message is None

    def test_not_json(self):
        with pytest.raises(InvalidPayloadError):
            parse_webhook_payload(b"event_type=CHARGE.PAID")

    def test_not_an_object(self):
        with pytest.raises(InvalidPayloadError):
            parse_webhook_payload(b'["CHARGE.PAID"]')

    def test_missing_fields_are_listed(self):
        with pytest.raises(InvalidPayloadError) as exc_info:
            parse_webhook_payload(b'{"event_type": "CHARGE.PAID", "data": {"id": "CHAR_1"}}')
        assert "data.status" in exc_info.value.details["fields"]

    def test_missing_data(self):
        with pytest.raises(InvalidPayloadError) as exc_info:
            parse_webhook_payload(b'{"event_type": "CHARGE.PAID"}')
        assert "data" in exc_info.value.details["fields"]


class TestResolveAction:
    @pytest.mark.parametrize("status", ["PAID", "paid", "AUTHORIZED"])
    def test_confirming_statuses(self, status):
        payload = parse_webhook_payload(json.dumps({"event_type": "CHARGE.UPDATED", "data": {"id": "C", "status": status}}))
        assert resolve_action(payload) == "confirm"

    @pytest.mark.parametrize("status", ["DECLINED", "CANCELED", "CANCELLED", "ERROR"])
    def test_failing_statuses(self, status):
        payload = parse_webhook_payload(json.dumps({"event_type": "CHARGE.UPDATED", "data": {"id": "C", "status": status}}))
        assert resolve_action(payload) == "fail"

    def test_event_type_is_fallback(self):
        payload = parse_webhook_payload(json.dumps({"event_type": "CHARGE.PAID", "data": {"id": "C", "status": "UNKNOWN"}}))
        assert resolve_action(payload) == "confirm"

    def test_data_status_wins_over_event_type(self):
        payload = parse_webhook_payload(json.dumps({"event_type": "CHARGE.PAID", "data": {"id": "C", "status": "DECLINED"}}))
        assert resolve_action(payload) == "fail"

    def test_waiting_is_not_actionable(self):
        payload = parse_webhook_payload(json.dumps({"event_type": "CHARGE.WAITING", "data": {"id": "C", "status": "WAITING"}}))
        assert resolve_action(payload) is None


class TestConfirmation:
    async def test_paid_webhook_confirms_and_decrements(
        self, session_factory, pending_charge, signed_webhook, load_gift, load_transaction
    ):
        gift_id, transaction = await pending_charge(quantity=2)
        body, signature = signed_webhook(transaction.gateway_transaction_id, "PAID")

        outcome = await _deliver(session_factory, body, signature)

        assert outcome == WebhookOutcome.CONFIRMED
        stored = await load_transaction(transaction.internal_id)
        assert stored.status == "confirmed"
        assert stored.confirmed_at is not None
        assert json.loads(stored.gateway_response)["webhook_data"]["status"] == "PAID"

        gift = await load_gift(gift_id)
        assert gift.quantity_available == 1
        assert gift.quantity_sold == 1
        assert gift.is_enabled is True

    async def test_last_unit_disables_gift(self, session_factory, pending_charge, signed_webhook, load_gift):
        gift_id, transaction = await pending_charge(quantity=1)
        body, signature = signed_webhook(transaction.gateway_transaction_id, "PAID")

        await _deliver(session_factory, body, signature)

        gift = await load_gift(gift_id)
        assert gift.quantity_available == 0
        assert gift.quantity_sold == 1
        assert gift.is_enabled is False

    async def test_duplicate_delivery_decrements_once(
        self, session_factory, pending_charge, signed_webhook, load_gift
    ):
        gift_id, transaction = await pending_charge(quantity=3)
        body, signature = signed_webhook(transaction.gateway_transaction_id, "PAID")

        first = await _deliver(session_factory, body, signature)
        second = await _deliver(session_factory, body, signature)

        assert first == WebhookOutcome.CONFIRMED
        assert second == WebhookOutcome.DUPLICATE
        gift = await load_gift(gift_id)
        assert gift.quantity_available == 2
        assert gift.quantity_sold == 1

    async def test_decline_after_confirm_is_ignored(
        self, session_factory, pending_charge, signed_webhook, load_transaction
    ):
        _, transaction = await pending_charge()
        paid = signed_webhook(transaction.gateway_transaction_id, "PAID")
        declined = signed_webhook(transaction.gateway_transaction_id, "DECLINED")

        await _deliver(session_factory, *paid)
        outcome = await _deliver(session_factory, *declined)

        assert outcome == WebhookOutcome.DUPLICATE
        stored = await load_transaction(transaction.internal_id)
        assert stored.status == "confirmed"

    async def test_sold_out_gift_leaves_transaction_pending(
        self, session_factory, pending_charge, signed_webhook, load_gift, load_transaction
    ):
        gift_id, first = await pending_charge(quantity=1, key="idem-first-buyer-01")
        _, second = await pending_charge(gift_id=gift_id, key="idem-second-buyer1")

        await _deliver(session_factory, *signed_webhook(first.gateway_transaction_id, "PAID"))
        outcome = await _deliver(session_factory, *signed_webhook(second.gateway_transaction_id, "PAID"))

        assert outcome == WebhookOutcome.INVENTORY_EXHAUSTED
        stored = await load_transaction(second.internal_id)
        assert stored.status == "pending"
        assert "unapplied_confirmation" in json.loads(stored.gateway_response)

        gift = await load_gift(gift_id)
        assert gift.quantity_available == 0
        assert gift.quantity_sold == 1


class TestFailure:
    async def test_declined_webhook_marks_failed(
        self, session_factory, pending_charge, signed_webhook, load_gift, load_transaction
    ):
        gift_id, transaction = await pending_charge()
        body, signature = signed_webhook(
            transaction.gateway_transaction_id, "DECLINED", error_message="Cartão recusado"
        )

        outcome = await _deliver(session_factory, body, signature)

        assert outcome == WebhookOutcome.FAILED
        stored = await load_transaction(transaction.internal_id)
        assert stored.status == "failed"
        assert stored.error_message == "Cartão recusado"
        gift = await load_gift(gift_id)
        assert gift.quantity_available == 1
        assert gift.quantity_sold == 0

    async def test_default_error_message(self, session_factory, pending_charge, signed_webhook, load_transaction):
        _, transaction = await pending_charge()

        await _deliver(session_factory, *signed_webhook(transaction.gateway_transaction_id, "CANCELED"))

        stored = await load_transaction(transaction.internal_id)
        assert stored.error_message == DEFAULT_DECLINE_MESSAGE


class TestNonActionable:
    async def test_waiting_status_ignored(self, session_factory, pending_charge, signed_webhook, load_transaction):
        _, transaction = await pending_charge()

        outcome = await _deliver(session_factory, *signed_webhook(transaction.gateway_transaction_id, "WAITING"))

        assert outcome == WebhookOutcome.IGNORED
        stored = await load_transaction(transaction.internal_id)
        assert stored.status == "pending"

    async def test_waiting_then_paid_confirms(
        self, session_factory, pending_charge, signed_webhook, load_gift, load_transaction
    ):
        gift_id, transaction = await pending_charge()
        gateway_id = transaction.gateway_transaction_id

        outcomes = [
            await _deliver(session_factory, *signed_webhook(gateway_id, "WAITING")),
            await _deliver(session_factory, *signed_webhook(gateway_id, "WAITING")),
            await _deliver(session_factory, *signed_webhook(gateway_id, "PAID")),
            await _deliver(session_factory, *signed_webhook(gateway_id, "PAID")),
        ]

        assert outcomes == [
            WebhookOutcome.IGNORED,
            WebhookOutcome.IGNORED,
            WebhookOutcome.CONFIRMED,
            WebhookOutcome.DUPLICATE,
        ]
        assert (await load_transaction(transaction.internal_id)).status == "confirmed"
        assert (await load_gift(gift_id)).quantity_sold == 1

    async def test_repeat_delivery_in_same_session(self, session_factory, pending_charge, signed_webhook):
        _, transaction = await pending_charge()
        body, signature = signed_webhook(transaction.gateway_transaction_id, "PAID")

        async with session_factory() as session:
            first = await handle_webhook(session, body, signature, WEBHOOK_SECRET)
            second = await handle_webhook(session, body, signature, WEBHOOK_SECRET)
            third = await handle_webhook(session, body, signature, WEBHOOK_SECRET)

        assert (first, second, third) == (
            WebhookOutcome.CONFIRMED,
            WebhookOutcome.DUPLICATE,
            WebhookOutcome.DUPLICATE,
        )

    async def test_unknown_gateway_id(self, session_factory, signed_webhook):
        outcome = await _deliver(session_factory, *signed_webhook("CHAR_TEST_PING", "PAID"))
        assert outcome == WebhookOutcome.UNKNOWN_TRANSACTION


class TestRejection:
    async def test_tampered_body_rejected_without_writes(
        self, session_factory, pending_charge, signed_webhook, load_gift, load_transaction
    ):
        gift_id, transaction = await pending_charge()
        body, signature = signed_webhook(transaction.gateway_transaction_id, "DECLINED")
        tampered = body.replace(b"DECLINED", b"PAID")

        with pytest.raises(InvalidSignatureError):
            await _deliver(session_factory, tampered, signature)

        stored = await load_transaction(transaction.internal_id)
        assert stored.status == "pending"
        gift = await load_gift(gift_id)
        assert gift.quantity_available == 1

    async def test_missing_signature(self, session_factory, signed_webhook):
        body, _ = signed_webhook("CHAR_ANY", "PAID")
        with pytest.raises(InvalidSignatureError):
            await _deliver(session_factory, body, None)

    async def test_unconfigured_secret_rejects(self, session_factory, signed_webhook):
        body, signature = signed_webhook("CHAR_ANY", "PAID", secret="")
        with pytest.raises(InvalidSignatureError):
            await _deliver(session_factory, body, signature, secret="")

    async def test_signed_garbage_is_invalid_payload(self, session_factory):
        body = b"not json at all"
        with pytest.raises(InvalidPayloadError):
            await _deliver(session_factory, body, sign_webhook_payload(body, WEBHOOK_SECRET))


class TestConfirmTransaction:
    async def test_confirms_pending_transaction(self, session_factory, pending_charge, load_gift, load_transaction):
        gift_id, transaction = await pending_charge()

        async with session_factory() as session:
            outcome = await confirm_transaction(session, transaction.internal_id)

        assert outcome == WebhookOutcome.CONFIRMED
        assert (await load_transaction(transaction.internal_id)).status == "confirmed"
        assert (await load_gift(gift_id)).quantity_sold == 1

    async def test_second_confirm_is_duplicate(self, session_factory, pending_charge):
        _, transaction = await pending_charge()

        async with session_factory() as session:
            await confirm_transaction(session, transaction.internal_id)
        async with session_factory() as session:
            outcome = await confirm_transaction(session, transaction.internal_id)

        assert outcome == WebhookOutcome.DUPLICATE

    async def test_unknown_transaction(self, session_factory):
        async with session_factory() as session:
            with pytest.raises(TransactionNotFoundError):
                await confirm_transaction(session, "TXN-0000000000000000")
