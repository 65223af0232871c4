"""Shared fixtures: a file-backed SQLite database per test, seeded gifts,
the mock gateway and a signed-webhook builder."""

import json
import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from registry_payments.config import settings
from registry_payments.db.init_db import build_engine, build_session_factory, create_tables, get_db
from registry_payments.db.models import GiftItemModel, GiftRegistryConfigModel, TransactionModel
from registry_payments.db.repository import get_gift_item, get_registry_config, get_transaction
from registry_payments.mocks.payment_gateway import MockGatewayClient, get_gateway
from registry_payments.models.fees import FeeConfig, FeeModality
from registry_payments.services.signature_service import sign_webhook_payload

WEBHOOK_SECRET = "whsec_test_shared_secret"
TENANT_ID = "wedding_ana_bruno"

PAYER = {
    "name": "Carla Souza",
    "email": "carla@example.com",
    "document": "12345678901",
    "phone": "11987654321",
}


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "payment_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "demo_mode", False)
    return WEBHOOK_SECRET


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'registry_test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return MockGatewayClient()


@pytest.fixture
def couple_pays():
    return FeeConfig(fee_percentage=0.05, modality=FeeModality.COUPLE_PAYS)


@pytest.fixture
def guest_pays():
    return FeeConfig(fee_percentage=0.05, modality=FeeModality.GUEST_PAYS)


@pytest.fixture
def make_gift(session_factory):
    """Insert a gift (and its tenant's registry config on first use)."""

    async def _make_gift(
        price=10000,
        quantity=1,
        is_enabled=True,
        tenant_id=TENANT_ID,
        fee_modality="couple_pays",
    ):
        async with session_factory() as session:
            if await get_registry_config(session, tenant_id) is None:
                session.add(GiftRegistryConfigModel(
                    id=f"cfg_{uuid.uuid4().hex[:12]}",
                    tenant_id=tenant_id,
                    fee_modality=fee_modality,
                ))
            gift = GiftItemModel(
                id=f"gift_{uuid.uuid4().hex[:12]}",
                tenant_id=tenant_id,
                name="Jogo de panelas",
                price=price,
                quantity_available=quantity,
                quantity_sold=0,
                is_enabled=is_enabled,
            )
            session.add(gift)
            await session.commit()
            return gift.id

    return _make_gift


@pytest.fixture
def load_gift(session_factory):
    """Read a gift row in its own short-lived session."""

    async def _load_gift(gift_id) -> GiftItemModel:
        async with session_factory() as session:
            return await get_gift_item(session, gift_id)

    return _load_gift


@pytest.fixture
def load_transaction(session_factory):
    async def _load_transaction(internal_id) -> TransactionModel:
        async with session_factory() as session:
            return await get_transaction(session, internal_id)

    return _load_transaction


@pytest.fixture
def signed_webhook():
    """Build (raw_body, signature) for a gateway notification."""

    def _signed_webhook(gateway_id, status="PAID", event_type=None, error_message=None, secret=WEBHOOK_SECRET):
        data = {"id": gateway_id, "status": status, "amount": 10000}
        if error_message is not None:
            data["error_message"] = error_message
        body = json.dumps({"event_type": event_type or f"CHARGE.{status}", "data": data}).encode()
        return body, sign_webhook_payload(body, secret)

    return _signed_webhook


@pytest.fixture
async def client(session_factory, gateway):
    from registry_payments.main import app

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
