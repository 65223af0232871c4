"""
SQLAlchemy ORM Models for Registry Payments

Gift items, per-tenant registry configuration, payment transactions and
idempotency keys.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Float, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite round-trips."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class GiftItemModel(Base):
    """
    ORM model for gift_items table.

    quantity_available / quantity_sold form the inventory ledger and are only
    mutated by services.inventory_service under a row lock.
    """
    __tablename__ = "gift_items"

    id = Column(String, primary_key=True)
    tenant_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)  # cents
    quantity_available = Column(Integer, nullable=False, default=1)
    quantity_sold = Column(Integer, nullable=False, default=0)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("price >= 0", name="gift_price_check"),
        CheckConstraint("quantity_available >= 0", name="gift_quantity_available_check"),
        CheckConstraint("quantity_sold >= 0", name="gift_quantity_sold_check"),
    )

    def is_available(self) -> bool:
        return bool(self.is_enabled) and self.quantity_available > 0


class GiftRegistryConfigModel(Base):
    """ORM model for gift_registry_configs table (one row per tenant)."""
    __tablename__ = "gift_registry_configs"

    id = Column(String, primary_key=True)
    tenant_id = Column(String, nullable=False, unique=True)
    fee_modality = Column(String, nullable=False, default="couple_pays")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("fee_modality IN ('couple_pays', 'guest_pays')", name="fee_modality_config_check"),
    )


class TransactionModel(Base):
    """
    ORM model for transactions table.

    Monetary fields are a snapshot taken at creation; later registry config
    changes never touch them.
    """
    __tablename__ = "transactions"

    internal_id = Column(String, primary_key=True)
    gateway_transaction_id = Column(String, unique=True, index=True)
    tenant_id = Column(String, nullable=False, index=True)
    gift_item_id = Column(String, ForeignKey("gift_items.id"), nullable=False, index=True)
    original_unit_price = Column(Integer, nullable=False)
    fee_percentage = Column(Float, nullable=False)
    fee_modality = Column(String, nullable=False)
    fee_amount = Column(Integer, nullable=False)
    gross_amount = Column(Integer, nullable=False)
    net_amount_couple = Column(Integer, nullable=False)
    platform_amount = Column(Integer, nullable=False)
    payment_method = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    error_message = Column(Text)
    gateway_response = Column(Text)  # JSON blob
    confirmed_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'confirmed', 'failed')", name="transaction_status_check"),
        CheckConstraint("fee_modality IN ('couple_pays', 'guest_pays')", name="transaction_fee_modality_check"),
        CheckConstraint("payment_method IN ('credit_card', 'pix')", name="payment_method_check"),
        CheckConstraint("net_amount_couple + platform_amount = gross_amount", name="amounts_balance_check"),
    )


class IdempotencyKeyModel(Base):
    """
    ORM model for idempotency_keys table.

    The unique index on key is what makes charge creation at-most-once.
    """
    __tablename__ = "idempotency_keys"

    id = Column(String, primary_key=True)
    key = Column(String(100), nullable=False, unique=True)
    transaction_id = Column(String, ForeignKey("transactions.internal_id"), nullable=False)
    response = Column(Text)  # JSON blob
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
