"""Modelos SQLAlchemy: conversaciones, mensajes, pedidos, catálogo y configuración del local."""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Integer, JSON, UniqueConstraint, BigInteger, Boolean, Float, Numeric, Text, TIMESTAMP, Index

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Base(DeclarativeBase):
    """Base declarativa."""
    pass

class Conversation(Base):
    __tablename__ = "conversations"
    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    customer_id: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16), default="OPEN")  # OPEN|IN_PROGRESS|COMPLETED|CANCELLED
    finalized: Mapped[bool] = mapped_column(Boolean, default=False)
    manual_override: Mapped[bool] = mapped_column(Boolean, default=False)
    opened_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=False), default=_utcnow)
    closed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=False), nullable=True)
    turns: Mapped[int] = mapped_column(Integer, default=0)
    last_user_ts: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=False), nullable=True)
    last_assistant_ts: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=False), nullable=True)
    summary: Mapped[dict] = mapped_column(JSON, default=dict)
    __table_args__ = (
        Index("ix_conversations_customer", "tenant_id", "customer_id", "status"),
    )

class Message(Base):
    __tablename__ = "messages"
    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(Integer, index=True)
    role: Mapped[str] = mapped_column(String(16))  # user|assistant
    content: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(16), default="text")  # text|json
    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    ts: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=False), default=_utcnow)

class ProcessedMessage(Base):
    __tablename__ = "processed_messages"
    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    provider_message_id: Mapped[str] = mapped_column(String(128))
    received_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=False), default=_utcnow)
    __table_args__ = (
        UniqueConstraint("tenant_id", "provider_message_id", name="uq_processed_idem"),
    )

class ConversationEvent(Base):
    __tablename__ = "conversation_events"
    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(Integer, index=True)
    kind: Mapped[str] = mapped_column(String(32))
    data: Mapped[dict] = mapped_column(JSON)
    ts: Mapped[int] = mapped_column(BigInteger)  # epoch ms

class OrderRecord(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(Integer, unique=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    customer_id: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16))
    payload: Mapped[dict] = mapped_column(JSON)
    grand_total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=False), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=False), default=_utcnow)

class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    description: Mapped[str] = mapped_column(String(200))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    min_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")

class StoreSetting(Base):
    __tablename__ = "store_settings"
    key: Mapped[str] = mapped_column(String(128), primary_key=True)  # store_hours:<tenant> | behavior:<tenant>
    value: Mapped[dict] = mapped_column(JSON)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=False), default=_utcnow)
