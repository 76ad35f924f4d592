"""Migración inicial: conversaciones, mensajes, dedupe, pedidos, catálogo y configuración."""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="OPEN"),
        sa.Column("finalized", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("manual_override", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("opened_at", sa.TIMESTAMP(timezone=False)),
        sa.Column("closed_at", sa.TIMESTAMP(timezone=False), nullable=True),
        sa.Column("turns", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_user_ts", sa.TIMESTAMP(timezone=False), nullable=True),
        sa.Column("last_assistant_ts", sa.TIMESTAMP(timezone=False), nullable=True),
        sa.Column("summary", sa.JSON(), nullable=True),
    )
    op.create_index("ix_conversations_customer", "conversations", ["tenant_id", "customer_id", "status"])
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("conversation_id", sa.Integer, nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("type", sa.String(16), nullable=False, server_default="text"),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("ts", sa.TIMESTAMP(timezone=False)),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])
    op.create_table(
        "processed_messages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("provider_message_id", sa.String(128), nullable=False),
        sa.Column("received_at", sa.TIMESTAMP(timezone=False)),
        sa.UniqueConstraint("tenant_id", "provider_message_id", name="uq_processed_idem"),
    )
    op.create_table(
        "conversation_events",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("conversation_id", sa.Integer, nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("ts", sa.BigInteger, nullable=False),
    )
    op.create_index("ix_conversation_events_conversation_id", "conversation_events", ["conversation_id"])
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("conversation_id", sa.Integer, nullable=False, unique=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("grand_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=False)),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=False)),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("description", sa.String(200), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("min_km", sa.Float, nullable=True),
        sa.Column("max_km", sa.Float, nullable=True),
        sa.Column("notes", sa.Text, nullable=False, server_default=""),
    )
    op.create_index("ix_products_tenant_id", "products", ["tenant_id"])
    op.create_table(
        "store_settings",
        sa.Column("key", sa.String(128), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=False)),
    )

def downgrade() -> None:
    op.drop_table("store_settings")
    op.drop_index("ix_products_tenant_id", table_name="products")
    op.drop_table("products")
    op.drop_table("orders")
    op.drop_index("ix_conversation_events_conversation_id", table_name="conversation_events")
    op.drop_table("conversation_events")
    op.drop_table("processed_messages")
    op.drop_index("ix_messages_conversation_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_conversations_customer", table_name="conversations")
    op.drop_table("conversations")
