"""Add chat_turn table for assistant conversation turns

Revision ID: 20251019_add_chat_turn
Revises:
Create Date: 2025-10-19 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20251019_add_chat_turn"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "chat_turn",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        # Insertion order; breaks created_at ties
        sa.Column("seq", sa.BigInteger, sa.Identity(always=True), nullable=False),
        sa.Column("conversation_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("user_message", sa.Text, nullable=False),
        sa.Column("ai_response", sa.Text, nullable=False),
        sa.Column(
            "context_used",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "entities_extracted",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("intent", sa.String(50), nullable=False, server_default="general"),
        sa.Column("sub_intent", sa.String(50), nullable=True),
        sa.Column("confidence", sa.Numeric(4, 3), nullable=False, server_default="0"),
        sa.Column("tokens_used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cost", sa.Numeric(10, 6), nullable=False, server_default="0"),
        sa.Column("is_helpful", sa.Boolean, nullable=True),
        sa.Column("feedback", sa.Text, nullable=True),
        # Set together with is_helpful/feedback; non-null means feedback is final
        sa.Column("feedback_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )

    op.create_index(
        "ix_chat_turn_conversation_created",
        "chat_turn",
        ["conversation_id", "created_at", "seq"],
    )
    op.create_index("ix_chat_turn_user_id", "chat_turn", ["user_id"])
    op.create_index("ix_chat_turn_intent", "chat_turn", ["intent"])


def downgrade() -> None:
    op.drop_index("ix_chat_turn_intent", table_name="chat_turn")
    op.drop_index("ix_chat_turn_user_id", table_name="chat_turn")
    op.drop_index("ix_chat_turn_conversation_created", table_name="chat_turn")
    op.drop_table("chat_turn")
