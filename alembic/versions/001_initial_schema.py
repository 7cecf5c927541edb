"""Initial schema — inventory items with pgvector embeddings, conversation checkpoints.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.execute("""
        CREATE TABLE IF NOT EXISTS items (
            item_id              TEXT PRIMARY KEY,
            item_name            TEXT NOT NULL,
            item_description     TEXT NOT NULL DEFAULT '',
            brand                TEXT NOT NULL DEFAULT '',
            manufacturer_address JSONB NOT NULL DEFAULT '{}',
            prices               JSONB NOT NULL DEFAULT '{}',
            categories           TEXT[] NOT NULL DEFAULT '{}',
            user_reviews         JSONB NOT NULL DEFAULT '[]',
            notes                TEXT NOT NULL DEFAULT '',
            embedding_text       TEXT NOT NULL DEFAULT '',
            embedding            vector(768),
            created_at           TIMESTAMPTZ DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_items_embedding
            ON items
            USING hnsw (embedding vector_cosine_ops)
            WITH (m = 16, ef_construction = 64)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS checkpoints (
            thread_id  TEXT PRIMARY KEY,
            messages   JSONB NOT NULL DEFAULT '[]',
            step       INT NOT NULL DEFAULT 0,
            status     TEXT NOT NULL DEFAULT 'running'
                       CHECK (status IN ('running', 'done')),
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_checkpoints_updated ON checkpoints(updated_at)")


def downgrade() -> None:
    for table in ("checkpoints", "items"):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
