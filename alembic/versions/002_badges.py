"""Badge definitions and earned badges.

Revision ID: 002_badges
Revises: 001_profiles_progress
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_badges"
down_revision: str | None = "001_profiles_progress"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # gen_random_uuid() is built in from PostgreSQL 13
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(32) NOT NULL DEFAULT '',
            category VARCHAR(32) NOT NULL,
            rarity VARCHAR(16) NOT NULL DEFAULT 'common',
            requirement JSONB NOT NULL DEFAULT '{}',
            xp_reward INTEGER NOT NULL DEFAULT 0 CHECK (xp_reward >= 0),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_badges_category
        ON badges(category)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            badge_id UUID NOT NULL REFERENCES badges(id),
            category VARCHAR(32),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_badges_user_id_badge_id_key UNIQUE (user_id, badge_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_badges_user
        ON user_badges(user_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS badges CASCADE")
