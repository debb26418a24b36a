"""Profiles, user progress and the activity log.

Revision ID: 001_profiles_progress
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_profiles_progress"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles (one per auth provider user) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            first_name VARCHAR(100) NOT NULL DEFAULT '',
            last_name VARCHAR(100) NOT NULL DEFAULT '',
            role VARCHAR(32) NOT NULL DEFAULT 'teacher',
            is_active BOOLEAN NOT NULL DEFAULT true,
            last_login TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- User Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            current_xp BIGINT NOT NULL DEFAULT 0,
            total_xp BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            current_level INTEGER NOT NULL DEFAULT 1,
            level_name VARCHAR(64) NOT NULL DEFAULT 'Code Cadet',
            streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_progress_total_xp
        ON user_progress(total_xp DESC)
    """)

    # --- Activities ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS activities (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            type VARCHAR(64) NOT NULL,
            description TEXT NOT NULL,
            xp_earned INTEGER NOT NULL DEFAULT 0,
            metadata JSONB DEFAULT '{}',
            timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_user_time
        ON activities(user_id, timestamp DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_user_type
        ON activities(user_id, type)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS activities CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS profiles CASCADE")
