"""Resource ratings, session feedback and evaluation attempt timestamps.

A rating can arrive before the first download, so resource_downloads rows
now carry ``downloaded = false`` until the file is actually fetched.

Revision ID: 004_ratings_feedback
Revises: 003_learning_tables
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "004_ratings_feedback"
down_revision: str | None = "003_learning_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Resource ratings ---
    op.execute("""
        ALTER TABLE resources
            ADD COLUMN IF NOT EXISTS average_rating NUMERIC(2, 1) NOT NULL DEFAULT 0,
            ADD COLUMN IF NOT EXISTS rating_count INTEGER NOT NULL DEFAULT 0
    """)
    op.execute("""
        ALTER TABLE resource_downloads
            ADD COLUMN IF NOT EXISTS rating SMALLINT CHECK (rating BETWEEN 1 AND 5),
            ADD COLUMN IF NOT EXISTS review TEXT NOT NULL DEFAULT ''
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_resource_downloads_user_downloaded
        ON resource_downloads(user_id, downloaded_at DESC) WHERE downloaded
    """)

    # --- Session feedback ---
    op.execute("""
        ALTER TABLE session_registrations
            ADD COLUMN IF NOT EXISTS rating SMALLINT CHECK (rating BETWEEN 1 AND 5),
            ADD COLUMN IF NOT EXISTS feedback TEXT NOT NULL DEFAULT ''
    """)

    # --- Evaluation attempts ---
    op.execute("""
        ALTER TABLE user_evaluations
            ADD COLUMN IF NOT EXISTS created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_certificates_user
        ON certificates(user_id, issued_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_certificates_user")
    op.execute("ALTER TABLE user_evaluations DROP COLUMN IF EXISTS created_at")
    op.execute("ALTER TABLE session_registrations DROP COLUMN IF EXISTS feedback, DROP COLUMN IF EXISTS rating")
    op.execute("DROP INDEX IF EXISTS idx_resource_downloads_user_downloaded")
    op.execute("ALTER TABLE resource_downloads DROP COLUMN IF EXISTS review, DROP COLUMN IF EXISTS rating")
    op.execute("ALTER TABLE resources DROP COLUMN IF EXISTS rating_count, DROP COLUMN IF EXISTS average_rating")
