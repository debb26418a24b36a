"""Courses, resources, training sessions and evaluations.

Each table that can grant XP carries the UNIQUE per-user key and the
xp_awarded flag the completion triggers rely on.

Revision ID: 003_learning_tables
Revises: 002_badges
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003_learning_tables"
down_revision: str | None = "002_badges"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Courses ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS courses (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title VARCHAR(256) NOT NULL,
            category VARCHAR(64) NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0,
            completion_count INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS video_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            course_id UUID NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            watch_percentage INTEGER NOT NULL DEFAULT 0 CHECK (watch_percentage BETWEEN 0 AND 100),
            completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            xp_awarded BOOLEAN NOT NULL DEFAULT false,
            last_watched_at TIMESTAMPTZ,
            CONSTRAINT video_progress_user_id_course_id_key UNIQUE (user_id, course_id)
        )
    """)

    # --- Resources ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS resources (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title VARCHAR(256) NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0,
            download_count INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS resource_downloads (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            resource_id UUID NOT NULL REFERENCES resources(id) ON DELETE CASCADE,
            downloaded BOOLEAN NOT NULL DEFAULT true,
            downloaded_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            xp_awarded BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT resource_downloads_user_id_resource_id_key UNIQUE (user_id, resource_id)
        )
    """)

    # --- Training sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS training_sessions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title VARCHAR(256) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'scheduled',
            start_time TIMESTAMPTZ,
            end_time TIMESTAMPTZ,
            max_participants INTEGER NOT NULL DEFAULT 50,
            current_participants INTEGER NOT NULL DEFAULT 0,
            xp_reward INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS session_registrations (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            session_id UUID NOT NULL REFERENCES training_sessions(id) ON DELETE CASCADE,
            registered_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            attended BOOLEAN NOT NULL DEFAULT false,
            attended_duration INTEGER NOT NULL DEFAULT 0,
            xp_awarded BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT session_registrations_user_id_session_id_key UNIQUE (user_id, session_id)
        )
    """)

    # --- Evaluations ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS evaluations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            title VARCHAR(256) NOT NULL,
            checklist_items JSONB NOT NULL DEFAULT '[]',
            total_points INTEGER NOT NULL,
            passing_score INTEGER NOT NULL DEFAULT 70,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_evaluations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            evaluation_id UUID NOT NULL REFERENCES evaluations(id) ON DELETE CASCADE,
            completed_items JSONB NOT NULL DEFAULT '[]',
            score INTEGER NOT NULL DEFAULT 0,
            percentage INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'in-progress'
                CHECK (status IN ('in-progress', 'submitted', 'approved', 'rejected')),
            submitted_at TIMESTAMPTZ,
            reviewed_at TIMESTAMPTZ,
            reviewed_by UUID,
            feedback TEXT NOT NULL DEFAULT '',
            certificate_id UUID,
            CONSTRAINT user_evaluations_user_id_evaluation_id_key UNIQUE (user_id, evaluation_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_evaluations_status
        ON user_evaluations(status)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS certificates (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            evaluation_id UUID NOT NULL REFERENCES evaluations(id),
            title VARCHAR(256) NOT NULL,
            recipient_name VARCHAR(256) NOT NULL DEFAULT '',
            certificate_number VARCHAR(32) UNIQUE NOT NULL,
            issued_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)


def downgrade() -> None:
    for table in (
        "certificates",
        "user_evaluations",
        "evaluations",
        "session_registrations",
        "training_sessions",
        "resource_downloads",
        "resources",
        "video_progress",
        "courses",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
