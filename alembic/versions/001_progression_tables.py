"""Progression tables.

Creates user_progression, user_achievement_progress, user_challenge_progress
and progression_activity. The portal-owned users and user_badges tables are
created only if the host database does not already have them.

Revision ID: 001_progression_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Portal-owned (read-only for progression) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            role VARCHAR(32) NOT NULL,
            school_id BIGINT
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            icon VARCHAR(64),
            color VARCHAR(32),
            rarity VARCHAR(16) NOT NULL DEFAULT 'common',
            earned_at TIMESTAMPTZ
        )
    """)

    # --- Profile ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progression (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            total_points BIGINT NOT NULL DEFAULT 0 CHECK (total_points >= 0),
            scope_id BIGINT,
            last_activity TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_progression_scope_id
        ON user_progression(scope_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_progression_scope_points
        ON user_progression(scope_id, total_points DESC)
    """)

    # --- Achievement progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievement_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL,
            progress INTEGER NOT NULL DEFAULT 0 CHECK (progress >= 0),
            completed BOOLEAN NOT NULL DEFAULT false,
            claimed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_achievement_progress_user_achievement_key UNIQUE (user_id, achievement_id),
            CONSTRAINT user_achievement_progress_claimed_check CHECK (claimed = completed)
        )
    """)

    # --- Challenge progress (one row per period) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_challenge_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id VARCHAR(64) NOT NULL,
            cycle INTEGER NOT NULL DEFAULT 1,
            progress INTEGER NOT NULL DEFAULT 0 CHECK (progress >= 0),
            completed BOOLEAN NOT NULL DEFAULT false,
            deadline TIMESTAMPTZ NOT NULL,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_challenge_progress_cycle_key UNIQUE (user_id, challenge_id, cycle)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_challenge_deadline
        ON user_challenge_progress(user_id, deadline)
    """)

    # --- Activity log (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS progression_activity (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(64) NOT NULL,
            description VARCHAR(256) NOT NULL,
            points INTEGER NOT NULL,
            timestamp TIMESTAMPTZ NOT NULL,
            metadata JSONB NOT NULL DEFAULT '{}'
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_progression_activity_user_ts
        ON progression_activity(user_id, timestamp)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_progression_activity_user_type_ts
        ON progression_activity(user_id, type, timestamp)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS progression_activity CASCADE")
    op.execute("DROP TABLE IF EXISTS user_challenge_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievement_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progression CASCADE")
