"""Baseline: users, progression ledger and feature tables.

Revision ID: 001_strive_baseline
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_strive_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            name VARCHAR(100) NOT NULL,
            avatar_url TEXT,
            xp_total INTEGER NOT NULL DEFAULT 0 CHECK (xp_total >= 0),
            title VARCHAR(32) NOT NULL DEFAULT 'Beginner',
            streak_count INTEGER NOT NULL DEFAULT 0 CHECK (streak_count >= 0),
            last_active_date DATE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_xp_total
        ON users(xp_total DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_streak
        ON users(streak_count DESC)
    """)

    # --- XP ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_xp_history (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            source_type VARCHAR(32) NOT NULL,
            source_id BIGINT,
            xp_amount INTEGER NOT NULL CHECK (xp_amount >= 0),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_history_user_time
        ON user_xp_history(user_id, created_at DESC)
    """)

    # --- Activity timeline ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS activities (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            meta JSONB NOT NULL DEFAULT '{}',
            xp_earned INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_user_time
        ON activities(user_id, created_at DESC)
    """)

    # --- Skills ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS skills (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(100) UNIQUE NOT NULL,
            category VARCHAR(50) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_skills (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            skill_id BIGINT NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
            level VARCHAR(16) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE(user_id, skill_id)
        )
    """)

    # --- Community ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS community_posts (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            image_url TEXT,
            likes_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_posts_created
        ON community_posts(created_at DESC)
    """)

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            description TEXT NOT NULL,
            type VARCHAR(32) NOT NULL DEFAULT 'coding',
            difficulty VARCHAR(16) NOT NULL DEFAULT 'medium',
            xp_reward INTEGER NOT NULL DEFAULT 100
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_challenges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id BIGINT NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL,
            score INTEGER,
            started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            UNIQUE(user_id, challenge_id)
        )
    """)

    # --- Roadmaps and quizzes ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS roadmaps (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            description TEXT
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS roadmap_steps (
            id BIGSERIAL PRIMARY KEY,
            roadmap_id BIGINT NOT NULL REFERENCES roadmaps(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            position INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quizzes (
            id BIGSERIAL PRIMARY KEY,
            step_id BIGINT UNIQUE NOT NULL REFERENCES roadmap_steps(id) ON DELETE CASCADE,
            questions JSONB NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_roadmap_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            roadmap_id BIGINT NOT NULL REFERENCES roadmaps(id) ON DELETE CASCADE,
            step_id BIGINT NOT NULL REFERENCES roadmap_steps(id) ON DELETE CASCADE,
            completed BOOLEAN NOT NULL DEFAULT false,
            score INTEGER,
            completed_at TIMESTAMPTZ,
            UNIQUE(user_id, step_id)
        )
    """)

    # --- CV reviews ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS cv_reviews (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            cv_text TEXT NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'processing',
            result JSONB,
            xp_earned INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ
        )
    """)


def downgrade() -> None:
    for table in (
        "cv_reviews",
        "user_roadmap_progress",
        "quizzes",
        "roadmap_steps",
        "roadmaps",
        "user_challenges",
        "challenges",
        "community_posts",
        "user_skills",
        "skills",
        "activities",
        "user_xp_history",
        "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
