"""Jobs, job recommendations, post likes and comments.

Revision ID: 002_jobs_and_post_interactions
Revises: 001_strive_baseline
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_jobs_and_post_interactions"
down_revision: str | None = "001_strive_baseline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Post interactions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS post_likes (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id BIGINT NOT NULL REFERENCES community_posts(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE(user_id, post_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS post_comments (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id BIGINT NOT NULL REFERENCES community_posts(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_post_comments_post
        ON post_comments(post_id, created_at)
    """)
    op.execute("""
        ALTER TABLE community_posts
        ADD CONSTRAINT chk_posts_likes_nonnegative CHECK (likes_count >= 0)
    """)

    # --- Jobs ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS jobs (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            company VARCHAR(200) NOT NULL,
            location VARCHAR(200) NOT NULL,
            salary_min BIGINT,
            salary_max BIGINT,
            tags JSONB NOT NULL DEFAULT '[]',
            requirements JSONB NOT NULL DEFAULT '[]',
            description TEXT NOT NULL,
            is_remote BOOLEAN NOT NULL DEFAULT FALSE,
            is_fulltime BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_jobs_created
        ON jobs(created_at DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS job_recommendations (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            job_id BIGINT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
            score INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
            reason TEXT NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE(user_id, job_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_job_recommendations_user
        ON job_recommendations(user_id, score DESC)
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE community_posts DROP CONSTRAINT IF EXISTS chk_posts_likes_nonnegative")
    for table in ("job_recommendations", "jobs", "post_comments", "post_likes"):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
