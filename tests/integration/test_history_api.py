"""Endpoints that read or tidy up past activity: likes, comments, deletions, stats and history."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.db.models import (
    CommunityPost,
    CVReview,
    PostComment,
    PostLike,
    Roadmap,
    RoadmapStep,
    Skill,
    UserRoadmapProgress,
    XPHistory,
)
from strive.progression.sources import XPSource
from strive.progression.streak_service import local_today
from strive.progression.xp_service import award_xp


@pytest_asyncio.fixture
async def post(db_session: AsyncSession, user) -> CommunityPost:
    post = CommunityPost(user_id=user.id, content="Shipped it", likes_count=0, created_at=datetime.now(timezone.utc))
    db_session.add(post)
    await db_session.commit()
    return post


@pytest_asyncio.fixture
async def roadmap_steps(db_session: AsyncSession) -> tuple[int, list[int]]:
    roadmap = Roadmap(title="Backend basics")
    db_session.add(roadmap)
    await db_session.flush()
    steps = [RoadmapStep(roadmap_id=roadmap.id, title=f"Step {n}", position=n) for n in (2, 1, 3)]
    db_session.add_all(steps)
    await db_session.commit()
    return roadmap.id, [s.id for s in steps]


@pytest_asyncio.fixture
async def profile_skill(authed_client: AsyncClient, user, db_session: AsyncSession) -> Skill:
    """A skill already added to Ada's profile through the API."""
    skill = Skill(name="SQL", category="data")
    db_session.add(skill)
    await db_session.commit()
    await authed_client.post(f"/api/v1/skills/users/{user.id}", json={"skill_id": skill.id, "level": "beginner"})
    return skill


def _review(user_id: int, status: str, score: int | None, created_at: datetime) -> CVReview:
    return CVReview(
        user_id=user_id,
        cv_text="cv",
        status=status,
        result={"overall_score": score} if score is not None else None,
        xp_earned=0,
        created_at=created_at,
    )


class TestLikes:
    @pytest.mark.asyncio
    async def test_like_then_unlike(self, authed_client: AsyncClient, post):
        liked = await authed_client.post(f"/api/v1/community/posts/{post.id}/like")
        unliked = await authed_client.post(f"/api/v1/community/posts/{post.id}/like")

        assert liked.json() == {"liked": True, "likes_count": 1}
        assert unliked.json() == {"liked": False, "likes_count": 0}

    @pytest.mark.asyncio
    async def test_feed_marks_viewer_likes(self, authed_client, client, post, make_user, headers_for):
        other = await make_user()
        await client.post(f"/api/v1/community/posts/{post.id}/like", headers=headers_for(other))

        mine = (await authed_client.get("/api/v1/community/posts")).json()["posts"][0]
        anonymous = (await client.get("/api/v1/community/posts", headers={"Authorization": ""})).json()["posts"][0]

        assert (mine["likes_count"], mine["is_liked"]) == (1, False)
        assert anonymous["is_liked"] is False

    @pytest.mark.asyncio
    async def test_like_awards_no_xp(self, authed_client, user, post, db_session):
        await authed_client.post(f"/api/v1/community/posts/{post.id}/like")

        ledger = await db_session.execute(select(XPHistory).where(XPHistory.user_id == user.id))
        assert ledger.scalars().all() == []

    @pytest.mark.asyncio
    async def test_unknown_post(self, authed_client):
        response = await authed_client.post("/api/v1/community/posts/9999/like")
        assert response.status_code == 404


class TestComments:
    @pytest.mark.asyncio
    async def test_comments_in_post_detail(self, authed_client, post):
        first = await authed_client.post(f"/api/v1/community/posts/{post.id}/comments", json={"content": "Nice"})
        await authed_client.post(f"/api/v1/community/posts/{post.id}/comments", json={"content": "Congrats"})

        assert first.status_code == 201
        assert first.json()["user_name"] == "Ada"
        detail = (await authed_client.get(f"/api/v1/community/posts/{post.id}")).json()
        assert [c["content"] for c in detail["comments"]] == ["Nice", "Congrats"]
        assert detail["user_title"] == "Beginner"

    @pytest.mark.asyncio
    async def test_empty_comment_rejected(self, authed_client, post):
        response = await authed_client.post(f"/api/v1/community/posts/{post.id}/comments", json={"content": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_only_author_deletes_comment(self, authed_client, client, post, make_user, headers_for):
        created = await authed_client.post(f"/api/v1/community/posts/{post.id}/comments", json={"content": "Mine"})
        comment_id = created.json()["id"]
        other = await make_user()

        forbidden = await client.delete(f"/api/v1/community/comments/{comment_id}", headers=headers_for(other))
        deleted = await authed_client.delete(f"/api/v1/community/comments/{comment_id}")

        assert forbidden.status_code == 404
        assert deleted.status_code == 204
        detail = (await authed_client.get(f"/api/v1/community/posts/{post.id}")).json()
        assert detail["comments"] == []


class TestDeletePost:
    @pytest.mark.asyncio
    async def test_delete_keeps_xp(self, authed_client, user, db_session):
        created = (await authed_client.post("/api/v1/community/posts", json={"content": "Temporary"})).json()
        post_id = created["id"]
        await authed_client.post(f"/api/v1/community/posts/{post_id}/like")
        await authed_client.post(f"/api/v1/community/posts/{post_id}/comments", json={"content": "hm"})

        response = await authed_client.delete(f"/api/v1/community/posts/{post_id}")

        assert response.status_code == 204
        assert (await authed_client.get(f"/api/v1/community/posts/{post_id}")).status_code == 404
        assert (await db_session.execute(select(PostLike))).scalars().all() == []
        assert (await db_session.execute(select(PostComment))).scalars().all() == []
        await db_session.refresh(user)
        assert user.xp_total == 5

    @pytest.mark.asyncio
    async def test_cannot_delete_others_post(self, client, post, make_user, headers_for):
        other = await make_user()
        response = await client.delete(f"/api/v1/community/posts/{post.id}", headers=headers_for(other))
        assert response.status_code == 404


class TestSkillLevels:
    @pytest.mark.asyncio
    async def test_update_level(self, authed_client, user, profile_skill):
        response = await authed_client.put(f"/api/v1/skills/users/{user.id}/{profile_skill.id}", json={"level": "advanced"})

        assert response.status_code == 200
        assert [(s["name"], s["level"]) for s in response.json()] == [("SQL", "advanced")]

    @pytest.mark.asyncio
    async def test_remove_keeps_xp(self, authed_client, user, profile_skill, db_session):
        response = await authed_client.delete(f"/api/v1/skills/users/{user.id}/{profile_skill.id}")

        assert response.status_code == 200
        assert response.json() == []
        await db_session.refresh(user)
        assert user.xp_total == 10

    @pytest.mark.asyncio
    async def test_skill_not_on_profile(self, authed_client, user):
        response = await authed_client.put(f"/api/v1/skills/users/{user.id}/9999", json={"level": "advanced"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_other_profile_forbidden(self, authed_client, make_user, profile_skill):
        other = await make_user()
        response = await authed_client.delete(f"/api/v1/skills/users/{other.id}/{profile_skill.id}")
        assert response.status_code == 403


class TestCVHistory:
    @pytest.mark.asyncio
    async def test_history_newest_first(self, authed_client, user, db_session):
        now = datetime.now(timezone.utc)
        db_session.add_all(
            [
                _review(user.id, "completed", 60, now - timedelta(days=2)),
                _review(user.id, "failed", None, now - timedelta(days=1)),
                _review(user.id, "completed", 90, now),
            ]
        )
        await db_session.commit()

        response = await authed_client.get(f"/api/v1/cv/users/{user.id}/history", params={"limit": 2})

        data = response.json()
        assert [r["status"] for r in data["reviews"]] == ["completed", "failed"]
        assert data["pagination"]["total"] == 3

    @pytest.mark.asyncio
    async def test_stats(self, authed_client, user, db_session):
        now = datetime.now(timezone.utc)
        db_session.add_all(
            [
                _review(user.id, "completed", 60, now - timedelta(days=3)),
                _review(user.id, "completed", 85, now - timedelta(days=2)),
                _review(user.id, "failed", None, now - timedelta(days=1)),
                _review(user.id, "processing", None, now),
            ]
        )
        await db_session.commit()

        data = (await authed_client.get(f"/api/v1/cv/users/{user.id}/stats")).json()

        assert data["total_reviews"] == 4
        assert (data["completed_reviews"], data["failed_reviews"], data["processing_reviews"]) == (2, 1, 1)
        assert data["average_score"] == 72.5
        assert data["latest_review"]["status"] == "processing"

    @pytest.mark.asyncio
    async def test_stats_empty(self, authed_client, user):
        data = (await authed_client.get(f"/api/v1/cv/users/{user.id}/stats")).json()

        assert data["total_reviews"] == 0
        assert data["average_score"] is None
        assert data["latest_review"] is None

    @pytest.mark.asyncio
    async def test_history_is_private(self, authed_client, make_user):
        other = await make_user()

        history = await authed_client.get(f"/api/v1/cv/users/{other.id}/history")
        stats = await authed_client.get(f"/api/v1/cv/users/{other.id}/stats")

        assert history.status_code == 403
        assert stats.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_review_keeps_xp(self, authed_client, user, db_session):
        submitted = await authed_client.post(
            "/api/v1/cv/reviews",
            json={"cv_text": "Jane Doe. Backend engineer with five years of Python, SQL and Git experience."},
        )
        review_id = submitted.json()["id"]

        response = await authed_client.delete(f"/api/v1/cv/reviews/{review_id}")

        assert response.status_code == 204
        assert (await authed_client.get(f"/api/v1/cv/reviews/{review_id}")).status_code == 404
        await db_session.refresh(user)
        assert user.xp_total == 10

    @pytest.mark.asyncio
    async def test_cannot_delete_others_review(self, client, user, db_session, make_user, headers_for):
        review = _review(user.id, "completed", 70, datetime.now(timezone.utc))
        db_session.add(review)
        await db_session.commit()
        other = await make_user()

        response = await client.delete(f"/api/v1/cv/reviews/{review.id}", headers=headers_for(other))

        assert response.status_code == 404


class TestActivityStats:
    @pytest.mark.asyncio
    async def test_breakdown_by_type(self, authed_client, user, db_session):
        await award_xp(db_session, user.id, 5, XPSource.COMMUNITY_POST, 1)
        await award_xp(db_session, user.id, 5, XPSource.COMMUNITY_POST, 2)
        await award_xp(db_session, user.id, 30, XPSource.QUIZ_COMPLETE, 3)

        data = (await authed_client.get(f"/api/v1/users/{user.id}/activity-stats")).json()

        assert data["by_type"] == [
            {"type": "community_post", "count": 2, "total_xp": 10},
            {"type": "quiz_complete", "count": 1, "total_xp": 30},
        ]
        assert (data["total_activities"], data["total_xp_earned"]) == (3, 40)
        assert data["first_activity"] is not None

    @pytest.mark.asyncio
    async def test_streak_from_profile(self, client, make_user, headers_for):
        today = local_today()
        streaker = await make_user(streak_count=4, last_active_date=today)

        data = (await client.get(f"/api/v1/users/{streaker.id}/activity-stats", headers=headers_for(streaker))).json()

        assert data["streak_count"] == 4
        assert data["last_active_date"] == today.isoformat()
        assert data["total_activities"] == 0
        assert data["last_activity"] is None

    @pytest.mark.asyncio
    async def test_private(self, authed_client, make_user):
        other = await make_user()
        response = await authed_client.get(f"/api/v1/users/{other.id}/activity-stats")
        assert response.status_code == 403


class TestRoadmapProgress:
    @pytest.mark.asyncio
    async def test_progress_in_step_order(self, authed_client, user, roadmap_steps, db_session):
        roadmap_id, step_ids = roadmap_steps
        db_session.add(
            UserRoadmapProgress(
                user_id=user.id, roadmap_id=roadmap_id, step_id=step_ids[1], completed=True, score=90,
                completed_at=datetime.now(timezone.utc),
            )
        )
        await db_session.commit()

        data = (await authed_client.get(f"/api/v1/roadmaps/{roadmap_id}/progress")).json()

        assert (data["total_steps"], data["completed_steps"], data["progress_percentage"]) == (3, 1, 33.33)
        assert [(s["title"], s["completed"]) for s in data["steps"]] == [
            ("Step 1", True),
            ("Step 2", False),
            ("Step 3", False),
        ]

    @pytest.mark.asyncio
    async def test_unknown_roadmap(self, authed_client):
        response = await authed_client.get("/api/v1/roadmaps/9999/progress")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_learning_stats(self, authed_client, user, roadmap_steps, db_session, make_user):
        roadmap_id, step_ids = roadmap_steps
        short = Roadmap(title="Git")
        db_session.add(short)
        await db_session.flush()
        only_step = RoadmapStep(roadmap_id=short.id, title="Commit", position=1)
        db_session.add(only_step)
        await db_session.flush()
        now = datetime.now(timezone.utc)
        db_session.add_all(
            [
                UserRoadmapProgress(
                    user_id=user.id, roadmap_id=roadmap_id, step_id=step_ids[0], completed=True, score=80, completed_at=now,
                ),
                UserRoadmapProgress(
                    user_id=user.id, roadmap_id=short.id, step_id=only_step.id, completed=True, score=95, completed_at=now,
                ),
            ]
        )
        await db_session.commit()
        await make_user(xp_total=500)
        await award_xp(db_session, user.id, 120, XPSource.QUIZ_COMPLETE, step_ids[0])

        data = (await authed_client.get(f"/api/v1/roadmaps/users/{user.id}/stats")).json()

        assert data == {
            "rank": 2,
            "total_xp": 120,
            "title": "Beginner+",
            "active_courses": 2,
            "completed_courses": 1,
        }

    @pytest.mark.asyncio
    async def test_learning_stats_private(self, authed_client, make_user):
        other = await make_user()
        response = await authed_client.get(f"/api/v1/roadmaps/users/{other.id}/stats")
        assert response.status_code == 403
