"""Job listings and skill-based job recommendations."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import get_evaluator
from strive.db.models import Job, JobRecommendation, Skill, UserSkill


class StubMatcher:
    """Returns canned matches and remembers what it was asked."""

    def __init__(self, matches: list[dict[str, Any]]) -> None:
        self.matches = matches
        self.calls: list[tuple[list[dict[str, Any]], list[dict[str, Any]]]] = []

    async def match_jobs(self, skills: list[dict[str, Any]], jobs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.calls.append((skills, jobs))
        return self.matches


@pytest_asyncio.fixture
async def jobs(db_session: AsyncSession) -> list[Job]:
    now = datetime.now(timezone.utc)
    rows = [
        Job(
            title="Backend Engineer",
            company="Acme",
            location="Berlin",
            salary_min=60_000,
            salary_max=80_000,
            tags=["python", "api"],
            requirements=["Python", "SQL", "Docker"],
            description="Build APIs.",
            is_remote=False,
            is_fulltime=True,
            created_at=now - timedelta(days=3),
        ),
        Job(
            title="Data Engineer",
            company="Globex",
            location="Remote",
            salary_min=90_000,
            salary_max=120_000,
            tags=["python", "data", "api"],
            requirements=["Python", "Spark"],
            description="Pipelines.",
            is_remote=True,
            is_fulltime=True,
            created_at=now - timedelta(days=2),
        ),
        Job(
            title="Frontend Intern",
            company="Acme",
            location="Munich",
            salary_min=20_000,
            salary_max=25_000,
            tags=["react"],
            requirements=["JavaScript"],
            description="UI work.",
            is_remote=False,
            is_fulltime=False,
            created_at=now - timedelta(days=1),
        ),
        Job(
            title="QA Analyst",
            company="Initech",
            location="Berlin",
            salary_min=None,
            salary_max=None,
            tags=["testing"],
            requirements=[],
            description="Testing.",
            is_remote=False,
            is_fulltime=True,
            created_at=now,
        ),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


@pytest_asyncio.fixture
async def python_skill(db_session: AsyncSession, user) -> Skill:
    skill = Skill(name="Python", category="programming")
    db_session.add(skill)
    await db_session.flush()
    db_session.add(UserSkill(user_id=user.id, skill_id=skill.id, level="advanced", created_at=datetime.now(timezone.utc)))
    await db_session.commit()
    return skill


async def _recommendations(db: AsyncSession, user_id: int) -> list[JobRecommendation]:
    result = await db.execute(
        select(JobRecommendation).where(JobRecommendation.user_id == user_id).order_by(JobRecommendation.job_id)
    )
    return list(result.scalars().all())


class TestListings:
    @pytest.mark.asyncio
    async def test_newest_first(self, client: AsyncClient, jobs):
        response = await client.get("/api/v1/jobs", params={"limit": 3})

        assert response.status_code == 200
        data = response.json()
        assert [j["title"] for j in data["jobs"]] == ["QA Analyst", "Frontend Intern", "Data Engineer"]
        assert data["pagination"] == {"page": 1, "limit": 3, "total": 4, "pages": 2}

    @pytest.mark.asyncio
    async def test_filters(self, client, jobs):
        remote = await client.get("/api/v1/jobs", params={"remote": "true"})
        part_time = await client.get("/api/v1/jobs", params={"fulltime": "false"})
        berlin = await client.get("/api/v1/jobs", params={"location": "berl"})

        assert [j["title"] for j in remote.json()["jobs"]] == ["Data Engineer"]
        assert [j["title"] for j in part_time.json()["jobs"]] == ["Frontend Intern"]
        assert {j["title"] for j in berlin.json()["jobs"]} == {"Backend Engineer", "QA Analyst"}

    @pytest.mark.asyncio
    async def test_salary_range_overlap(self, client, jobs):
        response = await client.get("/api/v1/jobs", params={"min_salary": 70_000, "max_salary": 95_000})

        assert {j["title"] for j in response.json()["jobs"]} == {"Backend Engineer", "Data Engineer"}

    @pytest.mark.asyncio
    async def test_metadata(self, client, jobs):
        response = await client.get("/api/v1/jobs/meta/categories")

        assert response.json() == {
            "companies": ["Acme", "Globex", "Initech"],
            "locations": ["Berlin", "Munich", "Remote"],
            "tags": ["api", "data", "python", "react", "testing"],
        }

    @pytest.mark.asyncio
    async def test_similar_prefers_company_then_tags(self, client, jobs):
        backend = jobs[0]

        response = await client.get(f"/api/v1/jobs/{backend.id}/similar")

        # Frontend Intern (same company), Data Engineer (two shared tags), QA Analyst (same city)
        assert [j["title"] for j in response.json()] == ["Frontend Intern", "Data Engineer", "QA Analyst"]

    @pytest.mark.asyncio
    async def test_similar_respects_limit(self, client, jobs):
        response = await client.get(f"/api/v1/jobs/{jobs[0].id}/similar", params={"limit": 1})
        assert [j["title"] for j in response.json()] == ["Frontend Intern"]

    @pytest.mark.asyncio
    async def test_unknown_job(self, client, jobs):
        assert (await client.get("/api/v1/jobs/9999")).status_code == 404
        assert (await client.get("/api/v1/jobs/9999/similar")).status_code == 404

    @pytest.mark.asyncio
    async def test_anonymous_detail_not_recommended(self, client, jobs):
        data = (await client.get(f"/api/v1/jobs/{jobs[0].id}")).json()

        assert data["title"] == "Backend Engineer"
        assert data["is_recommended"] is False
        assert data["recommendation_score"] is None


class TestRecommendations:
    @pytest.mark.asyncio
    async def test_generate_with_mock_matcher(self, authed_client, user, jobs, python_skill, db_session):
        response = await authed_client.post(f"/api/v1/jobs/users/{user.id}/recommendations")

        assert response.status_code == 200
        data = response.json()
        # Data Engineer covers 1 of 2 requirements, Backend Engineer 1 of 3
        assert [(r["job"]["title"], r["score"]) for r in data] == [("Data Engineer", 50), ("Backend Engineer", 33)]
        assert data[0]["reason"] == "Matches 1 of 2 requirements: Python."
        assert len(await _recommendations(db_session, user.id)) == 2

    @pytest.mark.asyncio
    async def test_regenerate_replaces_previous(self, app, authed_client, user, jobs, python_skill, db_session):
        await authed_client.post(f"/api/v1/jobs/users/{user.id}/recommendations")
        app.dependency_overrides[get_evaluator] = lambda: StubMatcher(
            [{"job_id": jobs[2].id, "score": 12, "reason": "Stretch role"}]
        )

        response = await authed_client.post(f"/api/v1/jobs/users/{user.id}/recommendations")

        assert [r["job"]["title"] for r in response.json()] == ["Frontend Intern"]
        [rec] = await _recommendations(db_session, user.id)
        assert (rec.job_id, rec.score, rec.reason) == (jobs[2].id, 12, "Stretch role")

    @pytest.mark.asyncio
    async def test_no_skills_keeps_existing(self, app, authed_client, user, jobs, db_session):
        db_session.add(
            JobRecommendation(
                user_id=user.id, job_id=jobs[1].id, score=70, reason="Earlier match",
                created_at=datetime.now(timezone.utc),
            )
        )
        await db_session.commit()
        matcher = StubMatcher([])
        app.dependency_overrides[get_evaluator] = lambda: matcher

        response = await authed_client.post(f"/api/v1/jobs/users/{user.id}/recommendations")

        assert [r["score"] for r in response.json()] == [70]
        assert matcher.calls == []

    @pytest.mark.asyncio
    async def test_matcher_receives_skills_and_requirements(self, app, authed_client, user, jobs, python_skill):
        matcher = StubMatcher([])
        app.dependency_overrides[get_evaluator] = lambda: matcher

        await authed_client.post(f"/api/v1/jobs/users/{user.id}/recommendations")

        [(skills, offered)] = matcher.calls
        assert skills == [{"name": "Python", "level": "advanced"}]
        assert offered[0] == {"id": jobs[3].id, "title": "QA Analyst", "company": "Initech", "requirements": []}
        assert len(offered) == 4

    @pytest.mark.asyncio
    async def test_recommended_list_and_detail(self, authed_client, user, jobs, python_skill):
        await authed_client.post(f"/api/v1/jobs/users/{user.id}/recommendations")

        listed = await authed_client.get(f"/api/v1/jobs/users/{user.id}/recommended", params={"limit": 1})
        detail = await authed_client.get(f"/api/v1/jobs/{jobs[1].id}")

        assert [r["job"]["title"] for r in listed.json()] == ["Data Engineer"]
        data = detail.json()
        assert data["is_recommended"] is True
        assert data["recommendation_score"] == 50

    @pytest.mark.asyncio
    async def test_cannot_read_other_users_recommendations(self, authed_client, make_user):
        other = await make_user()

        listed = await authed_client.get(f"/api/v1/jobs/users/{other.id}/recommended")
        generated = await authed_client.post(f"/api/v1/jobs/users/{other.id}/recommendations")

        assert listed.status_code == 403
        assert generated.status_code == 403

    @pytest.mark.asyncio
    async def test_requires_auth(self, client, user):
        response = await client.get(f"/api/v1/jobs/users/{user.id}/recommended")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_adding_skill_refreshes_recommendations(self, authed_client, user, jobs, db_session):
        skill = Skill(name="Spark", category="data")
        db_session.add(skill)
        await db_session.commit()

        response = await authed_client.post(
            f"/api/v1/skills/users/{user.id}", json={"skill_id": skill.id, "level": "beginner"}
        )

        assert response.status_code == 201
        [rec] = await _recommendations(db_session, user.id)
        assert (rec.job_id, rec.score) == (jobs[1].id, 50)
