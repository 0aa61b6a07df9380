"""Job listings, similarity lookups and per-user AI recommendations."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import AIEvaluator
from strive.database import get_session_factory
from strive.db.models import Job, JobRecommendation, Skill, UserSkill

logger = structlog.get_logger()

# Newest listings offered to the matcher per regeneration
MATCH_CANDIDATES = 20


class JobNotFoundError(LookupError):
    pass


async def list_jobs(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    *,
    location: str | None = None,
    remote: bool | None = None,
    fulltime: bool | None = None,
    min_salary: int | None = None,
    max_salary: int | None = None,
) -> tuple[list[Job], int]:
    """Newest listings first. Salary bounds match overlapping ranges."""
    conditions = []
    if location:
        conditions.append(Job.location.ilike(f"%{location}%"))
    if remote is not None:
        conditions.append(Job.is_remote == remote)
    if fulltime is not None:
        conditions.append(Job.is_fulltime == fulltime)
    if min_salary is not None:
        conditions.append(Job.salary_max >= min_salary)
    if max_salary is not None:
        conditions.append(Job.salary_min <= max_salary)

    total = (await db.execute(select(func.count()).select_from(Job).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Job)
        .where(*conditions)
        .order_by(Job.created_at.desc(), Job.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_job(db: AsyncSession, job_id: int) -> Job:
    job = await db.get(Job, job_id)
    if job is None:
        msg = "Job not found"
        raise JobNotFoundError(msg)
    return job


async def similar_jobs(db: AsyncSession, job: Job, limit: int = 5) -> list[Job]:
    """
    Other listings like ``job``, best matches first.

    Fill order: same company, then shared tags (most shared first), then
    same location. No listing appears twice.
    """
    result = await db.execute(select(Job).where(Job.id != job.id).order_by(Job.id))
    others = list(result.scalars().all())

    picked: list[Job] = [o for o in others if o.company == job.company][:limit]
    seen = {o.id for o in picked}

    tags = set(job.tags or [])
    if tags and len(picked) < limit:
        by_overlap = sorted(
            (o for o in others if o.id not in seen and tags & set(o.tags or [])),
            key=lambda o: (-len(tags & set(o.tags or [])), o.id),
        )
        for other in by_overlap[: limit - len(picked)]:
            picked.append(other)
            seen.add(other.id)

    if len(picked) < limit:
        same_place = [o for o in others if o.id not in seen and o.location == job.location]
        picked.extend(same_place[: limit - len(picked)])

    return picked


async def job_metadata(db: AsyncSession) -> dict[str, list[str]]:
    """Distinct companies, locations and tags, each sorted."""
    companies = await db.execute(select(Job.company).distinct().order_by(Job.company))
    locations = await db.execute(select(Job.location).distinct().order_by(Job.location))
    tag_lists = await db.execute(select(Job.tags))

    tags: set[str] = set()
    for job_tags in tag_lists.scalars():
        tags.update(str(t) for t in job_tags or [])

    return {
        "companies": list(companies.scalars().all()),
        "locations": list(locations.scalars().all()),
        "tags": sorted(tags),
    }


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


async def get_recommendation(db: AsyncSession, user_id: int, job_id: int) -> JobRecommendation | None:
    result = await db.execute(
        select(JobRecommendation).where(
            JobRecommendation.user_id == user_id,
            JobRecommendation.job_id == job_id,
        )
    )
    return result.scalar_one_or_none()


async def list_recommendations(db: AsyncSession, user_id: int, limit: int = 10) -> list[JobRecommendation]:
    """Highest scoring matches first."""
    result = await db.execute(
        select(JobRecommendation)
        .where(JobRecommendation.user_id == user_id)
        .order_by(JobRecommendation.score.desc(), JobRecommendation.job_id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def regenerate_recommendations(
    db: AsyncSession,
    user_id: int,
    evaluator: AIEvaluator,
) -> list[JobRecommendation]:
    """Replace the user's recommendations with a fresh match. Does not commit.

    A user with no skills, or a platform with no listings, keeps whatever
    recommendations they already had.
    """
    skills_result = await db.execute(
        select(Skill.name, UserSkill.level)
        .join(UserSkill, UserSkill.skill_id == Skill.id)
        .where(UserSkill.user_id == user_id)
    )
    skills = [{"name": name, "level": level} for name, level in skills_result.all()]
    if not skills:
        return await list_recommendations(db, user_id, limit=MATCH_CANDIDATES)

    jobs_result = await db.execute(
        select(Job).order_by(Job.created_at.desc(), Job.id.desc()).limit(MATCH_CANDIDATES)
    )
    jobs = list(jobs_result.scalars().all())
    if not jobs:
        return await list_recommendations(db, user_id, limit=MATCH_CANDIDATES)

    matches = await evaluator.match_jobs(
        skills,
        [
            {"id": j.id, "title": j.title, "company": j.company, "requirements": list(j.requirements or [])}
            for j in jobs
        ],
    )

    by_id = {j.id: j for j in jobs}
    await db.execute(delete(JobRecommendation).where(JobRecommendation.user_id == user_id))
    now = datetime.now(timezone.utc)
    db.add_all(
        JobRecommendation(
            user_id=user_id,
            job=by_id[m["job_id"]],
            score=m["score"],
            reason=m["reason"],
            created_at=now,
        )
        for m in matches
    )
    await db.flush()
    logger.info("job_recommendations_generated", user_id=user_id, count=len(matches))
    return await list_recommendations(db, user_id, limit=MATCH_CANDIDATES)


async def refresh_recommendations(user_id: int, evaluator: AIEvaluator) -> None:
    """Background task: regenerate recommendations on a session of its own."""
    async with get_session_factory()() as db:
        await regenerate_recommendations(db, user_id, evaluator)
        await db.commit()
