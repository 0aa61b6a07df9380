"""AI evaluation client for quizzes, code challenges and CV reviews.

Talks to GROQ's OpenAI-compatible chat completions API. Without an API key,
or when a call fails, deterministic mock results are returned so the rest of
the platform keeps working.
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from typing import Any

import httpx

from strive.config import Settings, get_settings

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class AIResponseError(ValueError):
    """The model answered, but not with the JSON object we asked for."""


def _clamp_score(value: Any) -> int:
    try:
        return max(0, min(100, round(float(value))))
    except (TypeError, ValueError, OverflowError):
        return 0


def _clamp_count(value: Any, upper: int) -> int:
    try:
        return max(0, min(upper, int(float(value))))
    except (TypeError, ValueError, OverflowError):
        return 0


class AIEvaluator:
    """Structured evaluations backed by an LLM, with mock fallbacks."""

    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.groq_api_key
        self.base_url = settings.groq_base_url.rstrip("/")
        self.model = settings.groq_model
        self.timeout = settings.groq_timeout_seconds

    @property
    def mock_mode(self) -> bool:
        return not self.api_key

    async def _complete_json(self, system: str, prompt: str) -> dict[str, Any]:
        """Send one chat completion and parse the first JSON object in the reply."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "temperature": 0.2,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                },
            )
            response.raise_for_status()

        content = response.json()["choices"][0]["message"]["content"]
        match = _JSON_OBJECT.search(content)
        if match is None:
            msg = "No JSON object in model response"
            raise AIResponseError(msg)
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AIResponseError(str(e)) from e

    async def _ask(self, kind: str, system: str, prompt: str) -> dict[str, Any] | None:
        if self.mock_mode:
            return None
        try:
            return await self._complete_json(system, prompt)
        except (httpx.HTTPError, KeyError, AIResponseError):
            logger.warning("AI %s call failed, using mock result", kind, exc_info=True)
            return None

    # --- Quizzes ---

    async def grade_quiz(self, questions: list[dict[str, Any]], answers: list[dict[str, Any]]) -> dict[str, Any]:
        """Grade answers against quiz questions. Score is a 0-100 percentage."""
        data = await self._ask(
            "quiz",
            "You grade quizzes. Reply with JSON only.",
            "Grade these answers. Respond as "
            '{"score": 0-100, "correct_answers": int, "feedback": str, "detailed_results": []}.\n'
            f"Questions: {json.dumps(questions)}\nAnswers: {json.dumps(answers)}",
        )
        if data is None:
            return mock_quiz_grade(questions, answers)
        return {
            "score": _clamp_score(data.get("score")),
            "total_questions": len(questions),
            "correct_answers": _clamp_count(data.get("correct_answers"), len(questions)),
            "feedback": str(data.get("feedback") or ""),
            "detailed_results": list(data.get("detailed_results") or []),
        }

    # --- Coding challenges ---

    async def evaluate_code(self, code: str, language: str, description: str) -> dict[str, Any]:
        """Judge a challenge submission: passed flag, 0-100 score, feedback."""
        data = await self._ask(
            "code",
            "You review code submissions for programming challenges. Reply with JSON only.",
            "Evaluate this solution. Respond as "
            '{"passed": bool, "score": 0-100, "feedback": str, "hints": [str], "test_results": []}.\n'
            f"Challenge: {description}\nLanguage: {language}\nCode:\n{code}",
        )
        if data is None:
            return mock_code_evaluation()
        return {
            "passed": bool(data.get("passed")),
            "score": _clamp_score(data.get("score")),
            "feedback": str(data.get("feedback") or ""),
            "hints": list(data.get("hints") or []),
            "test_results": list(data.get("test_results") or []),
        }

    # --- CV reviews ---

    async def analyze_cv(self, cv_text: str) -> dict[str, Any]:
        """Review a CV; result always carries an integer overall_score (0-100)."""
        data = await self._ask(
            "cv",
            "You are a career coach reviewing CVs. Reply with JSON only.",
            "Analyse this CV. Respond as "
            '{"overall_score": 0-100, "strengths": [str], "weaknesses": [str], "suggestions": [str], '
            '"keyword_analysis": {"present": [str], "missing": [str]}, '
            '"ats_compatibility": {"score": 0-100, "feedback": str}}.\n'
            f"CV:\n{cv_text}",
        )
        if data is None:
            return mock_cv_analysis()
        data["overall_score"] = _clamp_score(data.get("overall_score"))
        return data

    # --- Job matching ---

    async def match_jobs(self, skills: list[dict[str, Any]], jobs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Score each job 0-100 against the user's skills.

        Entries naming a job outside ``jobs`` are dropped; one entry per job.
        """
        data = await self._ask(
            "jobs",
            "You match candidates to job openings. Reply with JSON only.",
            "Match these skills to the jobs. Respond as "
            '{"recommendations": [{"job_id": int, "score": 0-100, "reason": str}]}.\n'
            f"Skills: {json.dumps(skills)}\nJobs: {json.dumps(jobs)}",
        )
        if data is None:
            return mock_job_matches(skills, jobs)

        known = {job["id"] for job in jobs}
        matches: dict[int, dict[str, Any]] = {}
        for entry in data.get("recommendations") or []:
            if not isinstance(entry, dict):
                continue
            try:
                job_id = int(entry.get("job_id"))
            except (TypeError, ValueError):
                continue
            if job_id not in known or job_id in matches:
                continue
            matches[job_id] = {
                "job_id": job_id,
                "score": _clamp_score(entry.get("score")),
                "reason": str(entry.get("reason") or ""),
            }
        return list(matches.values())


def mock_quiz_grade(questions: list[dict[str, Any]], answers: list[dict[str, Any]]) -> dict[str, Any]:
    """Exact-match grading against each question's correct_answer."""
    by_question = {a.get("question_id"): a.get("answer") for a in answers}
    correct = 0
    detailed = []
    for question in questions:
        given = by_question.get(question.get("id"))
        is_correct = given is not None and given == question.get("correct_answer")
        correct += is_correct
        detailed.append({
            "question": question.get("question"),
            "user_answer": given if given is not None else "No answer",
            "correct_answer": question.get("correct_answer"),
            "is_correct": is_correct,
        })

    score = round(correct / len(questions) * 100) if questions else 0
    feedback = (
        f"Great job! You scored {score}%. Keep practicing to improve further!"
        if score >= 50
        else f"You scored {score}%. Review the material and try again."
    )
    return {
        "score": score,
        "total_questions": len(questions),
        "correct_answers": correct,
        "feedback": feedback,
        "detailed_results": detailed,
    }


def mock_code_evaluation() -> dict[str, Any]:
    return {
        "passed": True,
        "score": 85,
        "feedback": "Good solution! The code works correctly.",
        "hints": ["Consider adding error handling", "Try to optimize the solution"],
        "test_results": [{"test_case": "Basic functionality", "passed": True}],
    }


def mock_cv_analysis() -> dict[str, Any]:
    return {
        "overall_score": 78,
        "strengths": ["Strong technical skills", "Clear work experience progression"],
        "weaknesses": ["Missing quantifiable achievements", "Limited soft skills mentioned"],
        "suggestions": [
            'Add specific metrics (e.g. "Increased performance by 30%")',
            "Include relevant keywords for ATS systems",
        ],
        "keyword_analysis": {"present": ["Python", "SQL", "Git"], "missing": ["Docker", "AWS"]},
        "ats_compatibility": {"score": 75, "feedback": "Add more industry-specific keywords"},
    }


def mock_job_matches(skills: list[dict[str, Any]], jobs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Share of each job's requirements covered by the user's skills (case-insensitive)."""
    have = {str(s.get("name", "")).lower() for s in skills}
    matches = []
    for job in jobs:
        required = [str(r) for r in job.get("requirements") or []]
        if not required:
            continue
        covered = [r for r in required if r.lower() in have]
        if not covered:
            continue
        matches.append({
            "job_id": job["id"],
            "score": round(len(covered) / len(required) * 100),
            "reason": f"Matches {len(covered)} of {len(required)} requirements: {', '.join(covered)}.",
        })
    return matches


@lru_cache
def get_evaluator() -> AIEvaluator:
    """Shared evaluator (FastAPI dependency; override in tests)."""
    return AIEvaluator(get_settings())
