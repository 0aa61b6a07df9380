"""AI evaluator tests: mock grading and fallback behaviour."""

from unittest.mock import AsyncMock

import httpx
import pytest

from strive.ai.client import AIEvaluator, AIResponseError, mock_job_matches, mock_quiz_grade
from strive.config import Settings

QUESTIONS = [
    {"id": 1, "question": "a", "options": ["x", "y"], "correct_answer": "x"},
    {"id": 2, "question": "b", "options": ["x", "y"], "correct_answer": "y"},
    {"id": 3, "question": "c", "options": ["x", "y"], "correct_answer": "y"},
]


class TestMockQuizGrade:
    def test_exact_match_scoring(self):
        result = mock_quiz_grade(QUESTIONS, [
            {"question_id": 1, "answer": "x"},
            {"question_id": 2, "answer": "x"},
            {"question_id": 3, "answer": "y"},
        ])
        assert result["correct_answers"] == 2
        assert result["score"] == 67
        assert result["total_questions"] == 3
        assert [r["is_correct"] for r in result["detailed_results"]] == [True, False, True]

    def test_unanswered_question(self):
        result = mock_quiz_grade(QUESTIONS, [{"question_id": 1, "answer": "x"}])
        assert result["detailed_results"][1]["user_answer"] == "No answer"
        assert result["score"] == 33

    def test_no_questions(self):
        assert mock_quiz_grade([], [])["score"] == 0


class TestEvaluatorFallback:
    def test_mock_mode_without_key(self):
        assert AIEvaluator(Settings(groq_api_key="")).mock_mode

    @pytest.mark.asyncio
    async def test_mock_cv_analysis(self):
        result = await AIEvaluator(Settings(groq_api_key="")).analyze_cv("text")
        assert result["overall_score"] == 78

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [httpx.ConnectError("refused"), AIResponseError("no json"), KeyError("choices")],
    )
    async def test_failed_call_falls_back_to_mock(self, error):
        evaluator = AIEvaluator(Settings(groq_api_key="key"))
        evaluator._complete_json = AsyncMock(side_effect=error)

        result = await evaluator.evaluate_code("print(1)", "python", "Print one")

        assert result["passed"] is True
        assert result["score"] == 85

    @pytest.mark.asyncio
    async def test_model_score_clamped(self):
        evaluator = AIEvaluator(Settings(groq_api_key="key"))
        evaluator._complete_json = AsyncMock(return_value={"overall_score": 140, "strengths": []})

        result = await evaluator.analyze_cv("text")

        assert result["overall_score"] == 100

    @pytest.mark.asyncio
    async def test_model_quiz_result_normalised(self):
        evaluator = AIEvaluator(Settings(groq_api_key="key"))
        evaluator._complete_json = AsyncMock(
            return_value={"score": "82.4", "correct_answers": 2, "feedback": "ok"}
        )

        result = await evaluator.grade_quiz(QUESTIONS, [])

        assert result["score"] == 82
        assert result["total_questions"] == 3
        assert result["detailed_results"] == []

    @pytest.mark.asyncio
    async def test_malformed_correct_answers_coerced(self):
        evaluator = AIEvaluator(Settings(groq_api_key="key"))
        evaluator._complete_json = AsyncMock(return_value={"score": 60, "correct_answers": "3/5"})

        result = await evaluator.grade_quiz(QUESTIONS, [])

        assert result["correct_answers"] == 0
        assert result["score"] == 60

    @pytest.mark.asyncio
    async def test_correct_answers_bounded_by_question_count(self):
        evaluator = AIEvaluator(Settings(groq_api_key="key"))
        evaluator._complete_json = AsyncMock(return_value={"score": 100, "correct_answers": 9})

        result = await evaluator.grade_quiz(QUESTIONS, [])

        assert result["correct_answers"] == 3


JOBS = [
    {"id": 1, "title": "Backend", "company": "Acme", "requirements": ["Python", "SQL", "Docker"]},
    {"id": 2, "title": "Frontend", "company": "Acme", "requirements": ["JavaScript"]},
    {"id": 3, "title": "Ops", "company": "Initech", "requirements": []},
]


class TestJobMatching:
    def test_mock_scores_requirement_coverage(self):
        matches = mock_job_matches([{"name": "python"}, {"name": "SQL"}], JOBS)

        assert matches == [
            {"job_id": 1, "score": 67, "reason": "Matches 2 of 3 requirements: Python, SQL."},
        ]

    def test_mock_without_skills(self):
        assert mock_job_matches([], JOBS) == []

    @pytest.mark.asyncio
    async def test_model_matches_filtered_to_known_jobs(self):
        evaluator = AIEvaluator(Settings(groq_api_key="key"))
        evaluator._complete_json = AsyncMock(return_value={"recommendations": [
            {"job_id": "2", "score": 130, "reason": "Strong UI background"},
            {"job_id": 2, "score": 10, "reason": "duplicate"},
            {"job_id": 99, "score": 90, "reason": "not offered"},
            {"job_id": "two", "score": 50},
            "garbage",
            {"job_id": 1, "score": "n/a"},
        ]})

        matches = await evaluator.match_jobs([{"name": "React"}], JOBS)

        assert matches == [
            {"job_id": 2, "score": 100, "reason": "Strong UI background"},
            {"job_id": 1, "score": 0, "reason": ""},
        ]
