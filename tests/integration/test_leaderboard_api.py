"""Leaderboard and title table endpoints."""

from __future__ import annotations

import pytest


class TestXPLeaderboard:
    @pytest.mark.asyncio
    async def test_ordered_by_xp(self, client, make_user):
        await make_user(name="Low", xp_total=50)
        await make_user(name="High", xp_total=5200, title="Advanced")
        await make_user(name="Mid", xp_total=600, title="Skill Explorer")

        response = await client.get("/api/v1/leaderboard")

        data = response.json()
        assert [e["name"] for e in data["leaderboard"]] == ["High", "Mid", "Low"]
        assert [e["rank"] for e in data["leaderboard"]] == [1, 2, 3]
        assert data["user_rank"] is None

    @pytest.mark.asyncio
    async def test_includes_caller_rank(self, authed_client, make_user):
        await make_user(xp_total=100, title="Beginner+")

        data = (await authed_client.get("/api/v1/leaderboard")).json()

        assert data["user_rank"] == 2

    @pytest.mark.asyncio
    async def test_ranks_continue_across_pages(self, client, make_user):
        for xp in [40, 30, 20, 10]:
            await make_user(xp_total=xp)

        data = (await client.get("/api/v1/leaderboard", params={"page": 2, "limit": 2})).json()

        assert [e["rank"] for e in data["leaderboard"]] == [3, 4]
        assert [e["xp_total"] for e in data["leaderboard"]] == [20, 10]


class TestStreakLeaderboard:
    @pytest.mark.asyncio
    async def test_only_active_streaks(self, client, make_user):
        await make_user(name="None", streak_count=0)
        await make_user(name="Week", streak_count=7)
        await make_user(name="Day", streak_count=1)

        data = (await client.get("/api/v1/leaderboard/streaks")).json()

        assert [e["name"] for e in data] == ["Week", "Day"]


class TestTitles:
    @pytest.mark.asyncio
    async def test_threshold_table(self, client):
        response = await client.get("/api/v1/titles")

        titles = response.json()["titles"]
        assert titles[0] == {"title": "Beginner", "xp_required": 0}
        assert titles[-1] == {"title": "Expert", "xp_required": 10000}
        assert len(titles) == 6
