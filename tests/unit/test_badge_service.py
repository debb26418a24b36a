"""Badge service unit tests: eligibility, uniqueness, cascades, direct awards."""

from __future__ import annotations

import pytest

from codesrock.errors import BadgeAlreadyAwardedError, BadgeNotFoundError, PersistenceError
from codesrock.gamification.badge_service import (
    ActionRequirement,
    LevelRequirement,
    StreakRequirement,
    XpRequirement,
    award_badge_direct,
    award_xp_and_evaluate,
    evaluate_badges,
    is_eligible,
    parse_requirement,
)
from codesrock.gamification.records import BadgeRecord, ProgressSnapshot
from codesrock.gamification.seed import BADGE_SEED_DATA
from codesrock.gamification.xp_service import award_xp
from tests.helpers import MISSING_ID, TEACHER_ID


def make_badge(badge_id: str, name: str, requirement: dict, xp_reward: int = 0, **kwargs) -> BadgeRecord:
    return BadgeRecord(
        id=badge_id,
        name=name,
        description=name,
        icon="*",
        category=kwargs.pop("category", "Achievement"),
        requirement=requirement,
        xp_reward=xp_reward,
        **kwargs,
    )


class TestParseRequirement:
    def test_known_kinds(self):
        assert parse_requirement({"type": "xp", "value": 100}) == XpRequirement(type="xp", value=100)
        assert isinstance(parse_requirement({"type": "level", "value": 2}), LevelRequirement)
        assert isinstance(parse_requirement({"type": "streak", "value": 7}), StreakRequirement)
        assert isinstance(parse_requirement({"type": "action", "value": "early_login"}), ActionRequirement)

    @pytest.mark.parametrize(
        "raw",
        [{}, {"type": "xp"}, {"type": "xp", "value": "lots"}, {"type": "karma", "value": 1}, "xp>=100", None],
    )
    def test_malformed_yields_none(self, raw):
        assert parse_requirement(raw) is None

    def test_seed_requirements_all_parse(self):
        for entry in BADGE_SEED_DATA:
            assert parse_requirement(entry["requirement"]) is not None, entry["name"]


class TestIsEligible:
    progress = ProgressSnapshot(user_id=TEACHER_ID, total_xp=250, current_xp=250, current_level=3, streak=7)

    def test_thresholds_are_inclusive(self):
        assert is_eligible(XpRequirement(type="xp", value=250), self.progress)
        assert not is_eligible(XpRequirement(type="xp", value=251), self.progress)
        assert is_eligible(LevelRequirement(type="level", value=3), self.progress)
        assert not is_eligible(LevelRequirement(type="level", value=4), self.progress)
        assert is_eligible(StreakRequirement(type="streak", value=7), self.progress)
        assert not is_eligible(StreakRequirement(type="streak", value=8), self.progress)

    def test_action_and_malformed_never_eligible(self):
        assert not is_eligible(ActionRequirement(type="action", value="early_login"), self.progress)
        assert not is_eligible(None, self.progress)


class TestEvaluateBadges:
    @pytest.mark.asyncio
    async def test_cascade_across_calls(self, store, gamification_repo, fake_redis, teacher):
        """90 XP + 15 crosses a 20-XP "xp>=100" badge; final total is 125 and a rerun awards nothing."""
        store.add_badge(make_badge("b-century", "Century Club", {"type": "xp", "value": 100}, xp_reward=20))
        store.add_progress(ProgressSnapshot(user_id=TEACHER_ID, total_xp=90, current_xp=90))

        result, earned = await award_xp_and_evaluate(
            gamification_repo, fake_redis, TEACHER_ID, 15, "xp_awarded", "Quiz"
        )

        assert result.new_total_xp == 105
        assert [b.badge_id for b in earned] == ["b-century"]
        progress = await gamification_repo.get_progress(TEACHER_ID)
        assert progress.total_xp == 125

        assert await evaluate_badges(gamification_repo, fake_redis, TEACHER_ID) == []
        assert (await gamification_repo.get_progress(TEACHER_ID)).total_xp == 125

        bonus = [a for a in store.activities if a.type == "badge_earned"]
        assert len(bonus) == 1
        assert bonus[0].xp_earned == 20
        assert bonus[0].description == "Earned badge: Century Club"
        assert bonus[0].metadata == {"badgeId": "b-century", "badgeName": "Century Club"}
        assert "pubsub:badge_earned" in fake_redis.channels()

    @pytest.mark.asyncio
    async def test_cascade_not_chased_within_one_call(self, store, gamification_repo, teacher):
        store.add_badge(make_badge("b-100", "Hundred", {"type": "xp", "value": 100}, xp_reward=30))
        store.add_badge(make_badge("b-120", "One Twenty", {"type": "xp", "value": 120}, xp_reward=0))
        store.add_progress(ProgressSnapshot(user_id=TEACHER_ID, total_xp=100, current_xp=100, current_level=2))

        first = await evaluate_badges(gamification_repo, None, TEACHER_ID)
        assert [b.badge_id for b in first] == ["b-100"]

        second = await evaluate_badges(gamification_repo, None, TEACHER_ID)
        assert [b.badge_id for b in second] == ["b-120"]

    @pytest.mark.asyncio
    async def test_each_badge_awarded_once(self, store, gamification_repo, teacher):
        store.add_badge(make_badge("b-streak", "Week Warrior", {"type": "streak", "value": 7}))
        store.add_progress(ProgressSnapshot(user_id=TEACHER_ID, streak=9, longest_streak=9))

        assert len(await evaluate_badges(gamification_repo, None, TEACHER_ID)) == 1
        assert await evaluate_badges(gamification_repo, None, TEACHER_ID) == []
        assert len(await gamification_repo.list_user_badges(TEACHER_ID)) == 1

    @pytest.mark.asyncio
    async def test_skips_action_inactive_and_malformed(self, store, gamification_repo, teacher):
        store.add_badge(make_badge("b-action", "Early Bird", {"type": "action", "value": "early_login"}))
        store.add_badge(make_badge("b-off", "Retired", {"type": "xp", "value": 0}, is_active=False))
        store.add_badge(make_badge("b-bad", "Broken", {"type": "xp"}))
        store.add_progress(ProgressSnapshot(user_id=TEACHER_ID, total_xp=5000, current_xp=5000, current_level=8))

        assert await evaluate_badges(gamification_repo, None, TEACHER_ID) == []

    @pytest.mark.asyncio
    async def test_seeded_badges_at_level_two(self, store, gamification_repo, teacher):
        store.add_badges_from_seed(BADGE_SEED_DATA)
        await award_xp(gamification_repo, None, TEACHER_ID, 100, "xp_awarded", "Catch up")

        earned = await evaluate_badges(gamification_repo, None, TEACHER_ID)

        assert sorted(b.badge.name for b in earned) == ["Century Club", "Level Up!"]
        assert (await gamification_repo.get_progress(TEACHER_ID)).total_xp == 140

    @pytest.mark.asyncio
    async def test_bonus_failure_keeps_badge(self, store, gamification_repo, teacher):
        store.add_badge(make_badge("b-century", "Century Club", {"type": "xp", "value": 100}, xp_reward=20))
        store.add_progress(ProgressSnapshot(user_id=TEACHER_ID, total_xp=100, current_xp=100, current_level=2))
        store.fail_on.add("increment_xp")

        earned = await evaluate_badges(gamification_repo, None, TEACHER_ID)

        assert [b.badge_id for b in earned] == ["b-century"]
        assert (TEACHER_ID, "b-century") in store.user_badges
        assert store.progress[TEACHER_ID].total_xp == 100

    @pytest.mark.asyncio
    async def test_one_failed_insert_does_not_block_others(self, store, gamification_repo, teacher):
        store.add_badge(make_badge("b-a", "Alpha", {"type": "xp", "value": 0}))
        store.add_badge(make_badge("b-b", "Beta", {"type": "xp", "value": 0}))
        store.add_progress(ProgressSnapshot(user_id=TEACHER_ID))

        calls = 0
        original = gamification_repo.insert_badge_if_absent

        async def flaky(user_id, badge):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise PersistenceError("Database operation failed")
            return await original(user_id, badge)

        gamification_repo.insert_badge_if_absent = flaky
        earned = await evaluate_badges(gamification_repo, None, TEACHER_ID)

        assert [b.badge_id for b in earned] == ["b-b"]


class TestAwardBadgeDirect:
    @pytest.mark.asyncio
    async def test_awards_action_badge_with_bonus(self, store, gamification_repo, fake_redis, teacher):
        store.add_badge(make_badge("b-early", "Early Bird", {"type": "action", "value": "early_login"}, xp_reward=15))

        result = await award_badge_direct(gamification_repo, fake_redis, TEACHER_ID, "b-early")

        assert result.earned.badge_id == "b-early"
        assert result.xp.new_total_xp == 15
        assert store.activity_types(TEACHER_ID) == ["badge_earned"]
        assert fake_redis.channels() == ["pubsub:badge_earned"]

    @pytest.mark.asyncio
    async def test_zero_reward_grants_no_xp(self, store, gamification_repo, teacher):
        store.add_badge(make_badge("b-plain", "Plain", {"type": "action"}))
        result = await award_badge_direct(gamification_repo, None, TEACHER_ID, "b-plain")
        assert result.xp is None
        assert store.activities == []

    @pytest.mark.asyncio
    async def test_unknown_badge(self, gamification_repo, teacher):
        with pytest.raises(BadgeNotFoundError):
            await award_badge_direct(gamification_repo, None, TEACHER_ID, MISSING_ID)

    @pytest.mark.asyncio
    async def test_duplicate_award_rejected(self, store, gamification_repo, teacher):
        store.add_badge(make_badge("b-early", "Early Bird", {"type": "action"}, xp_reward=15))
        await award_badge_direct(gamification_repo, None, TEACHER_ID, "b-early")

        with pytest.raises(BadgeAlreadyAwardedError):
            await award_badge_direct(gamification_repo, None, TEACHER_ID, "b-early")
        assert store.progress[TEACHER_ID].total_xp == 15
