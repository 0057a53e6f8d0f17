import asyncio

from conftest import NOW
from lusocards.models import Quest, UserProfile
from lusocards.study import QuestTracker, level_for_xp
from lusocards.utils import MS_PER_DAY, today_iso


def test_daily_quests_issued_once(store, quests):
    first = asyncio.run(quests.load())
    writes = len(store.writes)
    second = asyncio.run(quests.load())

    assert sorted(q.type for q in first.quests) == ["add_cards", "create_story", "review_cards"]
    assert first.quests_date == today_iso(NOW)
    assert second.quests == first.quests
    assert len(store.writes) == writes


def test_quests_reissued_on_new_day(store):
    store.profile = UserProfile(xp=120, quests=[Quest("old", "add_cards", 5, 5, True, 50)],
                                quests_date=today_iso(NOW - MS_PER_DAY))

    profile = asyncio.run(QuestTracker(store, clock=lambda: NOW).load())

    assert all(not q.completed for q in profile.quests)
    assert profile.xp == 120


def test_xp_awarded_once_and_level_computed(store, quests):
    store.profile = UserProfile(xp=480, quests_date="")

    async def run():
        await quests.record("add_cards", 3)
        await quests.record("add_cards", 3)
        return await quests.record("add_cards", 3)

    profile = asyncio.run(run())

    add_quest = next(q for q in profile.quests if q.type == "add_cards")
    assert add_quest.progress == 5
    assert add_quest.completed
    assert profile.xp == 530
    assert profile.level == 2


def test_record_safely_swallows_store_failure(store, quests):
    store.fail = True

    assert asyncio.run(quests.record_safely("review_cards")) is None


def test_level_for_xp():
    assert level_for_xp(0) == 1
    assert level_for_xp(499) == 1
    assert level_for_xp(500) == 2
    assert level_for_xp(1250) == 3
