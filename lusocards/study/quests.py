"""Daily quests, XP and levels."""

from typing import TYPE_CHECKING, Callable, Dict, Optional

from ..config import Config
from ..exceptions import LusoCardsError
from ..models import Quest, UserProfile
from ..utils.helpers import now_ms, today_iso
from ..utils.logger import setup_logger

if TYPE_CHECKING:
    from ..services.repository import BaseStore

logger = setup_logger(__name__)

# quest type -> (target, xp reward)
DAILY_QUESTS: Dict[str, tuple] = {
    "review_cards": (10, 50),
    "add_cards": (5, 50),
    "create_story": (1, 100),
}


def level_for_xp(xp: int, xp_per_level: Optional[int] = None) -> int:
    return xp // (xp_per_level or Config.XP_PER_LEVEL) + 1


def issue_daily_quests(day: str) -> list:
    return [
        Quest(id=f"{quest_type}-{day}", type=quest_type, target=target, xp_reward=xp)
        for quest_type, (target, xp) in DAILY_QUESTS.items()
    ]


class QuestTracker:
    """
    Tracks quest progress on the stored user profile.

    Quests are reissued the first time the profile is touched on a new
    calendar day.
    """

    def __init__(self, store: "BaseStore", clock: Optional[Callable[[], int]] = None):
        self.store = store
        self.clock = clock or now_ms

    async def load(self) -> UserProfile:
        """Load the profile, issuing today's quests if needed."""
        profile = await self.store.load_profile() or UserProfile()
        today = today_iso(self.clock())
        if profile.quests_date != today:
            profile.quests = issue_daily_quests(today)
            profile.quests_date = today
            await self.store.save_profile(profile)
        return profile

    async def record(self, quest_type: str, amount: int = 1) -> UserProfile:
        """
        Add progress to today's quests of a type.

        Args:
            quest_type: "review_cards", "add_cards" or "create_story"
            amount: Progress units to add

        Returns:
            Updated profile
        """
        profile = await self.load()
        changed = False

        for quest in profile.quests:
            if quest.type != quest_type or quest.completed:
                continue
            quest.progress = min(quest.target, quest.progress + amount)
            changed = True
            if quest.progress >= quest.target:
                quest.completed = True
                profile.xp += quest.xp_reward
                logger.info(f"Quest {quest.id} completed (+{quest.xp_reward} XP)")

        if changed:
            profile.level = level_for_xp(profile.xp)
            await self.store.save_profile(profile)
        return profile

    async def record_safely(self, quest_type: str, amount: int = 1) -> Optional[UserProfile]:
        """Best-effort record(); failures are logged and dropped."""
        try:
            return await self.record(quest_type, amount)
        except LusoCardsError as e:
            logger.warning(f"Quest progress for {quest_type} not saved: {e}")
            return None
