"""Badge seed data, upserted by name on startup."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from codesrock.db.models import Badge

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    # Course
    {
        "name": "First Steps",
        "description": "Complete your first course",
        "category": "Course",
        "icon": "\U0001f476",
        "rarity": "common",
        "xp_reward": 10,
        "requirement": {"type": "action", "value": "course_completed"},
    },
    {
        "name": "Knowledge Seeker",
        "description": "Complete 5 courses",
        "category": "Course",
        "icon": "\U0001f4da",
        "rarity": "rare",
        "xp_reward": 50,
        "requirement": {"type": "action", "value": "courses_completed_5"},
    },
    {
        "name": "Course Master",
        "description": "Complete 10 courses",
        "category": "Course",
        "icon": "\U0001f393",
        "rarity": "epic",
        "xp_reward": 100,
        "requirement": {"type": "action", "value": "courses_completed_10"},
    },
    {
        "name": "HTML Master",
        "description": "Complete all HTML courses",
        "category": "Course",
        "icon": "\U0001f3c6",
        "rarity": "epic",
        "xp_reward": 100,
        "requirement": {"type": "action", "value": "html_track_completed"},
    },
    {
        "name": "JavaScript Ninja",
        "description": "Complete all JS courses",
        "category": "Course",
        "icon": "\u26a1",
        "rarity": "epic",
        "xp_reward": 100,
        "requirement": {"type": "action", "value": "javascript_track_completed"},
    },
    # Achievement
    {
        "name": "Resource Hunter",
        "description": "Download 10 resources",
        "category": "Achievement",
        "icon": "\U0001f4e6",
        "rarity": "common",
        "xp_reward": 25,
        "requirement": {"type": "action", "value": "resources_downloaded_10"},
    },
    {
        "name": "Century Club",
        "description": "Earn 100 XP",
        "category": "Achievement",
        "icon": "\U0001f4af",
        "rarity": "common",
        "xp_reward": 20,
        "requirement": {"type": "xp", "value": 100},
    },
    # Milestone
    {
        "name": "Week Warrior",
        "description": "7-day streak",
        "category": "Milestone",
        "icon": "\U0001f525",
        "rarity": "rare",
        "xp_reward": 30,
        "requirement": {"type": "streak", "value": 7},
    },
    {
        "name": "Month Champion",
        "description": "30-day streak",
        "category": "Milestone",
        "icon": "\U0001f4aa",
        "rarity": "epic",
        "xp_reward": 100,
        "requirement": {"type": "streak", "value": 30},
    },
    {
        "name": "Level Up!",
        "description": "Reach Level 2",
        "category": "Milestone",
        "icon": "\u2b06\ufe0f",
        "rarity": "common",
        "xp_reward": 20,
        "requirement": {"type": "level", "value": 2},
    },
    # Special
    {
        "name": "Top Performer",
        "description": "Reach top 3 in leaderboard",
        "category": "Special",
        "icon": "\U0001f451",
        "rarity": "epic",
        "xp_reward": 75,
        "requirement": {"type": "action", "value": "leaderboard_top_3"},
    },
    {
        "name": "Early Bird",
        "description": "Login before 7 AM",
        "category": "Special",
        "icon": "\U0001f305",
        "rarity": "rare",
        "xp_reward": 15,
        "requirement": {"type": "action", "value": "early_login"},
    },
    {
        "name": "CodesRock Champion",
        "description": "Reach Level 8",
        "category": "Special",
        "icon": "\U0001f3c5",
        "rarity": "legendary",
        "xp_reward": 200,
        "requirement": {"type": "level", "value": 8},
    },
]


async def seed_badges(db: AsyncSession) -> int:
    """Upsert all badge definitions. Returns number of badges seeded."""
    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        stmt = pg_insert(Badge).values(**badge_data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["name"],
            set_={
                "description": stmt.excluded.description,
                "category": stmt.excluded.category,
                "icon": stmt.excluded.icon,
                "rarity": stmt.excluded.rarity,
                "xp_reward": stmt.excluded.xp_reward,
                "requirement": stmt.excluded.requirement,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badge definitions", seeded)
    return seeded
