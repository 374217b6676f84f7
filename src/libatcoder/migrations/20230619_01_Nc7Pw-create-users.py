"""
users table, filled from the AtCoder ranking pages
"""

from yoyo import step

from libatcoder.touch import TOUCH_PIPELINE

__depends__ = {"20230514_01_Hq2Tz-create-contests-and-problems"}

steps = [
    step(
        """
        CREATE TABLE IF NOT EXISTS users (
            user_name TEXT PRIMARY KEY,
            rating INTEGER NOT NULL,
            highest_rating INTEGER NOT NULL,
            affiliation TEXT,
            birth_year INTEGER,
            country TEXT,
            crown TEXT,
            join_count INTEGER NOT NULL,
            rank INTEGER NOT NULL,
            wins INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "DROP TABLE IF EXISTS users",
    ),
    step(
        TOUCH_PIPELINE.create_triggers_sql("users"),
        TOUCH_PIPELINE.drop_triggers_sql("users"),
    ),
]
