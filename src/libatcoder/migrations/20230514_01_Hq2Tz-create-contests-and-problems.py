"""
Creates the contests and problems tables together with the conditional-touch
trigger functions shared by every tracked table.
"""

from yoyo import step

from libatcoder.touch import TOUCH_PIPELINE

__depends__ = {}

steps = [
    step(TOUCH_PIPELINE.create_functions_sql(), TOUCH_PIPELINE.drop_functions_sql()),
    step(
        """
        CREATE TABLE IF NOT EXISTS contests (
            contest_id TEXT PRIMARY KEY,
            start_epoch_second BIGINT NOT NULL,
            duration_second BIGINT NOT NULL,
            title TEXT NOT NULL,
            rate_change TEXT NOT NULL,
            category TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "DROP TABLE IF EXISTS contests",
    ),
    step(
        TOUCH_PIPELINE.create_triggers_sql("contests"),
        TOUCH_PIPELINE.drop_triggers_sql("contests"),
    ),
    step(
        """
        CREATE TABLE IF NOT EXISTS problems (
            problem_id TEXT PRIMARY KEY,
            contest_id TEXT NOT NULL REFERENCES contests (contest_id) ON DELETE CASCADE,
            problem_index TEXT NOT NULL,
            name TEXT NOT NULL,
            title TEXT NOT NULL,
            url TEXT NOT NULL,
            html TEXT NOT NULL,
            difficulty INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "DROP TABLE IF EXISTS problems",
    ),
    step(
        "CREATE INDEX IF NOT EXISTS contest_id_index ON problems (contest_id)",
        "DROP INDEX IF EXISTS contest_id_index",
    ),
    step(
        TOUCH_PIPELINE.create_triggers_sql("problems"),
        TOUCH_PIPELINE.drop_triggers_sql("problems"),
    ),
]
