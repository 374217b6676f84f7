"""
difficulties table holding the IRT model parameters of each problem.
problem_id is deliberately not a foreign key: estimates may arrive before the
problem itself has been crawled.
"""

from yoyo import step

from libatcoder.touch import TOUCH_PIPELINE

__depends__ = {"20230619_01_Nc7Pw-create-users"}

steps = [
    step(
        """
        CREATE TABLE IF NOT EXISTS difficulties (
            problem_id TEXT PRIMARY KEY,
            slope DOUBLE PRECISION,
            intercept DOUBLE PRECISION,
            variance DOUBLE PRECISION,
            difficulty INTEGER,
            discrimination DOUBLE PRECISION,
            irt_loglikelihood DOUBLE PRECISION,
            irt_users DOUBLE PRECISION,
            is_experimental BOOLEAN,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "DROP TABLE IF EXISTS difficulties",
    ),
    step(
        TOUCH_PIPELINE.create_triggers_sql("difficulties"),
        TOUCH_PIPELINE.drop_triggers_sql("difficulties"),
    ),
]
