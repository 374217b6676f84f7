"""
submissions table. Submissions are an append-only log, so there are no
timestamp columns and no touch triggers. The referenced problem, contest and
user are intentionally not enforced as foreign keys.
"""

from yoyo import step

__depends__ = {"20230625_01_Vd4Kb-create-difficulties"}

steps = [
    step(
        """
        CREATE TABLE IF NOT EXISTS submissions (
            id BIGINT PRIMARY KEY,
            epoch_second BIGINT NOT NULL,
            problem_id TEXT NOT NULL,
            contest_id TEXT,
            user_id TEXT,
            language TEXT,
            point DOUBLE PRECISION,
            length INTEGER,
            result TEXT,
            execution_time INTEGER
        )
        """,
        "DROP TABLE IF EXISTS submissions",
    ),
    step(
        "CREATE INDEX IF NOT EXISTS submissions_epoch_second_index ON submissions (epoch_second)",
        "DROP INDEX IF EXISTS submissions_epoch_second_index",
    ),
    step(
        "CREATE INDEX IF NOT EXISTS submissions_problem_id_index ON submissions (problem_id)",
        "DROP INDEX IF EXISTS submissions_problem_id_index",
    ),
    step(
        "CREATE INDEX IF NOT EXISTS submissions_contest_id_index ON submissions (contest_id)",
        "DROP INDEX IF EXISTS submissions_contest_id_index",
    ),
    step(
        "CREATE INDEX IF NOT EXISTS submissions_user_id_index ON submissions (user_id)",
        "DROP INDEX IF EXISTS submissions_user_id_index",
    ),
]
