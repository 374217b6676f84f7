import dataclasses
from enum import Enum


class Entity(Enum):
    CONTEST = "contests"
    PROBLEM = "problems"
    DIFFICULTY = "difficulties"
    USER = "users"
    SUBMISSION = "submissions"


@dataclasses.dataclass(frozen=True)
class TableInfo:
    name: str
    key: str
    # writable data columns in schema order, key first
    columns: tuple[str, ...]
    # whether updates go through the conditional-touch triggers
    tracked: bool = True

    @property
    def all_columns(self) -> tuple[str, ...]:
        if self.tracked:
            return self.columns + TIMESTAMP_COLUMNS
        return self.columns


TIMESTAMP_COLUMNS = ("created_at", "updated_at")

TABLES: dict[Entity, TableInfo] = {
    Entity.CONTEST: TableInfo(
        name="contests",
        key="contest_id",
        columns=(
            "contest_id",
            "start_epoch_second",
            "duration_second",
            "title",
            "rate_change",
            "category",
        ),
    ),
    Entity.PROBLEM: TableInfo(
        name="problems",
        key="problem_id",
        columns=(
            "problem_id",
            "contest_id",
            "problem_index",
            "name",
            "title",
            "url",
            "html",
            "difficulty",
        ),
    ),
    Entity.DIFFICULTY: TableInfo(
        name="difficulties",
        key="problem_id",
        columns=(
            "problem_id",
            "slope",
            "intercept",
            "variance",
            "difficulty",
            "discrimination",
            "irt_loglikelihood",
            "irt_users",
            "is_experimental",
        ),
    ),
    Entity.USER: TableInfo(
        name="users",
        key="user_name",
        columns=(
            "user_name",
            "rating",
            "highest_rating",
            "affiliation",
            "birth_year",
            "country",
            "crown",
            "join_count",
            "rank",
            "wins",
        ),
    ),
    Entity.SUBMISSION: TableInfo(
        name="submissions",
        key="id",
        columns=(
            "id",
            "epoch_second",
            "problem_id",
            "contest_id",
            "user_id",
            "language",
            "point",
            "length",
            "result",
            "execution_time",
        ),
        tracked=False,
    ),
}

TRACKED_TABLES = tuple(info.name for info in TABLES.values() if info.tracked)
