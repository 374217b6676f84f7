"""
Conditional-touch protocol for ``updated_at``.

Every tracked table gets the same three BEFORE UPDATE row triggers:

1. ``pre_check``: an ``updated_at`` equal to the stored one is replaced by
   NULL (UNSET), and ``created_at`` is pinned to the stored value.
2. ``propagate``: only fires for ``UPDATE OF updated_at``, i.e. when the
   statement names the column in its SET list. UNSET goes back to the stored
   value.
3. ``finalize``: whatever is still UNSET is stamped with CURRENT_TIMESTAMP.

So a statement that sets ``updated_at`` to its old value keeps it, and a
statement that does not mention ``updated_at`` gets a fresh timestamp.

PostgreSQL fires BEFORE triggers of the same event in name order, which is
what keeps the stages in sequence. The same rules are available as plain
Python through :meth:`TouchPipeline.resolve`, which the tests use as the
reference model for the SQL.
"""

import dataclasses
import datetime
import re
from typing import Any, Callable, Mapping, Optional

# NULL inside the trigger functions
UNSET = None

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

Row = dict[str, Any]


def _pre_check(old: Mapping[str, Any], new: Row, now: datetime.datetime) -> Row:
    if new.get("updated_at") is not None and new.get("updated_at") == old.get("updated_at"):
        new["updated_at"] = UNSET
    new["created_at"] = old.get("created_at")
    return new


def _propagate(old: Mapping[str, Any], new: Row, now: datetime.datetime) -> Row:
    if new.get("updated_at") is UNSET:
        new["updated_at"] = old.get("updated_at")
    return new


def _finalize(old: Mapping[str, Any], new: Row, now: datetime.datetime) -> Row:
    if new.get("updated_at") is UNSET:
        new["updated_at"] = now
    return new


@dataclasses.dataclass(frozen=True)
class TouchStage:
    name: str
    function: str
    body: str
    resolve: Callable[[Mapping[str, Any], Row, datetime.datetime], Row]
    # None: fire on every UPDATE, otherwise only for UPDATE OF these columns
    columns: Optional[tuple[str, ...]] = None

    def trigger_name(self, table: str, position: int) -> str:
        return f"refresh_{table}_updated_at_step{position}"

    def function_sql(self) -> str:
        return (
            f"CREATE OR REPLACE FUNCTION {self.function}() RETURNS TRIGGER AS $$\n"
            "BEGIN\n"
            f"{self.body}\n"
            "    RETURN NEW;\n"
            "END;\n"
            "$$ LANGUAGE plpgsql;"
        )

    def trigger_sql(self, table: str, position: int) -> str:
        name = self.trigger_name(table, position)
        event = "UPDATE"
        if self.columns:
            event += " OF " + ", ".join(self.columns)
        return (
            f"DROP TRIGGER IF EXISTS {name} ON {table};\n"
            f"CREATE TRIGGER {name} BEFORE {event} ON {table}\n"
            f"    FOR EACH ROW EXECUTE FUNCTION {self.function}();"
        )


PRE_CHECK = TouchStage(
    name="pre_check",
    function="refresh_updated_at_step1",
    body=(
        "    IF NEW.updated_at = OLD.updated_at THEN NEW.updated_at := NULL;\n"
        "    END IF;\n"
        "    NEW.created_at := OLD.created_at;"
    ),
    resolve=_pre_check,
)

PROPAGATE = TouchStage(
    name="propagate",
    function="refresh_updated_at_step2",
    body=(
        "    IF NEW.updated_at IS NULL THEN NEW.updated_at := OLD.updated_at;\n"
        "    END IF;"
    ),
    resolve=_propagate,
    columns=("updated_at",),
)

FINALIZE = TouchStage(
    name="finalize",
    function="refresh_updated_at_step3",
    body=(
        "    IF NEW.updated_at IS NULL THEN NEW.updated_at := CURRENT_TIMESTAMP;\n"
        "    END IF;"
    ),
    resolve=_finalize,
)


class TouchPipeline:
    def __init__(self, stages: tuple[TouchStage, ...] = (PRE_CHECK, PROPAGATE, FINALIZE)):
        if not stages:
            raise ValueError("A touch pipeline needs at least one stage")
        # trigger names have to sort in stage order
        if len(stages) > 9:
            raise ValueError("A touch pipeline supports at most 9 stages")
        self.stages = stages

    def resolve(
        self,
        old: Mapping[str, Any],
        assignments: Mapping[str, Any],
        now: Optional[datetime.datetime] = None,
    ) -> Row:
        """
        Compute the row an UPDATE would store.

        Args:
            old: the stored row
            assignments: the UPDATE's SET list, column -> value
            now: value of CURRENT_TIMESTAMP; defaults to the current UTC time
        """
        if now is None:
            now = datetime.datetime.now(tz=datetime.timezone.utc)
        new = {**old, **assignments}
        for stage in self.stages:
            if stage.columns is not None and not any(c in assignments for c in stage.columns):
                continue
            new = stage.resolve(old, dict(new), now)
        return new

    def trigger_names(self, table: str) -> list[str]:
        _check_identifier(table)
        return [stage.trigger_name(table, i) for i, stage in enumerate(self.stages, start=1)]

    def create_functions_sql(self) -> str:
        return "\n\n".join(stage.function_sql() for stage in self.stages)

    def drop_functions_sql(self) -> str:
        return "\n".join(
            f"DROP FUNCTION IF EXISTS {stage.function}();" for stage in reversed(self.stages)
        )

    def create_triggers_sql(self, table: str) -> str:
        _check_identifier(table)
        return "\n\n".join(
            stage.trigger_sql(table, i) for i, stage in enumerate(self.stages, start=1)
        )

    def drop_triggers_sql(self, table: str) -> str:
        return "\n".join(
            f"DROP TRIGGER IF EXISTS {name} ON {table};"
            for name in reversed(self.trigger_names(table))
        )


def _check_identifier(table: str):
    if not _IDENTIFIER.match(table):
        raise ValueError(f"Invalid table name '{table}'")


TOUCH_PIPELINE = TouchPipeline()
