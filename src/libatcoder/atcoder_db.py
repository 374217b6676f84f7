import datetime
from typing import Any, Iterable, Optional

import psycopg2
import psycopg2.errors
from psycopg2 import sql

from libatcoder.consts import TABLES, Entity, TableInfo
from libatcoder.env import database_url, ssl_mode
from libatcoder.utils import (
    AtCoderStoreError,
    ContestItem,
    DifficultyItem,
    DuplicateKeyError,
    MissingContestError,
    ProblemItem,
    SubmissionItem,
    UserItem,
    setup_logging,
)

logger = setup_logging(__name__)


def _columns(info: TableInfo, row: dict) -> list[str]:
    """Columns supplied by `row`, in schema order. Absent keys are not written."""
    unknown = set(row) - set(info.all_columns)
    if unknown:
        raise AtCoderStoreError(
            f"Unknown column(s) {', '.join(sorted(unknown))} for table {info.name}"
        )
    if info.key not in row:
        raise AtCoderStoreError(f"Missing primary key {info.key} for table {info.name}")
    return [c for c in info.all_columns if c in row]


def _insert_statement(info: TableInfo, columns: list[str]) -> sql.Composed:
    return sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
        table=sql.Identifier(info.name),
        columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
        values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
    )


def _upsert_statement(info: TableInfo, columns: list[str]) -> sql.Composed:
    """
    INSERT, or UPDATE the supplied columns if at least one of them differs from
    the stored value. Unchanged rows are not updated at all, so the touch
    triggers never see them and updated_at stays put.
    """
    statement = _insert_statement(info, columns)
    # created_at is only ever written on insert
    updated = [c for c in columns if c not in (info.key, "created_at")]
    if not updated:
        return statement + sql.SQL(" ON CONFLICT ({key}) DO NOTHING").format(
            key=sql.Identifier(info.key)
        )

    excluded = sql.SQL(", ").join(
        sql.SQL("EXCLUDED.{}").format(sql.Identifier(c)) for c in updated
    )
    stored = sql.SQL(", ").join(sql.Identifier(info.name, c) for c in updated)
    return statement + sql.SQL(
        " ON CONFLICT ({key}) DO UPDATE SET {assignments}"
        " WHERE ({stored}) IS DISTINCT FROM ({excluded})"
    ).format(
        key=sql.Identifier(info.key),
        assignments=sql.SQL(", ").join(
            sql.SQL("{column} = EXCLUDED.{column}").format(column=sql.Identifier(c))
            for c in updated
        ),
        stored=stored,
        excluded=excluded,
    )


def _select_statement(info: TableInfo) -> sql.Composed:
    return sql.SQL("SELECT {columns} FROM {table}").format(
        columns=sql.SQL(", ").join(map(sql.Identifier, info.all_columns)),
        table=sql.Identifier(info.name),
    )


class AtCoderDB:
    def __init__(self, url: str, ssl_mode: str = "require"):
        """Initialize database connection parameters"""
        self.url = url
        self.ssl_mode = ssl_mode
        self.connection: Optional[psycopg2.extensions.connection] = None
        self.cursor: Optional[psycopg2.extensions.cursor] = None
        self.refcount: int = 0

    def connect(self) -> bool:
        """Establish connection to the database"""
        try:
            self.connection = psycopg2.connect(self.url, sslmode=self.ssl_mode)
            self.cursor = self.connection.cursor()
            return True
        except psycopg2.Error as e:
            logger.exception("Error connecting to PostgreSQL", exc_info=e)
            return False

    def disconnect(self):
        """Close database connection and cursor"""
        if self.cursor:
            self.cursor.close()
        if self.connection:
            self.connection.close()
        self.cursor = None
        self.connection = None

    def __enter__(self):
        """Context manager entry; nested blocks share the open connection"""
        if self.connection is None and not self.connect():
            raise AtCoderStoreError("Could not connect to the database.")
        self.refcount += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.refcount -= 1
        if self.refcount == 0:
            self.disconnect()

    def _rows(self, info: TableInfo) -> list[dict[str, Any]]:
        return [dict(zip(info.all_columns, res)) for res in self.cursor.fetchall()]

    def _begin(self):
        """
        End the transaction a previous read left open. The touch triggers stamp
        CURRENT_TIMESTAMP, which is the start of the transaction, so every write
        has to start a transaction of its own.
        """
        status = self.connection.get_transaction_status()
        if status == psycopg2.extensions.TRANSACTION_STATUS_INTRANS:
            self.connection.rollback()

    def _write(self, info: TableInfo, rows: Iterable[dict], upsert: bool) -> int:
        written = 0
        row = None
        self._begin()
        try:
            for row in rows:
                columns = _columns(info, row)
                statement = (_upsert_statement if upsert else _insert_statement)(info, columns)
                self.cursor.execute(statement, [row[c] for c in columns])
                written += self.cursor.rowcount
            self.connection.commit()
            return written
        except psycopg2.errors.ForeignKeyViolation as e:
            self.connection.rollback()
            logger.exception("Missing contest while writing %s", info.name, exc_info=e)
            raise MissingContestError(
                f"Contest '{row.get('contest_id')}' does not exist."
            ) from e
        except psycopg2.errors.UniqueViolation as e:
            self.connection.rollback()
            logger.exception("Duplicate key while writing %s", info.name, exc_info=e)
            raise DuplicateKeyError(
                f"{info.key} '{row.get(info.key)}' already exists in {info.name}."
            ) from e
        except psycopg2.Error as e:
            self.connection.rollback()
            logger.exception("Error while writing %s", info.name, exc_info=e)
            raise AtCoderStoreError(f"Could not write to {info.name}.") from e
        except AtCoderStoreError:
            self.connection.rollback()
            raise

    def create(self, entity: Entity, row: dict) -> None:
        """Plain INSERT; fails if the key already exists."""
        self._write(TABLES[entity], [row], upsert=False)

    def upsert(self, entity: Entity, rows: Iterable[dict]) -> int:
        """
        Insert or update `rows` in a single transaction.

        Only the keys present in each row are written. A row whose supplied
        values all match the stored ones is left untouched, including its
        updated_at. A changed row gets a fresh updated_at unless the row
        carries an explicit one.

        Returns:
            The number of rows that were inserted or changed.
        """
        info = TABLES[entity]
        if not info.tracked:
            raise AtCoderStoreError(f"{info.name} is append-only and cannot be updated.")
        written = self._write(info, rows, upsert=True)
        logger.info("%d %s inserted or changed", written, info.name)
        return written

    def upsert_contests(self, contests: Iterable[ContestItem]) -> int:
        return self.upsert(Entity.CONTEST, contests)

    def upsert_problems(self, problems: Iterable[ProblemItem]) -> int:
        return self.upsert(Entity.PROBLEM, problems)

    def upsert_difficulties(self, difficulties: Iterable[DifficultyItem]) -> int:
        return self.upsert(Entity.DIFFICULTY, difficulties)

    def upsert_users(self, users: Iterable[UserItem]) -> int:
        return self.upsert(Entity.USER, users)

    def insert_submissions(self, submissions: Iterable[SubmissionItem]) -> int:
        """Append submissions; ids that already exist are skipped. Returns the number added."""
        info = TABLES[Entity.SUBMISSION]
        written = 0
        self._begin()
        try:
            for submission in submissions:
                columns = _columns(info, submission)
                statement = _insert_statement(info, columns) + sql.SQL(
                    " ON CONFLICT (id) DO NOTHING"
                )
                self.cursor.execute(statement, [submission[c] for c in columns])
                written += self.cursor.rowcount
            self.connection.commit()
        except psycopg2.Error as e:
            self.connection.rollback()
            logger.exception("Error while inserting submissions", exc_info=e)
            raise AtCoderStoreError("Could not insert submissions.") from e
        except AtCoderStoreError:
            self.connection.rollback()
            raise
        logger.info("%d submissions inserted", written)
        return written

    def delete_contest(self, contest_id: str) -> bool:
        """Delete a contest and, through the foreign key, all of its problems."""
        self._begin()
        try:
            self.cursor.execute("DELETE FROM contests WHERE contest_id = %s", (contest_id,))
            deleted = self.cursor.rowcount > 0
            self.connection.commit()
            return deleted
        except psycopg2.Error as e:
            logger.exception("Could not delete contest %s.", contest_id, exc_info=e)
            self.connection.rollback()
            raise AtCoderStoreError(f"Could not delete contest {contest_id}.") from e

    def get(self, entity: Entity, key: Any) -> Optional[dict[str, Any]]:
        info = TABLES[entity]
        self.cursor.execute(
            _select_statement(info)
            + sql.SQL(" WHERE {key} = %s").format(key=sql.Identifier(info.key)),
            (key,),
        )
        res = self.cursor.fetchone()
        if res is None:
            return None
        return dict(zip(info.all_columns, res))

    def get_contest(self, contest_id: str) -> Optional[ContestItem]:
        return self.get(Entity.CONTEST, contest_id)

    def get_problem(self, problem_id: str) -> Optional[ProblemItem]:
        return self.get(Entity.PROBLEM, problem_id)

    def get_difficulty(self, problem_id: str) -> Optional[DifficultyItem]:
        return self.get(Entity.DIFFICULTY, problem_id)

    def get_user(self, user_name: str) -> Optional[UserItem]:
        return self.get(Entity.USER, user_name)

    def get_submission(self, submission_id: int) -> Optional[SubmissionItem]:
        return self.get(Entity.SUBMISSION, submission_id)

    def get_problems_by_contest(self, contest_id: str) -> list[ProblemItem]:
        info = TABLES[Entity.PROBLEM]
        self.cursor.execute(
            _select_statement(info) + sql.SQL(" WHERE contest_id = %s ORDER BY problem_id"),
            (contest_id,),
        )
        return self._rows(info)

    def get_problem_ids(self) -> list[str]:
        """ids of every stored problem, used by the importer to skip known problems"""
        self.cursor.execute("SELECT problem_id FROM problems ORDER BY problem_id")
        return [x[0] for x in self.cursor.fetchall()]

    def get_updated_since(
        self, entity: Entity, since: datetime.datetime
    ) -> list[dict[str, Any]]:
        """Rows whose updated_at is strictly after `since`, oldest change first."""
        info = TABLES[entity]
        if not info.tracked:
            raise AtCoderStoreError(f"{info.name} does not track updates.")
        self.cursor.execute(
            _select_statement(info)
            + sql.SQL(" WHERE updated_at > %s ORDER BY updated_at, {key}").format(
                key=sql.Identifier(info.key)
            ),
            (since,),
        )
        return self._rows(info)

    def get_submissions(
        self,
        user_id: Optional[str] = None,
        problem_id: Optional[str] = None,
        contest_id: Optional[str] = None,
        since: Optional[int] = None,
        limit: int = 1000,
    ) -> list[SubmissionItem]:
        """
        Submissions matching all given filters, ordered by submission time.

        Args:
            since: only submissions with epoch_second >= since
        """
        info = TABLES[Entity.SUBMISSION]
        conditions = []
        args = []
        for column, value in (
            ("user_id", user_id),
            ("problem_id", problem_id),
            ("contest_id", contest_id),
        ):
            if value is not None:
                conditions.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
                args.append(value)
        if since is not None:
            conditions.append(sql.SQL("epoch_second >= %s"))
            args.append(since)

        query = _select_statement(info)
        if conditions:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions)
        query += sql.SQL(" ORDER BY epoch_second, id LIMIT %s")
        args.append(limit)

        self.cursor.execute(query, args)
        return self._rows(info)

    def get_latest_submission_epoch(self) -> Optional[int]:
        self.cursor.execute("SELECT MAX(epoch_second) FROM submissions")
        return self.cursor.fetchone()[0]

    def generate_stats(self) -> dict[str, int]:
        result = {}
        for info in TABLES.values():
            self.cursor.execute(
                sql.SQL("SELECT COUNT(*) FROM {}").format(sql.Identifier(info.name))
            )
            result[f"num_{info.name}"] = self.cursor.fetchone()[0]
        return result


if __name__ == "__main__":
    url = database_url()
    if url is None:
        raise SystemExit("DATABASE_URL is not set")

    with AtCoderDB(url, ssl_mode()) as db:
        for key, value in db.generate_stats().items():
            print(f"{key}: {value}")
