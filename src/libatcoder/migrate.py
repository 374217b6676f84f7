import argparse
from pathlib import Path
from typing import Optional

import psycopg2
from yoyo import get_backend, read_migrations

from libatcoder.consts import TABLES
from libatcoder.env import database_url, ssl_mode
from libatcoder.touch import TOUCH_PIPELINE
from libatcoder.utils import AtCoderStoreError, setup_logging

logger = setup_logging(__name__)

# shipped inside the package, see [tool.setuptools.package-data]
MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# bookkeeping tables yoyo creates next to the schema
YOYO_TABLES = ("_yoyo_log", "_yoyo_migration", "_yoyo_version", "yoyo_lock")


def apply_migrations(url: str, path: Path = MIGRATIONS_DIR) -> int:
    """Apply all pending migrations. Returns how many were applied."""
    backend = get_backend(url)
    migrations = read_migrations(str(path))
    with backend.lock():
        to_apply = backend.to_apply(migrations)
        if not to_apply:
            logger.info("Database schema is up to date, nothing to apply")
            return 0
        for migration in to_apply:
            logger.info("Applying %s", migration.id)
        backend.apply_migrations(to_apply)
    return len(to_apply)


def rollback_migrations(url: str, path: Path = MIGRATIONS_DIR, count: Optional[int] = None) -> int:
    """Roll back the `count` most recent migrations, or all of them. Returns how many."""
    backend = get_backend(url)
    migrations = read_migrations(str(path))
    with backend.lock():
        to_rollback = list(backend.to_rollback(migrations))
        if count is not None:
            to_rollback = to_rollback[:count]
        if not to_rollback:
            logger.info("No applied migrations, nothing to roll back")
            return 0
        for migration in to_rollback:
            logger.info("Rolling back %s", migration.id)
        backend.rollback_migrations(to_rollback)
    return len(to_rollback)


def flush_sql() -> str:
    """Drops every table, the touch functions and yoyo's bookkeeping."""
    statements = [
        f"DROP TABLE IF EXISTS {info.name} CASCADE;" for info in reversed(TABLES.values())
    ]
    statements.append(TOUCH_PIPELINE.drop_functions_sql())
    statements += [f"DROP TABLE IF EXISTS {table} CASCADE;" for table in YOYO_TABLES]
    return "\n".join(statements)


def flush_database(url: str, sslmode: str = "require"):
    """
    Remove the whole schema, even when the migration history no longer matches
    the database. Use `apply_migrations` afterwards to start from scratch.
    """
    logger.info("Flushing database")
    try:
        connection = psycopg2.connect(url, sslmode=sslmode)
    except psycopg2.Error as e:
        logger.exception("Error connecting to PostgreSQL", exc_info=e)
        raise AtCoderStoreError("Could not connect to the database.") from e

    try:
        with connection.cursor() as cursor:
            cursor.execute(flush_sql())
        connection.commit()
    except psycopg2.Error as e:
        connection.rollback()
        logger.exception("Error while flushing the database", exc_info=e)
        raise AtCoderStoreError("Could not flush the database.") from e
    finally:
        connection.close()
    logger.info("Database flushed")


def main():
    parser = argparse.ArgumentParser(description="Apply, roll back or flush the database schema")
    parser.add_argument("action", choices=["apply", "rollback", "flush"])
    parser.add_argument("--url", default=None, help="Database URL (default: DATABASE_URL)")
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Number of migrations to roll back (default: all)",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=MIGRATIONS_DIR,
        help="Directory containing the migration scripts",
    )
    args = parser.parse_args()

    url = args.url or database_url()
    if url is None:
        parser.error("No database URL given and DATABASE_URL is not set")

    if args.action == "apply":
        count = apply_migrations(url, args.path)
        logger.info("%d migration(s) applied", count)
    elif args.action == "rollback":
        count = rollback_migrations(url, args.path, args.count)
        logger.info("%d migration(s) rolled back", count)
    else:
        flush_database(url, ssl_mode())


if __name__ == "__main__":
    main()
