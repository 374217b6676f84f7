import os

from dotenv import load_dotenv

load_dotenv()

# PostgreSQL-specific constants
POSTGRES_HOST = os.getenv("POSTGRES_HOST")
POSTGRES_DATABASE = os.getenv("POSTGRES_DATABASE")
POSTGRES_USER = os.getenv("POSTGRES_USER")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")
DATABASE_URL = os.getenv("DATABASE_URL")
DISABLE_SSL = os.getenv("DISABLE_SSL")


def database_url() -> str | None:
    """DATABASE_URL if set, otherwise a URL assembled from the POSTGRES_* parts"""
    if DATABASE_URL:
        return DATABASE_URL
    if not (POSTGRES_HOST and POSTGRES_DATABASE):
        return None
    auth = POSTGRES_USER or ""
    if POSTGRES_PASSWORD:
        auth += f":{POSTGRES_PASSWORD}"
    if auth:
        auth += "@"
    return f"postgresql://{auth}{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DATABASE}"


def ssl_mode() -> str:
    return "disable" if DISABLE_SSL else "require"
