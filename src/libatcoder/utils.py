import datetime
import logging
from typing import NotRequired, Optional, TypedDict


def setup_logging(name: Optional[str] = None):
    """Configure and setup logging for the application"""

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logger = logging.getLogger(name or __name__)
    logger.setLevel(logging.INFO)

    if not logger.handlers:
        logger.addHandler(console_handler)

    return logger


class AtCoderStoreError(Exception):
    """
    This class represents an Exception that has been sanitized,
    i.e., whose message can be safely displayed to an operator without
    leaking connection details or raw SQL.
    """

    def __init__(self, message):
        super().__init__(message)


class DuplicateKeyError(AtCoderStoreError):
    pass


class MissingContestError(AtCoderStoreError):
    pass


# Keys that are absent from one of these dicts are not written at all.
# This is how callers say "leave this column alone", including updated_at.


class ContestItem(TypedDict):
    contest_id: str
    start_epoch_second: int
    duration_second: int
    title: str
    rate_change: str
    category: str
    created_at: NotRequired[datetime.datetime]
    updated_at: NotRequired[datetime.datetime]


class ProblemItem(TypedDict):
    problem_id: str
    contest_id: str
    problem_index: str
    name: str
    title: str
    url: str
    html: str
    difficulty: NotRequired[Optional[int]]
    created_at: NotRequired[datetime.datetime]
    updated_at: NotRequired[datetime.datetime]


class DifficultyItem(TypedDict):
    problem_id: str
    slope: NotRequired[Optional[float]]
    intercept: NotRequired[Optional[float]]
    variance: NotRequired[Optional[float]]
    difficulty: NotRequired[Optional[int]]
    discrimination: NotRequired[Optional[float]]
    irt_loglikelihood: NotRequired[Optional[float]]
    irt_users: NotRequired[Optional[float]]
    is_experimental: NotRequired[Optional[bool]]
    created_at: NotRequired[datetime.datetime]
    updated_at: NotRequired[datetime.datetime]


class UserItem(TypedDict):
    user_name: str
    rating: int
    highest_rating: int
    affiliation: NotRequired[Optional[str]]
    birth_year: NotRequired[Optional[int]]
    country: NotRequired[Optional[str]]
    crown: NotRequired[Optional[str]]
    join_count: int
    rank: int
    wins: int
    created_at: NotRequired[datetime.datetime]
    updated_at: NotRequired[datetime.datetime]


class SubmissionItem(TypedDict):
    id: int
    epoch_second: int
    problem_id: str
    contest_id: NotRequired[Optional[str]]
    user_id: NotRequired[Optional[str]]
    language: NotRequired[Optional[str]]
    point: NotRequired[Optional[float]]
    length: NotRequired[Optional[int]]
    result: NotRequired[Optional[str]]
    execution_time: NotRequired[Optional[int]]
