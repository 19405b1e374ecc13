"""Failed-attempt throttling.

Each user row carries a failed-attempt counter and the time of the latest
failure. Attempts are throttled once the counter reaches the limit inside a
rolling window (5 attempts / 15 minutes by default); a failure outside the
window starts a new count, and a successful sign-in resets it.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.config import Settings
from voto_popular.core.logging import security_logger
from voto_popular.models.user import User


@dataclass(frozen=True)
class AntifraudPolicy:
    """Throttling limits."""

    max_attempts: int = 5
    window: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AntifraudPolicy":
        return cls(
            max_attempts=settings.antifraud_max_attempts,
            window=timedelta(minutes=settings.antifraud_window_minutes),
        )


@dataclass(frozen=True)
class RateLimitStatus:
    """Result of a throttle evaluation."""

    allowed: bool
    remaining_attempts: int
    reset_at: datetime | None = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _within_window(user: User, policy: AntifraudPolicy, now: datetime) -> bool:
    last = user.last_failed_login_at
    return last is not None and _as_utc(last) > now - policy.window


def evaluate_rate_limit(user: User, policy: AntifraudPolicy, now: datetime | None = None) -> RateLimitStatus:
    """Decide whether a user may attempt to sign in.

    Pure function of the user's counters and the clock.

    Args:
        user: The user whose counters are evaluated.
        policy: Throttling limits.
        now: Reference time; defaults to the current UTC time.

    Returns:
        The throttle status, with ``reset_at`` set while failures are in the window.
    """
    now = now or datetime.now(UTC)
    if not _within_window(user, policy, now):
        return RateLimitStatus(allowed=True, remaining_attempts=policy.max_attempts)

    failed = user.failed_login_count or 0
    assert user.last_failed_login_at is not None
    return RateLimitStatus(
        allowed=failed < policy.max_attempts,
        remaining_attempts=max(0, policy.max_attempts - failed),
        reset_at=_as_utc(user.last_failed_login_at) + policy.window,
    )


async def record_failed_attempt(
    session: AsyncSession,
    user: User,
    policy: AntifraudPolicy,
    now: datetime | None = None,
) -> RateLimitStatus:
    """Count a failed attempt against a user and commit it.

    A failure outside the current window restarts the count at one.
    Storage errors are logged and swallowed.

    Args:
        session: The database session.
        user: The user the attempt is attributed to.
        policy: Throttling limits.
        now: Reference time; defaults to the current UTC time.

    Returns:
        The throttle status after counting this attempt.
    """
    now = now or datetime.now(UTC)
    if _within_window(user, policy, now):
        user.failed_login_count = (user.failed_login_count or 0) + 1
    else:
        user.failed_login_count = 1
    user.last_failed_login_at = now
    user_id = user.id
    status = evaluate_rate_limit(user, policy, now)

    try:
        await session.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to record failed attempt for user {user_id}")
        await session.rollback()

    if not status.allowed:
        security_logger.warning(f"User {user_id} throttled until {status.reset_at}")
    return status


def reset_failed_attempts(user: User) -> None:
    """Clear a user's failure counters. The caller commits."""
    user.failed_login_count = 0
    user.last_failed_login_at = None
