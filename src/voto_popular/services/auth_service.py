"""Identity synchronisation and profile service.

Users are created from verified identity tokens only; the request body
never decides who the caller is. A first sign-in creates an unbound
citizen, later sign-ins refresh the record. Role and municipality are
never changed here except for a citizen's one-time municipality choice.
"""

from datetime import UTC, date, datetime
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voto_popular.core.authorization import Actor, authorize
from voto_popular.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    UnauthenticatedError,
    ValidationFailedError,
)
from voto_popular.core.identity import VerifiedIdentity, unverified_subject
from voto_popular.core.logging import security_logger
from voto_popular.core.roles import Role
from voto_popular.lib.validators import digits_only, is_valid_cep, is_valid_cpf, is_voting_age
from voto_popular.models.audit_log import AuditAction
from voto_popular.models.municipality import Municipality
from voto_popular.models.user import User
from voto_popular.services.antifraud_service import (
    AntifraudPolicy,
    evaluate_rate_limit,
    record_failed_attempt,
    reset_failed_attempts,
)
from voto_popular.services.audit_service import record_event

_PROFILE_FIELDS: frozenset[str] = frozenset({"name", "cpf", "birth_date", "zip_code", "municipality_id"})

_DEFAULT_POLICY = AntifraudPolicy()


# ---------------------------------------------------------------------------
# Sign-in synchronisation
# ---------------------------------------------------------------------------


async def sync_user(
    session: AsyncSession,
    identity: VerifiedIdentity,
    *,
    policy: AntifraudPolicy = _DEFAULT_POLICY,
    ip_address: str | None = None,
) -> tuple[User, bool]:
    """Create or refresh the user record for a verified identity.

    Idempotent: repeated calls with the same identity return the same user.

    Args:
        session: The database session.
        identity: Identity established by the verifier.
        policy: Throttling limits.
        ip_address: Source address for the audit trail.

    Returns:
        Tuple of (the created or refreshed User, whether it was created).

    Raises:
        RateLimitedError: If the user is currently throttled.
        UnauthenticatedError: If the account is deactivated.
        ConflictError: If the email belongs to another user.
    """
    now = datetime.now(UTC)
    user = await session.get(User, identity.subject_id)

    if user is not None:
        status = evaluate_rate_limit(user, policy, now)
        if not status.allowed:
            await _audit_login_failure(session, user, "Throttled sign-in attempt", ip_address)
            raise RateLimitedError()
        if not user.is_active:
            await _audit_login_failure(session, user, "Sign-in of deactivated account", ip_address)
            raise UnauthenticatedError("Account is deactivated")

    if await _email_taken(session, identity.email, exclude_user_id=identity.subject_id):
        security_logger.warning(f"Sign-in of {identity.subject_id} rejected: email owned by another user")
        raise ConflictError("Email already in use by another account")

    created = user is None
    if user is None:
        user = User(
            id=identity.subject_id,
            email=identity.email,
            name=identity.display_name,
            role=Role.CITIZEN,
            is_email_verified=identity.email_verified,
            last_signed_in_at=now,
        )
        session.add(user)
    else:
        user.email = identity.email
        if identity.display_name and not user.name:
            user.name = identity.display_name
        user.is_email_verified = identity.email_verified
        user.last_signed_in_at = now
        reset_failed_attempts(user)

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        # A concurrent first sign-in of the same subject won the insert.
        existing = await session.get(User, identity.subject_id)
        if existing is None:
            raise ConflictError("Email already in use by another account") from e
        user, created = existing, False
    await session.refresh(user)

    logger.info(f"{'Created' if created else 'Synced'} user {user.id} (role={user.role})")
    await record_event(
        session,
        action=AuditAction.LOGIN_SUCCESS,
        user_id=user.id,
        municipality_id=user.municipality_id,
        details="First sign-in" if created else None,
        ip_address=ip_address,
    )
    return user, created


async def record_failed_sync(
    session: AsyncSession,
    token: str | None,
    *,
    policy: AntifraudPolicy = _DEFAULT_POLICY,
    ip_address: str | None = None,
) -> None:
    """Record a sign-in attempt whose token failed verification.

    The unverified ``sub`` claim is only used as a throttling key: when it
    names an existing user, the failure counts against that user.
    """
    subject = unverified_subject(token) if token else None
    user = await session.get(User, subject) if subject else None
    if user is None:
        await record_event(
            session,
            action=AuditAction.LOGIN_FAILED,
            details="Unverifiable identity token",
            ip_address=ip_address,
        )
        return

    await record_failed_attempt(session, user, policy)
    await _audit_login_failure(session, user, "Identity token verification failed", ip_address)


async def _audit_login_failure(
    session: AsyncSession,
    user: User,
    details: str,
    ip_address: str | None,
) -> None:
    await record_event(
        session,
        action=AuditAction.LOGIN_FAILED,
        user_id=user.id,
        municipality_id=user.municipality_id,
        details=details,
        ip_address=ip_address,
    )


async def _email_taken(session: AsyncSession, email: str, *, exclude_user_id: str) -> bool:
    result = await session.execute(select(User.id).where(User.email == email, User.id != exclude_user_id))
    return result.first() is not None


# ---------------------------------------------------------------------------
# Current user and profile
# ---------------------------------------------------------------------------


async def get_current_user(session: AsyncSession, actor: Actor) -> User:
    """Return the persisted record of the authenticated actor.

    Raises:
        UnauthenticatedError: If the actor is anonymous or inactive.
        NotFoundError: If the record disappeared since the actor was resolved.
    """
    authorize(actor, "auth.me")
    user = await session.get(User, actor.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def update_profile(
    session: AsyncSession,
    actor: Actor,
    updates: dict[str, Any],
    *,
    policy: AntifraudPolicy = _DEFAULT_POLICY,
    ip_address: str | None = None,
) -> User:
    """Update the caller's own profile.

    Only ``name``, ``cpf``, ``birth_date``, ``zip_code`` and, for citizens
    not yet bound, ``municipality_id`` can be set. A CPF already held by
    someone else is a conflict and counts as a failed attempt.

    Args:
        session: The database session.
        actor: The authenticated caller.
        updates: Field names mapped to new values.
        policy: Throttling limits for CPF claims.
        ip_address: Source address for the audit trail.

    Returns:
        The updated User.

    Raises:
        ValidationFailedError: If a value is malformed.
        ConflictError: If the CPF belongs to another user.
        ForbiddenError: If the caller tries to change an existing municipality binding.
        RateLimitedError: If the caller is throttled.
    """
    user = await get_current_user(session, actor)
    fields = {k: v for k, v in updates.items() if k in _PROFILE_FIELDS}

    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not 1 <= len(name) <= 255:
            raise ValidationFailedError("Name must have 1 to 255 characters", field="name")
        user.name = name

    if "birth_date" in fields and fields["birth_date"] is not None:
        birth_date: date = fields["birth_date"]
        if not is_voting_age(birth_date):
            raise ValidationFailedError("Minimum age is 16 years", field="birth_date")
        user.birth_date = birth_date

    if "zip_code" in fields and fields["zip_code"] is not None:
        if not is_valid_cep(fields["zip_code"]):
            raise ValidationFailedError("CEP must have 8 digits", field="zip_code")
        user.zip_code = digits_only(fields["zip_code"])

    if "municipality_id" in fields and fields["municipality_id"] is not None:
        await _bind_municipality(session, user, fields["municipality_id"])

    if "cpf" in fields and fields["cpf"] is not None:
        await _claim_cpf(session, user, fields["cpf"], policy)

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError("CPF already registered") from e
    await session.refresh(user)

    logger.info(f"User {user.id} updated profile fields {sorted(fields)}")
    await record_event(
        session,
        action=AuditAction.PROFILE_UPDATED,
        user_id=user.id,
        municipality_id=user.municipality_id,
        details=f"Updated fields: {', '.join(sorted(fields)) or 'none'}",
        ip_address=ip_address,
    )
    return user


async def _bind_municipality(session: AsyncSession, user: User, municipality_id: str) -> None:
    if user.municipality_id == municipality_id:
        return
    if user.municipality_id is not None or Role.parse(user.role) is not Role.CITIZEN:
        raise ForbiddenError("Municipality binding cannot be changed")
    if await session.get(Municipality, municipality_id) is None:
        raise ValidationFailedError("Unknown municipality", field="municipality_id")
    user.municipality_id = municipality_id


async def _claim_cpf(session: AsyncSession, user: User, raw_cpf: str, policy: AntifraudPolicy) -> None:
    if not is_valid_cpf(raw_cpf):
        raise ValidationFailedError("Invalid CPF", field="cpf")
    cpf = digits_only(raw_cpf)
    if cpf == user.cpf:
        return

    if not evaluate_rate_limit(user, policy).allowed:
        raise RateLimitedError()

    holder = await session.execute(select(User.id).where(User.cpf == cpf, User.id != user.id))
    if holder.first() is not None:
        # Pending profile edits are discarded; only the failure counter is kept.
        await session.rollback()
        await session.refresh(user)
        await record_failed_attempt(session, user, policy)
        security_logger.warning(f"User {user.id} tried to claim a CPF held by another account")
        raise ConflictError("CPF already registered")

    user.cpf = cpf
    user.is_cpf_verified = False
