"""External identity token verification.

Verifies bearer tokens issued by the external identity provider and yields
a ``VerifiedIdentity``. Two modes are supported:

* RS256 tokens signed by the provider, checked against its published JSON
  Web Key Set (fetched with httpx and cached).
* HS256 tokens signed with a shared secret, for development and tests.

The verifier only establishes who the caller is; it performs no
authorization. Every failure raises ``IdentityVerificationError`` and the
caller is then treated as anonymous.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx
import jwt
from loguru import logger

from voto_popular.core.config import Settings


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity established by a successfully verified token."""

    subject_id: str
    email: str
    display_name: str | None = None
    email_verified: bool = False


class IdentityVerificationError(Exception):
    """Raised when a token cannot be verified for any reason."""


class IdentityVerifier:
    """Verify identity tokens issued by the external provider.

    Args:
        project_id: Provider project id; the expected audience for RS256 tokens.
        jwks_url: URL of the provider's JSON Web Key Set.
        issuer_prefix: Expected issuer, completed with the project id.
        timeout: Timeout in seconds for fetching the key set.
        cache_seconds: How long a fetched key set is reused.
        shared_secret: HS256 secret enabling development tokens.
        require_verified_email: Reject tokens whose email is not verified.
    """

    def __init__(
        self,
        *,
        project_id: str | None = None,
        jwks_url: str | None = None,
        issuer_prefix: str = "https://securetoken.google.com/",
        timeout: float = 5.0,
        cache_seconds: int = 3600,
        shared_secret: str | None = None,
        require_verified_email: bool = False,
    ) -> None:
        self._project_id = project_id
        self._jwks_url = jwks_url
        self._issuer = f"{issuer_prefix}{project_id}" if project_id else None
        self._timeout = timeout
        self._cache_seconds = cache_seconds
        self._shared_secret = shared_secret
        self._require_verified_email = require_verified_email
        self._jwks: jwt.PyJWKSet | None = None
        self._jwks_fetched_at: float = 0.0
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityVerifier":
        """Build a verifier from application settings."""
        return cls(
            project_id=settings.identity_project_id,
            jwks_url=settings.identity_jwks_url,
            issuer_prefix=settings.identity_issuer_prefix,
            timeout=settings.identity_timeout_seconds,
            cache_seconds=settings.identity_jwks_cache_seconds,
            shared_secret=settings.identity_shared_secret,
            require_verified_email=settings.identity_require_verified_email,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._shared_secret or (self._project_id and self._jwks_url))

    async def verify(self, token: str) -> VerifiedIdentity:
        """Verify a bearer token.

        Args:
            token: The raw token string (without the ``Bearer`` prefix).

        Returns:
            The verified identity.

        Raises:
            IdentityVerificationError: On any verification failure, including
                an unreachable key server.
        """
        if not self.enabled:
            raise IdentityVerificationError("Identity verification is not configured")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise IdentityVerificationError("Malformed token") from e

        algorithm = header.get("alg")
        try:
            if algorithm == "HS256" and self._shared_secret:
                claims = jwt.decode(
                    token,
                    self._shared_secret,
                    algorithms=["HS256"],
                    options={"verify_aud": False, "require": ["exp", "sub"]},
                )
            elif algorithm == "RS256" and self._project_id:
                key = await self._signing_key(header.get("kid"))
                claims = jwt.decode(
                    token,
                    key.key,
                    algorithms=["RS256"],
                    audience=self._project_id,
                    issuer=self._issuer,
                    options={"require": ["exp", "iat", "sub", "aud", "iss"]},
                )
            else:
                raise IdentityVerificationError(f"Unsupported token algorithm: {algorithm}")
        except jwt.ExpiredSignatureError as e:
            raise IdentityVerificationError("Token expired") from e
        except jwt.PyJWTError as e:
            raise IdentityVerificationError(f"Invalid token: {type(e).__name__}") from e

        return self._identity_from_claims(claims)

    def _identity_from_claims(self, claims: dict[str, Any]) -> VerifiedIdentity:
        subject = claims.get("sub")
        email = claims.get("email")
        if not isinstance(subject, str) or not subject.strip():
            raise IdentityVerificationError("Token has no subject")
        if not isinstance(email, str) or "@" not in email:
            raise IdentityVerificationError("Token has no email")
        email_verified = bool(claims.get("email_verified", False))
        if self._require_verified_email and not email_verified:
            raise IdentityVerificationError("Email not verified")
        name = claims.get("name")
        return VerifiedIdentity(
            subject_id=subject,
            email=email.strip().lower(),
            display_name=name if isinstance(name, str) and name.strip() else None,
            email_verified=email_verified,
        )

    # ------------------------------------------------------------------
    # Key set handling
    # ------------------------------------------------------------------

    async def _signing_key(self, kid: str | None) -> jwt.PyJWK:
        if not kid:
            raise IdentityVerificationError("Token header has no key id")

        jwks = await self._get_jwks(force=False)
        key = _find_key(jwks, kid)
        if key is None:
            # Keys rotate; refetch once before giving up.
            jwks = await self._get_jwks(force=True)
            key = _find_key(jwks, kid)
        if key is None:
            raise IdentityVerificationError("Unknown signing key")
        return key

    async def _get_jwks(self, *, force: bool) -> jwt.PyJWKSet:
        async with self._lock:
            fresh = self._jwks is not None and time.monotonic() - self._jwks_fetched_at < self._cache_seconds
            if fresh and not force:
                return self._jwks  # type: ignore[return-value]
            data = await self._fetch_jwks()
            try:
                self._jwks = jwt.PyJWKSet.from_dict(data)
            except jwt.PyJWTError as e:
                raise IdentityVerificationError("Identity provider returned an invalid key set") from e
            self._jwks_fetched_at = time.monotonic()
            return self._jwks

    async def _fetch_jwks(self) -> dict[str, Any]:
        """Download the key set from the identity provider.

        Raises:
            IdentityVerificationError: On timeout, HTTP or connection errors.
        """
        if not self._jwks_url:
            raise IdentityVerificationError("No key set URL configured")
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._jwks_url)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Identity provider key set request timed out")
            raise IdentityVerificationError("Identity provider timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Identity provider key set HTTP error {e.response.status_code}")
            raise IdentityVerificationError("Identity provider error") from e
        except httpx.RequestError as e:
            logger.warning(f"Identity provider unreachable: {type(e).__name__}")
            raise IdentityVerificationError("Identity provider unreachable") from e
        except ValueError as e:
            logger.warning("Identity provider returned a non-JSON key set")
            raise IdentityVerificationError("Identity provider returned an invalid key set") from e

        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            raise IdentityVerificationError("Identity provider returned an invalid key set")
        return data


def _find_key(jwks: jwt.PyJWKSet, kid: str) -> jwt.PyJWK | None:
    for key in jwks.keys:
        if key.key_id == kid:
            return key
    return None


def unverified_subject(token: str) -> str | None:
    """Read the ``sub`` claim without verifying the signature.

    Only ever used as a throttling key after verification has failed.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    subject = claims.get("sub")
    return subject if isinstance(subject, str) and subject else None
