"""
Authentication Collaborators

- PasswordHasher: salted bcrypt hashes via passlib
- TokenService: signed, time-limited JWT access tokens via python-jose
- FastAPI dependencies that turn a bearer token into an ``Identity``

Both collaborators are created once at startup and stored on ``app.state``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from food_ordering.core.config import Settings
from food_ordering.core.exceptions import AuthenticationError
from food_ordering.core.guard import Action, Identity, enforce_role
from food_ordering.models import Role, User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class PasswordHasher:
    """
    Hash and verify passwords with bcrypt.

    bcrypt is CPU bound, so ``hash`` and ``verify`` run it in the threadpool
    and the event loop keeps serving other requests meanwhile.
    """

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    async def hash(self, password: str) -> str:
        return await run_in_threadpool(self._context.hash, password)

    async def verify(self, password: str, password_hash: Optional[str]) -> bool:
        """
        Check ``password`` against a stored hash.

        When there is no stored hash (unknown account) a dummy verification
        still runs so the response time does not reveal whether the account
        exists.
        """
        return await run_in_threadpool(self._verify, password, password_hash)

    def _verify(self, password: str, password_hash: Optional[str]) -> bool:
        if not password_hash:
            self._context.dummy_verify()
            return False
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            logger.warning("Stored password hash could not be parsed")
            return False


class TokenService:
    """Issue and verify access tokens carrying {user id, email, role}."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_hours: int = 24):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = timedelta(hours=expire_hours)

    def issue(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "role": Role(user.role).value,
            "iat": now,
            "exp": now + (expires_delta or self.expires_delta),
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        """
        Decode a token into an Identity.

        Raises:
            AuthenticationError: on any failure (bad signature, expiry,
                malformed or incomplete claims)
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return Identity(
                user_id=int(payload["sub"]),
                email=payload["email"],
                role=Role(payload["role"]),
            )
        except ExpiredSignatureError:
            logger.info("Rejected expired access token")
        except (JWTError, KeyError, TypeError, ValueError) as e:
            logger.info(f"Rejected invalid access token: {e}")
        raise AuthenticationError("Invalid or expired token")


def build_password_hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


def build_token_service(settings: Settings) -> TokenService:
    return TokenService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_hours=settings.jwt_expire_hours,
    )


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    """Resolve the caller from the ``Authorization: Bearer`` header."""
    if credentials is None:
        raise AuthenticationError("Access token required")
    return tokens.verify(credentials.credentials)


def require(action: Action):
    """
    Dependency factory that checks the role half of ``action``'s policy
    before the handler runs. Ownership, if the policy has any, is still the
    handler's job once the resource is loaded.

    Usage:
        identity: Identity = Depends(require(Action.USER_LIST))
    """

    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        enforce_role(identity, action)
        return identity

    return dependency
