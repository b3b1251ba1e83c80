"""
Credential service — password hashing and bearer-token signing.

Hashing uses bcrypt with the configured cost factor.  Tokens are HS256 JWTs
carrying ``{"user": {"id": ..., "role": ...}}`` plus an ``exp`` claim.
Password-reset tokens carry only the user id and ``"purpose": "reset"`` so
they cannot be presented as access tokens.

bcrypt is CPU bound; the ``*_async`` helpers push it to the thread pool so
request handlers never block the event loop.
"""
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from starlette.concurrency import run_in_threadpool

from rebbit.config import Settings

RESET_PURPOSE = "reset"


class InvalidToken(Exception):
    """Raised for malformed, expired or wrongly signed tokens."""


class CredentialService:
    algorithm = "HS256"

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.JWT_SECRET
        self._rounds = settings.BCRYPT_ROUNDS
        self.token_ttl = timedelta(seconds=settings.TOKEN_TTL_SECONDS)
        self.reset_ttl = timedelta(seconds=settings.RESET_TOKEN_TTL_SECONDS)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    @staticmethod
    def _encode(password: str) -> bytes:
        # bcrypt only considers the first 72 bytes
        return password.encode("utf-8")[:72]

    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(self._encode(password), salt).decode("ascii")

    def verify_password(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(self._encode(password), hashed.encode("ascii"))
        except ValueError:
            return False

    async def hash_password_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash_password, password)

    async def verify_password_async(self, password: str, hashed: str) -> bool:
        return await run_in_threadpool(self.verify_password, password, hashed)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_token(self, claims: dict, ttl: timedelta | None = None) -> str:
        payload = dict(claims)
        payload["exp"] = datetime.now(timezone.utc) + (ttl or self.token_ttl)
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict:
        try:
            return jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as exc:
            raise InvalidToken(str(exc)) from exc

    def issue_access_token(self, user_id: int, role: str) -> str:
        return self.issue_token({"user": {"id": user_id, "role": role}})

    def issue_reset_token(self, user_id: int) -> str:
        return self.issue_token(
            {"user": {"id": user_id}, "purpose": RESET_PURPOSE}, ttl=self.reset_ttl
        )

    def read_reset_token(self, token: str) -> int:
        """Return the user id a reset token was issued for."""
        claims = self.verify_token(token)
        user = claims.get("user") or {}
        if claims.get("purpose") != RESET_PURPOSE or not isinstance(user.get("id"), int):
            raise InvalidToken("not a password reset token")
        return user["id"]
