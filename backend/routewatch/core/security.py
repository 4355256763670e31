from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from routewatch.core.settings import Settings

logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "RS256"


class AuthenticationError(Exception):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


@dataclass(frozen=True)
class CurrentUser:
    id: str


def parse_bearer_header(header: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    The header must consist of exactly two space separated parts, the first
    of which is the literal ``Bearer``.
    """
    if not header:
        raise AuthenticationError("Missing authorization header")
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise AuthenticationError("Invalid authorization format. Expected: Bearer <token>")
    return parts[1]


class TokenVerifier:
    def __init__(self, *, issuer: str, audience: str, jwks_client: jwt.PyJWKClient) -> None:
        self.issuer = issuer
        self.audience = audience
        self.jwks_client = jwks_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenVerifier":
        jwks_client = jwt.PyJWKClient(
            settings.jwks_url,
            cache_jwk_set=True,
            lifespan=settings.jwks_cache_lifespan,
        )
        return cls(issuer=settings.issuer, audience=settings.auth0_audience or "", jwks_client=jwks_client)

    def prime(self) -> None:
        self.jwks_client.get_jwk_set()

    def verify(self, token: str) -> dict[str, Any]:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError:
            raise AuthenticationError("Invalid token")
        alg = header.get("alg")
        if alg != SIGNING_ALGORITHM:
            raise AuthenticationError(f"Unexpected signing method: {alg}")

        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token).key
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=[SIGNING_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.InvalidIssuerError:
            raise AuthenticationError("Invalid issuer")
        except jwt.InvalidAudienceError:
            raise AuthenticationError("Invalid audience")
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.PyJWKClientError as exc:
            logger.warning("auth.jwks.error error=%s", exc)
            raise AuthenticationError("Unable to resolve signing key")
        except jwt.PyJWTError as exc:
            logger.info("auth.decode.error error=%s", exc)
            raise AuthenticationError("Invalid token")

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise AuthenticationError("Invalid token claims")
        return dict(claims)


async def authenticate_request(request: Request, call_next):
    settings: Settings = request.app.state.settings
    if request.url.path == settings.health_path:
        return await call_next(request)

    if request.method == "OPTIONS":
        return await call_next(request)

    verifier: TokenVerifier = request.app.state.token_verifier
    try:
        token = parse_bearer_header(request.headers.get("authorization"))
        claims = await run_in_threadpool(verifier.verify, token)
    except AuthenticationError as exc:
        logger.warning("auth.reject path=%s reason=%s", request.url.path, exc.detail)
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail},
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.user_id = claims["sub"]
    return await call_next(request)


def get_current_user(request: Request) -> CurrentUser:
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(id=user_id)
