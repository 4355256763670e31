"""Test configuration and fixtures."""
import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from routewatch.core.application import create_app
from routewatch.core.database import Base, build_engine
from routewatch.core.security import TokenVerifier
from routewatch.core.settings import Settings
import routewatch.models.subscription  # noqa: F401


AUTH0_DOMAIN = "tenant.example.com"
AUTH0_AUDIENCE = "https://api.routewatch.test"
KEY_ID = "test-key"


class StaticJWKClient(jwt.PyJWKClient):
    """PyJWKClient serving a fixed key set instead of fetching it over HTTP."""

    def __init__(self, jwk_set: dict | None = None, error: Exception | None = None) -> None:
        super().__init__(f"https://{AUTH0_DOMAIN}/.well-known/jwks.json")
        self.jwk_set_data = jwk_set
        self.error = error
        self.fetch_count = 0

    def fetch_data(self):
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        if self.jwk_set_cache is not None:
            self.jwk_set_cache.put(self.jwk_set_data)
        return self.jwk_set_data


def _public_jwk(private_key, kid: str) -> dict:
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


@pytest.fixture(scope="session")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def foreign_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def jwk_set(signing_key):
    return {"keys": [_public_jwk(signing_key, KEY_ID)]}


@pytest.fixture
def static_jwks_client():
    return StaticJWKClient


@pytest.fixture
def jwks_client(jwk_set):
    return StaticJWKClient(jwk_set)


@pytest.fixture
def issue_token(signing_key):
    def _issue(
        sub="auth0|u1",
        *,
        key=None,
        kid=KEY_ID,
        algorithm="RS256",
        expires_in=300,
        **claims,
    ) -> str:
        now = int(time.time())
        payload = {
            "iss": f"https://{AUTH0_DOMAIN}/",
            "aud": AUTH0_AUDIENCE,
            "iat": now,
            "exp": now + expires_in,
        }
        if sub is not None:
            payload["sub"] = sub
        payload.update(claims)
        return jwt.encode(payload, key or signing_key, algorithm=algorithm, headers={"kid": kid})

    return _issue


@pytest.fixture
def auth_headers(issue_token):
    def _headers(sub="auth0|u1", **kwargs) -> dict:
        return {"Authorization": f"Bearer {issue_token(sub, **kwargs)}"}

    return _headers


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("AUTH0_DOMAIN", AUTH0_DOMAIN)
    monkeypatch.setenv("AUTH0_AUDIENCE", AUTH0_AUDIENCE)
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("DB_AUTO_CREATE", "true")
    monkeypatch.setenv("JWKS_PREFETCH", "true")
    return Settings()


@pytest.fixture
def token_verifier(settings, jwks_client):
    return TokenVerifier(issuer=settings.issuer, audience=settings.auth0_audience, jwks_client=jwks_client)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db_session(engine):
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app(settings, engine, token_verifier):
    return create_app(settings, engine=engine, token_verifier=token_verifier)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
