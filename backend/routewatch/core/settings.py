import os

from sqlalchemy.engine import URL


def _getenv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_csv(name: str, default: str) -> list[str]:
    raw = _getenv(name, default) or default
    return [p.strip() for p in raw.split(",") if p.strip()]


class Settings:
    def __init__(self) -> None:
        self.log_level = (_getenv("LOG_LEVEL", "INFO") or "INFO").upper()
        self.port = int(_getenv("PORT", "8080") or "8080")

        self.auth0_domain = _getenv("AUTH0_DOMAIN")
        self.auth0_audience = _getenv("AUTH0_AUDIENCE")
        self.jwks_prefetch = _getenv_bool("JWKS_PREFETCH", default=True)
        self.jwks_cache_lifespan = int(_getenv("JWKS_CACHE_LIFESPAN", "300") or "300")

        self.database_url = _getenv("DATABASE_URL")
        self.database_host = _getenv("DATABASE_HOST")
        self.database_port = _getenv("DATABASE_PORT", "5432")
        self.database_username = _getenv("DATABASE_USERNAME")
        self.database_password = _getenv("DATABASE_PASSWORD")
        self.database_name = _getenv("DATABASE_NAME")
        self.db_auto_create = _getenv_bool("DB_AUTO_CREATE", default=True)

        self.cors_allow_origins = _getenv_csv("CORS_ALLOW_ORIGINS", "http://localhost:3000")
        self.health_path = "/api/health"

    @property
    def issuer(self) -> str:
        return f"https://{self.auth0_domain}/"

    @property
    def jwks_url(self) -> str:
        return f"https://{self.auth0_domain}/.well-known/jwks.json"

    def require_auth_config(self) -> None:
        if not self.auth0_domain:
            raise RuntimeError("AUTH0_DOMAIN environment variable is required")
        if not self.auth0_audience:
            raise RuntimeError("AUTH0_AUDIENCE environment variable is required")

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        if self.database_host:
            return URL.create(
                "postgresql+psycopg2",
                username=self.database_username,
                password=self.database_password,
                host=self.database_host,
                port=int(self.database_port or "5432"),
                database=self.database_name,
            ).render_as_string(hide_password=False)
        return "sqlite:///./routewatch.db"
