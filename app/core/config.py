from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]
_DEFAULT_PROTECTED_ROUTES = ["/", "/v1/users(.*)"]


def _parse_list(v: Any, default: List[str]) -> List[str]:
    try:
        if v is None or v == "":
            return default.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return default.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or default.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or default.copy()
    except Exception:
        return default.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="user_records", alias="MONGODB_DB_NAME")

    # Clerk sessions: PEM public key (networkless) or instance JWKS URL
    clerk_jwt_key: str | None = Field(default=None, alias="CLERK_JWT_KEY")
    clerk_jwks_url: str | None = Field(default=None, alias="CLERK_JWKS_URL")
    clerk_authorized_parties_raw: str = Field(default="", alias="CLERK_AUTHORIZED_PARTIES")
    clerk_sign_in_url: str | None = Field(default=None, alias="CLERK_SIGN_IN_URL")
    clerk_webhook_secret: str = Field(default="", alias="CLERK_WEBHOOK_SECRET")
    jwks_cache_ttl_seconds: int = 3600

    # Rendered-output invalidation hook
    revalidate_url: str | None = Field(default=None, alias="REVALIDATE_URL")
    revalidate_secret: str = Field(default="", alias="REVALIDATE_SECRET")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    # Paths requiring a Clerk session; read once when the app is built
    protected_routes_raw: str = Field(
        default="/,/v1/users(.*)",
        alias="PROTECTED_ROUTES",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_list(getattr(self, "cors_origins_raw", None), _DEFAULT_CORS)

    @property
    def protected_routes(self) -> tuple[str, ...]:
        return tuple(_parse_list(self.protected_routes_raw, _DEFAULT_PROTECTED_ROUTES))

    @property
    def clerk_authorized_parties(self) -> List[str]:
        return _parse_list(self.clerk_authorized_parties_raw, [])


@lru_cache
def get_settings() -> Settings:
    return Settings()
