"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set; otherwise the URL is built from the POSTGRES_* parts.
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="fitcoach")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Redis Configuration (rate limiting). Unset = limiter disabled.
    REDIS_URL: Optional[str] = Field(default=None)

    # Rate Limiting: coaching endpoints, per user
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    COACH_MESSAGE_RATE_LIMIT: int = Field(default=10)
    COACH_MESSAGE_RATE_WINDOW_S: int = Field(default=3600)

    # Request shaping
    MAX_REQUEST_BODY_BYTES: int = Field(default=1024 * 1024)

    # CSRF origin checks: hosts trusted in addition to the request's own host.
    AUTH_DOMAIN: Optional[str] = Field(default=None)
    PUBLIC_APP_HOST: Optional[str] = Field(default=None)

    # Identity provider tokens
    # Either a shared secret (HS*) or a JWKS URL (RS*) must be configured.
    AUTH_TOKEN_SECRET: Optional[str] = Field(default=None)
    AUTH_TOKEN_ALGORITHMS: str = Field(default="HS256")  # comma-separated
    AUTH_TOKEN_AUDIENCE: Optional[str] = Field(default=None)
    AUTH_TOKEN_ISSUER: Optional[str] = Field(default=None)
    AUTH_JWKS_URL: Optional[str] = Field(default=None)
    AUTH_JWKS_CACHE_TTL_S: int = Field(default=3600)

    # Generative AI (Gemini)
    GOOGLE_GENAI_API_KEY: Optional[str] = Field(default=None)
    GEMINI_API_KEY: Optional[str] = Field(default=None)
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash")
    COACH_MESSAGE_TEMPERATURE: float = Field(default=0.7)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def gemini_api_key(self) -> Optional[str]:
        return self.GOOGLE_GENAI_API_KEY or self.GEMINI_API_KEY

    @property
    def token_algorithms(self) -> List[str]:
        return [a.strip() for a in self.AUTH_TOKEN_ALGORITHMS.split(",") if a.strip()]

    @property
    def trusted_origin_hosts(self) -> List[str]:
        hosts = []
        for value in (self.AUTH_DOMAIN, self.PUBLIC_APP_HOST):
            if value and value.strip():
                hosts.append(value.strip().lower())
        return hosts


def validate_production_config(
    environment: str,
    debug: bool,
    token_secret: Optional[str],
    jwks_url: Optional[str],
    trusted_hosts: List[str],
) -> None:
    """
    Hard-fail on configuration that is unsafe to run in production.

    No-op outside production.
    """
    if environment != "production":
        return

    if debug:
        raise ValueError("DEBUG must be False in production")

    if not (token_secret or jwks_url):
        raise ValueError(
            "AUTH_TOKEN_SECRET or AUTH_JWKS_URL must be set in production"
        )

    if token_secret and len(token_secret) < 32:
        raise ValueError("AUTH_TOKEN_SECRET must be at least 32 characters")

    for host in trusted_hosts:
        if host in ("localhost", "127.0.0.1"):
            raise ValueError(
                f"Trusted origin host '{host}' is not allowed in production"
            )


# Global settings instance
settings = Settings()
