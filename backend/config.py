"""
Configuration management for the EV Rental order core.

Loads settings from .env via pydantic-settings.

Notes:
    - The rental REST backend is reached over HTTPS first; the HTTP fallback
      URL is only tried when the HTTPS connection itself fails.
    - validate_production_settings() blocks plain-HTTP backends and unsigned
      bearer tokens in production.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Rental REST backend ─────────────────────────────────────────
    rental_api_base_url: str = "https://localhost:7200/api"
    rental_api_fallback_url: str = "http://localhost:5027/api"
    rental_api_timeout_seconds: float = 15.0
    rental_api_verify_tls: bool = True

    # ── Database (callback ledger) ──────────────────────────────────
    database_url: str = "sqlite:///./data/rental_callbacks.db"

    # ── Payment callbacks ───────────────────────────────────────────
    # Move a freshly paid order to Renting when the driver license is approved
    auto_checkin_enabled: bool = True
    callback_rate_limit: int = 30
    callback_rate_window_seconds: int = 60

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── Auth (JWT issued by the rental backend) ─────────────────────
    # Empty secret: claims are read without signature verification and the
    # backend remains the authority for every forwarded call.
    jwt_secret: str = ""
    jwt_issuer: str = ""

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def rental_api_urls(self) -> List[str]:
        """Backend base URLs in the order they should be tried."""
        urls = [self.rental_api_base_url.rstrip("/")]
        fallback = self.rental_api_fallback_url.rstrip("/")
        if fallback and fallback not in urls:
            urls.append(fallback)
        return urls

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if not self.rental_api_base_url.startswith("https://"):
                raise ValueError(
                    "RENTAL_API_BASE_URL must use https:// in production."
                )
            if self.rental_api_fallback_url and not self.rental_api_fallback_url.startswith("https://"):
                raise ValueError(
                    "RENTAL_API_FALLBACK_URL must be empty or use https:// in production. "
                    "Plain HTTP would leak bearer tokens."
                )
            if not self.rental_api_verify_tls:
                raise ValueError(
                    "RENTAL_API_VERIFY_TLS must be true in production."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to verify the session tokens forwarded to the rental backend."
                )
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if not self.rental_api_verify_tls:
                warnings.append("RENTAL_API_VERIFY_TLS=false (backend certificate not checked)")
            if not self.jwt_secret:
                warnings.append("JWT_SECRET empty (session claims read without verification)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
