"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql+psycopg://localhost:5432/archibill"

    # Supabase Auth (identity provider)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""  # Admin API key - server side only
    SUPABASE_ANON_KEY: str = ""  # Used for session-scoped calls
    IDENTITY_PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # Public app URL (password reset + invite redirects)
    APP_URL: str = "http://localhost:3000"

    # Site-wide administrators (comma-separated emails)
    SITE_ADMIN_EMAILS: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def site_admin_emails_list(self) -> list[str]:
        """Parse SITE_ADMIN_EMAILS into lowercase list."""
        if not self.SITE_ADMIN_EMAILS:
            return []
        return [e.strip().lower() for e in self.SITE_ADMIN_EMAILS.split(",") if e.strip()]

    @property
    def app_base_url(self) -> str:
        return self.APP_URL.rstrip("/")

    @property
    def reset_redirect_url(self) -> str:
        """Where the password reset email lands."""
        return f"{self.app_base_url}/auth/update-password"

    @property
    def invite_redirect_url(self) -> str:
        """Where the invitation email lands."""
        return f"{self.app_base_url}/auth/callback"

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
