import os
from dotenv import load_dotenv
from typing import Optional, List

# Load .env file from the package directory (parent of 'core')
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
load_dotenv(dotenv_path)

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Settings:
    PROJECT_NAME: str = "Commission & Payout Platform API"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./commission_backend.db")

    # Firebase (authentication is delegated to Firebase ID tokens)
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

    # Shared secret presented by the external scheduler for batch triggers
    CRON_SECRET: Optional[str] = os.getenv("CRON_SECRET")

    # CORS
    CORS_ALLOWED_ORIGINS_STR: str = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    @property
    def CORS_ALLOWED_ORIGINS(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS_STR.split(',') if origin.strip()]

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Application settings
    APP_FRONTEND_URL: str = os.getenv("APP_FRONTEND_URL", "http://localhost:3000")
    CURRENCY_LABEL: str = os.getenv("CURRENCY_LABEL", "GHS") # Display only, amounts are single-currency

    # Email settings
    EMAIL_HOST: Optional[str] = os.getenv("EMAIL_HOST")
    EMAIL_PORT: int = int(os.getenv("EMAIL_PORT", "587")) # Default to 587 for TLS
    EMAIL_USERNAME: Optional[str] = os.getenv("EMAIL_USERNAME")
    EMAIL_PASSWORD: Optional[str] = os.getenv("EMAIL_PASSWORD")
    EMAIL_FROM_ADDRESS: Optional[str] = os.getenv("EMAIL_FROM_ADDRESS")
    EMAIL_FROM_NAME: Optional[str] = os.getenv("EMAIL_FROM_NAME", PROJECT_NAME)
    EMAIL_USE_TLS: bool = os.getenv("EMAIL_USE_TLS", "true").lower() == "true"
    EMAIL_USE_SSL: bool = os.getenv("EMAIL_USE_SSL", "false").lower() == "true"
    EMAILS_TEMPLATES_DIR: str = os.getenv("EMAILS_TEMPLATES_DIR", os.path.join(_PACKAGE_DIR, "templates", "emails"))


settings = Settings()
