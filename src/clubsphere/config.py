"""
# Configuration Module

Centralised, typed configuration for the ClubSphere API, built on Pydantic's
`BaseSettings`.

## Loading Order

1. **Environment variable** `CLUBSPHERE_CONFIG_PATH`, if it points at an existing file.
2. **`.clubsphere`** in the project root.
3. **`.env`** in the project root.
4. **Environment only**, when no file is found.

The discovered file is loaded with `python-dotenv` before the settings model is
instantiated, so values in the file override stale process variables.

## Usage

```python
from clubsphere.config import settings

settings.MONGODB_DATABASE      # "clubsphere"
settings.SECRET_KEY.get_secret_value()
```

Attributes:
    settings (Settings): The global settings instance.
"""

import os
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
CLUBSPHERE_FILENAME: str = ".clubsphere"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "CLUBSPHERE_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determine the configuration file path.

    Checks, in order, the `CLUBSPHERE_CONFIG_PATH` environment variable, a `.clubsphere`
    file in the project root and a `.env` file in the project root.

    Returns:
        Optional[str]: The path of the first existing file, or `None` for environment-only mode.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    clubsphere_path: Path = PROJECT_ROOT / CLUBSPHERE_FILENAME
    if clubsphere_path.exists():
        return str(clubsphere_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=True)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode, CORS origins, log level.
    *   **Database**: MongoDB connection and pool sizing.
    *   **Security**: JWT signing key, algorithm and lifetime.
    *   **Payments**: Razorpay credentials, currency and service-fee policy.
    *   **Lifecycle**: Paid membership duration and the calendar used for event dates.
    *   **Integrations**: Firebase service account for Google sign-in.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "clubsphere"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_MAX_POOL_SIZE: int = 10
    MONGODB_MIN_POOL_SIZE: int = 1

    # JWT configuration
    SECRET_KEY: SecretStr = SecretStr("")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    # Payments
    RAZORPAY_KEY_ID: str = "rzp_test_PLACEHOLDER_KEY_ID"
    RAZORPAY_KEY_SECRET: SecretStr = SecretStr("PLACEHOLDER_KEY_SECRET")
    PAYMENT_CURRENCY: str = "INR"
    SERVICE_FEE_RATE: Decimal = Decimal("0.10")
    MIN_SERVICE_FEE: Decimal = Decimal("1.50")

    # Lifecycle
    MEMBERSHIP_DURATION_DAYS: int = 365
    APP_TIMEZONE: str = "UTC"

    # Google sign-in through Firebase Admin
    FIREBASE_SERVICE_ACCOUNT_KEY: Optional[SecretStr] = None

    @field_validator("ACCESS_TOKEN_EXPIRE_DAYS", "MEMBERSHIP_DURATION_DAYS")
    @classmethod
    def validate_positive_days(cls, v: int) -> int:
        """Durations must be at least one day."""
        if v < 1:
            raise ValueError("duration must be at least 1 day")
        return v

    @field_validator("SERVICE_FEE_RATE", "MIN_SERVICE_FEE")
    @classmethod
    def validate_fee_policy(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("service fee settings cannot be negative")
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        """`CORS_ORIGINS` split into a clean list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def firebase_enabled(self) -> bool:
        return bool(self.FIREBASE_SERVICE_ACCOUNT_KEY and self.FIREBASE_SERVICE_ACCOUNT_KEY.get_secret_value())

    @property
    def jwt_secret(self) -> str:
        """
        The JWT signing secret.

        Falls back to a development key when `SECRET_KEY` is unset and `DEBUG` is on.

        Raises:
            RuntimeError: If no secret is configured outside debug mode.
        """
        secret = self.SECRET_KEY.get_secret_value()
        if secret:
            return secret
        if self.DEBUG:
            return "clubsphere-dev-secret"
        raise RuntimeError("SECRET_KEY must be set when DEBUG is disabled")


# Global settings instance
settings: Settings = Settings()
