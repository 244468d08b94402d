import os
import re
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv


# Load environment variables with .env, .env.dev/.env.prod support
def _load_env_files() -> None:
    """
    Load .env files with this precedence:
    1) Base .env (if present)
    2) Explicit file via ENV_FILE (e.g., .env.dev or ./config/.env.prod)
    3) Environment-specific file inferred from ENVIRONMENT/ENV/PYTHON_ENV
        - Supports aliases like dev/development, prod/production, stage/staging
    Note: Existing OS environment variables are never overridden.
    """
    # 1) Base .env
    base_path = find_dotenv(".env", usecwd=True)
    if base_path:
        load_dotenv(base_path, override=False)

    # 2) Explicit file via ENV_FILE
    explicit = os.environ.get("ENV_FILE")
    if explicit:
        explicit_path = explicit if os.path.isabs(explicit) else find_dotenv(explicit, usecwd=True)
        if explicit_path:
            load_dotenv(explicit_path, override=False)
            return

    # 3) Environment-specific file inferred from ENVIRONMENT/ENV/PYTHON_ENV
    env_name = (
        os.environ.get("ENVIRONMENT") or os.environ.get("ENV") or os.environ.get("PYTHON_ENV")
    )
    if env_name:
        slug = str(env_name).strip().lower()
        alias = {
            "dev": "development",
            "prod": "production",
            "stg": "staging",
            "test": "test",
        }
        resolved = alias.get(slug, slug)
        for candidate in (f".env.{resolved}", f".env.{slug}"):
            path = find_dotenv(candidate, usecwd=True)
            if path:
                load_dotenv(path, override=False)
                break


_load_env_files()


def _get_int_env(var_name: str, default_value: int) -> int:
    """
    Parse an integer environment variable robustly.
    - Trims whitespace and trailing semicolons.
    - Falls back to the first integer found in the string.
    - Returns the provided default if parsing fails.
    """
    raw = os.environ.get(var_name, str(default_value))
    text = str(raw).strip().rstrip(";")
    try:
        return int(text)
    except ValueError:
        match = re.search(r"[-+]?\d+", text or "")
        if match:
            return int(match.group(0))
    return int(default_value)


def _get_float_env(var_name: str, default_value: float) -> float:
    raw = str(os.environ.get(var_name, default_value)).strip().rstrip(";")
    try:
        return float(raw)
    except ValueError:
        return float(default_value)


def _get_bool_env(var_name: str, default_value: bool) -> bool:
    raw = os.environ.get(var_name)
    if raw is None:
        return default_value
    return raw.strip().lower() in ("1", "true", "yes", "on")


# === Environment Configuration ===
ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")  # development, staging, production, test
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# === Server Configuration ===
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = _get_int_env("SERVER_PORT", 3000)


# === CORS Configuration ===
def _get_cors_origins() -> list[str]:
    """
    Return CORS origins from env or the default frontend origin.
    Example env format:
      CORS_ORIGINS="http://localhost:3000,https://pleasureholidays.example"
    FRONTEND_URL is accepted as a single-origin shorthand.
    """
    raw = os.environ.get("CORS_ORIGINS", "").strip() or os.environ.get("FRONTEND_URL", "").strip()
    if not raw:
        return ["http://localhost:3000"]
    return [o.strip() for o in raw.split(",") if o.strip()]


CORS_ORIGINS = _get_cors_origins()

# === Database Configuration ===
MONGODB_URI = os.environ.get("MONGODB_URI")
DATABASE_NAME = os.environ.get("DATABASE_NAME", "pleasure_holidays")

# === JWT Configuration ===
JWT_SECRET = os.environ.get("JWT_SECRET", "your-secret-key-change-this-in-production")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
JWT_EXPIRATION_HOURS = _get_int_env("JWT_EXPIRATION_HOURS", 24 * 7)

# === Password Hashing ===
BCRYPT_ROUNDS = _get_int_env("BCRYPT_ROUNDS", 12)
PASSWORD_RESET_EXPIRE_MINUTES = _get_int_env("PASSWORD_RESET_EXPIRE_MINUTES", 10)
EMAIL_VERIFICATION_EXPIRE_HOURS = _get_int_env("EMAIL_VERIFICATION_EXPIRE_HOURS", 24)

# === Razorpay Configuration ===
RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.environ.get("RAZORPAY_KEY_SECRET", "")
RAZORPAY_API_URL = os.environ.get("RAZORPAY_API_URL", "https://api.razorpay.com/v1")

# === Booking Rules ===
TAX_RATE = _get_float_env("TAX_RATE", 0.18)  # GST
BOOKING_ID_PREFIX = os.environ.get("BOOKING_ID_PREFIX", "PH")

# === Rate Limiting (slowapi limit strings) ===
RATE_LIMIT_ENABLED = _get_bool_env("RATE_LIMIT_ENABLED", True)
RATE_LIMIT_GENERAL = os.environ.get("RATE_LIMIT_GENERAL", "100/15minutes")
RATE_LIMIT_AUTH = os.environ.get("RATE_LIMIT_AUTH", "5/15minutes")
RATE_LIMIT_PAYMENT = os.environ.get("RATE_LIMIT_PAYMENT", "10/hour")
RATE_LIMIT_ADMIN = os.environ.get("RATE_LIMIT_ADMIN", "50/5minutes")
RATE_LIMIT_UPLOAD = os.environ.get("RATE_LIMIT_UPLOAD", "20/hour")

# === Bootstrap Admin ===
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD")

# === Application Settings ===
APP_NAME = "Pleasure Holidays API"
APP_VERSION = "1.0.0"


@dataclass(frozen=True)
class Settings:
    """
    Snapshot of the configuration above, carried by the application context.
    Construct one explicitly to override values (tests do this).
    """

    environment: str = ENVIRONMENT
    log_level: str = LOG_LEVEL
    cors_origins: list[str] = field(default_factory=lambda: list(CORS_ORIGINS))
    mongodb_uri: str | None = MONGODB_URI
    database_name: str = DATABASE_NAME
    jwt_secret: str = JWT_SECRET
    jwt_algorithm: str = JWT_ALGORITHM
    jwt_expiration_hours: int = JWT_EXPIRATION_HOURS
    bcrypt_rounds: int = BCRYPT_ROUNDS
    password_reset_expire_minutes: int = PASSWORD_RESET_EXPIRE_MINUTES
    email_verification_expire_hours: int = EMAIL_VERIFICATION_EXPIRE_HOURS
    razorpay_key_id: str = RAZORPAY_KEY_ID
    razorpay_key_secret: str = RAZORPAY_KEY_SECRET
    razorpay_api_url: str = RAZORPAY_API_URL
    tax_rate: float = TAX_RATE
    booking_id_prefix: str = BOOKING_ID_PREFIX
    rate_limit_enabled: bool = RATE_LIMIT_ENABLED
    admin_email: str | None = ADMIN_EMAIL
    admin_password: str | None = ADMIN_PASSWORD

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev")
