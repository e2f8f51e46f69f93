import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# .env is read from the working directory the service is started in
env_path = Path.cwd() / ".env"
load_dotenv(env_path)

STORAGE_BACKEND_JSON = "json"
STORAGE_BACKEND_SQLITE = "sqlite"
SUPPORTED_STORAGE_BACKENDS = {STORAGE_BACKEND_JSON, STORAGE_BACKEND_SQLITE}


@dataclass
class Config:
    data_dir: Path
    storage_backend: str  # json | sqlite
    db_path: Path  # used by the sqlite backend only
    # Money, in dollars
    invitation_cost: int | float  # price of one reverse proposal
    conversion_reward: int | float  # paid when an invited business signs up
    # HTTP API
    api_host: str
    api_port: int
    api_key: str  # empty disables the key check
    # Notification content
    app_download_url: str
    signup_url: str
    company_name: str
    support_email: str


def clean_env(value: str | None, default: str = "") -> str:
    """Strip whitespace and wrapping quotes from an env value."""
    if value is None:
        return default
    return value.strip().strip('"').strip("'") or default


def parse_amount(value: str | None, default: int | float) -> int | float:
    """Parse a money amount; integral values stay ``int`` so JSON keeps ``1`` not ``1.0``."""
    cleaned = clean_env(value)
    if not cleaned:
        return default
    amount = float(cleaned)
    if amount < 0:
        raise ValueError(f"Money amount must be >= 0, got {cleaned}")
    return int(amount) if amount.is_integer() else amount


def parse_storage_backend(value: str | None) -> str:
    backend = clean_env(value, STORAGE_BACKEND_JSON).lower()
    if backend not in SUPPORTED_STORAGE_BACKENDS:
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
    return backend


def load_config() -> Config:
    data_dir = Path(clean_env(os.getenv("DATA_DIR"), str(Path.cwd() / "data")))
    return Config(
        data_dir=data_dir,
        storage_backend=parse_storage_backend(os.getenv("STORAGE_BACKEND")),
        db_path=Path(clean_env(os.getenv("DB_PATH"), str(data_dir / "directory.db"))),
        invitation_cost=parse_amount(os.getenv("INVITATION_COST"), 1),
        conversion_reward=parse_amount(os.getenv("CONVERSION_REWARD"), 10),
        api_host=clean_env(os.getenv("API_HOST"), "0.0.0.0"),
        api_port=int(clean_env(os.getenv("API_PORT"), "8080")),
        api_key=clean_env(os.getenv("API_KEY")),
        app_download_url=clean_env(os.getenv("APP_DOWNLOAD_URL"), "https://revovend.com/app"),
        signup_url=clean_env(os.getenv("SIGNUP_URL"), "https://revovend.com/signup"),
        company_name=clean_env(os.getenv("COMPANY_NAME"), "RevoVend"),
        support_email=clean_env(os.getenv("SUPPORT_EMAIL"), "support@revovend.com"),
    )


CFG = load_config()
