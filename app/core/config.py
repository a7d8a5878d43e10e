import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# .env lives next to the project root (dev) or next to the EXE (frozen build)
if getattr(sys, "frozen", False):
    BASE_DIR = Path(sys.executable).parent
else:
    BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(dotenv_path=BASE_DIR / ".env")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or str(raw).strip().lower() in ("", "none"):
        return default
    return int(raw)


# ---------------------
# Database
# ---------------------
DB_HOST = os.getenv("DB_HOST", "127.0.0.1")
DB_PORT = str(_env_int("DB_PORT", 5432))
DB_NAME = os.getenv("DB_NAME", "nft_lending")
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASS = os.getenv("DB_PASS", "postgres")

DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg2://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

DB_ECHO = _env_bool("DB_ECHO", False)
DB_POOL_SIZE = _env_int("DB_POOL_SIZE", 5)
DB_MAX_OVERFLOW = _env_int("DB_MAX_OVERFLOW", 10)

# ---------------------
# Lending rules
# ---------------------
MAX_LTV_PERCENT = _env_int("MAX_LTV_PERCENT", 80)

# longest loan term an offer may ask for (default 10 years)
MAX_DURATION_SECONDS = _env_int("MAX_DURATION_SECONDS", 10 * 365 * 86_400)

# unknown borrower wallets get 404 instead of an implicit account
REQUIRE_BORROWER_REGISTRATION = _env_bool("REQUIRE_BORROWER_REGISTRATION", True)

# ---------------------
# HTTP / runtime
# ---------------------
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ).split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = _env_int("API_PORT", 5001)
