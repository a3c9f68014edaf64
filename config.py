import logging
import os

from dotenv import load_dotenv

load_dotenv()

# ----------------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------------
SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", 24))
BCRYPT_ROUNDS = 10

DATABASE_URL = os.getenv("DATABASE_URL", "").strip() or "sqlite+aiosqlite:///./data/app.db"

SESSION_COOKIE = os.getenv("SESSION_COOKIE", "token")
SESSION_MAX_AGE = ACCESS_TOKEN_EXPIRE_HOURS * 3600

LOGIN_PAGE = "/login"
HOME_PAGE = "/dashboard"
LANDING_PAGE = "/"

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:8000").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))


def configure_logging():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
