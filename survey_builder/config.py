import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load the .env next to the project root, falling back to the default lookup
dotenv_path = os.path.join(os.path.dirname(__file__), "..", ".env")
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)
else:
    load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


ENV = os.getenv("ENV", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL")
if DATABASE_URL is None:
    sqlite_db_path = os.path.join(os.path.dirname(__file__), "survey_builder_fallback.db")
    DATABASE_URL = f"sqlite+aiosqlite:///{sqlite_db_path}"
    logger.warning("DATABASE_URL not set, falling back to local SQLite database.")
DB_ECHO = _flag("DB_ECHO")
DB_AUTO_CREATE = _flag("DB_AUTO_CREATE")

# --- Identity token / session cookie ---
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_TTL_DAYS = 7
AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "auth-token")
COOKIE_SECURE = _flag("COOKIE_SECURE", "true" if ENV == "production" else "false")

# --- Google OAuth ---
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000").rstrip("/")

# --- Content extraction (OpenAI-compatible chat completions) ---
DEEPSEEK_API_KEY = os.getenv("DEEPSEEK_API_KEY")
DEEPSEEK_BASE_URL = os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1")
LLM_MODEL = os.getenv("LLM_MODEL", "deepseek-chat")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4000"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
if not DEEPSEEK_API_KEY:
    logger.warning(
        "DEEPSEEK_API_KEY not set. Surveys will be created from the fallback template."
    )

# --- CORS ---
FALLBACK_ORIGINS = [
    "http://127.0.0.1:3000",
    "http://localhost:3000",
]
_env_origins = os.getenv("BACKEND_ALLOWED_ORIGINS")
ALLOWED_ORIGINS = (
    [origin.strip() for origin in _env_origins.split(",") if origin.strip()]
    if _env_origins
    else []
) or FALLBACK_ORIGINS
