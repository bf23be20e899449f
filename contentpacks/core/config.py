import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./contentpacks.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# ✅ Redis (idempotency store). Unset -> in-process store.
REDIS_URL = os.getenv("REDIS_URL")
IDEMPOTENCY_TTL_SECONDS = int(os.getenv("IDEMPOTENCY_TTL_SECONDS", "86400"))  # 24 hours
IDEMPOTENCY_FAIL_OPEN = os.getenv("IDEMPOTENCY_FAIL_OPEN", "true").lower() in ("1", "true", "yes")

# ✅ Content packs
CONTENT_PACK_STORAGE_PATH = os.getenv("CONTENT_PACK_STORAGE_PATH", "./data/content-packs")
DEFAULT_SCHEMA_VERSION = "1.0.0"
SUPPORTED_SCHEMA_VERSIONS = ["1.0.0"]
VALIDATION_TARGET_MS = int(os.getenv("VALIDATION_TARGET_MS", "1000"))
MAX_QUESTIONS_WARNING = int(os.getenv("MAX_QUESTIONS_WARNING", "2000"))
MAX_CATEGORIES_WARNING = int(os.getenv("MAX_CATEGORIES_WARNING", "200"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))  # 10MB
DEFAULT_CONTENT_PACK_PATH = os.getenv(
    "DEFAULT_CONTENT_PACK_PATH",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "default_content_pack.json"),
)  # served when no pack is active

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
