import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.getenv("DATA_DIR", os.path.join(BASE_DIR, "data"))
DB_FILE = os.getenv("DB_FILE", os.path.join(DATA_DIR, "db.json"))
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(BASE_DIR, "uploads"))
PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(BASE_DIR, "public"))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 10))

# "json" (flat file) or "redis"
USER_STORE = os.getenv("USER_STORE", "json")

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

# Rooms persist empty unless this is switched on
PRUNE_EMPTY_ROOMS = os.getenv("PRUNE_EMPTY_ROOMS", "0").lower() in ("1", "true", "yes")

SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 5))
