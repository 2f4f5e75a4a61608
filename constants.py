import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 4173))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# "password" enables register/login, "guest" enables guest join. Never both.
AUTH_MODE = os.getenv("KOVERS_AUTH_MODE", "password")

# "file" or "redis"
STORAGE_BACKEND = os.getenv("KOVERS_STORAGE", "file")
DATA_FILE = os.getenv("KOVERS_DATA_FILE", "kovers-data.json")

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

TOKEN_HEADER = "X-Kovers-Token"

MAX_BODY_BYTES = 1_000_000
MESSAGE_MAX_LENGTH = 1500
MESSAGE_PAGE_SIZE = 200
ROOM_NAME_MAX_LENGTH = 40
USERNAME_PATTERN = r"^[a-z0-9_]{3,24}$"
USERNAME_MAX_LENGTH = 24
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128
USER_SEARCH_LIMIT = 10

# (id, name) of the rooms created on first run; every new user joins all of them
SEED_ROOMS = (("general", "General"), ("ideas", "Ideas"), ("support", "Support"))
SEED_ROOM_ID = "general"
SYSTEM_USER_ID = "system"
