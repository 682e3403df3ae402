import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "public"))

ROOM_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
ROOM_ID_LENGTH = 8
ROOM_ID_MAX_ATTEMPTS = 32
ADMIN_TOKEN_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ADMIN_TOKEN_LENGTH = 24

ROOM_NAME_MAX_LENGTH = 100

CHAT_HISTORY_LIMIT = 200 # messages kept per room
CHAT_REPLAY_LIMIT = 50 # messages sent on join
CHAT_USER_MAX_LENGTH = 24
CHAT_TEXT_MAX_LENGTH = 500
DEFAULT_USER_NAME = "Guest"
