import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "ministry_db"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Ministry sync tuning
ATTENDANCE_DEBOUNCE_SECONDS = float(os.getenv("ATTENDANCE_DEBOUNCE_SECONDS", "0.1"))
OPTIMISTIC_WINDOW_SECONDS = float(os.getenv("OPTIMISTIC_WINDOW_SECONDS", "5.0"))
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "2.0"))
PRECEDENCE_POLICY = os.getenv("PRECEDENCE_POLICY", "origin_wins")
