import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "ministry_db"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

ATTENDANCE_DEBOUNCE_SECONDS = float(os.getenv("ATTENDANCE_DEBOUNCE_SECONDS", "0.1"))
OPTIMISTIC_WINDOW_SECONDS = float(os.getenv("OPTIMISTIC_WINDOW_SECONDS", "5.0"))
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "2.0"))
PRECEDENCE_POLICY = os.getenv("PRECEDENCE_POLICY", "origin_wins")
