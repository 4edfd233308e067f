import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///solsnake.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Entity store backend: sql, memory or remote
    STATE_BACKEND = os.environ.get('STATE_BACKEND', 'sql')
    STATE_API_BASE_URL = os.environ.get('STATE_API_BASE_URL', '')
    STATE_API_TIMEOUT_SEC = float(os.environ.get('STATE_API_TIMEOUT_SEC', '10'))
    # Competition day boundary (local wall-clock hour in RESET_TIMEZONE)
    RESET_TIMEZONE = os.environ.get('RESET_TIMEZONE', 'America/Denver')
    RESET_HOUR_LOCAL = int(os.environ.get('RESET_HOUR_LOCAL', '13'))
    PERIOD_HOURS = float(os.environ.get('PERIOD_HOURS', '24'))
    # Leaderboard and prize pot
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '5'))
    POT_FRACTION = float(os.environ.get('POT_FRACTION', '0.9'))
    REQUIRE_PAYMENT = os.environ.get('REQUIRE_PAYMENT', '0').lower() in ('1', 'true', 'yes')
    # Rollover timer cadence (seconds)
    ROLLOVER_TICK_SEC = float(os.environ.get('ROLLOVER_TICK_SEC', '1'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
        ).split(',') if o.strip()
    ]
