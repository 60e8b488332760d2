import os


class Settings:
    PROJECT_NAME: str = "happylearners"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "happylearners.log"
    LOG_LEVEL: str = "INFO"
    REDIS_URL: str = os.getenv("HAPPYLEARNERS_REDIS_URL", "redis://localhost:6379/0")
    CONTENT_DIR: str = os.getenv("HAPPYLEARNERS_CONTENT_DIR", "content")
    QUESTION_TIME_LIMIT_SECONDS: int = 30
    SESSION_COOKIE_NAME: str = "quiz_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    SESSION_KEY_PREFIX: str = "quiz_session"
    PROGRESS_KEY_PREFIX: str = "progress"
    PROFILES_KEY: str = "profiles"
    ACTIVE_PROFILE_KEY: str = "active_profile"


settings = Settings()
