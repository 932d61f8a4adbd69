from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, model_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Termin Manager API"
    ENV: str = Field(default="lab", validation_alias=AliasChoices("TERMIN_ENV", "ENV"))  # lab|prod
    DATABASE_URL: str = Field(default="sqlite:///./lab.db", validation_alias=AliasChoices("TERMIN_DATABASE_URL", "DATABASE_URL"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("TERMIN_LOG_LEVEL", "LOG_LEVEL"))

    # Sessions (JWT carrying a server-side session id)
    AUTH_JWT_SECRET: str = Field(default="", validation_alias=AliasChoices("TERMIN_AUTH_JWT_SECRET", "AUTH_JWT_SECRET", "JWT_SECRET"))
    SESSION_TTL_MIN: int = Field(default=60 * 24 * 30, ge=1, validation_alias=AliasChoices("TERMIN_SESSION_TTL_MIN", "SESSION_TTL_MIN"))

    # Team registry
    CHANNEL_CODE_LENGTH: int = Field(default=8, ge=4, le=64, validation_alias=AliasChoices("TERMIN_CHANNEL_CODE_LENGTH", "CHANNEL_CODE_LENGTH"))
    CHANNEL_CODE_ATTEMPTS: int = Field(default=5, ge=1, validation_alias=AliasChoices("TERMIN_CHANNEL_CODE_ATTEMPTS", "CHANNEL_CODE_ATTEMPTS"))

    # Persistence retries (transient errors only)
    DB_RETRY_ATTEMPTS: int = Field(default=3, ge=1, validation_alias=AliasChoices("TERMIN_DB_RETRY_ATTEMPTS", "DB_RETRY_ATTEMPTS"))
    DB_RETRY_BACKOFF_S: float = Field(default=0.1, ge=0, validation_alias=AliasChoices("TERMIN_DB_RETRY_BACKOFF_S", "DB_RETRY_BACKOFF_S"))

    # Realtime
    STREAM_QUEUE_SIZE: int = Field(default=256, ge=1, validation_alias=AliasChoices("TERMIN_STREAM_QUEUE_SIZE", "STREAM_QUEUE_SIZE"))
    STREAM_HEARTBEAT_S: float = Field(default=15.0, gt=0, validation_alias=AliasChoices("TERMIN_STREAM_HEARTBEAT_S", "STREAM_HEARTBEAT_S"))

    AUTO_NOTIFY_NEW_APPOINTMENT: bool = Field(default=False, validation_alias=AliasChoices("TERMIN_AUTO_NOTIFY_NEW_APPOINTMENT", "AUTO_NOTIFY_NEW_APPOINTMENT"))

    @model_validator(mode="after")
    def _security_invariants(self):
        # Fail-fast: prod needs a real signing secret
        sec = (self.AUTH_JWT_SECRET or "").strip()
        if self.ENV == "prod":
            if not sec:
                raise ValueError("SECURITY: AUTH_JWT_SECRET empty (required when ENV=prod)")
            if len(sec) < 32:
                raise ValueError("SECURITY: AUTH_JWT_SECRET too short (min 32 chars)")
        self.AUTH_JWT_SECRET = sec
        return self


settings = Settings()
